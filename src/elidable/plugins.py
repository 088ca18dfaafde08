"""Prover plugins and the dispatcher that runs them.

A plugin is any object with a ``name`` and a ``prove`` method::

    class AlwaysPositive:
        name = "always-positive"

        def prove(self, goal, facts, timeout=None):
            return ProofResult(proven=goal.endswith("> 0"), reason="trusted")

``prove`` may return a :class:`~elidable.certificate.ProofResult` or an
awaitable of one. Plugins run one after another in registration order and
the first success wins. The synchronous dispatcher only accepts results that
are immediately available; the asynchronous one awaits each plugin in turn.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from .certificate import NOT_PROVEN, ProofMethod, ProofResult, create_step
from .facts import Fact

logger = logging.getLogger("elidable")


@runtime_checkable
class ProverPlugin(Protocol):
    """An external prover consulted after the built-in layers."""

    name: str

    def prove(
        self,
        goal: str,
        facts: Sequence[Fact],
        timeout: int | None = None,
    ) -> ProofResult | Awaitable[ProofResult]: ...


@dataclass(frozen=True)
class PluginOutcome:
    """Result of running the plugin stage.

    Attributes:
        result: The proof result (``method="plugin"`` on success).
        plugin_name: Name of the plugin that proved the goal, if any.
        used_external_solver: ``True`` when that plugin is a Z3/SMT solver.
    """

    result: ProofResult
    plugin_name: str | None = None
    used_external_solver: bool = False


_NO_OUTCOME = PluginOutcome(NOT_PROVEN)


def plugin_name(plugin: Any) -> str:
    return str(getattr(plugin, "name", type(plugin).__name__))


def is_external_solver(name: str) -> bool:
    lowered = name.lower()
    return "z3" in lowered or "smt" in lowered


def _accept(plugin: Any, result: Any, facts: tuple[Fact, ...]) -> PluginOutcome | None:
    if not isinstance(result, ProofResult) or not result.proven:
        return None
    name = plugin_name(plugin)
    reason = f"{name}: {result.reason or 'proven'}"
    if result.step is not None:
        step = result.step
    else:
        step = create_step(name, f"External prover {name}", reason, used_facts=facts)
    logger.debug("Prover plugin %s proved the goal (%s)", name, reason)
    return PluginOutcome(
        ProofResult(proven=True, method=ProofMethod.PLUGIN, reason=reason, step=step),
        plugin_name=name,
        used_external_solver=is_external_solver(name),
    )


def dispatch_sync(
    plugins: Iterable[ProverPlugin],
    goal: str,
    facts: Sequence[Fact],
    timeout: int | None = None,
) -> PluginOutcome:
    """Run *plugins* without awaiting anything.

    A plugin that returns an awaitable is skipped: a coroutine is closed
    unstarted, and other awaitables are dropped.
    """
    facts = tuple(facts)
    for plugin in plugins:
        try:
            result = plugin.prove(goal, facts, timeout)
        except Exception:
            logger.debug("Prover plugin %s raised", plugin_name(plugin), exc_info=True)
            continue
        if inspect.isawaitable(result):
            if inspect.iscoroutine(result):
                result.close()
            logger.debug(
                "Prover plugin %s returned a deferred result; skipped in synchronous mode",
                plugin_name(plugin),
            )
            continue
        outcome = _accept(plugin, result, facts)
        if outcome is not None:
            return outcome
    return _NO_OUTCOME


async def dispatch_async(
    plugins: Iterable[ProverPlugin],
    goal: str,
    facts: Sequence[Fact],
    timeout: int | None = None,
) -> PluginOutcome:
    """Run *plugins* one at a time, awaiting deferred results.

    *timeout* is forwarded to each plugin and never enforced here.
    """
    facts = tuple(facts)
    for plugin in plugins:
        try:
            result = plugin.prove(goal, facts, timeout)
            if inspect.isawaitable(result):
                result = await result
        except Exception:
            logger.debug("Prover plugin %s raised", plugin_name(plugin), exc_info=True)
            continue
        outcome = _accept(plugin, result, facts)
        if outcome is not None:
            return outcome
    return _NO_OUTCOME
