"""Global configuration, the prover plugin registry and decidability warnings.

Use :func:`configure` to set defaults that apply to every subsequent proof
attempt::

    from elidable import configure
    configure(timeout_ms=2_000, warn_on_fallback="error")

Plugins registered with :func:`register_prover_plugin` are consulted, in
registration order, by every :class:`~elidable.engine.Prover` that was not
given an explicit plugin list.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .facts import Fact, can_prove_at_compile_time, extract_brands, get_decidability

if TYPE_CHECKING:
    from .plugins import ProverPlugin

logger = logging.getLogger("elidable")

_WARNING_LEVELS = ("error", "warn", "info", "off")
_MODES = ("full", "assertions", "none")
_CHECK_KINDS = ("precondition", "postcondition", "invariant")

_DEFAULTS: dict[str, Any] = {
    "timeout_ms": 1000,
    "max_constraints": 512,
    "log_level": "WARNING",
    "mode": "full",
    "strip_preconditions": False,
    "strip_postconditions": False,
    "strip_invariants": False,
    "warn_on_fallback": "warn",
    "warn_on_smt": "info",
    "ignore_brands": (),
}

_config: dict[str, Any] = dict(_DEFAULTS)


def configure(**kwargs: Any) -> None:
    """Set global proof defaults.

    Supported keys:

    - ``timeout_ms`` (int): advisory timeout forwarded to prover plugins
      (default 1000).
    - ``max_constraints`` (int): cap on live constraints during
      Fourier-Motzkin elimination (default 512).
    - ``log_level`` (str): level of the ``elidable`` logger
      (default ``"WARNING"``).
    - ``mode`` (str): ``"full"``, ``"assertions"`` (invariants only) or
      ``"none"``; see :func:`should_emit_check`.
    - ``strip_preconditions`` / ``strip_postconditions`` /
      ``strip_invariants`` (bool): drop that kind of runtime check.
    - ``warn_on_fallback`` (str): level used when a compile-time brand falls
      back to a plugin or a runtime check (default ``"warn"``).
    - ``warn_on_smt`` (str): level used when a decidable brand needed a
      plugin (default ``"info"``).
    - ``ignore_brands`` (iterable of str): brands that never warn.

    Warning levels are ``"error"``, ``"warn"``, ``"info"`` and ``"off"``.

    Raises:
        ValueError: If an unknown key or an invalid value is provided.
    """
    unknown = set(kwargs) - set(_config)
    if unknown:
        raise ValueError(f"Unknown configure() keys: {sorted(unknown)}")
    for key in ("warn_on_fallback", "warn_on_smt"):
        if key in kwargs and kwargs[key] not in _WARNING_LEVELS:
            raise ValueError(f"{key} must be one of {_WARNING_LEVELS}, got {kwargs[key]!r}")
    if "mode" in kwargs and kwargs["mode"] not in _MODES:
        raise ValueError(f"mode must be one of {_MODES}, got {kwargs['mode']!r}")
    if "ignore_brands" in kwargs:
        kwargs["ignore_brands"] = tuple(kwargs["ignore_brands"])
    _config.update(kwargs)

    if "log_level" in kwargs:
        logger.setLevel(getattr(logging, kwargs["log_level"], logging.WARNING))


def reset_config() -> None:
    """Restore every setting to its default."""
    _config.clear()
    _config.update(_DEFAULTS)


def get_config() -> dict[str, Any]:
    """A copy of the current settings."""
    return dict(_config)


def should_emit_check(kind: str) -> bool:
    """Whether a runtime check of *kind* should be generated at all.

    *kind* is ``"precondition"``, ``"postcondition"`` or ``"invariant"``.
    ``mode="none"`` emits nothing, ``mode="assertions"`` keeps invariants
    only, and the ``strip_*`` flags drop their kind in any mode.

    Raises:
        ValueError: For an unknown *kind*.
    """
    if kind not in _CHECK_KINDS:
        raise ValueError(f"Unknown check kind {kind!r}; expected one of {_CHECK_KINDS}")
    mode = _config["mode"]
    if mode == "none":
        return False
    if mode == "assertions" and kind != "invariant":
        return False
    return not _config[f"strip_{kind}s"]


# ---------------------------------------------------------------------------
# Prover plugin registry
# ---------------------------------------------------------------------------

_plugins: list[ProverPlugin] = []


def register_prover_plugin(plugin: ProverPlugin) -> None:
    """Append *plugin*; plugins are tried in registration order."""
    _plugins.append(plugin)


def get_prover_plugins() -> tuple[ProverPlugin, ...]:
    return tuple(_plugins)


def clear_prover_plugins() -> None:
    _plugins.clear()


# ---------------------------------------------------------------------------
# Decidability warnings
# ---------------------------------------------------------------------------

_PREFIX = "[elidable decidability]"
_LOG_LEVELS = {"error": logging.ERROR, "warn": logging.WARNING, "info": logging.INFO}


@dataclass(frozen=True)
class DecidabilityFallback:
    """A brand expected to be proven statically that was not.

    Attributes:
        brand: The refinement brand, e.g. ``"Positive"``.
        expected_strategy: Its registered decidability level.
        actual_strategy: ``"smt"``, ``"plugin"`` or ``"runtime"``.
        reason: Human-readable detail.
    """

    brand: str
    expected_strategy: str
    actual_strategy: str
    reason: str = ""


def emit_decidability_warning(info: DecidabilityFallback) -> None:
    """Log *info* at the level the configuration selects for it."""
    if info.brand in _config["ignore_brands"]:
        return

    if info.expected_strategy == "compile-time" and info.actual_strategy not in (
        "constant",
        "type",
    ):
        level = _config["warn_on_fallback"]
        message = (
            f'Predicate "{info.brand}" marked as compile-time decidable'
            f" fell back to {info.actual_strategy}"
        )
    elif info.actual_strategy in ("smt", "plugin"):
        level = _config["warn_on_smt"]
        message = f'Predicate "{info.brand}" required an external solver for verification'
    else:
        return

    if level == "off":
        return
    if info.reason:
        message += f": {info.reason}"
    logger.log(_LOG_LEVELS[level], "%s %s", _PREFIX, message)


def notify_fallback(
    goal: str,
    facts: Sequence[Fact],
    actual_strategy: str,
    notify: Callable[[DecidabilityFallback], None] | None = None,
) -> list[DecidabilityFallback]:
    """Report every statically decidable brand in *facts* that needed *actual_strategy*.

    Args:
        goal: The obligation that was attempted.
        facts: The facts it was attempted with.
        actual_strategy: ``"smt"``, ``"plugin"`` or ``"runtime"``.
        notify: Callback receiving each :class:`DecidabilityFallback`;
            defaults to :func:`emit_decidability_warning`.

    Returns:
        The notifications that were sent.
    """
    notify = notify or emit_decidability_warning
    if actual_strategy == "runtime":
        reason = f"Could not prove at compile time: {goal}"
    elif actual_strategy == "smt":
        reason = f"Used SMT solver for: {goal}"
    else:
        reason = f"Used prover plugin for: {goal}"

    sent: list[DecidabilityFallback] = []
    for brand in extract_brands(facts):
        info = get_decidability(brand)
        if info is None or not can_prove_at_compile_time(info.decidability):
            continue
        fallback = DecidabilityFallback(brand, info.decidability.value, actual_strategy, reason)
        notify(fallback)
        sent.append(fallback)
    return sent
