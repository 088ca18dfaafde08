"""Z3 prover plugin — discharges goals the built-in layers cannot.

The plugin asserts every translatable fact, asserts the negated goal and
asks Z3 for a model. ``unsat`` means no value satisfies the facts while
violating the goal, so the goal is proven::

    from elidable import Z3ProverPlugin, register_prover_plugin
    register_prover_plugin(Z3ProverPlugin())

    try_prove("x * x >= 0", []).proven   # True

Facts Z3 can not express are left out, which only weakens the premises:
the plugin may fail to prove a goal but never proves a wrong one.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence

import z3

from .certificate import ProofMethod, ProofResult, create_step
from .config import _config
from .facts import Fact
from .translator import PredicateTranslator, TranslationError

logger = logging.getLogger("elidable")


class Z3ProverPlugin:
    """Prove goals by refuting their negation with Z3.

    Args:
        timeout_ms: Solver timeout. A per-call ``timeout`` overrides it;
            without either, the ``timeout_ms`` setting applies.
        int_variables: Variables to model as integers (needed for ``%``).
        name: Plugin name reported in proof results.
    """

    def __init__(
        self,
        timeout_ms: int | None = None,
        int_variables: Sequence[str] = (),
        name: str = "z3",
    ) -> None:
        self.timeout_ms = timeout_ms
        self.int_variables = tuple(int_variables)
        self.name = name

    def __repr__(self) -> str:
        return f"Z3ProverPlugin(name={self.name!r}, timeout_ms={self.timeout_ms!r})"

    def prove(
        self,
        goal: str,
        facts: Sequence[Fact],
        timeout: int | None = None,
    ) -> ProofResult:
        translator = PredicateTranslator(self.int_variables)
        try:
            target = translator.translate(goal)
        except TranslationError as e:
            return ProofResult(proven=False, reason=f"goal not translatable: {e}")

        if timeout is None:
            timeout = self.timeout_ms if self.timeout_ms is not None else _config["timeout_ms"]

        s = z3.Solver()
        s.set("timeout", int(timeout))

        used: list[Fact] = []
        for fact in facts:
            try:
                s.add(translator.translate(fact.predicate))
            except TranslationError as e:
                logger.debug("Z3 plugin skipping fact %s: %s", fact, e)
                continue
            used.append(fact)

        s.add(z3.Not(target))

        t0 = time.monotonic()
        check = s.check()
        elapsed = (time.monotonic() - t0) * 1000
        logger.debug("Z3 returned %s for %r in %.1fms", check, goal, elapsed)

        if check == z3.unsat:
            reason = "negation is unsatisfiable"
            step = create_step(
                self.name,
                "facts ∧ ¬goal is unsatisfiable (SMT)",
                f"Z3 {z3.get_version_string()}: {reason}",
                used_facts=used,
            )
            return ProofResult(proven=True, method=ProofMethod.PLUGIN, reason=reason, step=step)
        if check == z3.sat:
            return ProofResult(proven=False, reason=f"counterexample: {s.model()}")
        return ProofResult(proven=False, reason=f"Z3 returned unknown (timeout {timeout}ms?)")
