"""Proof orchestration — the layered prover.

Layers run in a fixed order and the first success wins:

  1. constant   the goal is a closed expression that evaluates to ``true``
  2. type       the goal is a known fact, or one conjunct of one
  3. algebra    a pattern rule from the :class:`~elidable.algebra.RuleCatalog`
  4. linear     Fourier-Motzkin entailment over the linear facts
  5. plugin     registered external provers, in order

Layers 2-4 need at least one fact. When nothing proves a goal the caller
keeps its runtime check; ``proven=False`` never means the goal is false.

Three entry points share that pipeline and differ only in how plugins run::

    prover = Prover()
    prover.try_prove("x + y > 0", facts)                          # sync
    await prover.try_prove_async("x + y > 0", facts)              # awaits plugins
    await prover.try_prove_with_certificate("x + y > 0", facts)   # full trace
"""

from __future__ import annotations

import ast
import logging
import math
import operator
import time
from collections.abc import Callable, Iterable, Sequence
from typing import Any, Protocol

from .algebra import AlgebraicRule, RuleCatalog
from .certificate import (
    NOT_PROVEN,
    ProofCertificate,
    ProofMethod,
    ProofResult,
    create_certificate,
    create_step,
    fail_certificate,
    succeed_certificate,
    with_elapsed,
)
from .config import DecidabilityFallback, _config, get_prover_plugins, notify_fallback
from .facts import Fact
from .linear import try_linear_arithmetic
from .parser import (
    has_ambiguous_negation,
    split_conjuncts,
    structurally_equal,
    to_python_source,
)
from .plugins import PluginOutcome, ProverPlugin, dispatch_async, dispatch_sync

logger = logging.getLogger("elidable")

NO_PROOF_REASON = "No proof method succeeded"


# ---------------------------------------------------------------------------
# Constant evaluation
# ---------------------------------------------------------------------------


class ConstantEvaluator(Protocol):
    """Decides whether an expression is a compile-time constant, and its value."""

    def is_constant(self, expr: Any) -> bool: ...

    def evaluate(self, expr: Any) -> Any: ...


_BINOPS: dict[type, Callable[[float, float], float]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.Mod: math.fmod,
    ast.Pow: operator.pow,
}
_CMPOPS: dict[type, Callable[[Any, Any], bool]] = {
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
}
_MAX_EXPONENT = 64


def _number(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, float):
        raise TypeError(f"Expected a number, got {value!r}")
    return value


def _truthy(value: Any) -> bool:
    if isinstance(value, float) and math.isnan(value):
        return False
    return bool(value)


class LiteralEvaluator:
    """Folds closed literal predicates such as ``1 + 1 === 2 && true``.

    Values follow the host language: every number is a double, ``%`` keeps
    the sign of the dividend, and ``&&``/``||`` yield one of their operands.
    Forms whose host meaning differs from Python's are not constant: chained
    comparisons, equality between a boolean and a number, and a ``!`` whose
    operand is not isolated. Anything that names a variable, calls a
    function or indexes a value is not constant either.
    """

    def _parse(self, expr: Any) -> ast.expr | None:
        if not isinstance(expr, str) or has_ambiguous_negation(expr):
            return None
        try:
            return ast.parse(to_python_source(expr), mode="eval").body
        except SyntaxError:
            return None

    def _is_constant_tree(self, node: ast.expr) -> bool:
        for child in ast.walk(node):
            if isinstance(child, ast.Constant):
                if not isinstance(child.value, (bool, int, float)):
                    return False
            elif isinstance(child, ast.operator):
                if type(child) not in _BINOPS:
                    return False
            elif isinstance(child, ast.cmpop):
                if type(child) not in _CMPOPS:
                    return False
            elif isinstance(child, ast.Compare):
                if len(child.ops) != 1:
                    return False
            elif not isinstance(
                child, (ast.BinOp, ast.UnaryOp, ast.BoolOp, ast.unaryop, ast.boolop)
            ):
                return False
        return True

    def is_constant(self, expr: Any) -> bool:
        node = self._parse(expr)
        return node is not None and self._is_constant_tree(node)

    def evaluate(self, expr: Any) -> Any:
        """Value of a constant *expr*.

        Raises:
            ValueError: If *expr* is not constant.
            TypeError: If an operator is applied to the wrong kind of value.
            ArithmeticError: On division by zero and the like.
        """
        node = self._parse(expr)
        if node is None or not self._is_constant_tree(node):
            raise ValueError(f"Not a constant expression: {expr!r}")
        return self._eval(node)

    def _eval(self, node: ast.expr) -> Any:
        if isinstance(node, ast.Constant):
            if isinstance(node.value, bool):
                return node.value
            return float(node.value)
        if isinstance(node, ast.UnaryOp):
            value = self._eval(node.operand)
            if isinstance(node.op, ast.Not):
                return not _truthy(value)
            if isinstance(node.op, ast.USub):
                return -_number(value)
            if isinstance(node.op, ast.UAdd):
                return _number(value)
            raise ValueError(f"Unsupported unary op: {type(node.op).__name__}")
        if isinstance(node, ast.BinOp):
            op = _BINOPS.get(type(node.op))
            if op is None:
                raise ValueError(f"Unsupported operator: {type(node.op).__name__}")
            left, right = _number(self._eval(node.left)), _number(self._eval(node.right))
            if isinstance(node.op, ast.Pow) and abs(right) > _MAX_EXPONENT:
                raise ValueError(f"Exponent too large: {right}")
            result = op(left, right)
            if isinstance(result, complex):
                raise ValueError(f"No real value for {left} ** {right}")
            return result
        if isinstance(node, ast.BoolOp):
            # the value that decided the outcome, as in the host language
            value = self._eval(node.values[0])
            for operand in node.values[1:]:
                if _truthy(value) != isinstance(node.op, ast.And):
                    break
                value = self._eval(operand)
            return value
        if isinstance(node, ast.Compare):
            left, right = self._eval(node.left), self._eval(node.comparators[0])
            op_type = type(node.ops[0])
            if op_type in (ast.Eq, ast.NotEq):
                if isinstance(left, bool) != isinstance(right, bool):
                    raise TypeError(f"Equality between {left!r} and {right!r} is ambiguous")
            else:
                left, right = _number(left), _number(right)
            return _CMPOPS[op_type](left, right)
        raise ValueError(f"Unsupported expression: {type(node).__name__}")


def try_constant(goal: str, evaluator: ConstantEvaluator, expression: Any = None) -> ProofResult:
    """Prove *goal* when it is a compile-time constant equal to ``True``."""
    expr = goal if expression is None else expression
    try:
        if not evaluator.is_constant(expr) or evaluator.evaluate(expr) is not True:
            return NOT_PROVEN
    except (ArithmeticError, ValueError, TypeError) as e:
        logger.debug("Constant evaluation of %r failed: %s", goal, e)
        return NOT_PROVEN
    step = create_step(
        "constant_evaluation",
        "The goal is a compile-time constant",
        "statically true",
    )
    return ProofResult(proven=True, method=ProofMethod.CONSTANT, reason="statically true", step=step)


# ---------------------------------------------------------------------------
# Type-fact lookup
# ---------------------------------------------------------------------------


def try_type_facts(goal: str, facts: Sequence[Fact]) -> ProofResult:
    """Prove *goal* when a fact states it outright.

    The goal must equal a fact's predicate, or one conjunct of an ``&&``
    predicate (whitespace aside).
    """
    target = goal.strip()
    for fact in facts:
        if structurally_equal(fact.predicate, target):
            rule = "type_fact"
        elif "&&" in fact.predicate and any(
            structurally_equal(c, target) for c in split_conjuncts(fact.predicate)
        ):
            rule = "type_fact_conjunction"
        else:
            continue
        reason = f"{fact.variable} has Refined type guaranteeing: {fact.predicate}"
        step = create_step(
            rule,
            "The goal is guaranteed by a refined type",
            reason,
            used_facts=(fact,),
        )
        return ProofResult(proven=True, method=ProofMethod.TYPE, reason=reason, step=step)
    return NOT_PROVEN


# ---------------------------------------------------------------------------
# Prover
# ---------------------------------------------------------------------------


class Prover:
    """Layered prover with its own rule catalog.

    Args:
        rules: A :class:`RuleCatalog`, or rules to seed one with. Defaults to
            a catalog of the built-in rules.
        plugins: Prover plugins to consult. ``None`` reads the registry in
            :mod:`elidable.config` on every attempt.
        evaluator: Constant evaluator; defaults to :class:`LiteralEvaluator`.
        decidability: Receives a :class:`~elidable.config.DecidabilityFallback`
            for each statically decidable brand that needed a plugin or a
            runtime check. Defaults to logging it.
        timeout_ms: Timeout forwarded to plugins; defaults to the
            ``timeout_ms`` setting.
    """

    def __init__(
        self,
        rules: RuleCatalog | Iterable[AlgebraicRule] | None = None,
        plugins: Iterable[ProverPlugin] | None = None,
        evaluator: ConstantEvaluator | None = None,
        decidability: Callable[[DecidabilityFallback], None] | None = None,
        timeout_ms: int | None = None,
    ) -> None:
        self.catalog = rules if isinstance(rules, RuleCatalog) else RuleCatalog(rules)
        self._plugins = None if plugins is None else tuple(plugins)
        self.evaluator: ConstantEvaluator = evaluator or LiteralEvaluator()
        self.decidability = decidability
        self.timeout_ms = timeout_ms

    @property
    def plugins(self) -> tuple[ProverPlugin, ...]:
        return self._plugins if self._plugins is not None else get_prover_plugins()

    def register_rule(self, rule: AlgebraicRule) -> AlgebraicRule:
        """Append *rule* after the rules already in the catalog."""
        return self.catalog.register(rule)

    def _timeout(self) -> int:
        return self.timeout_ms if self.timeout_ms is not None else int(_config["timeout_ms"])

    def _builtin_layers(self, goal: str, facts: tuple[Fact, ...], expression: Any) -> ProofResult:
        result = try_constant(goal, self.evaluator, expression)
        if result.proven or not facts:
            return result
        for layer in (try_type_facts, self.catalog.prove, try_linear_arithmetic):
            result = layer(goal, facts)
            if result.proven:
                return result
        return NOT_PROVEN

    def _finish(self, goal: str, facts: tuple[Fact, ...], outcome: PluginOutcome) -> ProofResult:
        if outcome.result.proven:
            strategy = "smt" if outcome.used_external_solver else "plugin"
            notify_fallback(goal, facts, strategy, self.decidability)
            return outcome.result
        notify_fallback(goal, facts, "runtime", self.decidability)
        logger.debug("No proof for %r; a runtime check is required", goal)
        return ProofResult(proven=False, reason=NO_PROOF_REASON)

    def try_prove(
        self,
        goal: str,
        facts: Iterable[Fact] = (),
        *,
        expression: Any = None,
    ) -> ProofResult:
        """Prove *goal* without awaiting anything.

        Plugins that answer asynchronously are skipped.

        Args:
            goal: The normalized obligation, e.g. ``"x + y > 0"``.
            facts: Known facts about the values in *goal*.
            expression: What to hand the constant evaluator instead of
                *goal*, when the caller has a richer representation.
        """
        facts = tuple(facts)
        result = self._builtin_layers(goal, facts, expression)
        if result.proven:
            return result
        outcome = dispatch_sync(self.plugins, goal, facts, self._timeout())
        return self._finish(goal, facts, outcome)

    async def try_prove_async(
        self,
        goal: str,
        facts: Iterable[Fact] = (),
        *,
        expression: Any = None,
    ) -> ProofResult:
        """Like :meth:`try_prove`, but awaits each plugin in turn."""
        facts = tuple(facts)
        result = self._builtin_layers(goal, facts, expression)
        if result.proven:
            return result
        outcome = await dispatch_async(self.plugins, goal, facts, self._timeout())
        return self._finish(goal, facts, outcome)

    async def try_prove_with_certificate(
        self,
        goal: str,
        facts: Iterable[Fact] = (),
        *,
        expression: Any = None,
    ) -> ProofCertificate:
        """Run :meth:`try_prove_async` and record the attempt as a certificate.

        ``time_ms`` covers the whole attempt, plugins included.
        """
        t0 = time.perf_counter()
        facts = tuple(facts)
        cert = create_certificate(goal, facts)
        result = await self.try_prove_async(goal, facts, expression=expression)
        if result.proven and result.method is not None:
            step = result.step or create_step(
                result.method.value, result.reason or "", result.reason or ""
            )
            cert = succeed_certificate(cert, result.method, step)
        else:
            cert = fail_certificate(cert, result.reason or NO_PROOF_REASON)
        return with_elapsed(cert, (time.perf_counter() - t0) * 1000)


# ---------------------------------------------------------------------------
# Module-level entry points
# ---------------------------------------------------------------------------


def try_prove(goal: str, facts: Iterable[Fact] = (), *, expression: Any = None) -> ProofResult:
    """:meth:`Prover.try_prove` on a default prover."""
    return Prover().try_prove(goal, facts, expression=expression)


async def try_prove_async(
    goal: str, facts: Iterable[Fact] = (), *, expression: Any = None
) -> ProofResult:
    """:meth:`Prover.try_prove_async` on a default prover."""
    return await Prover().try_prove_async(goal, facts, expression=expression)


async def try_prove_with_certificate(
    goal: str, facts: Iterable[Fact] = (), *, expression: Any = None
) -> ProofCertificate:
    """:meth:`Prover.try_prove_with_certificate` on a default prover."""
    return await Prover().try_prove_with_certificate(goal, facts, expression=expression)
