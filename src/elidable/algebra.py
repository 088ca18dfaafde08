"""Algebraic rule engine — pattern rules for typeclass laws and numeric facts.

Rules are tried in catalog order and the first match wins. Each rule has a
single ``match(goal, facts)`` that answers with a :class:`MatchResult`
carrying the facts it consumed, so every success can be written into a
proof certificate.

Two families ship built in:

* equational rules for typeclass laws (identity, associativity,
  commutativity, reflexivity, functor identity and composition), matched
  syntactically on ``left === right`` goals;
* numeric rules (``x + y > 0`` from ``x > 0`` and ``y > 0``, range checks
  for ``Byte`` and ``Port`` values, ...) matched against the bounds stated
  by the facts.

Custom rules are appended after the built-ins through a
:class:`RuleCatalog`::

    catalog = RuleCatalog()

    @catalog.rule("even_double", "2 * x is even")
    def _even_double(goal, facts):
        return MatchResult(bool(re.fullmatch(r"2 \\* \\w+ % 2 === 0", goal)))
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from fractions import Fraction

from .certificate import NOT_PROVEN, ProofMethod, ProofResult, create_step
from .facts import Fact
from .parser import (
    BinaryOp,
    call_arguments,
    is_identity_element,
    parse_binary_op,
    parse_equality_goal,
    split_conjuncts,
    split_top_level,
    structurally_equal,
)

logger = logging.getLogger("elidable")


@dataclass(frozen=True)
class MatchResult:
    """Whether a rule matched, and which facts it relied on."""

    matched: bool
    used_facts: tuple[Fact, ...] = ()


NO_MATCH = MatchResult(False)

Matcher = Callable[[str, Sequence[Fact]], MatchResult]


@dataclass(frozen=True)
class AlgebraicRule:
    """A named pattern rule.

    Attributes:
        name: Stable identifier, reported in certificates.
        description: The law the rule encodes, in human-readable form.
        matcher: ``(goal, facts) -> MatchResult``.
    """

    name: str
    description: str
    matcher: Matcher = field(repr=False, compare=False)

    def match(self, goal: str, facts: Sequence[Fact]) -> MatchResult:
        return self.matcher(goal, facts)


_BUILTINS: list[AlgebraicRule] = []


def _rule(name: str, description: str) -> Callable[[Matcher], Matcher]:
    """Append the decorated matcher to the built-in rules, in definition order."""

    def register(fn: Matcher) -> Matcher:
        _BUILTINS.append(AlgebraicRule(name, description, fn))
        return fn

    return register


def _facts_mentioning(facts: Sequence[Fact], *words: str) -> tuple[Fact, ...]:
    return tuple(f for f in facts if any(w in f.predicate for w in words))


# ---------------------------------------------------------------------------
# Equational rules (typeclass laws)
# ---------------------------------------------------------------------------


@_rule("left_identity", "combine(empty, a) === a (left identity law)")
def _left_identity(goal: str, facts: Sequence[Fact]) -> MatchResult:
    eq = parse_equality_goal(goal)
    if eq is None:
        return NO_MATCH
    op = parse_binary_op(eq.left)
    if op is None or not is_identity_element(op.left):
        return NO_MATCH
    if not structurally_equal(eq.right, op.right):
        return NO_MATCH
    return MatchResult(True, _facts_mentioning(facts, "identity", "Monoid"))


@_rule("right_identity", "combine(a, empty) === a (right identity law)")
def _right_identity(goal: str, facts: Sequence[Fact]) -> MatchResult:
    eq = parse_equality_goal(goal)
    if eq is None:
        return NO_MATCH
    op = parse_binary_op(eq.left)
    if op is None or not is_identity_element(op.right):
        return NO_MATCH
    if not structurally_equal(eq.right, op.left):
        return NO_MATCH
    return MatchResult(True, _facts_mentioning(facts, "identity", "Monoid"))


def _same_triple(a: tuple[str, str, str], b: tuple[str, str, str]) -> bool:
    return all(structurally_equal(x, y) for x, y in zip(a, b))


@_rule(
    "associativity",
    "combine(combine(a, b), c) === combine(a, combine(b, c)) (associativity law)",
)
def _associativity(goal: str, facts: Sequence[Fact]) -> MatchResult:
    eq = parse_equality_goal(goal)
    if eq is None:
        return NO_MATCH
    lhs = parse_binary_op(eq.left)
    rhs = parse_binary_op(eq.right)
    if lhs is None or rhs is None or lhs.op != rhs.op:
        return NO_MATCH

    # (a∘b)∘c === a∘(b∘c)
    inner_l = parse_binary_op(lhs.left)
    inner_r = parse_binary_op(rhs.right)
    if inner_l and inner_r and inner_l.op == lhs.op and inner_r.op == lhs.op:
        if _same_triple(
            (inner_l.left, inner_l.right, lhs.right),
            (rhs.left, inner_r.left, inner_r.right),
        ):
            return MatchResult(True, _facts_mentioning(facts, "associative", "Semigroup"))

    # a∘(b∘c) === (a∘b)∘c
    inner_l = parse_binary_op(lhs.right)
    inner_r = parse_binary_op(rhs.left)
    if inner_l and inner_r and inner_l.op == lhs.op and inner_r.op == lhs.op:
        if _same_triple(
            (lhs.left, inner_l.left, inner_l.right),
            (inner_r.left, inner_r.right, rhs.right),
        ):
            return MatchResult(True, _facts_mentioning(facts, "associative", "Semigroup"))

    return NO_MATCH


@_rule("commutativity", "combine(a, b) === combine(b, a) (commutativity law)")
def _commutativity(goal: str, facts: Sequence[Fact]) -> MatchResult:
    eq = parse_equality_goal(goal)
    if eq is None:
        return NO_MATCH
    lhs = parse_binary_op(eq.left)
    rhs = parse_binary_op(eq.right)
    if lhs is None or rhs is None or lhs.op != rhs.op:
        return NO_MATCH
    if structurally_equal(lhs.left, rhs.right) and structurally_equal(lhs.right, rhs.left):
        return MatchResult(
            True, _facts_mentioning(facts, "commutative", "CommutativeSemigroup")
        )
    return NO_MATCH


@_rule("reflexivity", "a === a (reflexivity of equality)")
def _reflexivity(goal: str, facts: Sequence[Fact]) -> MatchResult:
    eq = parse_equality_goal(goal)
    if eq is not None and structurally_equal(eq.left, eq.right):
        return MatchResult(True)
    return NO_MATCH


# ---------------------------------------------------------------------------
# Functor laws
# ---------------------------------------------------------------------------

_ARROW = re.compile(r"^\(?\s*(\w+)\s*\)?\s*=>\s*(.+)$", re.S)
_FUNCTION_EXPR = re.compile(
    r"^function\s*\(\s*(\w+)\s*\)\s*\{\s*return\s+(.+?)\s*;?\s*\}$", re.S
)
_LAMBDA = re.compile(r"^lambda\s+(\w+)\s*:\s*(.+)$", re.S)
_COMPOSE_CALL = re.compile(r"^(?:\w+\.)?(compose|flow|pipe)\s*\(")


def _as_map(op: BinaryOp | None) -> tuple[str, str] | None:
    """``(function, container)`` for ``map(f, fa)`` or ``fa.map(f)``."""
    if op is None or op.op != "map":
        return None
    if op.notation == "method":
        return op.right, op.left
    if op.notation == "call":
        return op.left, op.right
    return None


def _lambda_parts(fn: str) -> tuple[str, str] | None:
    """``(parameter, body)`` of a one-parameter arrow, function or lambda."""
    fn = fn.strip()
    for pattern in (_ARROW, _FUNCTION_EXPR, _LAMBDA):
        m = pattern.match(fn)
        if m:
            return m.group(1), m.group(2).strip()
    return None


def _is_identity_function(fn: str) -> bool:
    fn = fn.strip()
    if fn in ("id", "identity"):
        return True
    parts = _lambda_parts(fn)
    return parts is not None and parts[0] == parts[1]


def _is_composition(fn: str, outer: str, inner: str) -> bool:
    """True when *fn* is recognizably ``outer ∘ inner``."""
    fn = fn.strip()

    call = call_arguments(fn, _COMPOSE_CALL)
    if call is not None:
        callee, args = call
        if len(args) == 2:
            first, second = args
            if callee.endswith("compose"):
                return structurally_equal(first, outer) and structurally_equal(second, inner)
            return structurally_equal(first, inner) and structurally_equal(second, outer)

    for sep in (" . ", "∘"):
        parts = split_top_level(fn, sep)
        if len(parts) == 2:
            return structurally_equal(parts[0], outer) and structurally_equal(parts[1], inner)

    parts = _lambda_parts(fn)
    if parts is not None:
        param, body = parts
        return structurally_equal(body, f"{outer}({inner}({param}))")
    return False


@_rule("identity_function_left", "map(id, fa) === fa (functor identity law)")
def _functor_identity(goal: str, facts: Sequence[Fact]) -> MatchResult:
    eq = parse_equality_goal(goal)
    if eq is None:
        return NO_MATCH
    mapped = _as_map(parse_binary_op(eq.left))
    if mapped is None:
        return NO_MATCH
    fn, container = mapped
    if _is_identity_function(fn) and structurally_equal(eq.right, container):
        return MatchResult(True, _facts_mentioning(facts, "Functor"))
    return NO_MATCH


def _nested_matches_composed(nested: str, composed: str) -> bool:
    outer = _as_map(parse_binary_op(nested))
    single = _as_map(parse_binary_op(composed))
    if outer is None or single is None:
        return False
    g, inner_expr = outer
    inner = _as_map(parse_binary_op(inner_expr))
    if inner is None:
        return False
    f, fa = inner
    fn, container = single
    return structurally_equal(fa, container) and _is_composition(fn, g, f)


@_rule("functor_composition", "map(g, map(f, fa)) === map(g . f, fa) (functor composition law)")
def _functor_composition(goal: str, facts: Sequence[Fact]) -> MatchResult:
    eq = parse_equality_goal(goal)
    if eq is None:
        return NO_MATCH
    if _nested_matches_composed(eq.left, eq.right) or _nested_matches_composed(
        eq.right, eq.left
    ):
        return MatchResult(True, _facts_mentioning(facts, "Functor"))
    return NO_MATCH


# ---------------------------------------------------------------------------
# Numeric rules
#
# Bounds are read conjunct by conjunct from the facts. A fact conjunct
# ``x > 5`` satisfies a requirement ``x > 0``; ``y < 0.5`` never satisfies
# ``y < 0``.
# ---------------------------------------------------------------------------

_NUMBER = r"-?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?"
_COMPARATOR = r">=|<=|===|==|>|<"
_BOUND = re.compile(rf"^(\w+)\s*({_COMPARATOR})\s*({_NUMBER})$")
_BOUND_REVERSED = re.compile(rf"^({_NUMBER})\s*({_COMPARATOR})\s*(\w+)$")
_MIRROR = {">": "<", ">=": "<=", "<": ">", "<=": ">=", "==": "=="}


def _bounds(fact: Fact) -> Iterator[tuple[str, str, Fraction]]:
    """``(variable, op, constant)`` for each simple bound conjunct of *fact*."""
    for conjunct in split_conjuncts(fact.predicate):
        m = _BOUND.match(conjunct)
        if m:
            op = "==" if m.group(2) == "===" else m.group(2)
            yield m.group(1), op, Fraction(m.group(3))
            continue
        m = _BOUND_REVERSED.match(conjunct)
        if m:
            op = "==" if m.group(2) == "===" else m.group(2)
            yield m.group(3), _MIRROR[op], Fraction(m.group(1))


def _implies(op: str, c: Fraction, want: str, k: Fraction) -> bool:
    """Does ``v op c`` imply ``v want k``?"""
    if want == ">":
        return (op == ">" and c >= k) or (op in (">=", "==") and c > k)
    if want == ">=":
        return op in (">", ">=", "==") and c >= k
    if want == "<":
        return (op == "<" and c <= k) or (op in ("<=", "==") and c < k)
    if want == "<=":
        return op in ("<", "<=", "==") and c <= k
    return False


def _find_bound(facts: Sequence[Fact], variable: str, want: str, k: int) -> Fact | None:
    bound = Fraction(k)
    for fact in facts:
        for var, op, c in _bounds(fact):
            if var == variable and _implies(op, c, want, bound):
                return fact
    return None


def _bounded(facts: Sequence[Fact], *requirements: tuple[str, str, int]) -> MatchResult:
    used: list[Fact] = []
    for variable, want, k in requirements:
        fact = _find_bound(facts, variable, want, k)
        if fact is None:
            return NO_MATCH
        if fact not in used:
            used.append(fact)
    return MatchResult(True, tuple(used))


_SUM_GT_ZERO = re.compile(r"^(\w+)\s*\+\s*(\w+)\s*>\s*0$")
_SUM_GE_ZERO = re.compile(r"^(\w+)\s*\+\s*(\w+)\s*>=\s*0$")
_GE_ZERO = re.compile(r"^(\w+)\s*>=\s*0$")
_GT_ZERO = re.compile(r"^(\w+)\s*>\s*0$")
_DOUBLE_GT = re.compile(r"^2\s*\*\s*(\w+)\s*>\s*(\w+)$")
_PRODUCT_GT_ZERO = re.compile(r"^(\w+)\s*\*\s*(\w+)\s*>\s*0$")
_GT = re.compile(r"^(\w+)\s*>\s*(\w+)$")
_BYTE_RANGE = re.compile(r"^(\w+)\s*>=\s*0\s*&&\s*\1\s*<=\s*255$")
_PORT_RANGE = re.compile(r"^(\w+)\s*>=\s*1\s*&&\s*\1\s*<=\s*65535$")


@_rule("sum_of_positives", "x > 0 ∧ y > 0 → x + y > 0")
def _sum_of_positives(goal: str, facts: Sequence[Fact]) -> MatchResult:
    m = _SUM_GT_ZERO.match(goal.strip())
    if not m:
        return NO_MATCH
    return _bounded(facts, (m.group(1), ">", 0), (m.group(2), ">", 0))


@_rule("sum_of_non_negatives", "x >= 0 ∧ y >= 0 → x + y >= 0")
def _sum_of_non_negatives(goal: str, facts: Sequence[Fact]) -> MatchResult:
    m = _SUM_GE_ZERO.match(goal.strip())
    if not m:
        return NO_MATCH
    return _bounded(facts, (m.group(1), ">=", 0), (m.group(2), ">=", 0))


@_rule("positive_implies_non_negative", "x > 0 → x >= 0")
def _positive_implies_non_negative(goal: str, facts: Sequence[Fact]) -> MatchResult:
    m = _GE_ZERO.match(goal.strip())
    if not m:
        return NO_MATCH
    return _bounded(facts, (m.group(1), ">", 0))


@_rule("double_positive", "x > 0 → 2 * x > x")
def _double_positive(goal: str, facts: Sequence[Fact]) -> MatchResult:
    m = _DOUBLE_GT.match(goal.strip())
    if not m or m.group(1) != m.group(2):
        return NO_MATCH
    return _bounded(facts, (m.group(1), ">", 0))


@_rule("product_of_positives", "x > 0 ∧ y > 0 → x * y > 0")
def _product_of_positives(goal: str, facts: Sequence[Fact]) -> MatchResult:
    m = _PRODUCT_GT_ZERO.match(goal.strip())
    if not m:
        return NO_MATCH
    return _bounded(facts, (m.group(1), ">", 0), (m.group(2), ">", 0))


@_rule("positive_greater_than_negative", "x > 0 ∧ y < 0 → x > y")
def _positive_greater_than_negative(goal: str, facts: Sequence[Fact]) -> MatchResult:
    m = _GT.match(goal.strip())
    if not m:
        return NO_MATCH
    return _bounded(facts, (m.group(1), ">", 0), (m.group(2), "<", 0))


@_rule("byte_in_range", "Byte → x >= 0 && x <= 255")
def _byte_in_range(goal: str, facts: Sequence[Fact]) -> MatchResult:
    m = _BYTE_RANGE.match(goal.strip())
    if not m:
        return NO_MATCH
    return _bounded(facts, (m.group(1), ">=", 0), (m.group(1), "<=", 255))


@_rule("port_in_range", "Port → x >= 1 && x <= 65535")
def _port_in_range(goal: str, facts: Sequence[Fact]) -> MatchResult:
    m = _PORT_RANGE.match(goal.strip())
    if not m:
        return NO_MATCH
    return _bounded(facts, (m.group(1), ">=", 1), (m.group(1), "<=", 65535))


@_rule("tautology_true", "true is always true")
def _tautology_true(goal: str, facts: Sequence[Fact]) -> MatchResult:
    return MatchResult(goal.strip() == "true")


@_rule("identity_positive", "x > 0 when we know x > 0")
def _identity_positive(goal: str, facts: Sequence[Fact]) -> MatchResult:
    m = _GT_ZERO.match(goal.strip())
    if not m:
        return NO_MATCH
    return _bounded(facts, (m.group(1), ">", 0))


@_rule("identity_non_negative", "x >= 0 when we know x >= 0")
def _identity_non_negative(goal: str, facts: Sequence[Fact]) -> MatchResult:
    m = _GE_ZERO.match(goal.strip())
    if not m:
        return NO_MATCH
    return _bounded(facts, (m.group(1), ">=", 0))


#: The built-in rules, in evaluation order.
BUILTIN_RULES: tuple[AlgebraicRule, ...] = tuple(_BUILTINS)


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def try_algebraic_proof(
    goal: str,
    facts: Sequence[Fact],
    rules: Iterable[AlgebraicRule] = BUILTIN_RULES,
) -> ProofResult:
    """Try *rules* in order against *goal*; the first match proves it.

    Args:
        goal: The obligation, e.g. ``"x + y > 0"``.
        facts: Known facts. Never modified.
        rules: Rules to try. Defaults to the built-ins.

    Returns:
        A proven :class:`ProofResult` with ``method="algebra"`` and a
        :class:`ProofStep` naming the rule, or ``NOT_PROVEN``.
    """
    facts = tuple(facts)
    for rule in rules:
        result = rule.match(goal, facts)
        if not result.matched:
            continue
        logger.debug("Algebraic rule %s proved %r", rule.name, goal)
        step = create_step(
            rule.name,
            rule.description,
            f"Applied algebraic rule: {rule.description}",
            used_facts=result.used_facts,
        )
        return ProofResult(
            proven=True,
            method=ProofMethod.ALGEBRA,
            reason=f"{rule.name}: {rule.description}",
            step=step,
        )
    return NOT_PROVEN


class RuleCatalog:
    """Ordered, append-only collection of algebraic rules.

    A new catalog starts with :data:`BUILTIN_RULES` (unless *rules* is
    given); :meth:`register` appends, so the built-ins always get the first
    chance to match. Register rules while configuring a prover, not while
    proofs are running.
    """

    def __init__(self, rules: Iterable[AlgebraicRule] | None = None) -> None:
        self._rules: list[AlgebraicRule] = list(BUILTIN_RULES if rules is None else rules)

    def register(self, rule: AlgebraicRule) -> AlgebraicRule:
        self._rules.append(rule)
        return rule

    def rule(self, name: str, description: str) -> Callable[[Matcher], Matcher]:
        """Decorator form of :meth:`register`."""

        def register(fn: Matcher) -> Matcher:
            self.register(AlgebraicRule(name, description, fn))
            return fn

        return register

    @property
    def rules(self) -> tuple[AlgebraicRule, ...]:
        return tuple(self._rules)

    def __iter__(self) -> Iterator[AlgebraicRule]:
        return iter(tuple(self._rules))

    def __len__(self) -> int:
        return len(self._rules)

    def prove(self, goal: str, facts: Sequence[Fact]) -> ProofResult:
        return try_algebraic_proof(goal, facts, self._rules)
