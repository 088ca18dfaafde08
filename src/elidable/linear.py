"""Linear arithmetic solver — entailment by Fourier–Motzkin elimination.

Facts and goals that are linear (in)equalities over rational numbers are
turned into :class:`LinearConstraint` values of the normalized form::

    c1*x1 + c2*x2 + ... + k  <  0        (strict)
    c1*x1 + c2*x2 + ... + k  <= 0        (non-strict)

A goal is entailed by the facts when ``facts ∧ ¬goal`` is infeasible. To
decide that, variables are eliminated one at a time: every lower bound on
the variable is combined with every upper bound, until only variable-free
constraints remain. A false one (``0 < k`` with ``k <= 0``, or ``0 <= k``
with ``k < 0``) is a contradiction and the goal is proven.

All arithmetic is exact (:class:`fractions.Fraction`). Variables range over
the rationals; integrality is never assumed, so ``x > 0`` does not entail
``x >= 1`` here.

Supported syntax: decimal and scientific numbers, identifiers and dotted
paths (``arr.length``), ``+``, ``-``, ``*`` and ``/`` by constants,
parentheses, and ``<``, ``<=``, ``>``, ``>=``, ``==``, ``===``. Conjuncts
using anything else (``!=``, products of variables, calls, ``||``, ...) are
skipped for facts and make a goal unprovable by this layer.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from fractions import Fraction

from .certificate import NOT_PROVEN, ProofMethod, ProofResult, create_step
from .config import _config
from .facts import Fact
from .parser import split_conjuncts

logger = logging.getLogger("elidable")

RULE_NAME = "fourier_motzkin"
RULE_DESCRIPTION = "facts ∧ ¬goal is infeasible (Fourier-Motzkin elimination)"

# Origin index used for constraints derived from the negated goal.
_GOAL = -1


class _NotLinear(Exception):
    """The expression is outside the linear fragment."""


# ---------------------------------------------------------------------------
# Constraints
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LinearConstraint:
    """``sum(coefficients[v] * v) + constant  (<|<=)  0``.

    Attributes:
        coefficients: Non-zero coefficient per variable.
        constant: The constant term.
        strict: ``True`` for ``<``, ``False`` for ``<=``.
        origins: Indices of the facts this constraint was derived from
            (``-1`` stands for the negated goal).
    """

    coefficients: dict[str, Fraction]
    constant: Fraction
    strict: bool
    origins: frozenset[int] = field(default=frozenset())

    @property
    def variables(self) -> tuple[str, ...]:
        return tuple(self.coefficients)

    def is_contradiction(self) -> bool:
        """``True`` for a variable-free constraint that can never hold."""
        if self.coefficients:
            return False
        return self.constant >= 0 if self.strict else self.constant > 0

    def is_tautology(self) -> bool:
        if self.coefficients:
            return False
        return self.constant < 0 if self.strict else self.constant <= 0

    def negated(self) -> LinearConstraint:
        """``¬(e < 0)`` is ``-e <= 0``; ``¬(e <= 0)`` is ``-e < 0``."""
        return LinearConstraint(
            {v: -c for v, c in self.coefficients.items()},
            -self.constant,
            not self.strict,
            self.origins,
        )

    def key(self) -> tuple[object, ...]:
        return (tuple(sorted(self.coefficients.items())), self.constant, self.strict)

    def __str__(self) -> str:
        terms = [f"{c}*{v}" for v, c in self.coefficients.items()]
        if self.constant or not terms:
            terms.append(str(self.constant))
        return f"{' + '.join(terms)} {'<' if self.strict else '<='} 0"


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

_TOKEN = re.compile(
    r"\s*(?:"
    r"(?P<num>(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?)"
    r"|(?P<name>[A-Za-z_$][\w$]*(?:\.[A-Za-z_$][\w$]*)*)"
    r"|(?P<op>===|!==|==|!=|<=|>=|<|>|[-+*/()])"
    r")"
)
_COMPARATORS = ("<", "<=", ">", ">=", "==", "===")

# A linear expression: (coefficients, constant).
_Linear = tuple[dict[str, Fraction], Fraction]


def _tokenize(text: str) -> list[str]:
    tokens: list[str] = []
    pos = 0
    text = text.rstrip()
    while pos < len(text):
        m = _TOKEN.match(text, pos)
        if not m or m.end() == pos:
            raise _NotLinear(f"unexpected input at {text[pos:]!r}")
        tokens.append(m.group("num") or m.group("name") or m.group("op"))
        pos = m.end()
    return tokens


class _ExprParser:
    """Recursive descent over ``expr := term (('+'|'-') term)*``."""

    def __init__(self, tokens: list[str]) -> None:
        self.tokens = tokens
        self.pos = 0

    def peek(self) -> str | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def take(self) -> str:
        tok = self.peek()
        if tok is None:
            raise _NotLinear("unexpected end of expression")
        self.pos += 1
        return tok

    def parse(self) -> _Linear:
        result = self.expr()
        if self.peek() is not None:
            raise _NotLinear(f"unexpected token {self.peek()!r}")
        return result

    def expr(self) -> _Linear:
        coeffs, const = self.term()
        while self.peek() in ("+", "-"):
            sign = 1 if self.take() == "+" else -1
            rc, rk = self.term()
            coeffs = _add(coeffs, rc, sign)
            const += sign * rk
        return coeffs, const

    def term(self) -> _Linear:
        coeffs, const = self.factor()
        while self.peek() in ("*", "/"):
            op = self.take()
            rc, rk = self.factor()
            if op == "*":
                if coeffs and rc:
                    raise _NotLinear("product of two variables")
                if coeffs:
                    coeffs, const = _scale(coeffs, rk), const * rk
                else:
                    coeffs, const = _scale(rc, const), const * rk
            else:
                if rc:
                    raise _NotLinear("division by a variable")
                if rk == 0:
                    raise _NotLinear("division by zero")
                coeffs, const = _scale(coeffs, 1 / rk), const / rk
        return coeffs, const

    def factor(self) -> _Linear:
        tok = self.take()
        if tok in ("-", "+"):
            coeffs, const = self.factor()
            return (_scale(coeffs, -1), -const) if tok == "-" else (coeffs, const)
        if tok == "(":
            inner = self.expr()
            if self.take() != ")":
                raise _NotLinear("unbalanced parentheses")
            return inner
        if tok[0].isdigit() or tok[0] == ".":
            return {}, Fraction(tok)
        if tok[0].isalpha() or tok[0] in "_$":
            if self.peek() == "(":
                raise _NotLinear(f"call to {tok}")
            return {tok: Fraction(1)}, Fraction(0)
        raise _NotLinear(f"unexpected token {tok!r}")


def _add(a: dict[str, Fraction], b: dict[str, Fraction], sign: int = 1) -> dict[str, Fraction]:
    out = dict(a)
    for v, c in b.items():
        total = out.get(v, Fraction(0)) + sign * c
        if total:
            out[v] = total
        else:
            out.pop(v, None)
    return out


def _scale(coeffs: dict[str, Fraction], k: Fraction | int) -> dict[str, Fraction]:
    if k == 0:
        return {}
    return {v: c * k for v, c in coeffs.items()}


def parse_linear(
    conjunct: str,
    origin: int = _GOAL,
) -> list[LinearConstraint] | None:
    """Normalize one comparison into constraints, or ``None`` if not linear.

    ``a == b`` yields two constraints (``a - b <= 0`` and ``b - a <= 0``).
    """
    try:
        tokens = _tokenize(conjunct)
    except _NotLinear:
        return None
    positions = [i for i, t in enumerate(tokens) if t in _COMPARATORS]
    if len(positions) != 1:
        return None
    i = positions[0]
    op = tokens[i]
    try:
        lc, lk = _ExprParser(tokens[:i]).parse()
        rc, rk = _ExprParser(tokens[i + 1 :]).parse()
    except _NotLinear as e:
        logger.debug("Skipping non-linear conjunct %r: %s", conjunct, e)
        return None

    origins = frozenset({origin})
    diff = LinearConstraint(_add(lc, rc, -1), lk - rk, op == "<", origins)  # lhs - rhs
    if op in ("<", "<="):
        return [diff]
    rev = LinearConstraint(_add(rc, lc, -1), rk - lk, op == ">", origins)  # rhs - lhs
    if op in (">", ">="):
        return [rev]
    return [
        LinearConstraint(diff.coefficients, diff.constant, False, origins),
        LinearConstraint(rev.coefficients, rev.constant, False, origins),
    ]


def constraints_from_facts(facts: Sequence[Fact]) -> list[LinearConstraint]:
    """All linear constraints stated by *facts*, tagged with their fact index."""
    constraints: list[LinearConstraint] = []
    for idx, fact in enumerate(facts):
        for conjunct in split_conjuncts(fact.predicate):
            parsed = parse_linear(conjunct, idx)
            if parsed is not None:
                constraints.extend(parsed)
    return constraints


# ---------------------------------------------------------------------------
# Fourier–Motzkin elimination
# ---------------------------------------------------------------------------


def _combine(upper: LinearConstraint, lower: LinearConstraint, var: str) -> LinearConstraint:
    """Eliminate *var* from a positive-coefficient and a negative-coefficient row."""
    a = upper.coefficients[var]
    b = -lower.coefficients[var]
    coeffs = _add(_scale(upper.coefficients, b), _scale(lower.coefficients, a))
    coeffs.pop(var, None)
    return LinearConstraint(
        coeffs,
        b * upper.constant + a * lower.constant,
        upper.strict or lower.strict,
        upper.origins | lower.origins,
    )


def _dedupe(constraints: Iterable[LinearConstraint]) -> list[LinearConstraint]:
    seen: set[tuple[object, ...]] = set()
    out: list[LinearConstraint] = []
    for c in constraints:
        if c.is_tautology():
            continue
        k = c.key()
        if k not in seen:
            seen.add(k)
            out.append(c)
    return out


def find_contradiction(
    constraints: Sequence[LinearConstraint],
    max_constraints: int,
) -> LinearConstraint | None:
    """Return a derived contradiction if *constraints* are infeasible.

    ``None`` means feasible over the rationals, or that the elimination grew
    past *max_constraints* live constraints and was abandoned.
    """
    live = _dedupe(constraints)
    while True:
        for c in live:
            if c.is_contradiction():
                return c

        order: list[str] = []
        for c in live:
            for v in c.coefficients:
                if v not in order:
                    order.append(v)
        if not order:
            return None

        def cost(v: str) -> int:
            pos = sum(1 for c in live if c.coefficients.get(v, 0) > 0)
            neg = sum(1 for c in live if c.coefficients.get(v, 0) < 0)
            return pos * neg - pos - neg

        var = min(order, key=cost)
        upper = [c for c in live if c.coefficients.get(var, 0) > 0]
        lower = [c for c in live if c.coefficients.get(var, 0) < 0]
        rest = [c for c in live if var not in c.coefficients]

        if len(rest) + len(upper) * len(lower) > max_constraints:
            logger.debug(
                "Fourier-Motzkin gave up eliminating %s: more than %d constraints",
                var,
                max_constraints,
            )
            return None
        live = _dedupe(rest + [_combine(u, l, var) for u in upper for l in lower])


def _entails(
    base: Sequence[LinearConstraint],
    goal: LinearConstraint,
    max_constraints: int,
) -> frozenset[int] | None:
    """Fact indices behind the proof of *goal*, or ``None`` if not entailed."""
    contradiction = find_contradiction([*base, goal.negated()], max_constraints)
    if contradiction is None:
        return None
    return frozenset(i for i in contradiction.origins if i != _GOAL)


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------


def try_linear_arithmetic(
    goal: str,
    facts: Sequence[Fact],
    max_constraints: int | None = None,
) -> ProofResult:
    """Prove *goal* from the linear content of *facts*.

    Every ``&&`` conjunct of the goal must be entailed; ``a == b`` needs
    both ``a <= b`` and ``a >= b``.

    Args:
        goal: e.g. ``"x + y >= 2 && x <= 10"``.
        facts: Known facts; non-linear conjuncts are ignored.
        max_constraints: Abandon elimination beyond this many live
            constraints. Defaults to the ``max_constraints`` setting.

    Returns:
        A proven result with ``method="linear"`` whose step lists exactly the
        facts used, or ``NOT_PROVEN``.
    """
    if max_constraints is None:
        max_constraints = int(_config["max_constraints"])
    facts = tuple(facts)

    conjuncts = split_conjuncts(goal)
    if not conjuncts:
        return NOT_PROVEN
    targets: list[list[LinearConstraint]] = []
    for conjunct in conjuncts:
        parsed = parse_linear(conjunct)
        if parsed is None:
            return NOT_PROVEN
        targets.append(parsed)

    base = constraints_from_facts(facts)

    used: set[int] = set()
    for parsed in targets:
        for target in parsed:
            origins = _entails(base, target, max_constraints)
            if origins is None:
                return NOT_PROVEN
            used |= origins

    used_facts = tuple(facts[i] for i in sorted(used))
    logger.debug("Linear arithmetic proved %r from %d fact(s)", goal, len(used_facts))
    step = create_step(
        RULE_NAME,
        RULE_DESCRIPTION,
        f"Negation of {goal.strip()} contradicts the linear facts",
        used_facts=used_facts,
        subgoals=conjuncts if len(conjuncts) > 1 else (),
    )
    return ProofResult(
        proven=True,
        method=ProofMethod.LINEAR,
        reason=f"{RULE_NAME}: {RULE_DESCRIPTION}",
        step=step,
    )
