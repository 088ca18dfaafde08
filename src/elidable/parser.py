"""Predicate parser — structural views of normalized predicate strings.

Contract obligations and facts arrive as normalized predicate strings in the
host language's expression syntax (``x > 0 && x <= 255``,
``combine(empty, a) === a``). Every proof layer re-parses them on demand with
the helpers here; nothing is cached between calls.

The parser is deliberately syntactic. Two expressions are "equal" only when
they are identical modulo whitespace, so ``a + b`` and ``b + a`` are different
operands. That produces false negatives (a rule fails to fire), never false
positives.

Recognized binary-operation notations, tried in this order:

    combine(a, b)        call      op=combine  left=a  right=b
    a.combine(b)         method    op=combine  left=a  right=b
    a combine b          infix     op=combine  left=a  right=b

Operands are split at bracket depth zero, so nested calls such as
``combine(combine(a, b), c)`` yield their real operands.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_OPENERS = "([{"
_CLOSERS = ")]}"

_CALL_HEAD = re.compile(r"^(\w+)\s*\(")
_METHOD_TAIL = re.compile(r"\.(\w+)\s*$")
_INFIX_OP = re.compile(r"(?=(\s+)(\w+)(\s+))")
_STRICT_EQ = re.compile(r"^(.+?)\s*===\s*(.+?)$")
_EQV_HEAD = re.compile(r"^(?:\w+\.)?eqv\s*\(")
_WHITESPACE = re.compile(r"\s+")
_IDENTITY_CALL = re.compile(r"^(?:\w+\.)?empty\s*\(\s*\)$")

# Host-syntax → Python-syntax rewrites, applied in order.
_JS_TO_PY: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"!=="), "!="),
    (re.compile(r"==="), "=="),
    (re.compile(r"&&"), " and "),
    (re.compile(r"\|\|"), " or "),
    (re.compile(r"!(?!=)"), " not "),
    (re.compile(r"\btrue\b"), "True"),
    (re.compile(r"\bfalse\b"), "False"),
)


@dataclass(frozen=True)
class BinaryOp:
    """A parsed ``op(left, right)``, ``left.op(right)`` or ``left op right``."""

    op: str
    left: str
    right: str
    notation: str = "call"


@dataclass(frozen=True)
class EqualityGoal:
    """The two sides of ``left === right`` or ``eqv(left, right)``."""

    left: str
    right: str


# ---------------------------------------------------------------------------
# Bracket helpers
# ---------------------------------------------------------------------------


def _depths(expr: str) -> list[int]:
    """Bracket nesting depth *before* each character of *expr*."""
    depths: list[int] = []
    depth = 0
    for ch in expr:
        if ch in _CLOSERS:
            depth -= 1
        depths.append(depth)
        if ch in _OPENERS:
            depth += 1
    return depths


def _matching_close(expr: str, open_idx: int) -> int:
    depth = 0
    for i in range(open_idx, len(expr)):
        ch = expr[i]
        if ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS:
            depth -= 1
            if depth == 0:
                return i
    return -1


def _matching_open(expr: str, close_idx: int) -> int:
    depth = 0
    for i in range(close_idx, -1, -1):
        ch = expr[i]
        if ch in _CLOSERS:
            depth += 1
        elif ch in _OPENERS:
            depth -= 1
            if depth == 0:
                return i
    return -1


def _is_balanced(expr: str) -> bool:
    depth = 0
    for ch in expr:
        if ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS:
            depth -= 1
            if depth < 0:
                return False
    return depth == 0


def split_top_level(expr: str, sep: str) -> list[str]:
    """Split *expr* on every occurrence of *sep* at bracket depth zero."""
    parts: list[str] = []
    depth = 0
    start = 0
    i = 0
    while i < len(expr):
        ch = expr[i]
        if ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS:
            depth -= 1
        elif depth == 0 and expr.startswith(sep, i):
            parts.append(expr[start:i])
            i += len(sep)
            start = i
            continue
        i += 1
    parts.append(expr[start:])
    return parts


def strip_parens(expr: str) -> str:
    """Remove redundant parentheses enclosing the whole of *expr*."""
    expr = expr.strip()
    while expr.startswith("(") and _matching_close(expr, 0) == len(expr) - 1:
        expr = expr[1:-1].strip()
    return expr


def call_arguments(expr: str, head: re.Pattern[str]) -> tuple[str, list[str]] | None:
    """Return ``(callee, args)`` when *expr* is exactly one call matching *head*."""
    m = head.match(expr)
    if not m:
        return None
    open_idx = m.end() - 1
    if _matching_close(expr, open_idx) != len(expr) - 1:
        return None
    inner = expr[open_idx + 1 : -1]
    return m.group(0)[:-1].strip(), split_top_level(inner, ",")


# ---------------------------------------------------------------------------
# Public parsing operations
# ---------------------------------------------------------------------------


def parse_binary_op(expr: str) -> BinaryOp | None:
    """Parse *expr* as a binary operation, or return ``None``.

    Tries function-call syntax, then method-call syntax, then a word
    operator in infix position (the first top-level one wins).
    """
    expr = expr.strip()
    if not expr or not _is_balanced(expr):
        return None

    call = call_arguments(expr, _CALL_HEAD)
    if call is not None:
        callee, args = call
        if len(args) >= 2:
            left = args[0].strip()
            right = ",".join(args[1:]).strip()
            if left and right:
                return BinaryOp(callee, left, right, "call")

    if expr.endswith(")"):
        open_idx = _matching_open(expr, len(expr) - 1)
        if open_idx > 0:
            m = _METHOD_TAIL.search(expr, 0, open_idx)
            if m and m.end() == open_idx:
                left = expr[: m.start()].strip()
                right = expr[open_idx + 1 : -1].strip()
                if left and right:
                    return BinaryOp(m.group(1), left, right, "method")

    depths = _depths(expr)
    for m in _INFIX_OP.finditer(expr):
        pos = m.start()
        if depths[pos] != 0:
            continue
        left = expr[:pos].strip()
        right = expr[pos + len(m.group(1)) + len(m.group(2)) + len(m.group(3)) :].strip()
        if left and right:
            return BinaryOp(m.group(2), left, right, "infix")

    return None


def parse_equality_goal(goal: str) -> EqualityGoal | None:
    """Parse ``left === right`` or ``[Ident.]eqv(left, right)``."""
    goal = goal.strip()
    m = _STRICT_EQ.match(goal)
    if m:
        return EqualityGoal(m.group(1).strip(), m.group(2).strip())

    call = call_arguments(goal, _EQV_HEAD)
    if call is not None:
        _, args = call
        if len(args) == 2 and args[0].strip() and args[1].strip():
            return EqualityGoal(args[0].strip(), args[1].strip())
    return None


def structurally_equal(a: str, b: str) -> bool:
    """Syntactic equality modulo whitespace."""
    return _WHITESPACE.sub("", a) == _WHITESPACE.sub("", b)


def is_identity_element(expr: str) -> bool:
    """``empty``, ``mempty``, ``empty()`` or ``Monoid.empty()``."""
    trimmed = expr.strip()
    return trimmed in ("empty", "mempty") or bool(_IDENTITY_CALL.match(trimmed))


def split_conjuncts(predicate: str) -> list[str]:
    """Split a predicate on top-level ``&&``.

    A predicate with a top-level ``||`` is returned whole: splitting
    ``a && b || c`` would wrongly assert ``a``.
    """
    body = strip_parens(predicate)
    if len(split_top_level(body, "||")) > 1:
        return [body]
    return [strip_parens(p) for p in split_top_level(body, "&&") if p.strip()]


def to_python_source(predicate: str) -> str:
    """Rewrite a host-syntax predicate into Python expression syntax.

    ``===``/``!==`` become ``==``/``!=``, ``&&``/``||``/``!`` become
    ``and``/``or``/``not`` and ``true``/``false`` become ``True``/``False``.
    Note that ``!`` binds tighter in the host syntax than ``not`` does in
    Python; callers check :func:`has_ambiguous_negation` before trusting the
    rewritten form.
    """
    source = predicate
    for pattern, replacement in _JS_TO_PY:
        source = pattern.sub(replacement, source)
    return _WHITESPACE.sub(" ", source).strip()


_NEGATION = re.compile(r"!(?!=)")
_WORD = re.compile(r"\w+")
_NEGATION_FOLLOWERS = ("&&", "||", ")", "]", "}")


def has_ambiguous_negation(predicate: str) -> bool:
    """Whether some ``!`` in *predicate* would change meaning in Python.

    ``!`` binds tighter in the host syntax than ``not`` does in Python, so
    ``!x === 0`` and ``not x == 0`` differ. A negation is unambiguous when
    its operand is one word or one bracketed group, followed by nothing but
    ``&&``, ``||`` or a closing bracket.
    """
    for m in _NEGATION.finditer(predicate):
        i = m.end()
        while i < len(predicate) and predicate[i].isspace():
            i += 1
        if predicate.startswith("(", i):
            end = _matching_close(predicate, i)
            if end < 0:
                return True
            i = end + 1
        else:
            word = _WORD.match(predicate, i)
            if word is None:
                return True
            i = word.end()
        rest = predicate[i:].lstrip()
        if rest and not rest.startswith(_NEGATION_FOLLOWERS):
            return True
    return False
