"""Tests for the predicate parser."""

from __future__ import annotations

import pytest

from elidable.parser import (
    BinaryOp,
    EqualityGoal,
    has_ambiguous_negation,
    is_identity_element,
    parse_binary_op,
    parse_equality_goal,
    split_conjuncts,
    split_top_level,
    strip_parens,
    structurally_equal,
    to_python_source,
)

# ---------------------------------------------------------------------------
# parse_binary_op
# ---------------------------------------------------------------------------


class TestParseBinaryOp:
    def test_call_notation(self) -> None:
        assert parse_binary_op("combine(a, b)") == BinaryOp("combine", "a", "b", "call")

    def test_method_notation(self) -> None:
        assert parse_binary_op("a.combine(b)") == BinaryOp("combine", "a", "b", "method")

    def test_infix_notation(self) -> None:
        assert parse_binary_op("a combine b") == BinaryOp("combine", "a", "b", "infix")

    def test_nested_call_left(self) -> None:
        op = parse_binary_op("combine(combine(a, b), c)")
        assert op is not None
        assert op.op == "combine"
        assert op.left == "combine(a, b)"
        assert op.right == "c"

    def test_nested_call_right(self) -> None:
        op = parse_binary_op("combine(a, combine(b, c))")
        assert op is not None
        assert op.left == "a"
        assert op.right == "combine(b, c)"

    def test_method_chain(self) -> None:
        op = parse_binary_op("xs.map(f).map(g)")
        assert op == BinaryOp("map", "xs.map(f)", "g", "method")

    def test_method_with_call_argument(self) -> None:
        op = parse_binary_op("a.combine(f(b, c))")
        assert op == BinaryOp("combine", "a", "f(b, c)", "method")

    def test_whitespace_is_trimmed(self) -> None:
        assert parse_binary_op("  combine( a ,  b )  ") == BinaryOp("combine", "a", "b", "call")

    @pytest.mark.parametrize("expr", ["", "a", "f(a)", "combine(a, b", "a + b", "(a)"])
    def test_not_binary(self, expr: str) -> None:
        assert parse_binary_op(expr) is None


# ---------------------------------------------------------------------------
# parse_equality_goal
# ---------------------------------------------------------------------------


class TestParseEqualityGoal:
    def test_strict_equality(self) -> None:
        assert parse_equality_goal("combine(empty, a) === a") == EqualityGoal(
            "combine(empty, a)", "a"
        )

    def test_eqv_call(self) -> None:
        assert parse_equality_goal("eqv(x, y)") == EqualityGoal("x", "y")

    def test_qualified_eqv_call(self) -> None:
        assert parse_equality_goal("Eq.eqv(f(a, b), c)") == EqualityGoal("f(a, b)", "c")

    def test_sides_are_trimmed(self) -> None:
        assert parse_equality_goal("  a   ===   b  ") == EqualityGoal("a", "b")

    @pytest.mark.parametrize("goal", ["a == b", "x > 0", "eqv(a)", "f(a, b)"])
    def test_not_equality(self, goal: str) -> None:
        assert parse_equality_goal(goal) is None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestStructuralEquality:
    def test_whitespace_insensitive(self) -> None:
        assert structurally_equal("combine(a,b)", " combine( a , b ) ")

    def test_reordering_is_not_equal(self) -> None:
        assert not structurally_equal("a + b", "b + a")


class TestIdentityElement:
    @pytest.mark.parametrize("expr", ["empty", "mempty", " empty ", "empty()", "Monoid.empty()"])
    def test_identity(self, expr: str) -> None:
        assert is_identity_element(expr)

    @pytest.mark.parametrize("expr", ["a", "emptyList", "Monoid.empty", "empty(x)", "isEmpty()"])
    def test_not_identity(self, expr: str) -> None:
        assert not is_identity_element(expr)


class TestConjuncts:
    def test_split(self) -> None:
        assert split_conjuncts("x >= 0 && x <= 255") == ["x >= 0", "x <= 255"]

    def test_nested_parens_stay_whole(self) -> None:
        assert split_conjuncts("f(a && b) && c") == ["f(a && b)", "c"]

    def test_enclosing_parens_removed(self) -> None:
        assert split_conjuncts("(x > 0 && y > 0)") == ["x > 0", "y > 0"]

    def test_disjunction_not_split(self) -> None:
        assert split_conjuncts("x > 0 && y > 0 || z > 0") == ["x > 0 && y > 0 || z > 0"]

    def test_split_top_level(self) -> None:
        assert split_top_level("a, f(b, c), d", ",") == ["a", " f(b, c)", " d"]

    def test_strip_parens_keeps_separate_groups(self) -> None:
        assert strip_parens("(a) + (b)") == "(a) + (b)"
        assert strip_parens("((a + b))") == "a + b"


class TestToPythonSource:
    def test_operators(self) -> None:
        assert to_python_source("x === 1 && y !== 2 || !z") == "x == 1 and y != 2 or not z"

    def test_booleans(self) -> None:
        assert to_python_source("true && false") == "True and False"

    def test_python_not_equal_untouched(self) -> None:
        assert to_python_source("x != 0") == "x != 0"


class TestAmbiguousNegation:
    @pytest.mark.parametrize(
        "predicate",
        ["!z", "x > 0 || !z", "!(x > 0)", "!(a || b) && c", "(!x) || y", "x !== 1", "[!a]"],
    )
    def test_isolated(self, predicate: str) -> None:
        assert not has_ambiguous_negation(predicate)

    @pytest.mark.parametrize(
        "predicate",
        ["!x === 0", "!(x) === 0", "!1 + 2 > 0", "!!x", "!x.y", "!(x", "! -1"],
    )
    def test_ambiguous(self, predicate: str) -> None:
        assert has_ambiguous_negation(predicate)
