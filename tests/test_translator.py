"""Tests for the predicate → Z3 translator.

Every Z3 proof rests on this translation; these tests are its soundness
regression suite.
"""

from __future__ import annotations

import pytest
import z3

from elidable.translator import PredicateTranslator, TranslationError


def _valid(formula: z3.ExprRef) -> bool:
    s = z3.Solver()
    s.add(z3.Not(formula))
    return s.check() == z3.unsat


def _translate(predicate: str, int_variables: tuple[str, ...] = ()) -> z3.ExprRef:
    return PredicateTranslator(int_variables).translate(predicate)


# ---------------------------------------------------------------------------
# Expressions
# ---------------------------------------------------------------------------


class TestExpressions:
    def test_comparison(self) -> None:
        expr = _translate("x > 0")
        assert z3.is_bool(expr)
        assert z3.is_gt(expr)

    def test_variables_are_real_by_default(self) -> None:
        t = PredicateTranslator()
        t.translate("x > 0")
        assert t.variable("x").sort() == z3.RealSort()

    def test_int_variables(self) -> None:
        t = PredicateTranslator(int_variables=("n",))
        t.translate("n > 0")
        assert t.variable("n").sort() == z3.IntSort()

    def test_variables_are_shared(self) -> None:
        t = PredicateTranslator()
        fact = t.translate("x > 1")
        goal = t.translate("x > 0")
        assert _valid(z3.Implies(fact, goal))

    def test_dotted_path(self) -> None:
        t = PredicateTranslator()
        t.translate("arr.length >= 0")
        assert "arr.length" in t.variables

    def test_host_operators(self) -> None:
        expr = _translate("x === 1 && !(y !== 2)")
        assert _valid(z3.Implies(expr, z3.Real("y") == 2))

    def test_booleans(self) -> None:
        assert _valid(_translate("true || false"))

    def test_range_as_conjunction(self) -> None:
        assert _valid(z3.Implies(_translate("0 < x && x < 1"), z3.Real("x") > 0))

    def test_isolated_negation(self) -> None:
        assert _valid(z3.Implies(_translate("!(x > 0) && y > 0"), z3.Real("x") <= 0))
        assert _valid(_translate("!false"))

    def test_real_division(self) -> None:
        assert _valid(_translate("x / 2 * 2 == x"))

    def test_int_division_is_exact(self) -> None:
        assert _valid(_translate("n / 2 * 2 == n", int_variables=("n",)))

    def test_modulo_on_ints(self) -> None:
        assert _valid(_translate("(2 * n) % 2 == 0", int_variables=("n",)))

    def test_remainder_takes_the_dividend_sign(self) -> None:
        ints = ("n",)
        assert _valid(_translate("n !== -7 || n % 3 === -1", int_variables=ints))
        assert _valid(_translate("n !== 7 || n % -3 === 1", int_variables=ints))
        assert _valid(_translate("n < 0 || n % 2 >= 0", int_variables=ints))
        assert not _valid(_translate("n % 2 >= 0", int_variables=ints))
        assert not _valid(_translate("n % 2 === 0 || n % 2 === 1", int_variables=ints))

    @pytest.mark.parametrize("exponent", [0, 1, 2, 3])
    def test_small_powers(self, exponent: int) -> None:
        assert _valid(_translate(f"x ** {exponent} == " + (" * ".join(["x"] * exponent) or "1")))

    def test_builtins(self) -> None:
        assert _valid(_translate("max(x, y) >= min(x, y)"))
        assert _valid(_translate("abs(x) >= 0"))

    def test_conditional_expression(self) -> None:
        assert _valid(_translate("(x if x > 0 else -x) >= 0"))

    def test_float_constant_is_exact(self) -> None:
        assert _valid(_translate("0.1 + 0.2 == 0.3"))


class TestUnsupported:
    @pytest.mark.parametrize(
        "predicate",
        [
            "f(x) > 0",
            "a[0] > 0",
            "x ** y > 0",
            "x ** 4 > 0",
            "x % 2 == 0",
            "0 < x < 1",
            "x > 0 === true",
            "true === 1",
            "x + true > 0",
            "-true < 0",
            "x === 1 || false === 0",
            "!x === 0",
            "!(x) === 0",
            "!!(x > 0)",
            "name == 'a'",
            "x +",
            "x + 1",
            "abs(x, y) > 0",
            "max(x) > 0",
            "min(x, y=1) > 0",
            "[x for x in y]",
        ],
    )
    def test_rejected(self, predicate: str) -> None:
        with pytest.raises(TranslationError):
            _translate(predicate)

    @pytest.mark.parametrize("predicate", ["n % 0 == 0", "n % m == 0", "n % (m + 1) == 0"])
    def test_modulo_needs_nonzero_literal_divisor(self, predicate: str) -> None:
        with pytest.raises(TranslationError):
            _translate(predicate, int_variables=("n", "m"))
