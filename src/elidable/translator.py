"""Predicate → Z3 translator.

Everything the Z3 plugin proves rests on this translation: a bug here can
produce an unsound proof. Keep it small and test it carefully.

Predicates are rewritten into Python syntax (``===`` → ``==``, ``&&`` →
``and``, ...) and then translated from their ``ast`` form.

Supported subset:
  - Arithmetic: +, -, *, /, ** (constant exponents 0-3), % (integer dividend,
    nonzero integer literal divisor; the result takes the dividend's sign)
  - Comparisons: <, <=, >, >=, ==, != (one per comparison, not chained)
  - Boolean: and, or, not, conditional expressions, true/false
  - Builtins: min, max, abs
  - Names and dotted paths (``arr.length``) as free variables

Variables are reals unless listed in ``int_variables``.

Unsupported (raises TranslationError):
  - Calls other than the builtins, subscripts, lambdas, comprehensions
  - String constants
  - Booleans used as numbers, or compared with numbers
  - A ``!`` whose operand is not isolated (see ``has_ambiguous_negation``)
"""

from __future__ import annotations

import ast
from typing import Any

import z3

from .parser import has_ambiguous_negation, to_python_source


class TranslationError(Exception):
    """Raised when a predicate falls outside the translatable subset."""


# ---------------------------------------------------------------------------
# Built-in function translations
# ---------------------------------------------------------------------------


def _z3_min(a: Any, b: Any) -> Any:
    return z3.If(a <= b, a, b)


def _z3_max(a: Any, b: Any) -> Any:
    return z3.If(a >= b, a, b)


def _z3_abs(x: Any) -> Any:
    return z3.If(x >= 0, x, -x)


_BUILTINS: dict[str, Any] = {
    "min": _z3_min,
    "max": _z3_max,
    "abs": _z3_abs,
}


# ---------------------------------------------------------------------------
# Translator
# ---------------------------------------------------------------------------


class PredicateTranslator:
    """Translates predicate strings into Z3 boolean expressions.

    One translator shares its variables across calls, so facts and goal
    translated by the same instance talk about the same unknowns.

    Args:
        int_variables: Names to declare as Z3 integers instead of reals.
    """

    def __init__(self, int_variables: tuple[str, ...] | list[str] = ()) -> None:
        self.int_variables = frozenset(int_variables)
        self.variables: dict[str, Any] = {}

    def translate(self, predicate: str) -> Any:
        """Translate *predicate* into a ``z3.BoolRef``.

        Raises:
            TranslationError: If the predicate does not parse or uses an
                unsupported construct, or is not boolean.
        """
        if has_ambiguous_negation(predicate):
            raise TranslationError(f"Ambiguous negation in predicate {predicate!r}")
        source = to_python_source(predicate)
        try:
            tree = ast.parse(source, mode="eval")
        except SyntaxError as e:
            raise TranslationError(f"Cannot parse predicate {predicate!r}: {e.msg}") from None
        expr = self._expr(tree.body)
        if not z3.is_bool(expr):
            raise TranslationError(f"Predicate {predicate!r} is not boolean")
        return expr

    def variable(self, name: str) -> Any:
        var = self.variables.get(name)
        if var is None:
            var = z3.Int(name) if name in self.int_variables else z3.Real(name)
            self.variables[name] = var
        return var

    # ------------------------------------------------------------------
    # Expression translation
    # ------------------------------------------------------------------

    def _expr(self, node: ast.expr) -> Any:
        """Translate an expression node to a Z3 expression."""
        if isinstance(node, ast.Constant):
            return self._constant(node.value)

        if isinstance(node, ast.Name):
            return self.variable(node.id)

        if isinstance(node, ast.Attribute):
            return self.variable(self._dotted(node))

        if isinstance(node, ast.BinOp):
            left = self._expr(node.left)
            right = self._expr(node.right)
            return self._binop(node.op, left, right)

        if isinstance(node, ast.UnaryOp):
            operand = self._expr(node.operand)
            return self._unaryop(node.op, operand)

        if isinstance(node, ast.BoolOp):
            values = [self._as_bool(self._expr(v)) for v in node.values]
            if isinstance(node.op, ast.And):
                return z3.And(*values)
            return z3.Or(*values)

        if isinstance(node, ast.Compare):
            return self._compare(node)

        if isinstance(node, ast.IfExp):
            test = self._as_bool(self._expr(node.test))
            body = self._expr(node.body)
            orelse = self._expr(node.orelse)
            body, orelse = self._coerce(body, orelse)
            return z3.If(test, body, orelse)

        if isinstance(node, ast.Call):
            return self._call(node)

        raise TranslationError(f"Unsupported expression: {type(node).__name__}")

    def _dotted(self, node: ast.expr) -> str:
        if isinstance(node, ast.Name):
            return node.id
        if isinstance(node, ast.Attribute):
            return f"{self._dotted(node.value)}.{node.attr}"
        raise TranslationError(f"Unsupported attribute base: {type(node).__name__}")

    def _constant(self, value: Any) -> Any:
        if isinstance(value, bool):
            return z3.BoolVal(value)
        if isinstance(value, int):
            return z3.IntVal(value)
        if isinstance(value, float):
            return z3.RealVal(str(value))
        raise TranslationError(f"Unsupported constant type: {type(value).__name__}")

    def _as_bool(self, expr: Any) -> Any:
        if not z3.is_bool(expr):
            raise TranslationError(f"Expected a boolean operand, got {expr}")
        return expr

    def _as_number(self, expr: Any) -> Any:
        if z3.is_bool(expr):
            raise TranslationError(f"Expected a numeric operand, got {expr}")
        return expr

    def _binop(self, op: ast.operator, left: Any, right: Any) -> Any:
        left, right = self._as_number(left), self._as_number(right)
        if isinstance(op, ast.Pow):
            # The exponent must stay an integer literal.
            return self._pow(left, right)
        if isinstance(op, ast.Mod):
            return self._mod(left, right)
        left, right = self._coerce(left, right)
        if isinstance(op, ast.Add):
            return left + right
        if isinstance(op, ast.Sub):
            return left - right
        if isinstance(op, ast.Mult):
            return left * right
        if isinstance(op, ast.Div):
            if left.sort() == z3.IntSort():
                left, right = z3.ToReal(left), z3.ToReal(right)
            return left / right
        raise TranslationError(f"Unsupported operator: {type(op).__name__}")

    def _pow(self, base: Any, exp: Any) -> Any:
        """Handle ** with constant integer exponents only."""
        if z3.is_int_value(exp):
            n = exp.as_long()
            if n == 0:
                return z3.RealVal("1") if base.sort() == z3.RealSort() else z3.IntVal(1)
            if n == 1:
                return base
            if n == 2:
                return base * base
            if n == 3:
                return base * base * base
        raise TranslationError("Only constant integer exponents 0-3 supported for **")

    def _mod(self, left: Any, right: Any) -> Any:
        """Remainder with the dividend's sign; Z3's own ``%`` never goes negative."""
        right = z3.simplify(right)
        if left.sort() != z3.IntSort() or not z3.is_int_value(right) or right.as_long() == 0:
            raise TranslationError(
                "Modulo needs an integer dividend and a nonzero integer literal divisor"
            )
        n = z3.IntVal(abs(right.as_long()))
        return z3.If(left >= 0, left % n, -((-left) % n))

    def _unaryop(self, op: ast.unaryop, operand: Any) -> Any:
        if isinstance(op, ast.USub):
            return -self._as_number(operand)
        if isinstance(op, ast.Not):
            return z3.Not(self._as_bool(operand))
        if isinstance(op, ast.UAdd):
            return self._as_number(operand)
        raise TranslationError(f"Unsupported unary op: {type(op).__name__}")

    def _compare(self, node: ast.Compare) -> Any:
        """Translate a single comparison ``a op b``."""
        if len(node.ops) != 1:
            raise TranslationError("Chained comparisons are not supported")
        op = node.ops[0]
        left, right = self._coerce(self._expr(node.left), self._expr(node.comparators[0]))
        if isinstance(op, ast.Eq):
            return left == right
        if isinstance(op, ast.NotEq):
            return left != right
        left, right = self._as_number(left), self._as_number(right)
        if isinstance(op, ast.Lt):
            return left < right
        if isinstance(op, ast.LtE):
            return left <= right
        if isinstance(op, ast.Gt):
            return left > right
        if isinstance(op, ast.GtE):
            return left >= right
        raise TranslationError(f"Unsupported comparison: {type(op).__name__}")

    def _call(self, node: ast.Call) -> Any:
        if not isinstance(node.func, ast.Name) or node.func.id not in _BUILTINS:
            raise TranslationError(f"Unsupported call: {ast.unparse(node.func)}")
        if node.keywords:
            raise TranslationError(f"Keyword arguments not supported in {node.func.id}()")
        args = [self._as_number(self._expr(a)) for a in node.args]
        fname = node.func.id
        if fname == "abs":
            if len(args) != 1:
                raise TranslationError("abs() takes exactly one argument")
            return _z3_abs(args[0])
        if len(args) != 2:
            raise TranslationError(f"{fname}() takes exactly two arguments")
        return _BUILTINS[fname](*self._coerce(args[0], args[1]))

    # ------------------------------------------------------------------
    # Type coercion
    # ------------------------------------------------------------------

    def _coerce(self, a: Any, b: Any) -> tuple[Any, Any]:
        """Promote operands to compatible Z3 sorts (Int → Real).

        A boolean never meets a number: ``true === 1`` is false in the host
        language but would hold after a 0/1 encoding.
        """
        if a.sort() == b.sort():
            return a, b
        if a.sort() == z3.IntSort() and b.sort() == z3.RealSort():
            return z3.ToReal(a), b
        if a.sort() == z3.RealSort() and b.sort() == z3.IntSort():
            return a, z3.ToReal(b)
        raise TranslationError(f"Cannot coerce sorts: {a.sort()} and {b.sort()}")
