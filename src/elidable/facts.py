"""Facts, refinement markers and the brand registries.

A :class:`Fact` is an assertion about a named value, expressed in the same
predicate syntax as the goals the prover works on::

    Fact("x", "x >= 0 && x <= 255")

Facts normally come from refined parameter types. This module provides the
registries that tie a refinement *brand* (``Positive``, ``Byte``, ...) to its
predicate and decidability, plus :func:`facts_from_annotations`, which reads
``typing.Annotated`` parameter hints::

    def send(port: Annotated[int, Brand("Port")], size: Annotated[int, Ge(0)]): ...

    facts_from_annotations(send)
    # [Fact("port", "port >= 1 && port <= 65535", brands=("Port",)),
    #  Fact("size", "size >= 0")]

Predicate templates use ``$`` as the placeholder for the variable name.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, get_args, get_origin, get_type_hints


@dataclass(frozen=True)
class Fact:
    """A known predicate about *variable*.

    *brands* names the refinement brands the predicate came from, such as
    ``("Port",)`` for a ``Port`` parameter. They drive decidability
    warnings; the prover itself only reads *predicate*.
    """

    variable: str
    predicate: str
    brands: tuple[str, ...] = ()

    def __str__(self) -> str:
        return f"{self.variable}: {self.predicate}"

    def to_json(self) -> dict[str, Any]:
        data: dict[str, Any] = {"variable": self.variable, "predicate": self.predicate}
        if self.brands:
            data["brands"] = list(self.brands)
        return data

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Fact:
        return cls(data["variable"], data["predicate"], tuple(data.get("brands", ())))


# ---------------------------------------------------------------------------
# Refinement markers, used with typing.Annotated
#
#   x: Annotated[float, Ge(0), Le(1)]   →   x >= 0 && x <= 1
#   p: Annotated[int, Brand("Port")]    →   p >= 1 && p <= 65535
# ---------------------------------------------------------------------------


def _num(value: int | float) -> str:
    return repr(value)


class Gt:
    """Strictly greater than a bound."""

    __slots__ = ("bound",)

    def __init__(self, bound: int | float) -> None:
        self.bound = bound

    def __repr__(self) -> str:
        return f"Gt({self.bound})"

    def predicate(self, name: str) -> str:
        return f"{name} > {_num(self.bound)}"


class Ge:
    """Greater than or equal to a bound."""

    __slots__ = ("bound",)

    def __init__(self, bound: int | float) -> None:
        self.bound = bound

    def __repr__(self) -> str:
        return f"Ge({self.bound})"

    def predicate(self, name: str) -> str:
        return f"{name} >= {_num(self.bound)}"


class Lt:
    """Strictly less than a bound."""

    __slots__ = ("bound",)

    def __init__(self, bound: int | float) -> None:
        self.bound = bound

    def __repr__(self) -> str:
        return f"Lt({self.bound})"

    def predicate(self, name: str) -> str:
        return f"{name} < {_num(self.bound)}"


class Le:
    """Less than or equal to a bound."""

    __slots__ = ("bound",)

    def __init__(self, bound: int | float) -> None:
        self.bound = bound

    def __repr__(self) -> str:
        return f"Le({self.bound})"

    def predicate(self, name: str) -> str:
        return f"{name} <= {_num(self.bound)}"


class Between:
    """Inclusive range [lo, hi]."""

    __slots__ = ("lo", "hi")

    def __init__(self, lo: int | float, hi: int | float) -> None:
        self.lo = lo
        self.hi = hi

    def __repr__(self) -> str:
        return f"Between({self.lo}, {self.hi})"

    def predicate(self, name: str) -> str:
        return f"{name} >= {_num(self.lo)} && {name} <= {_num(self.hi)}"


class NotEq:
    """Not equal to a value."""

    __slots__ = ("val",)

    def __init__(self, val: int | float) -> None:
        self.val = val

    def __repr__(self) -> str:
        return f"NotEq({self.val})"

    def predicate(self, name: str) -> str:
        return f"{name} !== {_num(self.val)}"


class Brand:
    """A named refinement whose predicate lives in the brand registry.

    Example::

        b: Annotated[int, Brand("Byte")]   # b >= 0 && b <= 255
    """

    __slots__ = ("name",)

    def __init__(self, name: str) -> None:
        self.name = name

    def __repr__(self) -> str:
        return f"Brand({self.name!r})"

    def predicate(self, name: str) -> str | None:
        template = get_refinement_predicate(self.name)
        if template is None:
            return None
        return instantiate(template, name)


# ---------------------------------------------------------------------------
# Brand → predicate registry
# ---------------------------------------------------------------------------

_REFINEMENT_PREDICATES: dict[str, str] = {
    "Positive": "$ > 0",
    "NonNegative": "$ >= 0",
    "Negative": "$ < 0",
    "Byte": "$ >= 0 && $ <= 255",
    "Port": "$ >= 1 && $ <= 65535",
    "Percentage": "$ >= 0 && $ <= 100",
}

# Parameterised brands such as Vec<5>; the first matching pattern wins.
_PREDICATE_GENERATORS: list[tuple[re.Pattern[str], Callable[[re.Match[str]], str]]] = [
    (re.compile(r"^Vec<(\d+)>$"), lambda m: f"$.length === {m.group(1)}"),
]


def register_refinement_predicate(brand: str, template: str) -> None:
    """Register (or replace) the predicate template for *brand*.

    Example::

        register_refinement_predicate("PositiveEven", "$ > 0 && $ % 2 === 0")
    """
    _REFINEMENT_PREDICATES[brand] = template


def register_predicate_generator(
    pattern: str | re.Pattern[str],
    generate: Callable[[re.Match[str]], str],
) -> None:
    """Register a predicate generator for a family of parameterised brands.

    Example::

        register_predicate_generator(
            r"^Matrix<(\\d+),(\\d+)>$",
            lambda m: f"$.rows === {m.group(1)} && $.cols === {m.group(2)}",
        )
    """
    _PREDICATE_GENERATORS.append((re.compile(pattern), generate))


def get_refinement_predicate(brand: str) -> str | None:
    """Predicate template for *brand*, static registry first."""
    template = _REFINEMENT_PREDICATES.get(brand)
    if template is not None:
        return template
    for pattern, generate in _PREDICATE_GENERATORS:
        m = pattern.match(brand)
        if m:
            return generate(m)
    return None


def instantiate(template: str, variable: str) -> str:
    """Substitute *variable* for every ``$`` in *template*."""
    return template.replace("$", variable)


# ---------------------------------------------------------------------------
# Decidability registry
# ---------------------------------------------------------------------------


class Decidability(str, Enum):
    """How a brand's predicate is expected to be discharged."""

    COMPILE_TIME = "compile-time"
    DECIDABLE = "decidable"
    RUNTIME = "runtime"
    UNDECIDABLE = "undecidable"


@dataclass(frozen=True)
class DecidabilityInfo:
    brand: str
    decidability: Decidability
    preferred_strategy: str = "algebra"


_DECIDABILITY: dict[str, DecidabilityInfo] = {}


def register_decidability(
    brand: str,
    decidability: Decidability | str,
    preferred_strategy: str = "algebra",
) -> DecidabilityInfo:
    """Declare how *brand* is expected to be proven.

    Raises:
        ValueError: If *decidability* is not a known level.
    """
    info = DecidabilityInfo(brand, Decidability(decidability), preferred_strategy)
    _DECIDABILITY[brand] = info
    return info


def get_decidability(brand: str) -> DecidabilityInfo | None:
    return _DECIDABILITY.get(brand)


def get_preferred_strategy(brand: str) -> str:
    info = _DECIDABILITY.get(brand)
    return info.preferred_strategy if info is not None else "algebra"


def can_prove_at_compile_time(decidability: Decidability | str) -> bool:
    return Decidability(decidability) in (Decidability.COMPILE_TIME, Decidability.DECIDABLE)


def is_compile_time_decidable(brand: str) -> bool:
    """Unregistered brands are assumed decidable."""
    info = _DECIDABILITY.get(brand)
    return info is None or can_prove_at_compile_time(info.decidability)


def requires_runtime_check(brand: str) -> bool:
    """Unregistered brands are assumed not to need a runtime check."""
    info = _DECIDABILITY.get(brand)
    return info is not None and not can_prove_at_compile_time(info.decidability)


def all_decidability_info() -> tuple[DecidabilityInfo, ...]:
    return tuple(_DECIDABILITY.values())


def clear_decidability() -> None:
    """Forget every registered brand, including the built-ins."""
    _DECIDABILITY.clear()


for _brand, _strategy in (
    ("Positive", "algebra"),
    ("NonNegative", "algebra"),
    ("Negative", "algebra"),
    ("Byte", "linear"),
    ("Port", "linear"),
    ("Percentage", "linear"),
):
    register_decidability(_brand, Decidability.COMPILE_TIME, _strategy)


# ---------------------------------------------------------------------------
# Subtyping registry
#
#   Port → Positive   a Port may be passed where a Positive is expected
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SubtypingRule:
    """*source* widens to *target*, justified by the named *proof*."""

    source: str
    target: str
    proof: str
    justification: str

    def __str__(self) -> str:
        return f"{self.source} <: {self.target} ({self.justification})"


_SUBTYPING_RULES: dict[tuple[str, str], SubtypingRule] = {}


def register_subtyping_rule(rule: SubtypingRule) -> SubtypingRule:
    """Register (or replace) the rule widening ``rule.source`` to ``rule.target``.

    Example::

        register_subtyping_rule(
            SubtypingRule("Probability", "NonNegative", "probability_lower_bound",
                          "Probability (0-1) implies x >= 0")
        )
    """
    _SUBTYPING_RULES[(rule.source, rule.target)] = rule
    return rule


def get_subtyping_rule(source: str, target: str) -> SubtypingRule | None:
    return _SUBTYPING_RULES.get((source, target))


def can_widen(source: str, target: str) -> bool:
    """Whether a *source* value may be used as a *target* value.

    Every brand widens to itself. Rules are not chained: ``Port → Positive``
    and ``Positive → Finite`` do not imply ``Port → Finite``.
    """
    return source == target or (source, target) in _SUBTYPING_RULES


def get_widen_targets(source: str) -> list[SubtypingRule]:
    """Rules widening *source*, in registration order."""
    return [rule for rule in _SUBTYPING_RULES.values() if rule.source == source]


def all_subtyping_rules() -> tuple[SubtypingRule, ...]:
    return tuple(_SUBTYPING_RULES.values())


for _source, _target, _proof, _justification in (
    ("Positive", "NonNegative", "positive_implies_non_negative", "x > 0 implies x >= 0"),
    ("Byte", "NonNegative", "byte_lower_bound", "Byte (0-255) implies x >= 0"),
    ("Byte", "Int", "byte_is_integer", "Byte is an integer"),
    ("Port", "Positive", "port_is_positive", "Port (1-65535) implies x > 0"),
    ("Port", "NonNegative", "port_is_non_negative", "Port (1-65535) implies x >= 0"),
    ("Port", "Int", "port_is_integer", "Port is an integer"),
    ("Percentage", "NonNegative", "percentage_lower_bound", "Percentage (0-100) implies x >= 0"),
    ("Positive", "Finite", "positive_is_finite", "Positive numbers are finite"),
    ("NonNegative", "Finite", "non_negative_is_finite", "Non-negative numbers are finite"),
    ("Negative", "Finite", "negative_is_finite", "Negative numbers are finite"),
):
    register_subtyping_rule(SubtypingRule(_source, _target, _proof, _justification))


_BRAND_WORD = re.compile(r"[A-Z][a-zA-Z0-9]*")
_BRAND_PREFIX = re.compile(r"^([A-Z][a-zA-Z0-9]*)")


def extract_brands(facts: Sequence[Fact]) -> list[str]:
    """Brand-like names in *facts*, in first-seen order.

    A fact's own ``brands`` come first. Capitalized words in predicates
    count too (``x: Positive``), as does a capitalized prefix of the
    variable name.
    """
    brands: list[str] = []
    for fact in facts:
        for word in (*fact.brands, *_BRAND_WORD.findall(fact.predicate)):
            if word not in brands:
                brands.append(word)
        m = _BRAND_PREFIX.match(fact.variable)
        if m and m.group(1) not in brands:
            brands.append(m.group(1))
    return brands


# ---------------------------------------------------------------------------
# Fact extraction from annotations
# ---------------------------------------------------------------------------


def refinement_predicates(typ: Any, name: str) -> list[str]:
    """Predicates contributed by the ``Annotated`` markers of *typ*.

    Unknown markers, unregistered brands and non-``Annotated`` types
    contribute nothing.
    """
    if get_origin(typ) is not Annotated:
        return []

    base, *markers = get_args(typ)
    predicates: list[str] = []
    if get_origin(base) is Annotated:
        predicates.extend(refinement_predicates(base, name))
    for marker in markers:
        if isinstance(marker, (Gt, Ge, Lt, Le, Between, NotEq, Brand)):
            predicate = marker.predicate(name)
            if predicate is not None:
                predicates.append(predicate)
        elif get_origin(marker) is Annotated:
            predicates.extend(refinement_predicates(marker, name))
    return predicates


def refinement_brands(typ: Any) -> list[str]:
    """Names of the :class:`Brand` markers of *typ*, in annotation order."""
    if get_origin(typ) is not Annotated:
        return []

    base, *markers = get_args(typ)
    brands = refinement_brands(base)
    for marker in markers:
        if isinstance(marker, Brand):
            names = [marker.name]
        else:
            names = refinement_brands(marker)
        brands.extend(name for name in names if name not in brands)
    return brands


def facts_from_annotations(func: Callable[..., Any]) -> list[Fact]:
    """One :class:`Fact` per refined parameter of *func*, in signature order."""
    try:
        hints = get_type_hints(func, include_extras=True)
    except Exception:
        hints = dict(getattr(func, "__annotations__", {}))

    facts: list[Fact] = []
    for name, typ in hints.items():
        if name == "return":
            continue
        predicates = refinement_predicates(typ, name)
        if predicates:
            facts.append(Fact(name, " && ".join(predicates), tuple(refinement_brands(typ))))
    return facts


# ---------------------------------------------------------------------------
# Convenience type aliases
# ---------------------------------------------------------------------------

#: ``float`` that is strictly greater than zero (``x > 0``).
Positive = Annotated[float, Brand("Positive")]

#: ``float`` that is greater than or equal to zero (``x >= 0``).
NonNegative = Annotated[float, Brand("NonNegative")]

#: ``int`` in ``[0, 255]``.
Byte = Annotated[int, Brand("Byte")]

#: ``int`` in ``[1, 65535]``.
Port = Annotated[int, Brand("Port")]
