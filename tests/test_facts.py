"""Tests for facts, refinement markers and the brand registries."""

from __future__ import annotations

from typing import Annotated

import pytest

from elidable.facts import (
    Between,
    Brand,
    Byte,
    Decidability,
    Fact,
    Ge,
    Gt,
    Le,
    Lt,
    NotEq,
    Port,
    Positive,
    SubtypingRule,
    all_decidability_info,
    all_subtyping_rules,
    can_prove_at_compile_time,
    can_widen,
    clear_decidability,
    extract_brands,
    facts_from_annotations,
    get_decidability,
    get_preferred_strategy,
    get_refinement_predicate,
    get_subtyping_rule,
    get_widen_targets,
    instantiate,
    is_compile_time_decidable,
    refinement_brands,
    refinement_predicates,
    register_decidability,
    register_predicate_generator,
    register_refinement_predicate,
    register_subtyping_rule,
    requires_runtime_check,
)


class TestFact:
    def test_str(self) -> None:
        assert str(Fact("x", "x > 0")) == "x: x > 0"

    def test_frozen_and_hashable(self) -> None:
        assert len({Fact("x", "x > 0"), Fact("x", "x > 0")}) == 1

    def test_brands_default_to_none(self) -> None:
        assert Fact("x", "x > 0").brands == ()
        assert Fact("x", "x > 0") != Fact("x", "x > 0", brands=("Positive",))

    def test_json(self) -> None:
        assert Fact("x", "x > 0").to_json() == {"variable": "x", "predicate": "x > 0"}
        branded = Fact("p", "p >= 1 && p <= 65535", brands=("Port",))
        assert branded.to_json()["brands"] == ["Port"]
        assert Fact.from_json(branded.to_json()) == branded


class TestMarkers:
    @pytest.mark.parametrize(
        ("marker", "expected"),
        [
            (Gt(0), "n > 0"),
            (Ge(1.5), "n >= 1.5"),
            (Lt(-3), "n < -3"),
            (Le(10), "n <= 10"),
            (Between(0, 255), "n >= 0 && n <= 255"),
            (NotEq(0), "n !== 0"),
            (Brand("Port"), "n >= 1 && n <= 65535"),
        ],
    )
    def test_predicate(self, marker: object, expected: str) -> None:
        assert marker.predicate("n") == expected  # type: ignore[attr-defined]

    def test_unknown_brand_has_no_predicate(self) -> None:
        assert Brand("Mystery").predicate("n") is None

    def test_repr(self) -> None:
        assert repr(Between(1, 2)) == "Between(1, 2)"
        assert repr(Brand("Byte")) == "Brand('Byte')"


# ---------------------------------------------------------------------------
# Refinement predicate registry
# ---------------------------------------------------------------------------


class TestRefinementPredicates:
    def test_builtin(self) -> None:
        assert get_refinement_predicate("Byte") == "$ >= 0 && $ <= 255"

    def test_instantiate(self) -> None:
        assert instantiate("$ > 0 && $ < $.max", "v") == "v > 0 && v < v.max"

    def test_register(self) -> None:
        register_refinement_predicate("PositiveEven", "$ > 0 && $ % 2 === 0")
        assert Brand("PositiveEven").predicate("k") == "k > 0 && k % 2 === 0"

    def test_vec_generator(self) -> None:
        assert get_refinement_predicate("Vec<3>") == "$.length === 3"

    def test_custom_generator(self) -> None:
        register_predicate_generator(
            r"^Matrix<(\d+),(\d+)>$",
            lambda m: f"$.rows === {m.group(1)} && $.cols === {m.group(2)}",
        )
        assert get_refinement_predicate("Matrix<2,3>") == "$.rows === 2 && $.cols === 3"

    def test_static_registry_wins(self) -> None:
        register_refinement_predicate("Vec<3>", "$.length === 3 && $.dense")
        assert get_refinement_predicate("Vec<3>") == "$.length === 3 && $.dense"

    def test_unknown(self) -> None:
        assert get_refinement_predicate("Vec<n>") is None


class TestAnnotations:
    def test_facts_from_annotations(self) -> None:
        def send(port: Port, size: Annotated[int, Ge(0)], label: str) -> None: ...

        assert facts_from_annotations(send) == [
            Fact("port", "port >= 1 && port <= 65535", brands=("Port",)),
            Fact("size", "size >= 0"),
        ]

    def test_markers_are_conjoined(self) -> None:
        def f(x: Annotated[float, Gt(0), Le(1), NotEq(0.5)]) -> float: ...

        assert facts_from_annotations(f) == [Fact("x", "x > 0 && x <= 1 && x !== 0.5")]

    def test_nested_annotated(self) -> None:
        assert refinement_predicates(Annotated[Byte, Lt(100)], "b") == [
            "b >= 0 && b <= 255",
            "b < 100",
        ]

    def test_return_annotation_ignored(self) -> None:
        def f(x: Positive) -> Positive: ...

        assert facts_from_annotations(f) == [Fact("x", "x > 0", brands=("Positive",))]

    def test_plain_types_contribute_nothing(self) -> None:
        assert refinement_predicates(int, "x") == []
        assert refinement_predicates(Annotated[int, "doc"], "x") == []
        assert refinement_brands(Annotated[int, Ge(0)]) == []

    def test_brands_in_annotation_order(self) -> None:
        assert refinement_brands(Annotated[Byte, Lt(100), Brand("Small")]) == ["Byte", "Small"]
        assert refinement_brands(Annotated[Port, Brand("Port")]) == ["Port"]

    def test_unregistered_brand_still_recorded(self) -> None:
        def f(x: Annotated[int, Ge(0), Brand("Opaque")]) -> None: ...

        assert facts_from_annotations(f) == [Fact("x", "x >= 0", brands=("Opaque",))]


# ---------------------------------------------------------------------------
# Decidability registry
# ---------------------------------------------------------------------------


class TestDecidabilityRegistry:
    def test_builtins_are_compile_time(self) -> None:
        info = get_decidability("Byte")
        assert info is not None
        assert info.decidability is Decidability.COMPILE_TIME
        assert info.preferred_strategy == "linear"

    def test_register_from_string(self) -> None:
        info = register_decidability("Sorted", "runtime", "plugin")
        assert info.decidability is Decidability.RUNTIME
        assert get_preferred_strategy("Sorted") == "plugin"
        assert requires_runtime_check("Sorted")
        assert not is_compile_time_decidable("Sorted")

    def test_register_rejects_unknown_level(self) -> None:
        with pytest.raises(ValueError):
            register_decidability("Weird", "sometimes")

    def test_unregistered_defaults(self) -> None:
        assert get_decidability("Unheard") is None
        assert get_preferred_strategy("Unheard") == "algebra"
        assert is_compile_time_decidable("Unheard")
        assert not requires_runtime_check("Unheard")

    @pytest.mark.parametrize(
        ("level", "expected"),
        [("compile-time", True), ("decidable", True), ("runtime", False), ("undecidable", False)],
    )
    def test_can_prove_at_compile_time(self, level: str, expected: bool) -> None:
        assert can_prove_at_compile_time(level) is expected

    def test_clear(self) -> None:
        clear_decidability()
        assert all_decidability_info() == ()
        assert get_decidability("Positive") is None


class TestExtractBrands:
    def test_from_predicates(self) -> None:
        known = [Fact("x", "Positive<number>"), Fact("y", "Byte && Positive")]
        assert extract_brands(known) == ["Positive", "Byte"]

    def test_from_variable_prefix(self) -> None:
        assert extract_brands([Fact("Port_in", "p > 0")]) == ["Port"]

    def test_plain_facts(self) -> None:
        assert extract_brands([Fact("x", "x > 0 && y < 3")]) == []

    def test_from_fact_brands(self) -> None:
        known = [
            Fact("b", "b >= 0 && b <= 255", brands=("Byte",)),
            Fact("p", "Positive<number>"),
        ]
        assert extract_brands(known) == ["Byte", "Positive"]

    def test_fact_brands_are_not_repeated(self) -> None:
        assert extract_brands([Fact("x", "Port<number>", brands=("Port",))]) == ["Port"]


# ---------------------------------------------------------------------------
# Subtyping registry
# ---------------------------------------------------------------------------


class TestSubtyping:
    @pytest.mark.parametrize(
        ("source", "target"),
        [
            ("Positive", "NonNegative"),
            ("Byte", "NonNegative"),
            ("Byte", "Int"),
            ("Port", "Positive"),
            ("Port", "NonNegative"),
            ("Port", "Int"),
            ("Percentage", "NonNegative"),
            ("Positive", "Finite"),
            ("NonNegative", "Finite"),
            ("Negative", "Finite"),
        ],
    )
    def test_builtin_rules(self, source: str, target: str) -> None:
        assert can_widen(source, target)

    def test_every_brand_widens_to_itself(self) -> None:
        assert can_widen("Unheard", "Unheard")

    @pytest.mark.parametrize(
        ("source", "target"),
        [("NonNegative", "Positive"), ("Negative", "NonNegative"), ("Port", "Finite")],
    )
    def test_no_widening(self, source: str, target: str) -> None:
        assert not can_widen(source, target)

    def test_get_rule(self) -> None:
        rule = get_subtyping_rule("Port", "Positive")
        assert rule is not None
        assert rule.proof == "port_is_positive"
        assert str(rule) == "Port <: Positive (Port (1-65535) implies x > 0)"
        assert get_subtyping_rule("Positive", "Port") is None

    def test_widen_targets_in_registration_order(self) -> None:
        assert [r.target for r in get_widen_targets("Port")] == ["Positive", "NonNegative", "Int"]
        assert get_widen_targets("Unheard") == []

    def test_register(self) -> None:
        rule = SubtypingRule(
            "Probability", "NonNegative", "probability_lower_bound", "Probability implies x >= 0"
        )
        assert register_subtyping_rule(rule) is rule
        assert can_widen("Probability", "NonNegative")
        assert rule in all_subtyping_rules()

    def test_register_replaces(self) -> None:
        register_subtyping_rule(SubtypingRule("Port", "Int", "port_int", "ports are whole"))
        rule = get_subtyping_rule("Port", "Int")
        assert rule is not None
        assert rule.proof == "port_int"
        assert len(all_subtyping_rules()) == 10
