"""Tests for configuration, the plugin registry and decidability warnings."""

from __future__ import annotations

import logging

import pytest
from conftest import RecordingPlugin

from elidable.config import (
    DecidabilityFallback,
    clear_prover_plugins,
    configure,
    emit_decidability_warning,
    get_config,
    get_prover_plugins,
    notify_fallback,
    register_prover_plugin,
    reset_config,
    should_emit_check,
)
from elidable.facts import Fact, register_decidability


class TestConfigure:
    def test_defaults(self) -> None:
        config = get_config()
        assert config["timeout_ms"] == 1000
        assert config["max_constraints"] == 512
        assert config["mode"] == "full"
        assert config["warn_on_fallback"] == "warn"
        assert config["warn_on_smt"] == "info"

    def test_update_and_reset(self) -> None:
        configure(timeout_ms=5000, ignore_brands=["Byte"])
        assert get_config()["timeout_ms"] == 5000
        assert get_config()["ignore_brands"] == ("Byte",)
        reset_config()
        assert get_config()["timeout_ms"] == 1000

    def test_get_config_is_a_copy(self) -> None:
        get_config()["timeout_ms"] = 1
        assert get_config()["timeout_ms"] == 1000

    def test_unknown_key(self) -> None:
        with pytest.raises(ValueError, match="Unknown configure"):
            configure(timeout=5)

    @pytest.mark.parametrize("key", ["warn_on_fallback", "warn_on_smt"])
    def test_bad_warning_level(self, key: str) -> None:
        with pytest.raises(ValueError, match=key):
            configure(**{key: "loud"})

    def test_bad_mode(self) -> None:
        with pytest.raises(ValueError, match="mode"):
            configure(mode="some")

    def test_log_level(self) -> None:
        configure(log_level="DEBUG")
        assert logging.getLogger("elidable").level == logging.DEBUG
        configure(log_level="WARNING")


class TestShouldEmitCheck:
    def test_full_mode_emits_everything(self) -> None:
        assert all(
            should_emit_check(k) for k in ("precondition", "postcondition", "invariant")
        )

    def test_none_mode(self) -> None:
        configure(mode="none")
        assert not should_emit_check("invariant")

    def test_assertions_mode_keeps_invariants(self) -> None:
        configure(mode="assertions")
        assert should_emit_check("invariant")
        assert not should_emit_check("precondition")
        assert not should_emit_check("postcondition")

    def test_strip_flags(self) -> None:
        configure(strip_postconditions=True, mode="assertions", strip_invariants=True)
        assert not should_emit_check("invariant")
        configure(mode="full")
        assert should_emit_check("precondition")
        assert not should_emit_check("postcondition")

    def test_unknown_kind(self) -> None:
        with pytest.raises(ValueError):
            should_emit_check("assumption")


class TestPluginRegistry:
    def test_registration_order(self) -> None:
        a, b = RecordingPlugin("a"), RecordingPlugin("b")
        register_prover_plugin(a)
        register_prover_plugin(b)
        assert get_prover_plugins() == (a, b)

    def test_clear(self) -> None:
        register_prover_plugin(RecordingPlugin("a"))
        clear_prover_plugins()
        assert get_prover_plugins() == ()


# ---------------------------------------------------------------------------
# Decidability warnings
# ---------------------------------------------------------------------------


def _fallback(actual: str, expected: str = "compile-time") -> DecidabilityFallback:
    return DecidabilityFallback("Positive", expected, actual, "because")


class TestEmitDecidabilityWarning:
    def test_fallback_warns(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.DEBUG, logger="elidable"):
            emit_decidability_warning(_fallback("smt"))
        (record,) = caplog.records
        assert record.levelno == logging.WARNING
        assert record.getMessage() == (
            '[elidable decidability] Predicate "Positive" marked as compile-time'
            " decidable fell back to smt: because"
        )

    def test_fallback_level_configurable(self, caplog: pytest.LogCaptureFixture) -> None:
        configure(warn_on_fallback="error")
        with caplog.at_level(logging.DEBUG, logger="elidable"):
            emit_decidability_warning(_fallback("runtime"))
        assert [r.levelno for r in caplog.records] == [logging.ERROR]

    def test_decidable_brand_needing_solver_is_info(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.DEBUG, logger="elidable"):
            emit_decidability_warning(_fallback("plugin", expected="decidable"))
        (record,) = caplog.records
        assert record.levelno == logging.INFO
        assert "required an external solver for verification: because" in record.getMessage()

    def test_static_strategies_are_silent(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.DEBUG, logger="elidable"):
            emit_decidability_warning(_fallback("type"))
            emit_decidability_warning(_fallback("runtime", expected="decidable"))
        assert caplog.records == []

    def test_off(self, caplog: pytest.LogCaptureFixture) -> None:
        configure(warn_on_fallback="off")
        with caplog.at_level(logging.DEBUG, logger="elidable"):
            emit_decidability_warning(_fallback("smt"))
        assert caplog.records == []

    def test_ignored_brand(self, caplog: pytest.LogCaptureFixture) -> None:
        configure(ignore_brands=["Positive"])
        with caplog.at_level(logging.DEBUG, logger="elidable"):
            emit_decidability_warning(_fallback("smt"))
        assert caplog.records == []


class TestNotifyFallback:
    def test_reports_decidable_brands_only(self) -> None:
        register_decidability("Sorted", "runtime")
        register_decidability("Even", "decidable")
        known = [Fact("x", "Positive<number>"), Fact("ys", "Sorted<number>"), Fact("k", "Even")]
        sink: list[DecidabilityFallback] = []
        sent = notify_fallback("goal", known, "plugin", sink.append)
        assert sent == sink
        assert [(n.brand, n.expected_strategy) for n in sent] == [
            ("Positive", "compile-time"),
            ("Even", "decidable"),
        ]
        assert {n.reason for n in sent} == {"Used prover plugin for: goal"}

    def test_unknown_brands_are_skipped(self) -> None:
        sink: list[DecidabilityFallback] = []
        notify_fallback("goal", [Fact("x", "Unheard<number>")], "runtime", sink.append)
        assert sink == []
