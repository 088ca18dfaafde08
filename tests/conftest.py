"""Elidable test configuration."""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from elidable.certificate import ProofResult
from elidable.facts import Fact


@pytest.fixture(autouse=True)
def _clean_state() -> Iterator[None]:
    """Reset settings, plugins and the brand registries around every test."""
    from elidable import facts as facts_mod
    from elidable.config import clear_prover_plugins, reset_config

    saved_decidability = dict(facts_mod._DECIDABILITY)
    saved_predicates = dict(facts_mod._REFINEMENT_PREDICATES)
    saved_generators = list(facts_mod._PREDICATE_GENERATORS)
    saved_subtyping = dict(facts_mod._SUBTYPING_RULES)
    reset_config()
    clear_prover_plugins()
    yield
    reset_config()
    clear_prover_plugins()
    facts_mod._DECIDABILITY.clear()
    facts_mod._DECIDABILITY.update(saved_decidability)
    facts_mod._REFINEMENT_PREDICATES.clear()
    facts_mod._REFINEMENT_PREDICATES.update(saved_predicates)
    facts_mod._PREDICATE_GENERATORS[:] = saved_generators
    facts_mod._SUBTYPING_RULES.clear()
    facts_mod._SUBTYPING_RULES.update(saved_subtyping)


def facts(**predicates: str) -> list[Fact]:
    """``facts(x="x > 0")`` → ``[Fact("x", "x > 0")]``."""
    return [Fact(name, predicate) for name, predicate in predicates.items()]


class RecordingPlugin:
    """Test plugin that records its calls and answers with a fixed result."""

    def __init__(self, name: str, result: ProofResult | None = None) -> None:
        self.name = name
        self.result = result if result is not None else ProofResult(proven=False)
        self.calls: list[tuple[str, tuple[Fact, ...], int | None]] = []

    def prove(self, goal: str, facts: tuple[Fact, ...], timeout: int | None = None) -> ProofResult:
        self.calls.append((goal, tuple(facts), timeout))
        return self.result


class AsyncRecordingPlugin(RecordingPlugin):
    """Like :class:`RecordingPlugin`, but answers through a coroutine."""

    async def prove(  # type: ignore[override]
        self, goal: str, facts: tuple[Fact, ...], timeout: int | None = None
    ) -> ProofResult:
        self.calls.append((goal, tuple(facts), timeout))
        return self.result


class RaisingPlugin:
    def __init__(self, name: str = "broken") -> None:
        self.name = name
        self.calls = 0

    def prove(self, goal: str, facts: tuple[Fact, ...], timeout: int | None = None) -> ProofResult:
        self.calls += 1
        raise RuntimeError("plugin exploded")
