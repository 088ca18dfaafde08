"""Refined signatures, brands and the Z3 plugin.

Demonstrates:
  - Reading facts from Annotated parameter hints
  - Registering a brand and its decidability
  - Decidability warnings when a brand falls back to a solver or runtime
  - The bundled Z3 plugin for non-linear goals
"""

from __future__ import annotations

import logging
from typing import Annotated

from elidable import (
    Between,
    Brand,
    Ge,
    Port,
    Prover,
    Z3ProverPlugin,
    configure,
    facts_from_annotations,
    register_decidability,
    register_refinement_predicate,
    should_emit_check,
    try_prove,
)

logging.basicConfig(format="%(levelname)s %(message)s")

# ---------------------------------------------------------------------------
# 1. Facts from a signature
# ---------------------------------------------------------------------------

register_refinement_predicate("Probability", "$ >= 0 && $ <= 1")
register_decidability("Probability", "compile-time", "linear")


def send(
    port: Port,
    size: Annotated[int, Ge(0)],
    retries: Annotated[int, Between(0, 5)],
    p: Annotated[float, Brand("Probability")],
) -> None: ...


facts = facts_from_annotations(send)
print("=== 1. Facts ===")
for fact in facts:
    print(f"  {fact}  brands={list(fact.brands)}")
print()


# ---------------------------------------------------------------------------
# 2. Which checks survive?
# ---------------------------------------------------------------------------

print("=== 2. Checks ===")
for goal in ["port >= 1", "retries + size >= 0", "p <= 2", "size * retries >= 0"]:
    result = try_prove(goal, facts)
    verdict = f"elided ({result.method.value})" if result.proven else "runtime check"
    print(f"  {goal:<22} {verdict}")
print()


# ---------------------------------------------------------------------------
# 3. Z3 for the non-linear goal; the Port and Probability brands fall back to smt
# ---------------------------------------------------------------------------

print("=== 3. Z3 ===")
prover = Prover(plugins=[Z3ProverPlugin(int_variables=("size", "retries"))])
result = prover.try_prove("size * retries >= 0", facts)
print(f"  proven={result.proven}  reason={result.reason}")
print()


# ---------------------------------------------------------------------------
# 4. Emission policy
# ---------------------------------------------------------------------------

configure(mode="assertions")
print("=== 4. mode=assertions ===")
for kind in ("precondition", "postcondition", "invariant"):
    print(f"  {kind:<14} emitted={should_emit_check(kind)}")
