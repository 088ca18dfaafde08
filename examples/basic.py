"""Basic elidable usage — which checks can be dropped?

Demonstrates:
  - try_prove on goals that each layer discharges
  - A goal nothing can prove (the runtime check stays)
  - Reading a ProofCertificate
  - Registering a custom algebraic rule
"""

from __future__ import annotations

import asyncio
import re

from elidable import (
    AlgebraicRule,
    Fact,
    MatchResult,
    Prover,
    format_certificate,
    try_prove,
    try_prove_with_certificate,
)

# ---------------------------------------------------------------------------
# 1. One goal per layer
# ---------------------------------------------------------------------------

print("=== 1. Layers ===")
goals = [
    ("1 + 1 === 2", []),
    ("x > 0", [Fact("x", "x > 0")]),
    ("x + y > 0", [Fact("x", "x > 0"), Fact("y", "y > 0")]),
    ("x < z", [Fact("x", "x < y"), Fact("y", "y < z")]),
    ("combine(a, combine(b, c)) === combine(combine(a, b), c)", [Fact("S", "Semigroup<T>")]),
]
for goal, facts in goals:
    result = try_prove(goal, facts)
    method = result.method.value if result.method else "-"
    print(f"{goal:<58} proven={result.proven!s:<5} method={method}")
print()


# ---------------------------------------------------------------------------
# 2. Nothing proves it, so the runtime check stays
# ---------------------------------------------------------------------------

print("=== 2. Not proven ===")
result = try_prove("x >= 11", [Fact("x", "x >= 1"), Fact("x", "x <= 10")])
print(f"proven={result.proven}  reason={result.reason}")
print()


# ---------------------------------------------------------------------------
# 3. Certificates
# ---------------------------------------------------------------------------

print("=== 3. Certificate ===")
cert = asyncio.run(
    try_prove_with_certificate(
        "b >= 0 && b <= 255",
        [Fact("b", "b >= 0 && b <= 100")],
    )
)
print(cert)
print(format_certificate(cert))
print()


# ---------------------------------------------------------------------------
# 4. A custom rule
# ---------------------------------------------------------------------------


def even_double(goal: str, facts: object) -> MatchResult:
    return MatchResult(bool(re.fullmatch(r"\(2 \* \w+\) % 2 === 0", goal.strip())))


print("=== 4. Custom rule ===")
prover = Prover()
prover.register_rule(AlgebraicRule("even_double", "2 * x is even", even_double))
result = prover.try_prove("(2 * k) % 2 === 0", [Fact("k", "k >= 0")])
print(f"proven={result.proven}  reason={result.reason}")
