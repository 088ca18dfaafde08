"""Proof results and proof certificates.

Every proof layer answers with a :class:`ProofResult`. A positive result
always carries the :class:`ProofStep` that justifies it, so it can be turned
into a :class:`ProofCertificate`: the full, inspectable trace of one proof
attempt (goal, assumptions, reasoning steps, outcome, timing).

Certificates are immutable. The builder functions never modify their input;
they return a new certificate::

    cert = create_certificate("x + y > 0", facts)
    cert = succeed_certificate(cert, ProofMethod.ALGEBRA, step)
    print(format_certificate(cert))
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from .facts import Fact

_DEFAULT_FAILURE = "No proof method succeeded"


class ProofMethod(str, Enum):
    """The layer that discharged a goal."""

    CONSTANT = "constant"
    TYPE = "type"
    ALGEBRA = "algebra"
    LINEAR = "linear"
    PLUGIN = "plugin"


@dataclass(frozen=True)
class ProofStep:
    """One node in a certificate's reasoning chain.

    Attributes:
        rule: Name of the rule or plugin that produced the step.
        description: What the rule states.
        justification: Why it applies to this goal.
        used_facts: The facts the step consumed.
        subgoals: Goals the step reduced to, if any.
    """

    rule: str
    description: str
    justification: str
    used_facts: tuple[Fact, ...] = ()
    subgoals: tuple[str, ...] = ()

    def to_json(self) -> dict[str, Any]:
        return {
            "rule": self.rule,
            "description": self.description,
            "justification": self.justification,
            "used_facts": [f.to_json() for f in self.used_facts],
            "subgoals": list(self.subgoals),
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "ProofStep":
        return cls(
            rule=data["rule"],
            description=data.get("description", ""),
            justification=data.get("justification", ""),
            used_facts=tuple(Fact.from_json(f) for f in data.get("used_facts", [])),
            subgoals=tuple(data.get("subgoals", [])),
        )


@dataclass(frozen=True)
class ProofResult:
    """Outcome of one proof layer or of a whole proof attempt.

    ``proven=False`` means "not proven", never "false".
    """

    proven: bool
    method: ProofMethod | None = None
    reason: str | None = None
    step: ProofStep | None = field(default=None, compare=False)


NOT_PROVEN = ProofResult(proven=False)


@dataclass(frozen=True)
class ProofCertificate:
    """Immutable trace of one proof attempt.

    Attributes:
        goal: The obligation that was attempted.
        facts: The assumptions available to the attempt.
        steps: Reasoning steps, in order.
        succeeded: ``True`` once a layer proved the goal.
        method: The layer that proved it.
        failure_reason: Why the attempt did not succeed, once failed.
        time_ms: Wall-clock time from the start of the attempt.
    """

    goal: str
    facts: tuple[Fact, ...] = ()
    steps: tuple[ProofStep, ...] = ()
    succeeded: bool = False
    method: ProofMethod | None = None
    failure_reason: str | None = None
    time_ms: float = 0.0

    @property
    def resolved(self) -> bool:
        """``True`` once the certificate has succeeded or failed."""
        return self.succeeded or self.failure_reason is not None

    def __str__(self) -> str:
        if self.succeeded:
            method = self.method.value if self.method is not None else "?"
            return f"[Q.E.D.] {self.goal} ({method})"
        if self.failure_reason is not None:
            return f"[UNPROVEN] {self.goal} ({self.failure_reason})"
        return f"[PENDING] {self.goal}"

    def to_json(self) -> dict[str, Any]:
        """Serialize the certificate to a JSON-compatible dict."""
        return {
            "goal": self.goal,
            "facts": [f.to_json() for f in self.facts],
            "steps": [s.to_json() for s in self.steps],
            "succeeded": self.succeeded,
            "method": self.method.value if self.method is not None else None,
            "failure_reason": self.failure_reason,
            "time_ms": self.time_ms,
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "ProofCertificate":
        """Inverse of :meth:`to_json`.

        Raises:
            KeyError: If ``goal`` is missing.
            ValueError: If ``method`` is not a valid :class:`ProofMethod`.
        """
        method = data.get("method")
        return cls(
            goal=data["goal"],
            facts=tuple(Fact.from_json(f) for f in data.get("facts", [])),
            steps=tuple(ProofStep.from_json(s) for s in data.get("steps", [])),
            succeeded=bool(data.get("succeeded", False)),
            method=ProofMethod(method) if method is not None else None,
            failure_reason=data.get("failure_reason"),
            time_ms=float(data.get("time_ms", 0.0)),
        )


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def create_step(
    rule: str,
    description: str,
    justification: str,
    used_facts: Iterable[Fact] = (),
    subgoals: Iterable[str] = (),
) -> ProofStep:
    return ProofStep(rule, description, justification, tuple(used_facts), tuple(subgoals))


def create_certificate(goal: str, facts: Iterable[Fact] = ()) -> ProofCertificate:
    """An empty, unresolved certificate for *goal*."""
    return ProofCertificate(goal=goal, facts=tuple(facts))


def add_step(cert: ProofCertificate, step: ProofStep) -> ProofCertificate:
    """Append *step* without resolving the certificate."""
    return replace(cert, steps=cert.steps + (step,))


def succeed_certificate(
    cert: ProofCertificate,
    method: ProofMethod | str,
    step: ProofStep,
) -> ProofCertificate:
    return replace(
        cert,
        steps=cert.steps + (step,),
        succeeded=True,
        method=ProofMethod(method),
        failure_reason=None,
    )


def fail_certificate(cert: ProofCertificate, reason: str) -> ProofCertificate:
    return replace(
        cert,
        succeeded=False,
        method=None,
        failure_reason=reason or _DEFAULT_FAILURE,
    )


def with_elapsed(cert: ProofCertificate, time_ms: float) -> ProofCertificate:
    return replace(cert, time_ms=time_ms)


def certificate_to_result(cert: ProofCertificate) -> ProofResult:
    """Collapse a certificate into the :class:`ProofResult` it stands for."""
    if cert.succeeded:
        last = cert.steps[-1] if cert.steps else None
        return ProofResult(
            proven=True,
            method=cert.method,
            reason=last.justification if last is not None else None,
            step=last,
        )
    return ProofResult(proven=False, reason=cert.failure_reason)


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


def format_certificate(cert: ProofCertificate, indent: str = "  ") -> str:
    """Render *cert* as an indented, human-readable proof trace.

    Example output::

        Goal: x + y > 0
        Assumptions:
          x: x > 0
          y: y > 0
        Steps:
          1. sum_of_positives: x > 0 ∧ y > 0 → x + y > 0
             Applied algebraic rule: x > 0 ∧ y > 0 → x + y > 0
             using: x > 0, y > 0
        Result: Q.E.D. by algebra (0.04ms)
    """
    lines = [f"Goal: {cert.goal}"]

    lines.append("Assumptions:")
    if cert.facts:
        lines.extend(f"{indent}{fact}" for fact in cert.facts)
    else:
        lines.append(f"{indent}(none)")

    lines.append("Steps:")
    if not cert.steps:
        lines.append(f"{indent}(none)")
    for n, step in enumerate(cert.steps, 1):
        head = f"{indent}{n}. "
        cont = indent + " " * (len(head) - len(indent))
        lines.append(f"{head}{step.rule}: {step.description}")
        if step.justification and step.justification != step.description:
            lines.append(f"{cont}{step.justification}")
        if step.used_facts:
            lines.append(f"{cont}using: " + ", ".join(f.predicate for f in step.used_facts))
        if step.subgoals:
            lines.append(f"{cont}subgoals:")
            lines.extend(f"{cont}{indent}- {g}" for g in step.subgoals)

    if cert.succeeded:
        method = cert.method.value if cert.method is not None else "?"
        lines.append(f"Result: Q.E.D. by {method} ({cert.time_ms:.2f}ms)")
    elif cert.failure_reason is not None:
        lines.append(f"Result: NOT PROVEN: {cert.failure_reason} ({cert.time_ms:.2f}ms)")
    else:
        lines.append("Result: pending")
    return "\n".join(lines)
