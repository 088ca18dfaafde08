"""Elidable — prove contract checks away before they ever run.

Give the prover an obligation and what the types already guarantee; if it
can prove the obligation, the runtime check can be dropped.

    from elidable import Fact, try_prove

    facts = [Fact("x", "x > 0"), Fact("y", "y > 0")]
    result = try_prove("x + y > 0", facts)
    assert result.proven and result.method == "algebra"

Facts can be read straight from refined signatures:

    from typing import Annotated
    from elidable import Brand, Ge, facts_from_annotations

    def send(port: Annotated[int, Brand("Port")], size: Annotated[int, Ge(0)]): ...

    facts_from_annotations(send)

For goals beyond the built-in layers, register the Z3 plugin:

    from elidable import Z3ProverPlugin, register_prover_plugin
    register_prover_plugin(Z3ProverPlugin())
"""

from __future__ import annotations

__version__ = "0.1.0"

from .algebra import (
    BUILTIN_RULES,
    AlgebraicRule,
    MatchResult,
    RuleCatalog,
    try_algebraic_proof,
)
from .certificate import (
    ProofCertificate,
    ProofMethod,
    ProofResult,
    ProofStep,
    add_step,
    certificate_to_result,
    create_certificate,
    create_step,
    fail_certificate,
    format_certificate,
    succeed_certificate,
)
from .config import (
    DecidabilityFallback,
    clear_prover_plugins,
    configure,
    emit_decidability_warning,
    get_prover_plugins,
    register_prover_plugin,
    reset_config,
    should_emit_check,
)
from .engine import (
    ConstantEvaluator,
    LiteralEvaluator,
    Prover,
    try_prove,
    try_prove_async,
    try_prove_with_certificate,
)
from .facts import (
    Between,
    Brand,
    Byte,
    Decidability,
    Fact,
    Ge,
    Gt,
    Le,
    Lt,
    NonNegative,
    NotEq,
    Port,
    Positive,
    SubtypingRule,
    can_widen,
    facts_from_annotations,
    get_widen_targets,
    register_decidability,
    register_refinement_predicate,
    register_subtyping_rule,
)
from .linear import try_linear_arithmetic
from .plugins import PluginOutcome, ProverPlugin
from .translator import TranslationError
from .z3_plugin import Z3ProverPlugin

__all__ = [
    # Entry points
    "Prover",
    "try_prove",
    "try_prove_async",
    "try_prove_with_certificate",
    "try_algebraic_proof",
    "try_linear_arithmetic",
    # Results and certificates
    "ProofResult",
    "ProofMethod",
    "ProofStep",
    "ProofCertificate",
    "create_certificate",
    "create_step",
    "add_step",
    "succeed_certificate",
    "fail_certificate",
    "certificate_to_result",
    "format_certificate",
    # Rules
    "AlgebraicRule",
    "MatchResult",
    "RuleCatalog",
    "BUILTIN_RULES",
    # Facts and refinements
    "Fact",
    "facts_from_annotations",
    "register_refinement_predicate",
    "register_decidability",
    "Decidability",
    "SubtypingRule",
    "register_subtyping_rule",
    "can_widen",
    "get_widen_targets",
    "Gt",
    "Ge",
    "Lt",
    "Le",
    "Between",
    "NotEq",
    "Brand",
    "Positive",
    "NonNegative",
    "Byte",
    "Port",
    # Constant evaluation
    "ConstantEvaluator",
    "LiteralEvaluator",
    # Plugins
    "ProverPlugin",
    "PluginOutcome",
    "Z3ProverPlugin",
    "register_prover_plugin",
    "get_prover_plugins",
    "clear_prover_plugins",
    # Configuration
    "configure",
    "reset_config",
    "should_emit_check",
    "DecidabilityFallback",
    "emit_decidability_warning",
    # Errors
    "TranslationError",
    # Metadata
    "__version__",
]
