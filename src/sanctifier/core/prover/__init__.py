"""Symbolic overflow prover (Z3) and its latency benchmark."""

from sanctifier.core.prover.benchmark import (
    SmtLatencyBenchmarkReport,
    SmtProofStrategy,
    SmtStrategyLatency,
    run_smt_latency_benchmark,
)
from sanctifier.core.prover.smt import (
    AdditionBounds,
    OverflowProver,
    ProofOutcome,
    ProofResult,
    SmtInvariantIssue,
    verify_addition_overflow,
)

__all__ = [
    "AdditionBounds",
    "OverflowProver",
    "ProofOutcome",
    "ProofResult",
    "SmtInvariantIssue",
    "SmtLatencyBenchmarkReport",
    "SmtProofStrategy",
    "SmtStrategyLatency",
    "run_smt_latency_benchmark",
    "verify_addition_overflow",
]
