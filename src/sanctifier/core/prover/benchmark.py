"""Solver latency benchmark for the overflow proof strategies.

Each strategy poses the same ``a + b > u64::MAX`` query under a different
operand domain. The benchmark is an operational diagnostic: it shows how
solver latency varies with the bounds a caller supplies.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from sanctifier.core.prover.smt import DEFAULT_TIMEOUT_MS, AdditionBounds, OverflowProver


class SmtProofStrategy(Enum):
    UNCONSTRAINED_OVERFLOW = "unconstrained_overflow"
    BOUNDED_DOMAIN_OVERFLOW = "bounded_domain_overflow"
    SMALL_DOMAIN_OVERFLOW = "small_domain_overflow"

    def bounds(self) -> AdditionBounds:
        if self is SmtProofStrategy.BOUNDED_DOMAIN_OVERFLOW:
            return AdditionBounds.with_operand_max(5_000_000_000)
        if self is SmtProofStrategy.SMALL_DOMAIN_OVERFLOW:
            return AdditionBounds.with_operand_max(10_000)
        return AdditionBounds.for_type("u64")


@dataclass(frozen=True)
class SmtStrategyLatency:
    """Latency distribution of one strategy, in microseconds."""

    strategy: SmtProofStrategy
    runs: int
    min_micros: int
    max_micros: int
    avg_micros: int
    p95_micros: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "strategy": self.strategy.value,
            "runs": self.runs,
            "min_micros": self.min_micros,
            "max_micros": self.max_micros,
            "avg_micros": self.avg_micros,
            "p95_micros": self.p95_micros,
        }


@dataclass
class SmtLatencyBenchmarkReport:
    iterations_per_strategy: int
    strategies: list[SmtStrategyLatency] = field(default_factory=list)

    def most_expensive_first(self) -> list[SmtStrategyLatency]:
        """Return the strategies sorted by average latency, slowest first."""
        return sorted(self.strategies, key=lambda s: s.avg_micros, reverse=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "iterations_per_strategy": self.iterations_per_strategy,
            "strategies": [s.to_dict() for s in self.strategies],
        }


def summarize_samples(strategy: SmtProofStrategy, samples: list[int]) -> SmtStrategyLatency:
    """Reduce raw microsecond samples to min/max/avg/p95.

    The average uses integer division; p95 is the sample at index
    ``(n - 1) * 0.95`` rounded half up, over the sorted samples.
    """
    ordered = sorted(samples)
    p95_index = math.floor((len(ordered) - 1) * 0.95 + 0.5)
    return SmtStrategyLatency(
        strategy=strategy,
        runs=len(ordered),
        min_micros=ordered[0],
        max_micros=ordered[-1],
        avg_micros=sum(ordered) // len(ordered),
        p95_micros=ordered[p95_index],
    )


def run_smt_latency_benchmark(
    iterations_per_strategy: int, timeout_ms: int = DEFAULT_TIMEOUT_MS
) -> SmtLatencyBenchmarkReport:
    """Time every strategy ``iterations_per_strategy`` times (at least once)."""
    iterations = max(1, iterations_per_strategy)
    prover = OverflowProver(timeout_ms)
    report = SmtLatencyBenchmarkReport(iterations_per_strategy=iterations)
    for strategy in SmtProofStrategy:
        bounds = strategy.bounds()
        samples: list[int] = []
        for _ in range(iterations):
            start = time.perf_counter_ns()
            prover.prove_addition("benchmark", strategy.value, bounds)
            samples.append((time.perf_counter_ns() - start) // 1000)
        report.strategies.append(summarize_samples(strategy, samples))
    return report
