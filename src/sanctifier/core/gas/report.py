"""Aggregated gas report: per-function tiers and grand totals."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable

from sanctifier.core.gas.estimator import GasEstimationReport

MEDIUM_THRESHOLD = 10_000
HIGH_THRESHOLD = 100_000


class GasTier(Enum):
    """Instruction-count tier: Low < 10k <= Medium < 100k <= High."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    @classmethod
    def from_instructions(cls, instructions: int) -> GasTier:
        if instructions >= HIGH_THRESHOLD:
            return cls.HIGH
        if instructions >= MEDIUM_THRESHOLD:
            return cls.MEDIUM
        return cls.LOW

    @property
    def label(self) -> str:
        return self.name


@dataclass(frozen=True)
class GasReportEntry:
    function_name: str
    estimated_instructions: int
    estimated_memory_bytes: int
    tier: GasTier

    @classmethod
    def from_estimation(cls, estimation: GasEstimationReport) -> GasReportEntry:
        return cls(
            function_name=estimation.function_name,
            estimated_instructions=estimation.estimated_instructions,
            estimated_memory_bytes=estimation.estimated_memory_bytes,
            tier=GasTier.from_instructions(estimation.estimated_instructions),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "function_name": self.function_name,
            "estimated_instructions": self.estimated_instructions,
            "estimated_memory_bytes": self.estimated_memory_bytes,
            "tier": self.tier.value,
        }


@dataclass
class GasReport:
    """Gas estimates for one or more files, with totals."""

    entries: list[GasReportEntry] = field(default_factory=list)
    total_instructions: int = 0
    total_memory_bytes: int = 0

    @classmethod
    def from_estimations(cls, estimations: Iterable[GasEstimationReport]) -> GasReport:
        entries = [GasReportEntry.from_estimation(e) for e in estimations]
        return cls(
            entries=entries,
            total_instructions=sum(e.estimated_instructions for e in entries),
            total_memory_bytes=sum(e.estimated_memory_bytes for e in entries),
        )

    @classmethod
    def merge(cls, reports: Iterable[GasReport]) -> GasReport:
        entries: list[GasReportEntry] = []
        for report in reports:
            entries.extend(report.entries)
        return cls(
            entries=entries,
            total_instructions=sum(e.estimated_instructions for e in entries),
            total_memory_bytes=sum(e.estimated_memory_bytes for e in entries),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "entries": [e.to_dict() for e in self.entries],
            "total_instructions": self.total_instructions,
            "total_memory_bytes": self.total_memory_bytes,
        }


def render_json(report: GasReport) -> str:
    return json.dumps(report.to_dict(), indent=2)
