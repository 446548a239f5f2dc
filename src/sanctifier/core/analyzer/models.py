"""Data models for contract analysis: Severity, Finding and detector records.

These types are produced by the detectors and consumed by the engine, the
report serializers and the CLI formatters. They live apart from the rule
implementations so that output code can import them without pulling in the
parser or the solver.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any


# ---------------------------------------------------------------------------
# Severity: Ordered finding severity levels
# ---------------------------------------------------------------------------


class Severity(IntEnum):
    """Three-level severity scale for rule findings.

    The integer encoding enables direct comparison: INFO < WARNING < ERROR.
    """

    INFO = 1
    WARNING = 2
    ERROR = 3

    @property
    def label(self) -> str:
        """Serialized form used in reports: ``Error``, ``Warning`` or ``Info``."""
        return self.name.capitalize()

    @classmethod
    def from_label(cls, value: str) -> Severity:
        """Parse a case-insensitive severity label.

        Raises:
            ValueError: If ``value`` names no severity.
        """
        try:
            return cls[value.strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown severity: {value!r}") from None


# ---------------------------------------------------------------------------
# Finding: A single rule violation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Finding:
    """A single violation reported by a rule.

    Attributes:
        rule_name: Name of the rule that produced the finding.
        severity: Error, Warning or Info.
        message: Human-readable description.
        location: Function- or item-qualified location, e.g. ``"transfer:12"``.
        suggestion: Optional remediation hint.
    """

    rule_name: str
    severity: Severity
    message: str
    location: str
    suggestion: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "rule_name": self.rule_name,
            "severity": self.severity.label,
            "message": self.message,
            "location": self.location,
        }
        if self.suggestion is not None:
            data["suggestion"] = self.suggestion
        return data


# ---------------------------------------------------------------------------
# Typed detector records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ArithmeticIssue:
    """An unchecked arithmetic operation.

    ``operand_type`` is the integer type read off a typed parameter, a cast
    or a suffixed literal, or ``None`` when it cannot be determined.
    """

    function_name: str
    operation: str
    suggestion: str
    location: str
    line: int = 0
    operand_type: str | None = None


@dataclass(frozen=True)
class PanicIssue:
    """A ``panic!``, ``.unwrap()`` or ``.expect()`` site."""

    function_name: str
    issue_type: str
    location: str


class SizeWarningLevel:
    """Levels for ledger-entry size warnings."""

    EXCEEDS_LIMIT = "ExceedsLimit"
    APPROACHING_LIMIT = "ApproachingLimit"


@dataclass(frozen=True)
class SizeWarning:
    """A ``#[contracttype]`` struct or enum whose estimated size is too large."""

    struct_name: str
    estimated_size: int
    limit: int
    level: str
    kind: str = "struct"

    @property
    def exceeds(self) -> bool:
        return self.level == SizeWarningLevel.EXCEEDS_LIMIT


@dataclass(frozen=True)
class StorageCollisionIssue:
    key_value: str
    key_type: str
    location: str
    message: str


@dataclass(frozen=True)
class ReentrancyIssue:
    function_name: str
    issue_type: str
    location: str


@dataclass(frozen=True)
class UnhandledResultIssue:
    function_name: str
    message: str
    location: str


@dataclass(frozen=True)
class CustomRuleMatch:
    """One line matched by a user-configured regex rule."""

    rule_name: str
    line: int
    snippet: str
    severity: Severity


def record_to_dict(record: Any) -> dict[str, Any]:
    """Serialize a detector record, rendering severities as labels."""
    data = dict(vars(record))
    for key, value in data.items():
        if isinstance(value, Severity):
            data[key] = value.label.lower()
    return data
