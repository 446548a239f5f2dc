"""Estimates the serialized size of ``#[contracttype]`` structs and enums.

Sizes come from a fixed per-type weight table; the estimate is an upper-ish
heuristic, not an XDR encoding. Only items at the top level of the file are
considered.

Weights (bytes)::

    u32 i32 bool                 4
    u64 i64                      8
    u128 i128 U128 I128         16
    Address                     32
    Bytes BytesN String Symbol  64
    Vec<T>                       8 + T      (bare Vec: 128)
    Map<K, V>                   16 + 2*(K + V)  (bare Map: 128)
    Option<T>                    1 + T      (bare Option: 32)
    other named types           32
    [T; N]                       N * T      (non-literal N: 64)
    references, tuples, etc.     8

An enum costs a 4-byte discriminant plus its largest variant payload.
"""

from __future__ import annotations

from sanctifier.core.analyzer.models import Finding, Severity, SizeWarning, SizeWarningLevel
from sanctifier.core.config import AnalysisConfig
from sanctifier.core.rules.base import Rule, int_literal_value
from sanctifier.parsers.nodes import (
    ArrayType,
    Attribute,
    Enum,
    Literal,
    PathType,
    Struct,
    StructField,
    SyntaxTree,
    TypeRef,
)

DISCRIMINANT_SIZE = 4

_FIXED_WEIGHTS: dict[str, int] = {
    "u32": 4, "i32": 4, "bool": 4,
    "u64": 8, "i64": 8,
    "u128": 16, "i128": 16, "I128": 16, "U128": 16,
    "Address": 32,
    "Bytes": 64, "BytesN": 64, "String": 64, "Symbol": 64,
}


def estimate_type_size(type_ref: TypeRef | None) -> int:
    """Return the estimated serialized size of one field type."""
    if isinstance(type_ref, PathType) and type_ref.segments:
        segment = type_ref.segments[-1]
        name = segment.name
        if name in _FIXED_WEIGHTS:
            return _FIXED_WEIGHTS[name]
        if name == "Vec":
            return 8 + estimate_type_size(segment.generics[0]) if segment.generics else 128
        if name == "Map":
            inner = sum(estimate_type_size(arg) for arg in segment.generics)
            return 16 + inner * 2 if inner > 0 else 128
        if name == "Option":
            return 1 + estimate_type_size(segment.generics[0]) if segment.generics else 32
        return 32
    if isinstance(type_ref, ArrayType):
        if isinstance(type_ref.length, Literal) and type_ref.length.kind == "int":
            count = int_literal_value(type_ref.length.value)
            if count is not None and count >= 0:
                return count * estimate_type_size(type_ref.element)
        return 64
    return 8


def _fields_size(fields: tuple[StructField, ...]) -> int:
    return sum(estimate_type_size(f.type) for f in fields)


def estimate_struct_size(item: Struct) -> int:
    return _fields_size(item.fields)


def estimate_enum_size(item: Enum) -> int:
    largest = max((_fields_size(v.fields) for v in item.variants), default=0)
    return DISCRIMINANT_SIZE + largest


def _is_contracttype(attrs: tuple[Attribute, ...]) -> bool:
    return any("contracttype" in attr.path.split("::") for attr in attrs)


class LedgerSizeAnalyzer:
    """Classifies estimated sizes against the configured ledger limit."""

    def __init__(self, config: AnalysisConfig | None = None) -> None:
        self.config = config or AnalysisConfig()

    def classify(self, size: int) -> str | None:
        """Return the warning level for ``size``, or ``None`` when it is fine."""
        limit = self.config.ledger_limit
        strict_threshold = int(limit * 0.5)
        if size >= limit or (self.config.strict_mode and size >= strict_threshold):
            return SizeWarningLevel.EXCEEDS_LIMIT
        if size >= limit * self.config.approaching_threshold:
            return SizeWarningLevel.APPROACHING_LIMIT
        return None

    def analyze(self, tree: SyntaxTree | None) -> list[SizeWarning]:
        """Return size warnings for top-level contract types, in source order."""
        if tree is None:
            return []
        warnings: list[SizeWarning] = []
        for item in tree.items:
            if isinstance(item, Struct) and _is_contracttype(item.attrs):
                size, kind = estimate_struct_size(item), "struct"
            elif isinstance(item, Enum) and _is_contracttype(item.attrs):
                size, kind = estimate_enum_size(item), "enum"
            else:
                continue
            level = self.classify(size)
            if level is not None:
                warnings.append(SizeWarning(
                    struct_name=item.name,
                    estimated_size=size,
                    limit=self.config.ledger_limit,
                    level=level,
                    kind=kind,
                ))
        return warnings


class LedgerSizeRule(Rule):
    name = "ledger_size"
    description = "Analyzes contracttype structs and enums for ledger entry size limits"

    def __init__(self, config: AnalysisConfig | None = None) -> None:
        self.analyzer = LedgerSizeAnalyzer(config)

    def scan(self, tree: SyntaxTree | None) -> list[SizeWarning]:
        return self.analyzer.analyze(tree)

    def to_findings(self, records: list[SizeWarning]) -> list[Finding]:
        findings: list[Finding] = []
        for warning in records:
            label = "Struct" if warning.kind == "struct" else "Enum"
            findings.append(Finding(
                rule_name=self.name,
                severity=Severity.ERROR if warning.exceeds else Severity.WARNING,
                message=(
                    f"{label} '{warning.struct_name}' estimated size "
                    f"{warning.estimated_size} bytes exceeds or approaches limit"
                ),
                location=(
                    f"{warning.struct_name}:estimated {warning.estimated_size} bytes, "
                    f"limit {warning.limit} bytes"
                ),
            ))
        return findings
