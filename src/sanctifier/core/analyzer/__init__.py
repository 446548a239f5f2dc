"""Finding models, finding codes and the per-file analysis engine.

Submodules
----------
- ``models``: Data types (Severity, Finding and the typed detector records).
- ``finding_codes``: Stable ``Sxxx`` codes used in machine-readable reports.
- ``engine``: ``analyze()``, ``analyze_sources()`` and the report types.

Only the models and codes are re-exported here; the rule and configuration
modules import them, so the engine is imported from its own module::

    from sanctifier.core.analyzer.engine import analyze
"""

from sanctifier.core.analyzer.finding_codes import FindingCode, all_finding_codes
from sanctifier.core.analyzer.models import (
    ArithmeticIssue,
    CustomRuleMatch,
    Finding,
    PanicIssue,
    ReentrancyIssue,
    Severity,
    SizeWarning,
    SizeWarningLevel,
    StorageCollisionIssue,
    UnhandledResultIssue,
)

__all__ = [
    "ArithmeticIssue",
    "CustomRuleMatch",
    "Finding",
    "FindingCode",
    "PanicIssue",
    "ReentrancyIssue",
    "Severity",
    "SizeWarning",
    "SizeWarningLevel",
    "StorageCollisionIssue",
    "UnhandledResultIssue",
    "all_finding_codes",
]
