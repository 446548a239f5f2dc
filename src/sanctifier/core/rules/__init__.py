"""Analysis rules for Soroban contracts.

Each rule consumes a parsed ``SyntaxTree`` and returns ``Finding`` objects;
the ``scan_*`` functions return the richer per-detector records used in
reports.

Submodules
----------
- ``base``: the ``Rule`` ABC and shared syntax helpers.
- ``registry``: ``RuleRegistry`` and ``default_registry()``.
- ``auth_gap``, ``arithmetic_overflow``, ``panic_detection``,
  ``ledger_size``, ``storage_collision``, ``reentrancy``,
  ``unhandled_result``: AST detectors.
- ``custom``: user-configured regex rules.
"""

from sanctifier.core.rules.arithmetic_overflow import ArithmeticOverflowRule, scan_arithmetic_overflow
from sanctifier.core.rules.auth_gap import AuthGapRule, scan_auth_gaps
from sanctifier.core.rules.base import Rule
from sanctifier.core.rules.custom import CustomPatternRule, scan_custom_rules
from sanctifier.core.rules.ledger_size import LedgerSizeAnalyzer, LedgerSizeRule, estimate_type_size
from sanctifier.core.rules.panic_detection import PanicDetectionRule, scan_panics
from sanctifier.core.rules.reentrancy import ReentrancyRule, scan_reentrancy
from sanctifier.core.rules.registry import RuleRegistry, default_registry
from sanctifier.core.rules.storage_collision import StorageCollisionRule, scan_storage_collisions
from sanctifier.core.rules.unhandled_result import UnhandledResultRule, scan_unhandled_results

__all__ = [
    "ArithmeticOverflowRule",
    "AuthGapRule",
    "CustomPatternRule",
    "LedgerSizeAnalyzer",
    "LedgerSizeRule",
    "PanicDetectionRule",
    "ReentrancyRule",
    "Rule",
    "RuleRegistry",
    "StorageCollisionRule",
    "UnhandledResultRule",
    "default_registry",
    "estimate_type_size",
    "scan_arithmetic_overflow",
    "scan_auth_gaps",
    "scan_custom_rules",
    "scan_panics",
    "scan_reentrancy",
    "scan_storage_collisions",
    "scan_unhandled_results",
]
