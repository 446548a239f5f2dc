"""Ordered registry of analysis rules.

``RuleRegistry`` keeps rules in registration order; ``run_all`` concatenates
their findings in that order, which keeps reports stable across runs. The
``default_registry()`` factory pre-registers the built-in detectors and one
pattern rule per configured custom rule.
"""

from __future__ import annotations

import logging

from sanctifier.core.analyzer.models import Finding
from sanctifier.core.config import AnalysisConfig
from sanctifier.core.rules.arithmetic_overflow import ArithmeticOverflowRule
from sanctifier.core.rules.auth_gap import AuthGapRule
from sanctifier.core.rules.base import Rule
from sanctifier.core.rules.custom import CustomPatternRule
from sanctifier.core.rules.ledger_size import LedgerSizeRule
from sanctifier.core.rules.panic_detection import PanicDetectionRule
from sanctifier.core.rules.storage_collision import StorageCollisionRule
from sanctifier.core.rules.unhandled_result import UnhandledResultRule
from sanctifier.parsers.nodes import SyntaxTree

logger = logging.getLogger(__name__)


class RuleRegistry:
    """Registry of rules run against each parsed file.

    Attributes:
        rules: Ordered list of registered rule instances.
    """

    def __init__(self) -> None:
        self.rules: list[Rule] = []

    def register(self, rule: Rule) -> None:
        """Append a rule; rules run in registration order."""
        self.rules.append(rule)

    def run_all(self, tree: SyntaxTree | None) -> list[Finding]:
        """Run every rule and concatenate the findings in registration order."""
        findings: list[Finding] = []
        for rule in self.rules:
            findings.extend(rule.check(tree))
        return findings

    def run_by_name(self, tree: SyntaxTree | None, name: str) -> list[Finding]:
        """Run the rules registered under ``name``; an unknown name yields ``[]``."""
        findings: list[Finding] = []
        for rule in self.rules:
            if rule.name == name:
                findings.extend(rule.check(tree))
        return findings

    def available_rules(self) -> list[str]:
        """Return the registered rule names in registration order."""
        return [rule.name for rule in self.rules]

    def __len__(self) -> int:
        return len(self.rules)


def default_registry(config: AnalysisConfig | None = None) -> RuleRegistry:
    """Create a registry pre-loaded with all built-in rules.

    Registered rules, in order:
        - ``auth_gap``
        - ``ledger_size``
        - ``panic_detection``
        - ``arithmetic_overflow``
        - ``unhandled_result``
        - ``storage_collision``
        - one ``CustomPatternRule`` per entry of ``config.custom_rules``

    Args:
        config: Analysis settings; defaults apply when omitted.

    Returns:
        A ``RuleRegistry`` ready for ``run_all()``.
    """
    config = config or AnalysisConfig()
    registry = RuleRegistry()
    registry.register(AuthGapRule())
    registry.register(LedgerSizeRule(config))
    registry.register(PanicDetectionRule())
    registry.register(ArithmeticOverflowRule())
    registry.register(UnhandledResultRule())
    registry.register(StorageCollisionRule())
    for custom in config.custom_rules:
        registry.register(CustomPatternRule(custom))
    logger.debug("Default registry loaded %d rules", len(registry))
    return registry
