"""Stable finding codes attached to every entry of a CI report.

Codes never change meaning once published; ``S006`` is reserved and
intentionally absent.
"""

from __future__ import annotations

from dataclasses import dataclass

AUTH_GAP = "S001"
PANIC_USAGE = "S002"
ARITHMETIC_OVERFLOW = "S003"
LEDGER_SIZE_RISK = "S004"
STORAGE_COLLISION = "S005"
CUSTOM_RULE_MATCH = "S007"
REENTRANCY = "S008"
UNHANDLED_RESULT = "S009"
VULN_DB_MATCH = "S010"


@dataclass(frozen=True)
class FindingCode:
    code: str
    category: str
    description: str

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "category": self.category, "description": self.description}


_CODES: tuple[FindingCode, ...] = (
    FindingCode(AUTH_GAP, "authentication",
                "Missing authentication guard in a state-mutating function"),
    FindingCode(PANIC_USAGE, "panic_handling",
                "panic!/unwrap/expect usage that can abort contract execution"),
    FindingCode(ARITHMETIC_OVERFLOW, "arithmetic",
                "Unchecked arithmetic operation that can overflow or underflow"),
    FindingCode(LEDGER_SIZE_RISK, "storage_limits",
                "Ledger entry size exceeds or approaches the configured limit"),
    FindingCode(STORAGE_COLLISION, "storage_keys",
                "Potential storage key collision across contract data"),
    FindingCode(CUSTOM_RULE_MATCH, "custom_rule",
                "User-defined regex rule matched contract source"),
    FindingCode(REENTRANCY, "reentrancy",
                "Storage mutation after a cross-contract call"),
    FindingCode(UNHANDLED_RESULT, "error_handling",
                "Result value returned by a call is silently discarded"),
    FindingCode(VULN_DB_MATCH, "known_vulnerability",
                "Source matches a known vulnerability pattern"),
)


def all_finding_codes() -> list[FindingCode]:
    """Return every finding code in code order."""
    return list(_CODES)
