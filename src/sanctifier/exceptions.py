"""Sanctifier exception hierarchy.

All public exceptions inherit from SanctifierError, giving callers a single
base class to catch when they want to handle any Sanctifier-specific failure
without swallowing unrelated errors.
"""


class SanctifierError(Exception):
    """Base exception for all Sanctifier errors."""


class ParseError(SanctifierError):
    """Raised when contract source cannot be lexed or parsed.

    The parser raises this internally; ``parse_source`` converts it into a
    ``None`` result so that detectors never see a partial tree.

    Attributes:
        line: 1-based line of the offending token (0 when unknown).
        column: 1-based column of the offending token (0 when unknown).
    """

    def __init__(self, message: str, line: int = 0, column: int = 0) -> None:
        super().__init__(f"{message} (line {line}, column {column})")
        self.line = line
        self.column = column


class ConfigError(SanctifierError):
    """Raised when a configuration document holds invalid values.

    Covers wrong field types, out-of-range thresholds, and unknown
    custom-rule severities. ``load_config`` catches it and falls back
    to the documented defaults.
    """


class VulnDatabaseError(SanctifierError):
    """Raised when an explicitly requested vulnerability database fails to load.

    Covers unreadable files, invalid JSON, and entries missing required
    fields.
    """
