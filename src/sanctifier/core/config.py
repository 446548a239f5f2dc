"""Analysis configuration and ``.sanctify`` file discovery.

Configuration is read from the first ``.sanctify.toml``, ``.sanctify.yaml``
or ``.sanctify.yml`` found while walking from the analysis target up to the
filesystem root. A file that cannot be read or holds invalid values is
logged and skipped; when no usable file exists the defaults apply.

Example ``.sanctify.toml``::

    ledger_limit = 64000
    strict_mode = true
    ignore_paths = ["target", "vendor"]

    [[custom_rules]]
    name = "no_std_println"
    pattern = "println!"
    severity = "warning"
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import Any, Mapping

import yaml

from sanctifier.core.analyzer.models import Severity
from sanctifier.exceptions import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILENAMES: tuple[str, ...] = (".sanctify.toml", ".sanctify.yaml", ".sanctify.yml")

DEFAULT_LEDGER_LIMIT = 64_000
DEFAULT_APPROACHING_THRESHOLD = 0.8
DEFAULT_SOLVER_TIMEOUT_MS = 5_000


@dataclass(frozen=True)
class CustomRule:
    """A user-defined regex rule scanned line by line over raw source."""

    name: str
    pattern: str
    severity: Severity = Severity.WARNING


@dataclass(frozen=True)
class AnalysisConfig:
    """Immutable settings shared by every detector during one analysis run.

    Attributes:
        ledger_limit: Ledger entry size limit in bytes.
        approaching_threshold: Fraction of the limit at which a warning starts.
        strict_mode: Treat half the limit as the hard limit.
        ignore_paths: Directory names or trailing paths skipped by the walker.
        custom_rules: Extra regex rules appended to the rule registry.
        prove_overflow: Run the symbolic prover on flagged additions.
        solver_timeout_ms: Upper bound for every solver query.
    """

    ledger_limit: int = DEFAULT_LEDGER_LIMIT
    approaching_threshold: float = DEFAULT_APPROACHING_THRESHOLD
    strict_mode: bool = False
    ignore_paths: tuple[str, ...] = ()
    custom_rules: tuple[CustomRule, ...] = ()
    prove_overflow: bool = False
    solver_timeout_ms: int = DEFAULT_SOLVER_TIMEOUT_MS

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> AnalysisConfig:
        """Build a config from parsed TOML/YAML data, validating every value.

        Unknown keys are ignored. Missing keys take their defaults.

        Raises:
            ConfigError: If a value has the wrong type or is out of range.
        """
        if not isinstance(data, Mapping):
            raise ConfigError("Configuration must be a table/mapping")

        ledger_limit = data.get("ledger_limit", DEFAULT_LEDGER_LIMIT)
        if isinstance(ledger_limit, bool) or not isinstance(ledger_limit, int) or ledger_limit <= 0:
            raise ConfigError(f"ledger_limit must be a positive integer, got {ledger_limit!r}")

        threshold = data.get("approaching_threshold", DEFAULT_APPROACHING_THRESHOLD)
        if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
            raise ConfigError(f"approaching_threshold must be a number, got {threshold!r}")
        if not 0.0 <= float(threshold) <= 1.0:
            raise ConfigError(f"approaching_threshold must be within [0, 1], got {threshold!r}")

        strict_mode = data.get("strict_mode", False)
        if not isinstance(strict_mode, bool):
            raise ConfigError(f"strict_mode must be a boolean, got {strict_mode!r}")

        ignore_paths = data.get("ignore_paths", [])
        if not isinstance(ignore_paths, (list, tuple)) or not all(
            isinstance(p, str) for p in ignore_paths
        ):
            raise ConfigError("ignore_paths must be a list of strings")

        prove_overflow = data.get("prove_overflow", False)
        if not isinstance(prove_overflow, bool):
            raise ConfigError(f"prove_overflow must be a boolean, got {prove_overflow!r}")

        timeout = data.get("solver_timeout_ms", DEFAULT_SOLVER_TIMEOUT_MS)
        if isinstance(timeout, bool) or not isinstance(timeout, int) or timeout <= 0:
            raise ConfigError(f"solver_timeout_ms must be a positive integer, got {timeout!r}")

        return cls(
            ledger_limit=ledger_limit,
            approaching_threshold=float(threshold),
            strict_mode=strict_mode,
            ignore_paths=tuple(ignore_paths),
            custom_rules=tuple(_parse_custom_rules(data.get("custom_rules", []))),
            prove_overflow=prove_overflow,
            solver_timeout_ms=timeout,
        )


def _parse_custom_rules(raw: Any) -> list[CustomRule]:
    if not isinstance(raw, (list, tuple)):
        raise ConfigError("custom_rules must be a list of tables")
    rules: list[CustomRule] = []
    for entry in raw:
        if not isinstance(entry, Mapping):
            raise ConfigError(f"custom rule must be a table, got {entry!r}")
        name = entry.get("name")
        pattern = entry.get("pattern")
        if not isinstance(name, str) or not name:
            raise ConfigError("custom rule requires a non-empty 'name'")
        if not isinstance(pattern, str) or not pattern:
            raise ConfigError(f"custom rule {name!r} requires a non-empty 'pattern'")
        severity_raw = entry.get("severity", "warning")
        if not isinstance(severity_raw, str):
            raise ConfigError(f"custom rule {name!r} has a non-string severity")
        try:
            severity = Severity.from_label(severity_raw)
        except ValueError as exc:
            raise ConfigError(f"custom rule {name!r}: {exc}") from exc
        rules.append(CustomRule(name=name, pattern=pattern, severity=severity))
    return rules


def _read_config_file(path: Path) -> AnalysisConfig:
    text = path.read_text(encoding="utf-8")
    if path.suffix == ".toml":
        try:
            data = tomllib.loads(text)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"{path}: {exc}") from exc
    else:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"{path}: {exc}") from exc
        if data is None:
            data = {}
    return AnalysisConfig.from_mapping(data)


def load_config(path: Path) -> AnalysisConfig:
    """Find and load the nearest configuration file for ``path``.

    The search starts at ``path`` itself (or its parent when ``path`` is a
    file) and walks every ancestor. Within one directory the TOML file is
    preferred over the YAML variants.

    Args:
        path: File or directory being analyzed.

    Returns:
        The first valid configuration found, or ``AnalysisConfig()``.
    """
    current = (path.parent if path.is_file() else path).resolve()
    for directory in (current, *current.parents):
        for name in CONFIG_FILENAMES:
            candidate = directory / name
            if not candidate.is_file():
                continue
            try:
                config = _read_config_file(candidate)
            except (OSError, UnicodeDecodeError, ConfigError) as exc:
                logger.warning("Ignoring configuration file %s: %s", candidate, exc)
                continue
            logger.debug("Loaded configuration from %s", candidate)
            return config
    return AnalysisConfig()


def is_ignored(path: PurePath, ignore_paths: tuple[str, ...] | list[str]) -> bool:
    """Return True if ``path`` ends with, or contains a component named, an ignore entry.

    ``ignore_paths=("target",)`` matches ``proj/target`` and
    ``proj/target/debug``; ``("contracts/legacy",)`` matches any path ending
    in those two components.
    """
    parts = PurePath(path).parts
    for entry in ignore_paths:
        entry_parts = PurePath(entry).parts
        if not entry_parts:
            continue
        if len(entry_parts) == 1:
            if entry_parts[0] in parts:
                return True
        elif tuple(parts[-len(entry_parts):]) == entry_parts:
            return True
    return False
