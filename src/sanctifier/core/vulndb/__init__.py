"""Regex vulnerability database scanned over raw contract source.

The database is a JSON document::

    {
      "version": "1.0.0",
      "last_updated": "2026-01-15",
      "description": "...",
      "vulnerabilities": [
        {"id": "SOL-001", "name": "...", "description": "...",
         "severity": "high", "category": "...", "pattern": "regex",
         "recommendation": "...", "references": ["..."]}
      ]
    }

A default database ships with the package. Scanning is independent of the
parser, so it also covers files that do not parse.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any

from sanctifier.core.rules.custom import compile_pattern, iter_pattern_matches
from sanctifier.exceptions import VulnDatabaseError

logger = logging.getLogger(__name__)

DEFAULT_DB_RESOURCE = "default_db.json"

_REQUIRED_FIELDS = (
    "id", "name", "description", "severity", "category", "pattern", "recommendation",
)


@dataclass(frozen=True)
class VulnEntry:
    id: str
    name: str
    description: str
    severity: str
    category: str
    pattern: str
    recommendation: str
    references: tuple[str, ...] = ()


@dataclass(frozen=True)
class VulnMatch:
    """One match of a database entry in a source file."""

    vuln_id: str
    name: str
    severity: str
    category: str
    description: str
    recommendation: str
    file: str
    line: int
    snippet: str

    def to_dict(self) -> dict[str, Any]:
        return dict(vars(self))


@dataclass(frozen=True)
class VulnDatabase:
    """An immutable, loaded vulnerability database."""

    version: str
    last_updated: str = ""
    description: str = ""
    vulnerabilities: tuple[VulnEntry, ...] = field(default=())

    @classmethod
    def from_dict(cls, data: Any) -> VulnDatabase:
        """Validate and build a database from decoded JSON.

        Raises:
            VulnDatabaseError: If the document or an entry is malformed.
        """
        if not isinstance(data, dict):
            raise VulnDatabaseError("Vulnerability database must be a JSON object")
        raw_entries = data.get("vulnerabilities", [])
        if not isinstance(raw_entries, list):
            raise VulnDatabaseError("'vulnerabilities' must be a list")
        entries: list[VulnEntry] = []
        for index, raw in enumerate(raw_entries):
            if not isinstance(raw, dict):
                raise VulnDatabaseError(f"Entry {index} is not an object")
            missing = [name for name in _REQUIRED_FIELDS if not isinstance(raw.get(name), str)]
            if missing:
                raise VulnDatabaseError(
                    f"Entry {index} is missing fields: {', '.join(missing)}"
                )
            references = raw.get("references", [])
            if not isinstance(references, list):
                raise VulnDatabaseError(f"Entry {raw['id']} has non-list references")
            entries.append(VulnEntry(
                **{name: raw[name] for name in _REQUIRED_FIELDS},
                references=tuple(str(r) for r in references),
            ))
        return cls(
            version=str(data.get("version", "unknown")),
            last_updated=str(data.get("last_updated", "")),
            description=str(data.get("description", "")),
            vulnerabilities=tuple(entries),
        )

    @classmethod
    def load(cls, path: Path) -> VulnDatabase:
        """Load a database file.

        Raises:
            VulnDatabaseError: If the file cannot be read or is not a valid database.
        """
        try:
            text = Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise VulnDatabaseError(f"Cannot read vulnerability database {path}: {exc}") from exc
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise VulnDatabaseError(f"Invalid JSON in {path}: {exc}") from exc
        db = cls.from_dict(data)
        logger.debug("Loaded %d vulnerability entries from %s", len(db.vulnerabilities), path)
        return db

    @classmethod
    def load_default(cls) -> VulnDatabase:
        """Return the packaged database (loaded once per process)."""
        return _load_default()

    def scan(self, source: str, file_name: str) -> list[VulnMatch]:
        """Match every entry against ``source``; invalid patterns are skipped."""
        matches: list[VulnMatch] = []
        for entry in self.vulnerabilities:
            regex = compile_pattern(entry.pattern, f"vulnerability {entry.id}")
            if regex is None:
                continue
            for line, snippet in iter_pattern_matches(regex, source):
                matches.append(VulnMatch(
                    vuln_id=entry.id,
                    name=entry.name,
                    severity=entry.severity,
                    category=entry.category,
                    description=entry.description,
                    recommendation=entry.recommendation,
                    file=file_name,
                    line=line,
                    snippet=snippet,
                ))
        return matches


@lru_cache(maxsize=1)
def _load_default() -> VulnDatabase:
    text = resources.files(__name__).joinpath(DEFAULT_DB_RESOURCE).read_text(encoding="utf-8")
    return VulnDatabase.from_dict(json.loads(text))


__all__ = ["VulnDatabase", "VulnEntry", "VulnMatch"]
