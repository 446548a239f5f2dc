"""Sanctifier: static analysis and formal checks for Soroban smart contracts."""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Report format identifier consumed by CI pipelines.
REPORT_FORMAT = "sanctifier-ci-v1"
