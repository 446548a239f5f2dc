"""Heuristic gas/instruction estimation for Soroban contract functions."""

from sanctifier.core.gas.estimator import GasEstimationReport, GasEstimator
from sanctifier.core.gas.report import GasReport, GasReportEntry, GasTier, render_json

__all__ = [
    "GasEstimationReport",
    "GasEstimator",
    "GasReport",
    "GasReportEntry",
    "GasTier",
    "render_json",
]
