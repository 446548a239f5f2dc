"""Tests for heuristic gas estimation and the aggregated gas report."""

from __future__ import annotations

import json

import pytest

from sanctifier.core.gas import (
    GasEstimationReport,
    GasEstimator,
    GasReport,
    GasReportEntry,
    GasTier,
    render_json,
)


def contract(body: str, params: str = "env: Env") -> str:
    return f"impl C {{\n    pub fn f({params}) {{\n        {body}\n    }}\n}}\n"


class TestGasEstimator:
    """Weighted operation counts."""

    def test_vulnerable_token(self, vulnerable_source: str) -> None:
        estimates = GasEstimator().estimate_contract(vulnerable_source)
        assert estimates == [
            GasEstimationReport("mint", 1377, 160),
            GasEstimationReport("burn", 1100, 64),
        ]

    def test_clean_vault(self, clean_source: str) -> None:
        estimates = GasEstimator().estimate_contract(clean_source)
        assert [(e.function_name, e.estimated_instructions, e.estimated_memory_bytes) for e in estimates] == [
            ("init", 1125, 64),
            ("balance", 350, 128),
        ]

    def test_empty_function(self, parse_rust) -> None:
        assert GasEstimator().estimate(parse_rust(contract(""))) == [GasEstimationReport("f", 50, 64)]

    def test_collection_construction(self, parse_rust) -> None:
        tree = parse_rust(contract("let v = Vec::new(&env);"))
        assert GasEstimator().estimate(tree) == [GasEstimationReport("f", 75, 224)]

    def test_collection_macro(self, parse_rust) -> None:
        tree = parse_rust(contract("let v = vec![&env, 1, 2];"))
        assert GasEstimator().estimate(tree) == [GasEstimationReport("f", 50, 224)]

    def test_loop_multiplies_instructions(self, parse_rust) -> None:
        tree = parse_rust(contract("for i in 0..n { g(); }", "n: u32"))
        assert GasEstimator().estimate(tree)[0].estimated_instructions == 50 + 25 * 10

    def test_nested_loops(self, parse_rust) -> None:
        tree = parse_rust(contract("loop { while ready { g(); } }"))
        assert GasEstimator().estimate(tree)[0].estimated_instructions == 50 + 25 * 100

    def test_loop_does_not_multiply_memory(self, parse_rust) -> None:
        tree = parse_rust(contract("loop { let x = 1; }"))
        assert GasEstimator().estimate(tree)[0].estimated_memory_bytes == 64 + 32

    def test_arithmetic(self, parse_rust) -> None:
        tree = parse_rust(contract("let x = a * b - c;"))
        assert GasEstimator().estimate(tree)[0].estimated_instructions == 50 + 2 + 2

    def test_only_public_impl_methods(self, parse_rust) -> None:
        tree = parse_rust("""
            fn free() {}
            impl C {
                fn private() {}
                pub fn public() {}
            }
            mod m { impl D { pub fn nested() {} } }
        """)
        assert [e.function_name for e in GasEstimator().estimate(tree)] == ["public"]

    def test_unparseable_source(self) -> None:
        assert GasEstimator().estimate_contract("pub fn broken( {") == []
        assert GasEstimator().estimate(None) == []


class TestGasTier:
    @pytest.mark.parametrize(
        ("instructions", "tier"),
        [
            (0, GasTier.LOW),
            (9_999, GasTier.LOW),
            (10_000, GasTier.MEDIUM),
            (99_999, GasTier.MEDIUM),
            (100_000, GasTier.HIGH),
        ],
    )
    def test_thresholds(self, instructions: int, tier: GasTier) -> None:
        assert GasTier.from_instructions(instructions) is tier


class TestGasReport:
    """Totals, merging and serialization."""

    def test_from_estimations(self) -> None:
        report = GasReport.from_estimations([
            GasEstimationReport("a", 100, 64),
            GasEstimationReport("b", 20_000, 128),
        ])
        assert report.total_instructions == 20_100
        assert report.total_memory_bytes == 192
        assert [e.tier for e in report.entries] == [GasTier.LOW, GasTier.MEDIUM]

    def test_merge_keeps_order(self) -> None:
        first = GasReport.from_estimations([GasEstimationReport("a", 1, 1)])
        second = GasReport.from_estimations([GasEstimationReport("b", 2, 2)])
        merged = GasReport.merge([first, second])
        assert [e.function_name for e in merged.entries] == ["a", "b"]
        assert (merged.total_instructions, merged.total_memory_bytes) == (3, 3)

    def test_empty(self) -> None:
        assert GasReport().to_dict() == {"entries": [], "total_instructions": 0, "total_memory_bytes": 0}

    def test_render_json(self) -> None:
        report = GasReport.from_estimations([GasEstimationReport("mint", 150_000, 96)])
        assert json.loads(render_json(report)) == {
            "entries": [{
                "function_name": "mint",
                "estimated_instructions": 150_000,
                "estimated_memory_bytes": 96,
                "tier": "High",
            }],
            "total_instructions": 150_000,
            "total_memory_bytes": 96,
        }

    def test_entry_from_estimation(self) -> None:
        entry = GasReportEntry.from_estimation(GasEstimationReport("x", 10, 8))
        assert entry.to_dict()["tier"] == "Low"
