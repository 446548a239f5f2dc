"""Tests for the Z3 overflow prover."""

from __future__ import annotations

import pytest
import z3

from sanctifier.core.prover import (
    AdditionBounds,
    OverflowProver,
    ProofOutcome,
    SmtInvariantIssue,
    verify_addition_overflow,
)


class TestAdditionBounds:
    @pytest.mark.parametrize(
        ("type_name", "low", "high"),
        [
            ("u8", 0, 255),
            ("u64", 0, 2**64 - 1),
            ("u128", 0, 2**128 - 1),
            ("i8", -128, 127),
            ("i128", -(2**127), 2**127 - 1),
            ("usize", 0, 2**64 - 1),
        ],
    )
    def test_for_type(self, type_name: str, low: int, high: int) -> None:
        bounds = AdditionBounds.for_type(type_name)
        assert (bounds.operand_min, bounds.operand_max) == (low, high)
        assert (bounds.result_min, bounds.result_max) == (low, high)
        assert bounds.signed is (low < 0)

    def test_not_an_integer_type(self) -> None:
        with pytest.raises(ValueError, match="Not an integer type"):
            AdditionBounds.for_type("f64")

    def test_with_operand_max(self) -> None:
        bounds = AdditionBounds.with_operand_max(10_000)
        assert (bounds.operand_min, bounds.operand_max, bounds.result_max) == (0, 10_000, 2**64 - 1)
        assert bounds.type_name == "u64"


class TestOverflowProver:
    """Outcomes under different operand domains."""

    def test_unconstrained_u64_overflows(self) -> None:
        result = OverflowProver(2000).prove_addition("deposit", "deposit:14")
        assert result.outcome is ProofOutcome.PROVED_UNSAFE
        a, b = result.counterexample["a"], result.counterexample["b"]
        assert 0 <= a <= 2**64 - 1 and 0 <= b <= 2**64 - 1
        assert a + b > 2**64 - 1

    def test_small_domain_is_safe(self) -> None:
        result = OverflowProver(2000).prove_addition(
            "deposit", "deposit:14", AdditionBounds.with_operand_max(10_000)
        )
        assert result.outcome is ProofOutcome.PROVED_SAFE
        assert result.counterexample is None
        assert result.to_issue() is None

    def test_operands_below_half_max_are_safe(self) -> None:
        """a, b <= MAX/2 - 1 can never sum past u64::MAX."""
        bounds = AdditionBounds.with_operand_max((2**64 - 1) // 2 - 1)
        result = OverflowProver(2000).prove_addition("deposit", "deposit:14", bounds)
        assert result.outcome is ProofOutcome.PROVED_SAFE

    def test_operands_past_half_max_overflow(self) -> None:
        bounds = AdditionBounds.with_operand_max(2**63)
        result = OverflowProver(2000).prove_addition("deposit", "deposit:14", bounds)
        assert result.outcome is ProofOutcome.PROVED_UNSAFE
        assert result.counterexample["a"] + result.counterexample["b"] > 2**64 - 1

    def test_signed_underflow_is_found(self) -> None:
        bounds = AdditionBounds(-128, 0, -128, 127, "i8")
        result = OverflowProver(2000).prove_addition("f", "f:1", bounds)
        assert result.outcome is ProofOutcome.PROVED_UNSAFE
        assert result.counterexample["a"] + result.counterexample["b"] < -128

    def test_invalid_timeout(self) -> None:
        with pytest.raises(ValueError):
            OverflowProver(0)

    def test_solver_error_is_unknown(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def fail(self, bounds):
            raise z3.Z3Exception("boom")

        monkeypatch.setattr(OverflowProver, "_check", fail)
        result = OverflowProver(100).prove_addition("f", "f:1")
        assert result.outcome is ProofOutcome.UNKNOWN
        assert result.reason == "boom"
        assert result.to_issue() is None

    def test_to_dict(self) -> None:
        result = OverflowProver(2000).prove_addition("mint", "mint:14", AdditionBounds.for_type("u8"))
        data = result.to_dict()
        assert data["outcome"] == "proved_unsafe"
        assert data["type"] == "u8"
        assert data["operand_max"] == "255"
        assert set(data["counterexample"]) == {"a", "b"}
        assert all(isinstance(v, str) for v in data["counterexample"].values())

    def test_to_issue(self) -> None:
        issue = OverflowProver(2000).prove_addition("mint", "mint:14").to_issue()
        assert issue == SmtInvariantIssue(
            "mint", "SMT Solver (Z3) proved that this addition can overflow u64 bounds.", "mint:14"
        )


class TestVerifyAdditionOverflow:
    def test_module_shortcut(self) -> None:
        issue = verify_addition_overflow("add", "add:3", timeout_ms=2000)
        assert issue is not None
        assert issue.location == "add:3"
