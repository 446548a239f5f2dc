"""Z3-backed overflow prover for flagged integer additions.

For an addition ``a + b`` over a bounded integer domain the prover builds an
integer-theory model with two free operands, asserts the negated safety
property (the sum leaves the result range) and asks Z3 for satisfiability:

- ``sat``: overflow is reachable; the model is a concrete counterexample.
- ``unsat``: the addition cannot overflow under the supplied bounds. The
  claim is only as strong as those bounds.
- ``unknown`` (timeout, resource limit, solver error): nothing is claimed.

Every query runs in its own ``z3.Context`` with a solver timeout, so provers
may be used from worker threads.

Usage::

    prover = OverflowProver(timeout_ms=2000)
    result = prover.prove_addition("deposit", "deposit:14", AdditionBounds.for_type("u64"))
    if result.outcome is ProofOutcome.PROVED_UNSAFE:
        print(result.counterexample)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any

import z3

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 5_000

OVERFLOW_DESCRIPTION = "SMT Solver (Z3) proved that this addition can overflow {type_name} bounds."

_BIT_WIDTHS: dict[str, int] = {
    "u8": 8, "u16": 16, "u32": 32, "u64": 64, "u128": 128, "usize": 64,
    "i8": 8, "i16": 16, "i32": 32, "i64": 64, "i128": 128, "isize": 64,
}


class ProofOutcome(Enum):
    """Three-valued result of a proof attempt; ``UNKNOWN`` is never "safe"."""

    PROVED_SAFE = "proved_safe"
    PROVED_UNSAFE = "proved_unsafe"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class AdditionBounds:
    """Operand domain and representable result range of an addition.

    Attributes:
        operand_min: Lower bound for both operands.
        operand_max: Upper bound for both operands.
        result_min: Smallest representable sum.
        result_max: Largest representable sum.
        type_name: Integer type the bounds were derived from, if any.
    """

    operand_min: int
    operand_max: int
    result_min: int
    result_max: int
    type_name: str | None = None

    @classmethod
    def for_type(cls, type_name: str) -> AdditionBounds:
        """Full-range bounds for a Rust integer type such as ``u64`` or ``i128``.

        Raises:
            ValueError: If ``type_name`` is not an integer type.
        """
        bits = _BIT_WIDTHS.get(type_name)
        if bits is None:
            raise ValueError(f"Not an integer type: {type_name!r}")
        if type_name.startswith("u"):
            low, high = 0, 2**bits - 1
        else:
            low, high = -(2 ** (bits - 1)), 2 ** (bits - 1) - 1
        return cls(low, high, low, high, type_name)

    @classmethod
    def with_operand_max(cls, operand_max: int, type_name: str = "u64") -> AdditionBounds:
        """Bounds for operands restricted to ``[0, operand_max]`` within ``type_name``."""
        full = cls.for_type(type_name)
        return cls(0, operand_max, full.result_min, full.result_max, type_name)

    @property
    def signed(self) -> bool:
        return self.result_min < 0


@dataclass(frozen=True)
class SmtInvariantIssue:
    """A proved-reachable overflow, in the form reported alongside findings."""

    function_name: str
    description: str
    location: str


@dataclass(frozen=True)
class ProofResult:
    """Outcome of one proof attempt.

    Attributes:
        function_name: Function containing the addition.
        location: ``"fn:line"`` of the addition.
        outcome: Safe, unsafe or unknown.
        bounds: The bounds the claim holds under.
        counterexample: Operand values that overflow (unsafe outcomes only).
        reason: Solver explanation for ``UNKNOWN`` outcomes.
        elapsed_ms: Wall-clock solver time.
    """

    function_name: str
    location: str
    outcome: ProofOutcome
    bounds: AdditionBounds
    counterexample: dict[str, int] | None = None
    reason: str | None = None
    elapsed_ms: float = 0.0

    def to_issue(self) -> SmtInvariantIssue | None:
        if self.outcome is not ProofOutcome.PROVED_UNSAFE:
            return None
        description = OVERFLOW_DESCRIPTION.format(type_name=self.bounds.type_name or "integer")
        return SmtInvariantIssue(self.function_name, description, self.location)

    def to_dict(self) -> dict[str, Any]:
        return {
            "function_name": self.function_name,
            "location": self.location,
            "outcome": self.outcome.value,
            "type": self.bounds.type_name,
            "operand_max": str(self.bounds.operand_max),
            "counterexample": (
                {k: str(v) for k, v in self.counterexample.items()}
                if self.counterexample is not None else None
            ),
            "reason": self.reason,
        }


class OverflowProver:
    """Proves or refutes overflow of bounded integer additions with Z3."""

    def __init__(self, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> None:
        if timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")
        self.timeout_ms = timeout_ms

    def prove_addition(
        self,
        function_name: str,
        location: str,
        bounds: AdditionBounds | None = None,
    ) -> ProofResult:
        """Decide whether ``a + b`` can leave the result range of ``bounds``.

        Args:
            function_name: Function containing the addition.
            location: ``"fn:line"`` of the addition.
            bounds: Operand and result bounds; full ``u64`` when omitted.

        Returns:
            A ``ProofResult``. Solver errors and timeouts give ``UNKNOWN``.
        """
        bounds = bounds or AdditionBounds.for_type("u64")
        start = time.perf_counter()
        try:
            outcome, model, reason = self._check(bounds)
        except z3.Z3Exception as exc:
            logger.warning("Solver error while proving %s: %s", location, exc)
            outcome, model, reason = ProofOutcome.UNKNOWN, None, str(exc)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug("Proof for %s: %s in %.1f ms", location, outcome.value, elapsed_ms)
        return ProofResult(
            function_name=function_name,
            location=location,
            outcome=outcome,
            bounds=bounds,
            counterexample=model,
            reason=reason,
            elapsed_ms=elapsed_ms,
        )

    def _check(
        self, bounds: AdditionBounds
    ) -> tuple[ProofOutcome, dict[str, int] | None, str | None]:
        ctx = z3.Context()
        solver = z3.Solver(ctx=ctx)
        solver.set("timeout", self.timeout_ms)
        a = z3.Int("a", ctx)
        b = z3.Int("b", ctx)
        low = z3.IntVal(bounds.operand_min, ctx)
        high = z3.IntVal(bounds.operand_max, ctx)
        solver.add(a >= low, a <= high, b >= low, b <= high)
        total = a + b
        overflow = total > z3.IntVal(bounds.result_max, ctx)
        if bounds.signed:
            overflow = z3.Or(overflow, total < z3.IntVal(bounds.result_min, ctx))
        solver.add(overflow)

        result = solver.check()
        if result == z3.sat:
            model = solver.model()
            return ProofOutcome.PROVED_UNSAFE, {
                "a": model.eval(a, model_completion=True).as_long(),
                "b": model.eval(b, model_completion=True).as_long(),
            }, None
        if result == z3.unsat:
            return ProofOutcome.PROVED_SAFE, None, None
        return ProofOutcome.UNKNOWN, None, solver.reason_unknown()

    def verify_addition_overflow(
        self, function_name: str, location: str
    ) -> SmtInvariantIssue | None:
        """Return an issue when an unconstrained ``u64`` addition can overflow."""
        return self.prove_addition(function_name, location).to_issue()


def verify_addition_overflow(
    function_name: str, location: str, timeout_ms: int = DEFAULT_TIMEOUT_MS
) -> SmtInvariantIssue | None:
    """Module-level shortcut for ``OverflowProver(timeout_ms).verify_addition_overflow``."""
    return OverflowProver(timeout_ms).verify_addition_overflow(function_name, location)
