"""Abstract base class for analysis rules and shared syntax helpers.

Every rule consumes the ``SyntaxTree`` produced once per file by the parser
adapter and returns plain ``Finding`` objects. ``check(None)`` (a file that
did not parse) always returns an empty list, and no rule raises on any
input the parser accepts.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from sanctifier.core.analyzer.models import Finding
from sanctifier.parsers.nodes import (
    Call,
    Expr,
    Function,
    MacroCall,
    MethodCall,
    Paren,
    PathExpr,
    PathType,
    Reference,
    SyntaxTree,
    TypeRef,
)


class Rule(ABC):
    """A single detector over one parsed source file.

    Subclasses set ``name`` and ``description`` as class attributes and
    implement ``scan`` (the detector's own records, as shown in reports)
    and ``to_findings`` (those records as ``Finding`` objects). The engine
    calls the two steps separately so each detector runs once per file.
    """

    name: str = ""
    description: str = ""

    @abstractmethod
    def scan(self, tree: SyntaxTree | None) -> list[Any]:
        """Return the detector records for ``tree`` (empty for ``None``)."""

    @abstractmethod
    def to_findings(self, records: list[Any]) -> list[Finding]:
        """Convert records returned by ``scan`` into findings."""

    def check(self, tree: SyntaxTree | None) -> list[Finding]:
        """Return every violation found in ``tree`` (empty for ``None``)."""
        return self.to_findings(self.scan(tree))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


def call_name(expr: Expr) -> str | None:
    """Return the callee name of a call-like expression.

    ``foo(..)`` and ``a::foo(..)`` give ``foo``; ``x.foo(..)`` gives ``foo``;
    ``foo!(..)`` gives ``foo``. Any other expression gives ``None``.
    """
    if isinstance(expr, MethodCall):
        return expr.method
    if isinstance(expr, Call) and isinstance(expr.func, PathExpr):
        return expr.func.name
    if isinstance(expr, MacroCall):
        return expr.name
    return None


def strip_wrappers(expr: Expr) -> Expr:
    """Remove any number of ``&``/``&mut`` references and parentheses."""
    while isinstance(expr, (Reference, Paren)):
        expr = expr.operand if isinstance(expr, Reference) else expr.inner
    return expr


def returns_type(fn: Function, name: str) -> bool:
    """True if the function's declared return type has last segment ``name``."""
    return type_name(fn.return_type) == name


def type_name(type_ref: TypeRef | None) -> str | None:
    if isinstance(type_ref, PathType):
        return type_ref.name
    return None


_INT_SUFFIXES = (
    "usize", "isize", "u128", "i128", "u64", "i64", "u32", "i32", "u16", "i16", "u8", "i8",
)


def int_literal_value(text: str) -> int | None:
    """Parse an integer literal such as ``1_000u64`` or ``0xff``."""
    text = text.replace("_", "")
    for suffix in _INT_SUFFIXES:
        if text.endswith(suffix) and not text.lower().startswith("0x"):
            text = text[: -len(suffix)]
            break
    try:
        if text.isdigit():
            return int(text)
        return int(text, 0)
    except ValueError:
        return None
