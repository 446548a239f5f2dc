"""Syntax tree node types for parsed contract source.

Every node is a frozen dataclass; child collections are tuples, so a tree
cannot be mutated once the parser has built it. Each node carries a
``Span`` (keyword-only, excluded from equality) pointing back into the
source text. Patterns, generic parameter lists and other constructs that no
detector inspects structurally are kept as normalized source text.

The node set is intentionally small: it covers what the detectors, the gas
estimator and the call-graph extractor need, and nothing else.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Span:
    """Source region of a node: offsets plus the 1-based start position."""

    start: int = 0
    end: int = 0
    line: int = 0
    col: int = 0


NO_SPAN = Span()


@dataclass(frozen=True, kw_only=True)
class Node:
    """Base class for all syntax tree nodes."""

    span: Span = field(default=NO_SPAN, compare=False, repr=False)

    @property
    def line(self) -> int:
        return self.span.line


# ---------------------------------------------------------------------------
# Attributes and types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Attribute(Node):
    """``#[path(args)]``. ``path`` is the ``::``-joined path, ``args`` raw text."""

    path: str
    args: str = ""

    @property
    def name(self) -> str:
        return self.path.rsplit("::", 1)[-1]


@dataclass(frozen=True)
class TypeRef(Node):
    """Base class for type expressions."""


@dataclass(frozen=True)
class PathSegment(Node):
    name: str
    generics: tuple[TypeRef, ...] = ()


@dataclass(frozen=True)
class PathType(TypeRef):
    """``a::b::Name<Args>``."""

    segments: tuple[PathSegment, ...]

    @property
    def name(self) -> str:
        return self.segments[-1].name if self.segments else ""

    @property
    def last(self) -> PathSegment | None:
        return self.segments[-1] if self.segments else None


@dataclass(frozen=True)
class ReferenceType(TypeRef):
    inner: TypeRef
    mutable: bool = False


@dataclass(frozen=True)
class TupleType(TypeRef):
    elements: tuple[TypeRef, ...] = ()


@dataclass(frozen=True)
class ArrayType(TypeRef):
    """``[T; N]``; ``length`` is the parsed length expression."""

    element: TypeRef
    length: Expr


@dataclass(frozen=True)
class SliceType(TypeRef):
    element: TypeRef


@dataclass(frozen=True)
class OpaqueType(TypeRef):
    """Any other type form (``impl Trait``, ``dyn Trait``, ``fn()``, const args)."""

    text: str


# ---------------------------------------------------------------------------
# Expressions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Expr(Node):
    """Base class for expressions."""


@dataclass(frozen=True)
class Literal(Expr):
    """A literal. ``kind`` is str, byte_str, char, int, float or bool."""

    kind: str
    value: str


@dataclass(frozen=True)
class PathExpr(Expr):
    """``a::b::c`` (turbofish generics are dropped)."""

    segments: tuple[str, ...]

    @property
    def name(self) -> str:
        return self.segments[-1] if self.segments else ""


@dataclass(frozen=True)
class MacroCall(Expr):
    """``path!(tokens)``; ``args`` holds the parsed comma-separated arguments.

    ``args`` is empty when the token body is not an expression list (for
    example ``macro_rules`` style bodies); ``tokens`` always keeps the raw
    body text.
    """

    path: str
    args: tuple[Expr, ...] = ()
    tokens: str = ""
    delimiter: str = "("

    @property
    def name(self) -> str:
        return self.path.rsplit("::", 1)[-1]


@dataclass(frozen=True)
class Call(Expr):
    func: Expr
    args: tuple[Expr, ...] = ()


@dataclass(frozen=True)
class MethodCall(Expr):
    receiver: Expr
    method: str
    args: tuple[Expr, ...] = ()


@dataclass(frozen=True)
class FieldAccess(Expr):
    base: Expr
    name: str


@dataclass(frozen=True)
class Index(Expr):
    base: Expr
    index: Expr


@dataclass(frozen=True)
class Binary(Expr):
    """Binary operation, including compound assignments such as ``+=``."""

    op: str
    left: Expr
    right: Expr


@dataclass(frozen=True)
class Assign(Expr):
    target: Expr
    value: Expr


@dataclass(frozen=True)
class Unary(Expr):
    """``-x``, ``!x`` or ``*x``."""

    op: str
    operand: Expr


@dataclass(frozen=True)
class Reference(Expr):
    operand: Expr
    mutable: bool = False


@dataclass(frozen=True)
class Cast(Expr):
    operand: Expr
    target: TypeRef


@dataclass(frozen=True)
class Try(Expr):
    """``expr?``."""

    operand: Expr


@dataclass(frozen=True)
class Await(Expr):
    operand: Expr


@dataclass(frozen=True)
class Range(Expr):
    start: Expr | None = None
    end: Expr | None = None
    inclusive: bool = False


@dataclass(frozen=True)
class Closure(Expr):
    params: str
    body: Expr


@dataclass(frozen=True)
class Paren(Expr):
    inner: Expr


@dataclass(frozen=True)
class TupleExpr(Expr):
    elements: tuple[Expr, ...] = ()


@dataclass(frozen=True)
class ArrayExpr(Expr):
    elements: tuple[Expr, ...] = ()


@dataclass(frozen=True)
class ArrayRepeat(Expr):
    value: Expr
    count: Expr


@dataclass(frozen=True)
class FieldInit(Node):
    name: str
    value: Expr


@dataclass(frozen=True)
class StructLiteral(Expr):
    path: PathExpr
    fields: tuple[FieldInit, ...] = ()
    base: Expr | None = None


@dataclass(frozen=True)
class BlockExpr(Expr):
    """``{ ... }``, ``unsafe { ... }``, ``async { ... }`` or labelled block."""

    block: Block
    label: str = ""
    modifier: str = ""


@dataclass(frozen=True)
class LetCondition(Expr):
    """``let PAT = expr`` inside an ``if``/``while`` condition."""

    pattern: str
    value: Expr


@dataclass(frozen=True)
class If(Expr):
    condition: Expr
    then_branch: Block
    else_branch: Expr | None = None


@dataclass(frozen=True)
class MatchArm(Node):
    pattern: str
    guard: Expr | None
    body: Expr


@dataclass(frozen=True)
class Match(Expr):
    scrutinee: Expr
    arms: tuple[MatchArm, ...] = ()


@dataclass(frozen=True)
class Loop(Expr):
    body: Block
    label: str = ""


@dataclass(frozen=True)
class While(Expr):
    condition: Expr
    body: Block
    label: str = ""


@dataclass(frozen=True)
class ForLoop(Expr):
    pattern: str
    iterable: Expr
    body: Block
    label: str = ""


@dataclass(frozen=True)
class Return(Expr):
    value: Expr | None = None


@dataclass(frozen=True)
class Break(Expr):
    label: str = ""
    value: Expr | None = None


@dataclass(frozen=True)
class Continue(Expr):
    label: str = ""


# ---------------------------------------------------------------------------
# Statements and blocks
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Stmt(Node):
    """Base class for statements."""


@dataclass(frozen=True)
class Block(Node):
    stmts: tuple[Stmt, ...] = ()


@dataclass(frozen=True)
class Let(Stmt):
    pattern: str
    type: TypeRef | None = None
    init: Expr | None = None
    else_block: Block | None = None


@dataclass(frozen=True)
class ExprStmt(Stmt):
    expr: Expr
    semicolon: bool = True


@dataclass(frozen=True)
class ItemStmt(Stmt):
    item: Item


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Item(Node):
    """Base class for items; every item can carry outer attributes."""


@dataclass(frozen=True)
class Param(Node):
    """A function parameter. ``pattern`` is ``self`` for receivers."""

    pattern: str
    type: TypeRef | None = None


@dataclass(frozen=True)
class Function(Item):
    name: str
    params: tuple[Param, ...] = ()
    return_type: TypeRef | None = None
    body: Block | None = None
    is_pub: bool = False
    attrs: tuple[Attribute, ...] = ()


@dataclass(frozen=True)
class StructField(Node):
    """A struct or variant field; ``name`` is empty for tuple fields."""

    name: str
    type: TypeRef
    is_pub: bool = False


@dataclass(frozen=True)
class Struct(Item):
    """``kind`` is named, tuple or unit."""

    name: str
    fields: tuple[StructField, ...] = ()
    kind: str = "named"
    is_pub: bool = False
    attrs: tuple[Attribute, ...] = ()


@dataclass(frozen=True)
class Variant(Node):
    name: str
    fields: tuple[StructField, ...] = ()
    kind: str = "unit"
    discriminant: Expr | None = None


@dataclass(frozen=True)
class Enum(Item):
    name: str
    variants: tuple[Variant, ...] = ()
    is_pub: bool = False
    attrs: tuple[Attribute, ...] = ()


@dataclass(frozen=True)
class Impl(Item):
    self_type: TypeRef
    trait: TypeRef | None = None
    items: tuple[Item, ...] = ()
    attrs: tuple[Attribute, ...] = ()


@dataclass(frozen=True)
class Trait(Item):
    name: str
    items: tuple[Item, ...] = ()
    is_pub: bool = False
    attrs: tuple[Attribute, ...] = ()


@dataclass(frozen=True)
class Const(Item):
    """``const`` or ``static`` item (``is_static`` tells them apart)."""

    name: str
    type: TypeRef | None = None
    value: Expr | None = None
    is_static: bool = False
    is_pub: bool = False
    attrs: tuple[Attribute, ...] = ()


@dataclass(frozen=True)
class Module(Item):
    """``mod name { ... }``; ``items`` is None for ``mod name;``."""

    name: str
    items: tuple[Item, ...] | None = None
    is_pub: bool = False
    attrs: tuple[Attribute, ...] = ()


@dataclass(frozen=True)
class Use(Item):
    path: str
    attrs: tuple[Attribute, ...] = ()


@dataclass(frozen=True)
class TypeAlias(Item):
    name: str
    type: TypeRef | None = None
    attrs: tuple[Attribute, ...] = ()


@dataclass(frozen=True)
class MacroItem(Item):
    """Item-position macro invocation or ``macro_rules!`` definition."""

    path: str
    tokens: str = ""
    attrs: tuple[Attribute, ...] = ()

    @property
    def name(self) -> str:
        return self.path.rsplit("::", 1)[-1]


@dataclass(frozen=True)
class ExternItem(Item):
    """``extern crate`` declarations and ``extern "C" { ... }`` blocks."""

    text: str
    attrs: tuple[Attribute, ...] = ()


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SyntaxTree(Node):
    """One parsed source file.

    Attributes:
        items: Top-level items in source order.
        attrs: Inner attributes (``#![no_std]``).
        source: The source text the spans point into.
    """

    items: tuple[Item, ...] = ()
    attrs: tuple[Attribute, ...] = ()
    source: str = field(default="", repr=False)

    def text_of(self, node: Node) -> str:
        """Return the node's source text with whitespace runs collapsed."""
        raw = self.source[node.span.start:node.span.end]
        return " ".join(raw.split())
