"""Recursive-descent parser for Soroban contract source.

The parser consumes the token list produced by ``sanctifier.parsers.lexer``
and builds the immutable tree defined in ``sanctifier.parsers.nodes``.

Grammar coverage
----------------
Items: ``use``, ``mod``, ``struct``/``union``, ``enum``, ``impl``, ``trait``,
``fn`` (with ``const``/``async``/``unsafe``/``extern`` qualifiers), ``const``,
``static``, ``type``, ``extern`` crates and blocks, ``macro_rules!`` and other
item-position macros.

Expressions are parsed by precedence climbing. From loosest to tightest:
assignment (right associative), ranges, ``||``, ``&&``, comparisons, ``|``,
``^``, ``&``, shifts, additive, multiplicative, ``as`` casts, unary
operators, then postfix forms (calls, method calls, field access, indexing
and ``?``).

Patterns, generic parameter lists and where-clauses are not modelled
structurally: patterns are kept as source text and generic parameter lists
are skipped with balanced-bracket scanning.

Macro invocations keep their raw token text. Their bodies are additionally
parsed as a comma-separated expression list when possible, which is how
``panic!("...")``, ``symbol_short!("key")`` and ``vec![a, b]`` arguments
become visible to the detectors.

Any syntax error raises ``ParseError``; ``sanctifier.parsers.base`` turns it
into a ``None`` result.
"""

from __future__ import annotations

from typing import Callable

from sanctifier.exceptions import ParseError
from sanctifier.parsers.lexer import (
    BYTE_STR,
    CHAR,
    EOF,
    FLOAT,
    IDENT,
    INT,
    LIFETIME,
    PUNCT,
    STR,
    Token,
    tokenize,
)
from sanctifier.parsers.nodes import (
    ArrayExpr,
    ArrayRepeat,
    ArrayType,
    Assign,
    Attribute,
    Await,
    Binary,
    Block,
    BlockExpr,
    Break,
    Call,
    Cast,
    Closure,
    Const,
    Continue,
    Enum,
    Expr,
    ExprStmt,
    ExternItem,
    FieldAccess,
    FieldInit,
    ForLoop,
    Function,
    If,
    Impl,
    Index,
    Item,
    ItemStmt,
    Let,
    LetCondition,
    Literal,
    Loop,
    MacroCall,
    MacroItem,
    Match,
    MatchArm,
    MethodCall,
    Module,
    Node,
    OpaqueType,
    Param,
    Paren,
    PathExpr,
    PathSegment,
    PathType,
    Range,
    Reference,
    ReferenceType,
    Return,
    SliceType,
    Span,
    Stmt,
    Struct,
    StructField,
    StructLiteral,
    SyntaxTree,
    Trait,
    Try,
    TupleExpr,
    TupleType,
    TypeAlias,
    TypeRef,
    Unary,
    Use,
    Variant,
    While,
)

# Parser recursion budget (blocks, expressions, types and unary chains).
MAX_NESTING = 128

_BINARY_PRECEDENCE: dict[str, int] = {
    "||": 3,
    "&&": 4,
    "==": 5, "!=": 5, "<": 5, ">": 5, "<=": 5, ">=": 5,
    "|": 6,
    "^": 7,
    "&": 8,
    "<<": 9, ">>": 9,
    "+": 10, "-": 10,
    "*": 11, "/": 11, "%": 11,
}
_CAST_PRECEDENCE = 12
# Lowest precedence a range operand may contain (binds looser than ``||``).
_RANGE_OPERAND_PRECEDENCE = 3
# ``let`` conditions stop before ``&&`` and ``||`` so let-chains split correctly.
_LET_CONDITION_PRECEDENCE = 5

_COMPOUND_ASSIGN = frozenset(
    {"+=", "-=", "*=", "/=", "%=", "^=", "&=", "|=", "<<=", ">>="}
)

_OPEN_TO_CLOSE: dict[str, str] = {"(": ")", "[": "]", "{": "}"}
_CLOSERS = frozenset(_OPEN_TO_CLOSE.values())

_LITERAL_KINDS: dict[str, str] = {
    INT: "int",
    FLOAT: "float",
    STR: "str",
    BYTE_STR: "byte_str",
    CHAR: "char",
}

# Keywords that can never begin an expression.
_RESERVED = frozenset({
    "as", "else", "in", "where", "fn", "struct", "enum", "impl", "trait",
    "mod", "use", "pub", "static", "type", "extern",
})

_ITEM_KEYWORDS = frozenset({
    "fn", "struct", "enum", "impl", "trait", "mod", "use", "static",
    "extern", "pub",
})

_FN_QUALIFIERS = ("const", "async", "unsafe", "default")


def _normalize(text: str) -> str:
    return " ".join(text.split())


class Parser:
    """Token-stream parser producing a ``SyntaxTree``.

    A parser instance is single-use. Macro bodies are parsed by a child
    parser over a slice of the same token list, sharing the nesting budget.
    """

    def __init__(self, source: str, tokens: list[Token], depth: int = 0) -> None:
        self.source = source
        self.tokens = tokens
        self.pos = 0
        self.depth = depth
        self.prev_end = tokens[0].start if tokens else 0

    # -- Token helpers --

    def peek(self, offset: int = 0) -> Token:
        index = min(self.pos + offset, len(self.tokens) - 1)
        return self.tokens[index]

    def advance(self) -> Token:
        tok = self.tokens[self.pos]
        if tok.kind != EOF:
            self.pos += 1
            self.prev_end = tok.end
        return tok

    def at_punct(self, *values: str) -> bool:
        return self.peek().is_punct(*values)

    def at_keyword(self, *values: str) -> bool:
        return self.peek().is_keyword(*values)

    def eat_punct(self, value: str) -> bool:
        if self.at_punct(value):
            self.advance()
            return True
        return False

    def eat_keyword(self, value: str) -> bool:
        if self.at_keyword(value):
            self.advance()
            return True
        return False

    def expect_punct(self, value: str) -> Token:
        if not self.at_punct(value):
            raise self.error(f"expected {value!r}")
        return self.advance()

    def expect_keyword(self, value: str) -> Token:
        if not self.at_keyword(value):
            raise self.error(f"expected {value!r}")
        return self.advance()

    def expect_ident(self) -> Token:
        if self.peek().kind != IDENT:
            raise self.error("expected identifier")
        return self.advance()

    def eat_gt(self) -> bool:
        """Consume one ``>``, splitting ``>>``, ``>=`` and ``>>=`` as needed."""
        tok = self.peek()
        if tok.kind != PUNCT:
            return False
        if tok.value == ">":
            self.advance()
            return True
        if tok.value in (">>", ">=", ">>="):
            self.tokens[self.pos] = Token(
                PUNCT, tok.value[1:], tok.line, tok.col + 1, tok.start + 1, tok.end
            )
            self.prev_end = tok.start + 1
            return True
        return False

    def error(self, message: str) -> ParseError:
        tok = self.peek()
        found = tok.value if tok.kind != EOF else "end of input"
        return ParseError(f"{message}, found {found!r}", tok.line, tok.col)

    def enter(self) -> None:
        self.depth += 1
        if self.depth > MAX_NESTING:
            raise self.error("nesting too deep")

    def leave(self) -> None:
        self.depth -= 1

    # -- Span helpers --

    def span_from(self, start: Token) -> Span:
        return Span(start.start, max(self.prev_end, start.start), start.line, start.col)

    def span_from_node(self, node: Node) -> Span:
        return Span(node.span.start, self.prev_end, node.span.line, node.span.col)

    def text_from(self, start: Token) -> str:
        return _normalize(self.source[start.start:self.prev_end])

    # -- Skipping helpers --

    def skip_group(self) -> tuple[int, int]:
        """Skip a balanced ``()``/``[]``/``{}`` group.

        Returns:
            ``(first, close)`` token indexes: the first token inside the
            group and the closing delimiter.
        """
        if not self.at_punct(*_OPEN_TO_CLOSE):
            raise self.error("expected delimiter")
        first = self.pos + 1
        expected: list[str] = []
        while True:
            tok = self.peek()
            if tok.kind == EOF:
                raise self.error("unterminated delimiter")
            self.advance()
            if tok.kind != PUNCT:
                continue
            if tok.value in _OPEN_TO_CLOSE:
                expected.append(_OPEN_TO_CLOSE[tok.value])
            elif tok.value in _CLOSERS:
                if expected.pop() != tok.value:
                    raise ParseError("mismatched closing delimiter", tok.line, tok.col)
                if not expected:
                    return first, self.pos - 1

    def skip_angle(self) -> None:
        """Skip a generic parameter or argument list starting at ``<``."""
        if self.eat_punct("<<"):
            depth = 2
        else:
            self.expect_punct("<")
            depth = 1
        while depth:
            tok = self.peek()
            if tok.kind == EOF:
                raise self.error("unterminated generic list")
            if tok.is_punct("<"):
                depth += 1
                self.advance()
            elif tok.is_punct("<<"):
                depth += 2
                self.advance()
            elif self.eat_gt():
                depth -= 1
            elif tok.is_punct("(", "[", "{"):
                self.skip_group()
            elif tok.is_punct(")", "]", "}", ";"):
                raise self.error("unbalanced generic list")
            else:
                self.advance()

    def skip_bounds(self, stop_keywords: tuple[str, ...] = ("where",)) -> None:
        """Skip trait bounds or a where-clause up to the item body."""
        depth = 0
        while True:
            tok = self.peek()
            if tok.kind == EOF:
                raise self.error("unterminated bounds")
            if depth <= 0 and (
                tok.is_punct("{", ";", "=") or tok.is_keyword(*stop_keywords)
            ):
                return
            if tok.is_punct("(", "["):
                self.skip_group()
                continue
            if tok.is_punct("<"):
                depth += 1
            elif tok.is_punct(">"):
                depth -= 1
            elif tok.is_punct(">>"):
                depth -= 2
            self.advance()

    def skip_where(self) -> None:
        if self.eat_keyword("where"):
            self.skip_bounds(())

    def collect_pattern(self, stop: Callable[[Token], bool]) -> str:
        """Consume a pattern up to ``stop`` at bracket depth zero; return its text."""
        start_pos = self.pos
        start = self.peek()
        depth = 0
        while True:
            tok = self.peek()
            if tok.kind == EOF:
                raise self.error("unterminated pattern")
            if depth == 0 and stop(tok):
                break
            if tok.kind == PUNCT and tok.value in _OPEN_TO_CLOSE:
                depth += 1
            elif tok.kind == PUNCT and tok.value in _CLOSERS:
                if depth == 0:
                    raise self.error("unexpected closing delimiter")
                depth -= 1
            self.advance()
        if self.pos == start_pos:
            raise self.error("expected pattern")
        return self.text_from(start)

    # -- Attributes and visibility --

    def parse_inner_attrs(self) -> list[Attribute]:
        attrs: list[Attribute] = []
        while self.at_punct("#") and self.peek(1).is_punct("!") and self.peek(2).is_punct("["):
            start = self.advance()
            self.advance()
            attrs.append(self._parse_attr_body(start))
        return attrs

    def parse_outer_attrs(self) -> list[Attribute]:
        attrs: list[Attribute] = []
        while self.at_punct("#") and self.peek(1).is_punct("["):
            start = self.advance()
            attrs.append(self._parse_attr_body(start))
        return attrs

    def _parse_attr_body(self, start: Token) -> Attribute:
        self.expect_punct("[")
        self.eat_punct("::")
        parts = [self.expect_ident().value]
        while self.at_punct("::") and self.peek(1).kind == IDENT:
            self.advance()
            parts.append(self.advance().value)
        args_start = self.peek()
        depth = 1
        while True:
            tok = self.peek()
            if tok.kind == EOF:
                raise self.error("unterminated attribute")
            if tok.kind == PUNCT and tok.value in _OPEN_TO_CLOSE:
                depth += 1
            elif tok.kind == PUNCT and tok.value in _CLOSERS:
                depth -= 1
                if depth == 0:
                    break
            self.advance()
        args = self.source[args_start.start:tok.start].strip()
        if args.startswith("(") and args.endswith(")"):
            args = args[1:-1].strip()
        self.advance()
        return Attribute(path="::".join(parts), args=_normalize(args), span=self.span_from(start))

    def parse_visibility(self) -> bool:
        if not self.eat_keyword("pub"):
            return False
        if self.at_punct("(") and self.peek(1).is_keyword("crate", "super", "self", "in"):
            self.skip_group()
        return True

    # -- Items --

    def parse_file(self) -> SyntaxTree:
        attrs = self.parse_inner_attrs()
        items: list[Item] = []
        while self.peek().kind != EOF:
            item = self.parse_item()
            if item is not None:
                items.append(item)
        return SyntaxTree(
            items=tuple(items),
            attrs=tuple(attrs),
            source=self.source,
            span=Span(0, len(self.source), 1, 1),
        )

    def _item_keyword(self) -> tuple[int, str]:
        """Look past function qualifiers; return ``(qualifier_count, keyword)``."""
        offset = 0
        while True:
            tok = self.peek(offset)
            if tok.is_keyword(*_FN_QUALIFIERS):
                offset += 1
            elif tok.is_keyword("extern") and self.peek(offset + 1).kind == STR:
                offset += 2
            elif tok.is_keyword("extern") and self.peek(offset + 1).is_keyword("fn"):
                offset += 1
            else:
                break
        tok = self.peek(offset)
        if offset and tok.is_keyword("fn", "impl", "trait"):
            return offset, tok.value
        first = self.peek()
        return 0, first.value if first.kind == IDENT else ""

    def _at_item_start(self) -> bool:
        tok = self.peek()
        if tok.kind != IDENT:
            return False
        if tok.value in _ITEM_KEYWORDS:
            return True
        nxt = self.peek(1)
        if tok.value in ("type", "union"):
            return nxt.kind == IDENT
        if tok.value == "macro_rules":
            return nxt.is_punct("!")
        if tok.value in _FN_QUALIFIERS:
            offset, _ = self._item_keyword()
            if offset:
                return True
            return tok.value == "const" and nxt.kind == IDENT
        return False

    def parse_item(self, attrs: list[Attribute] | None = None) -> Item | None:
        if attrs is None:
            attrs = self.parse_outer_attrs()
        if self.eat_punct(";"):
            return None
        start = self.peek()
        is_pub = self.parse_visibility()
        offset, keyword = self._item_keyword()
        for _ in range(offset):
            self.advance()

        if keyword == "fn":
            return self.parse_function(start, attrs, is_pub)
        if keyword == "impl":
            return self.parse_impl(start, attrs)
        if keyword == "trait":
            return self.parse_trait(start, attrs, is_pub)
        if keyword == "struct" or (keyword == "union" and self.peek(1).kind == IDENT):
            return self.parse_struct(start, attrs, is_pub)
        if keyword == "enum":
            return self.parse_enum(start, attrs, is_pub)
        if keyword in ("const", "static"):
            return self.parse_const(start, attrs, is_pub)
        if keyword == "type":
            return self.parse_type_alias(start, attrs)
        if keyword == "mod":
            return self.parse_module(start, attrs, is_pub)
        if keyword == "use":
            return self.parse_use(start, attrs)
        if keyword == "extern":
            return self.parse_extern(start, attrs)
        if self.at_punct("::") or (
            self.peek().kind == IDENT and self.peek(1).is_punct("!", "::")
        ):
            return self.parse_macro_item(start, attrs)
        raise self.error("expected item")

    def parse_function(self, start: Token, attrs: list[Attribute], is_pub: bool) -> Function:
        self.expect_keyword("fn")
        name = self.expect_ident().value
        if self.at_punct("<"):
            self.skip_angle()
        self.expect_punct("(")
        params: list[Param] = []
        while not self.at_punct(")"):
            self.parse_outer_attrs()
            params.append(self.parse_param())
            if not self.eat_punct(","):
                break
        self.expect_punct(")")
        return_type = self.parse_type() if self.eat_punct("->") else None
        self.skip_where()
        body = None
        if self.at_punct("{"):
            body = self.parse_block()
        else:
            self.expect_punct(";")
        return Function(
            name=name,
            params=tuple(params),
            return_type=return_type,
            body=body,
            is_pub=is_pub,
            attrs=tuple(attrs),
            span=self.span_from(start),
        )

    def parse_param(self) -> Param:
        start = self.peek()
        offset = 0
        if self.peek(offset).is_punct("&"):
            offset += 1
            if self.peek(offset).kind == LIFETIME:
                offset += 1
        if self.peek(offset).is_keyword("mut"):
            offset += 1
        if self.peek(offset).is_keyword("self") and not self.peek(offset + 1).is_punct("::"):
            for _ in range(offset + 1):
                self.advance()
            pattern = self.text_from(start)
            param_type = self.parse_type() if self.eat_punct(":") else None
            return Param(pattern=pattern, type=param_type, span=self.span_from(start))
        if self.eat_punct("..."):
            return Param(pattern="...", span=self.span_from(start))
        pattern = self.collect_pattern(lambda t: t.is_punct(":"))
        self.expect_punct(":")
        param_type = self.parse_type()
        return Param(pattern=pattern, type=param_type, span=self.span_from(start))

    def parse_struct(self, start: Token, attrs: list[Attribute], is_pub: bool) -> Struct:
        self.advance()
        name = self.expect_ident().value
        if self.at_punct("<"):
            self.skip_angle()
        self.skip_where()
        if self.at_punct("{"):
            fields = self.parse_named_fields()
            kind = "named"
        elif self.at_punct("("):
            fields = self.parse_tuple_fields()
            self.skip_where()
            self.expect_punct(";")
            kind = "tuple"
        else:
            self.expect_punct(";")
            fields = ()
            kind = "unit"
        return Struct(
            name=name,
            fields=fields,
            kind=kind,
            is_pub=is_pub,
            attrs=tuple(attrs),
            span=self.span_from(start),
        )

    def parse_named_fields(self) -> tuple[StructField, ...]:
        self.expect_punct("{")
        fields: list[StructField] = []
        while not self.at_punct("}"):
            self.parse_outer_attrs()
            field_start = self.peek()
            is_pub = self.parse_visibility()
            name = self.expect_ident().value
            self.expect_punct(":")
            field_type = self.parse_type()
            fields.append(StructField(
                name=name, type=field_type, is_pub=is_pub, span=self.span_from(field_start),
            ))
            if not self.eat_punct(","):
                break
        self.expect_punct("}")
        return tuple(fields)

    def parse_tuple_fields(self) -> tuple[StructField, ...]:
        self.expect_punct("(")
        fields: list[StructField] = []
        while not self.at_punct(")"):
            self.parse_outer_attrs()
            field_start = self.peek()
            is_pub = self.parse_visibility()
            field_type = self.parse_type()
            fields.append(StructField(
                name="", type=field_type, is_pub=is_pub, span=self.span_from(field_start),
            ))
            if not self.eat_punct(","):
                break
        self.expect_punct(")")
        return tuple(fields)

    def parse_enum(self, start: Token, attrs: list[Attribute], is_pub: bool) -> Enum:
        self.expect_keyword("enum")
        name = self.expect_ident().value
        if self.at_punct("<"):
            self.skip_angle()
        self.skip_where()
        self.expect_punct("{")
        variants: list[Variant] = []
        while not self.at_punct("}"):
            self.parse_outer_attrs()
            variant_start = self.peek()
            self.parse_visibility()
            variant_name = self.expect_ident().value
            fields: tuple[StructField, ...] = ()
            kind = "unit"
            if self.at_punct("{"):
                fields, kind = self.parse_named_fields(), "named"
            elif self.at_punct("("):
                fields, kind = self.parse_tuple_fields(), "tuple"
            discriminant = self.parse_expr() if self.eat_punct("=") else None
            variants.append(Variant(
                name=variant_name,
                fields=fields,
                kind=kind,
                discriminant=discriminant,
                span=self.span_from(variant_start),
            ))
            if not self.eat_punct(","):
                break
        self.expect_punct("}")
        return Enum(
            name=name,
            variants=tuple(variants),
            is_pub=is_pub,
            attrs=tuple(attrs),
            span=self.span_from(start),
        )

    def parse_item_block(self) -> tuple[Item, ...]:
        self.expect_punct("{")
        self.parse_inner_attrs()
        items: list[Item] = []
        while not self.at_punct("}"):
            if self.peek().kind == EOF:
                raise self.error("unterminated item block")
            item = self.parse_item()
            if item is not None:
                items.append(item)
        self.advance()
        return tuple(items)

    def parse_impl(self, start: Token, attrs: list[Attribute]) -> Impl:
        self.expect_keyword("impl")
        if self.at_punct("<"):
            self.skip_angle()
        self.eat_punct("!")
        first = self.parse_type()
        trait: TypeRef | None = None
        if self.eat_keyword("for"):
            trait, self_type = first, self.parse_type()
        else:
            self_type = first
        self.skip_where()
        items = self.parse_item_block()
        return Impl(
            self_type=self_type,
            trait=trait,
            items=items,
            attrs=tuple(attrs),
            span=self.span_from(start),
        )

    def parse_trait(self, start: Token, attrs: list[Attribute], is_pub: bool) -> Trait:
        self.expect_keyword("trait")
        name = self.expect_ident().value
        if self.at_punct("<"):
            self.skip_angle()
        if self.eat_punct(":"):
            self.skip_bounds()
        self.skip_where()
        items = self.parse_item_block()
        return Trait(
            name=name, items=items, is_pub=is_pub, attrs=tuple(attrs),
            span=self.span_from(start),
        )

    def parse_const(self, start: Token, attrs: list[Attribute], is_pub: bool) -> Const:
        keyword = self.advance()
        self.eat_keyword("mut")
        name = self.expect_ident().value
        const_type = self.parse_type() if self.eat_punct(":") else None
        value = self.parse_expr() if self.eat_punct("=") else None
        self.expect_punct(";")
        return Const(
            name=name,
            type=const_type,
            value=value,
            is_static=keyword.value == "static",
            is_pub=is_pub,
            attrs=tuple(attrs),
            span=self.span_from(start),
        )

    def parse_type_alias(self, start: Token, attrs: list[Attribute]) -> TypeAlias:
        self.expect_keyword("type")
        name = self.expect_ident().value
        if self.at_punct("<"):
            self.skip_angle()
        if self.eat_punct(":"):
            self.skip_bounds()
        self.skip_where()
        alias = self.parse_type() if self.eat_punct("=") else None
        self.skip_where()
        self.expect_punct(";")
        return TypeAlias(name=name, type=alias, attrs=tuple(attrs), span=self.span_from(start))

    def parse_module(self, start: Token, attrs: list[Attribute], is_pub: bool) -> Module:
        self.expect_keyword("mod")
        name = self.expect_ident().value
        items = None if self.eat_punct(";") else self.parse_item_block()
        return Module(
            name=name, items=items, is_pub=is_pub, attrs=tuple(attrs),
            span=self.span_from(start),
        )

    def parse_use(self, start: Token, attrs: list[Attribute]) -> Use:
        self.expect_keyword("use")
        path = self.collect_pattern(lambda t: t.is_punct(";"))
        self.expect_punct(";")
        return Use(path=path, attrs=tuple(attrs), span=self.span_from(start))

    def parse_extern(self, start: Token, attrs: list[Attribute]) -> ExternItem:
        self.expect_keyword("extern")
        if self.eat_keyword("crate"):
            self.collect_pattern(lambda t: t.is_punct(";"))
            self.expect_punct(";")
        else:
            if self.peek().kind == STR:
                self.advance()
            if not self.at_punct("{"):
                raise self.error("expected extern block")
            self.skip_group()
        return ExternItem(text=self.text_from(start), attrs=tuple(attrs), span=self.span_from(start))

    def parse_macro_item(self, start: Token, attrs: list[Attribute]) -> MacroItem:
        self.eat_punct("::")
        parts = [self.expect_ident().value]
        while self.eat_punct("::"):
            parts.append(self.expect_ident().value)
        self.expect_punct("!")
        if self.peek().kind == IDENT:
            self.advance()
        open_tok = self.peek()
        _, close = self.skip_group()
        body = self.source[open_tok.end:self.tokens[close].start]
        if open_tok.value != "{":
            self.eat_punct(";")
        return MacroItem(
            path="::".join(parts),
            tokens=_normalize(body),
            attrs=tuple(attrs),
            span=self.span_from(start),
        )

    # -- Types --

    def parse_type(self) -> TypeRef:
        self.enter()
        result = self._parse_type()
        self.leave()
        return result

    def _parse_type(self) -> TypeRef:
        start = self.peek()

        if start.is_punct("&", "&&"):
            self.advance()
            if self.peek().kind == LIFETIME:
                self.advance()
            mutable = self.eat_keyword("mut")
            inner = self.parse_type()
            ref: TypeRef = ReferenceType(inner=inner, mutable=mutable, span=self.span_from(start))
            if start.value == "&&":
                ref = ReferenceType(inner=ref, span=self.span_from(start))
            return ref
        if start.is_punct("*"):
            self.advance()
            if not (self.eat_keyword("const") or self.eat_keyword("mut")):
                raise self.error("expected 'const' or 'mut'")
            self.parse_type()
            return OpaqueType(text=self.text_from(start), span=self.span_from(start))
        if start.is_punct("("):
            self.advance()
            elements: list[TypeRef] = []
            trailing_comma = False
            while not self.at_punct(")"):
                elements.append(self.parse_type())
                trailing_comma = self.eat_punct(",")
                if not trailing_comma:
                    break
            self.expect_punct(")")
            if len(elements) == 1 and not trailing_comma:
                return elements[0]
            return TupleType(elements=tuple(elements), span=self.span_from(start))
        if start.is_punct("["):
            self.advance()
            element = self.parse_type()
            if self.eat_punct(";"):
                length = self.parse_expr()
                self.expect_punct("]")
                return ArrayType(element=element, length=length, span=self.span_from(start))
            self.expect_punct("]")
            return SliceType(element=element, span=self.span_from(start))
        if start.is_punct("!"):
            self.advance()
            return OpaqueType(text="!", span=self.span_from(start))
        if start.is_punct("<", "<<"):
            self.skip_angle()
            while self.eat_punct("::"):
                self.expect_ident()
                if self.at_punct("<"):
                    self.parse_generic_args()
            return OpaqueType(text=self.text_from(start), span=self.span_from(start))
        if start.is_keyword("impl", "dyn"):
            self.advance()
            self.skip_type_bounds()
            return OpaqueType(text=self.text_from(start), span=self.span_from(start))
        if start.is_keyword("for"):
            self.advance()
            self.skip_angle()
            if not self.at_keyword("fn", "unsafe", "extern"):
                return self.parse_type()
        if self.at_keyword("fn", "unsafe", "extern"):
            self.eat_keyword("unsafe")
            if self.eat_keyword("extern") and self.peek().kind == STR:
                self.advance()
            self.expect_keyword("fn")
            self.skip_group()
            if self.eat_punct("->"):
                self.parse_type()
            return OpaqueType(text=self.text_from(start), span=self.span_from(start))
        if start.kind == IDENT or start.is_punct("::"):
            return self.parse_path_type()
        raise self.error("expected type")

    def parse_path_type(self) -> PathType:
        start = self.peek()
        self.eat_punct("::")
        segments: list[PathSegment] = []
        while True:
            seg_start = self.expect_ident()
            generics: tuple[TypeRef, ...] = ()
            if self.at_punct("<") or (self.at_punct("::") and self.peek(1).is_punct("<")):
                self.eat_punct("::")
                generics = self.parse_generic_args()
            elif self.at_punct("(") and seg_start.value in ("Fn", "FnMut", "FnOnce"):
                self.skip_group()
                if self.eat_punct("->"):
                    self.parse_type()
            segments.append(PathSegment(
                name=seg_start.value, generics=generics, span=self.span_from(seg_start),
            ))
            if self.at_punct("::") and self.peek(1).kind == IDENT:
                self.advance()
                continue
            break
        return PathType(segments=tuple(segments), span=self.span_from(start))

    def parse_generic_args(self) -> tuple[TypeRef, ...]:
        self.expect_punct("<")
        args: list[TypeRef] = []
        while not self.eat_gt():
            tok = self.peek()
            if tok.kind == LIFETIME:
                self.advance()
            elif tok.kind in _LITERAL_KINDS or tok.is_punct("-"):
                self._parse_unary(False)
                args.append(OpaqueType(text=self.text_from(tok), span=self.span_from(tok)))
            elif tok.is_punct("{"):
                self.skip_group()
                args.append(OpaqueType(text=self.text_from(tok), span=self.span_from(tok)))
            elif tok.kind == IDENT and self.peek(1).is_punct("="):
                self.advance()
                self.advance()
                args.append(self.parse_type())
            elif tok.kind == IDENT and self.peek(1).is_punct(":"):
                self.advance()
                self.advance()
                self.skip_type_bounds()
            else:
                args.append(self.parse_type())
            if self.eat_punct(","):
                continue
            if self.eat_gt():
                break
            raise self.error("expected ',' or '>'")
        return tuple(args)

    def skip_type_bounds(self) -> None:
        while True:
            self.eat_punct("?")
            if self.peek().kind == LIFETIME:
                self.advance()
            elif self.at_punct("("):
                self.skip_group()
            elif self.eat_keyword("for"):
                self.skip_angle()
                self.parse_type()
            else:
                self.parse_type()
            if not self.eat_punct("+"):
                return

    # -- Blocks and statements --

    def parse_block(self) -> Block:
        self.enter()
        start = self.expect_punct("{")
        self.parse_inner_attrs()
        stmts: list[Stmt] = []
        while not self.at_punct("}"):
            if self.peek().kind == EOF:
                raise self.error("unterminated block")
            stmt = self.parse_stmt()
            if stmt is not None:
                stmts.append(stmt)
        self.advance()
        self.leave()
        return Block(stmts=tuple(stmts), span=self.span_from(start))

    def parse_stmt(self) -> Stmt | None:
        if self.eat_punct(";"):
            return None
        attrs = self.parse_outer_attrs()
        start = self.peek()
        if self.at_keyword("let"):
            return self.parse_let()
        if self._at_item_start():
            item = self.parse_item(attrs)
            if item is None:
                return None
            return ItemStmt(item=item, span=item.span)
        expr, block_like = self.parse_expr_statement()
        if self.eat_punct(";"):
            return ExprStmt(expr=expr, semicolon=True, span=self.span_from(start))
        if block_like or self.at_punct("}"):
            return ExprStmt(expr=expr, semicolon=False, span=self.span_from(start))
        raise self.error("expected ';'")

    def _at_block_like(self) -> bool:
        tok = self.peek()
        nxt = self.peek(1)
        if tok.is_punct("{"):
            return True
        if tok.kind == LIFETIME:
            return nxt.is_punct(":")
        if tok.is_keyword("if", "match", "loop", "while", "for"):
            return True
        if tok.is_keyword("unsafe", "const"):
            return nxt.is_punct("{")
        if tok.is_keyword("async"):
            return nxt.is_punct("{") or (nxt.is_keyword("move") and self.peek(2).is_punct("{"))
        return False

    def parse_expr_statement(self) -> tuple[Expr, bool]:
        """Parse an expression in statement position.

        Returns the expression and whether it ended as a block-like
        expression, which terminates the statement without ``;``.
        """
        if self._at_block_like():
            expr = self.parse_primary(False)
            if not self.at_punct(".", "?"):
                return expr, True
            return self.parse_expr(lhs=expr), False
        expr = self.parse_expr()
        if isinstance(expr, MacroCall) and expr.delimiter == "{":
            return expr, True
        return expr, False

    def parse_let(self) -> Let:
        start = self.expect_keyword("let")
        pattern = self.collect_pattern(lambda t: t.is_punct(":", "=", ";"))
        let_type = self.parse_type() if self.eat_punct(":") else None
        init = None
        else_block = None
        if self.eat_punct("="):
            init = self.parse_expr()
            if self.eat_keyword("else"):
                else_block = self.parse_block()
        self.expect_punct(";")
        return Let(
            pattern=pattern,
            type=let_type,
            init=init,
            else_block=else_block,
            span=self.span_from(start),
        )

    # -- Expressions --

    def parse_expr(self, no_struct: bool = False, lhs: Expr | None = None) -> Expr:
        self.enter()
        expr = self._parse_assign(no_struct, lhs)
        self.leave()
        return expr

    def _parse_assign(self, no_struct: bool, lhs: Expr | None) -> Expr:
        left = self._parse_range(no_struct, lhs)
        tok = self.peek()
        if tok.is_punct("="):
            self.advance()
            value = self._parse_assign(no_struct, None)
            return Assign(target=left, value=value, span=self.span_from_node(left))
        if tok.kind == PUNCT and tok.value in _COMPOUND_ASSIGN:
            self.advance()
            value = self._parse_assign(no_struct, None)
            return Binary(op=tok.value, left=left, right=value, span=self.span_from_node(left))
        return left

    def _parse_range(self, no_struct: bool, lhs: Expr | None) -> Expr:
        if lhs is None and self.at_punct("..", "..="):
            start = self.advance()
            end = None
            if self._can_start_expr(no_struct):
                end = self._parse_binary(_RANGE_OPERAND_PRECEDENCE, no_struct, None)
            return Range(start=None, end=end, inclusive=start.value == "..=", span=self.span_from(start))
        left = self._parse_binary(_RANGE_OPERAND_PRECEDENCE, no_struct, lhs)
        if self.at_punct("..", "..="):
            op = self.advance()
            end = None
            if self._can_start_expr(no_struct):
                end = self._parse_binary(_RANGE_OPERAND_PRECEDENCE, no_struct, None)
            return Range(start=left, end=end, inclusive=op.value == "..=", span=self.span_from_node(left))
        return left

    def _parse_binary(self, min_prec: int, no_struct: bool, lhs: Expr | None) -> Expr:
        if lhs is None:
            left = self._parse_unary(no_struct)
        else:
            left = self._parse_postfix(lhs)
        while True:
            tok = self.peek()
            if tok.is_keyword("as") and min_prec <= _CAST_PRECEDENCE:
                self.advance()
                target = self.parse_type()
                left = Cast(operand=left, target=target, span=self.span_from_node(left))
                continue
            if tok.kind != PUNCT:
                break
            prec = _BINARY_PRECEDENCE.get(tok.value)
            if prec is None or prec < min_prec:
                break
            self.advance()
            right = self._parse_binary(prec + 1, no_struct, None)
            left = Binary(op=tok.value, left=left, right=right, span=self.span_from_node(left))
        return left

    def _parse_unary(self, no_struct: bool) -> Expr:
        tok = self.peek()
        if tok.is_punct("-", "!", "*"):
            self.enter()
            self.advance()
            operand = self._parse_unary(no_struct)
            self.leave()
            return Unary(op=tok.value, operand=operand, span=self.span_from(tok))
        if tok.is_punct("&", "&&"):
            self.enter()
            self.advance()
            mutable = self.eat_keyword("mut")
            operand = self._parse_unary(no_struct)
            self.leave()
            expr: Expr = Reference(operand=operand, mutable=mutable, span=self.span_from(tok))
            if tok.value == "&&":
                expr = Reference(operand=expr, span=self.span_from(tok))
            return expr
        return self._parse_postfix(self.parse_primary(no_struct))

    def _parse_postfix(self, expr: Expr) -> Expr:
        while True:
            tok = self.peek()
            if tok.is_punct("?"):
                self.advance()
                expr = Try(operand=expr, span=self.span_from_node(expr))
            elif tok.is_punct("."):
                self.advance()
                name = self.peek()
                if name.is_keyword("await"):
                    self.advance()
                    expr = Await(operand=expr, span=self.span_from_node(expr))
                elif name.kind == IDENT:
                    self.advance()
                    if self.at_punct("::") and self.peek(1).is_punct("<"):
                        self.advance()
                        self.skip_angle()
                    if self.at_punct("("):
                        args = self.parse_call_args()
                        expr = MethodCall(
                            receiver=expr, method=name.value, args=args,
                            span=self.span_from_node(expr),
                        )
                    else:
                        expr = FieldAccess(base=expr, name=name.value, span=self.span_from_node(expr))
                elif name.kind == INT:
                    self.advance()
                    expr = FieldAccess(base=expr, name=name.value, span=self.span_from_node(expr))
                else:
                    raise self.error("expected field or method name")
            elif tok.is_punct("("):
                args = self.parse_call_args()
                expr = Call(func=expr, args=args, span=self.span_from_node(expr))
            elif tok.is_punct("["):
                self.advance()
                index = self.parse_expr()
                self.expect_punct("]")
                expr = Index(base=expr, index=index, span=self.span_from_node(expr))
            else:
                return expr

    def parse_call_args(self) -> tuple[Expr, ...]:
        self.expect_punct("(")
        args: list[Expr] = []
        while not self.at_punct(")"):
            args.append(self.parse_expr())
            if not self.eat_punct(","):
                break
        self.expect_punct(")")
        return tuple(args)

    def _can_start_expr(self, no_struct: bool) -> bool:
        tok = self.peek()
        if tok.kind == EOF:
            return False
        if tok.kind == PUNCT:
            if tok.value in (";", "}", ")", "]", ",", "=>", "=", "."):
                return False
            return not (no_struct and tok.value == "{")
        if tok.kind == IDENT:
            return tok.value not in ("else", "as", "in")
        return True

    def parse_primary(self, no_struct: bool) -> Expr:
        self.enter()
        expr = self._parse_primary(no_struct)
        self.leave()
        return expr

    def _parse_primary(self, no_struct: bool) -> Expr:
        tok = self.peek()

        if tok.kind in _LITERAL_KINDS:
            self.advance()
            return Literal(kind=_LITERAL_KINDS[tok.kind], value=tok.value, span=self.span_from(tok))
        if tok.kind == LIFETIME:
            if not self.peek(1).is_punct(":"):
                raise self.error("unexpected lifetime")
            self.advance()
            self.advance()
            return self._parse_labelled(tok)
        if tok.kind == PUNCT:
            if tok.value == "(":
                return self.parse_paren()
            if tok.value == "[":
                return self.parse_array()
            if tok.value == "{":
                block = self.parse_block()
                return BlockExpr(block=block, span=block.span)
            if tok.value in ("|", "||"):
                return self.parse_closure(no_struct)
            if tok.value in ("::", "<", "<<"):
                return self.parse_path_expr(no_struct)
            raise self.error("expected expression")
        if tok.kind != IDENT:
            raise self.error("expected expression")

        value = tok.value
        if value in ("true", "false"):
            self.advance()
            return Literal(kind="bool", value=value, span=self.span_from(tok))
        if value == "if":
            return self.parse_if()
        if value == "match":
            return self.parse_match()
        if value in ("loop", "while", "for"):
            return self._parse_labelled(None)
        if value in ("unsafe", "const") and self.peek(1).is_punct("{"):
            self.advance()
            block = self.parse_block()
            return BlockExpr(block=block, modifier=value, span=self.span_from(tok))
        if value == "async":
            self.advance()
            if self.at_punct("|", "||") or (self.at_keyword("move") and self.peek(1).is_punct("|", "||")):
                return self.parse_closure(no_struct)
            self.eat_keyword("move")
            block = self.parse_block()
            return BlockExpr(block=block, modifier="async", span=self.span_from(tok))
        if value == "move":
            return self.parse_closure(no_struct)
        if value == "return":
            self.advance()
            ret = self.parse_expr(no_struct) if self._can_start_expr(no_struct) else None
            return Return(value=ret, span=self.span_from(tok))
        if value == "break":
            self.advance()
            label = self.advance().value if self.peek().kind == LIFETIME else ""
            brk = self.parse_expr(no_struct) if self._can_start_expr(no_struct) else None
            return Break(label=label, value=brk, span=self.span_from(tok))
        if value == "continue":
            self.advance()
            label = self.advance().value if self.peek().kind == LIFETIME else ""
            return Continue(label=label, span=self.span_from(tok))
        if value == "let":
            return self.parse_let_condition()
        if value in _RESERVED:
            raise self.error("expected expression")
        return self.parse_path_expr(no_struct)

    def _parse_labelled(self, label_tok: Token | None) -> Expr:
        label = label_tok.value if label_tok else ""
        start = label_tok or self.peek()
        if self.eat_keyword("loop"):
            body = self.parse_block()
            return Loop(body=body, label=label, span=self.span_from(start))
        if self.eat_keyword("while"):
            condition = self.parse_expr(no_struct=True)
            body = self.parse_block()
            return While(condition=condition, body=body, label=label, span=self.span_from(start))
        if self.eat_keyword("for"):
            pattern = self.collect_pattern(lambda t: t.is_keyword("in"))
            self.expect_keyword("in")
            iterable = self.parse_expr(no_struct=True)
            body = self.parse_block()
            return ForLoop(
                pattern=pattern, iterable=iterable, body=body, label=label,
                span=self.span_from(start),
            )
        if self.at_punct("{"):
            block = self.parse_block()
            return BlockExpr(block=block, label=label, span=self.span_from(start))
        raise self.error("expected loop or block after label")

    def parse_path_expr(self, no_struct: bool) -> Expr:
        start = self.peek()
        segments: list[str] = []
        if self.at_punct("<", "<<"):
            self.skip_angle()
            segments.append(self.text_from(start))
            self.expect_punct("::")
        else:
            self.eat_punct("::")
        while True:
            segments.append(self.expect_ident().value)
            if self.at_punct("::"):
                if self.peek(1).is_punct("<"):
                    self.advance()
                    self.skip_angle()
                    if self.at_punct("::") and self.peek(1).kind == IDENT:
                        self.advance()
                        continue
                    break
                if self.peek(1).kind == IDENT:
                    self.advance()
                    continue
            break
        path = PathExpr(segments=tuple(segments), span=self.span_from(start))
        if self.at_punct("!") and self.peek(1).is_punct("(", "[", "{"):
            return self.parse_macro_call(path)
        if not no_struct and self.at_punct("{") and self._looks_like_struct_literal():
            return self.parse_struct_literal(path)
        return path

    def _looks_like_struct_literal(self) -> bool:
        first = self.peek(1)
        if first.is_punct("}", ".."):
            return True
        if first.kind in (IDENT, INT):
            return self.peek(2).is_punct(":", ",", "}")
        return False

    def parse_struct_literal(self, path: PathExpr) -> StructLiteral:
        self.expect_punct("{")
        fields: list[FieldInit] = []
        base = None
        while not self.at_punct("}"):
            if self.eat_punct(".."):
                base = self.parse_expr()
                break
            name = self.peek()
            if name.kind not in (IDENT, INT):
                raise self.error("expected field name")
            self.advance()
            if self.eat_punct(":"):
                value = self.parse_expr()
            else:
                value = PathExpr(segments=(name.value,), span=self.span_from(name))
            fields.append(FieldInit(name=name.value, value=value, span=self.span_from(name)))
            if not self.eat_punct(","):
                break
        self.expect_punct("}")
        return StructLiteral(path=path, fields=tuple(fields), base=base, span=self.span_from_node(path))

    def parse_macro_call(self, path: PathExpr) -> MacroCall:
        self.expect_punct("!")
        open_tok = self.peek()
        first, close = self.skip_group()
        body = self.source[open_tok.end:self.tokens[close].start]
        return MacroCall(
            path="::".join(path.segments),
            args=self._parse_macro_args(first, close),
            tokens=_normalize(body),
            delimiter=open_tok.value,
            span=self.span_from_node(path),
        )

    def _parse_macro_args(self, first: int, close: int) -> tuple[Expr, ...]:
        if first >= close:
            return ()
        end = self.tokens[close]
        sentinel = Token(EOF, "", end.line, end.col, end.start, end.start)
        child = Parser(self.source, self.tokens[first:close] + [sentinel], self.depth)
        try:
            return child.parse_expr_list()
        except ParseError:
            return ()

    def parse_expr_list(self) -> tuple[Expr, ...]:
        """Parse ``expr (, | ;) expr ...`` up to end of input (macro bodies)."""
        args: list[Expr] = []
        while self.peek().kind != EOF:
            args.append(self.parse_expr())
            if self.eat_punct(",") or self.eat_punct(";"):
                continue
            if self.peek().kind != EOF:
                raise self.error("unexpected token in macro arguments")
        return tuple(args)

    def parse_paren(self) -> Expr:
        start = self.expect_punct("(")
        if self.eat_punct(")"):
            return TupleExpr(span=self.span_from(start))
        first = self.parse_expr()
        if self.eat_punct(")"):
            return Paren(inner=first, span=self.span_from(start))
        elements = [first]
        while self.eat_punct(","):
            if self.at_punct(")"):
                break
            elements.append(self.parse_expr())
        self.expect_punct(")")
        return TupleExpr(elements=tuple(elements), span=self.span_from(start))

    def parse_array(self) -> Expr:
        start = self.expect_punct("[")
        if self.eat_punct("]"):
            return ArrayExpr(span=self.span_from(start))
        first = self.parse_expr()
        if self.eat_punct(";"):
            count = self.parse_expr()
            self.expect_punct("]")
            return ArrayRepeat(value=first, count=count, span=self.span_from(start))
        elements = [first]
        while self.eat_punct(","):
            if self.at_punct("]"):
                break
            elements.append(self.parse_expr())
        self.expect_punct("]")
        return ArrayExpr(elements=tuple(elements), span=self.span_from(start))

    def parse_closure(self, no_struct: bool) -> Closure:
        start = self.peek()
        self.eat_keyword("move")
        if self.eat_punct("||"):
            params = ""
        else:
            self.expect_punct("|")
            params = ""
            if not self.at_punct("|"):
                params = self.collect_pattern(lambda t: t.is_punct("|"))
            self.expect_punct("|")
        if self.eat_punct("->"):
            self.parse_type()
            block = self.parse_block()
            body: Expr = BlockExpr(block=block, span=block.span)
        else:
            body = self.parse_expr(no_struct)
        return Closure(params=params, body=body, span=self.span_from(start))

    def parse_if(self) -> If:
        """Parse an ``if`` with its whole ``else if`` chain.

        The chain is read in a loop and costs one nesting level, however
        many branches it has.
        """
        self.enter()
        branches: list[tuple[Token, Expr, Block]] = []
        else_branch: Expr | None = None
        while True:
            start = self.expect_keyword("if")
            condition = self.parse_expr(no_struct=True)
            branches.append((start, condition, self.parse_block()))
            if not self.eat_keyword("else"):
                break
            if not self.at_keyword("if"):
                block = self.parse_block()
                else_branch = BlockExpr(block=block, span=block.span)
                break
        self.leave()
        *outer, (start, condition, then_branch) = branches
        node = If(
            condition=condition,
            then_branch=then_branch,
            else_branch=else_branch,
            span=self.span_from(start),
        )
        for start, condition, then_branch in reversed(outer):
            node = If(
                condition=condition,
                then_branch=then_branch,
                else_branch=node,
                span=self.span_from(start),
            )
        return node

    def parse_let_condition(self) -> LetCondition:
        start = self.expect_keyword("let")
        pattern = self.collect_pattern(lambda t: t.is_punct("="))
        self.expect_punct("=")
        value = self._parse_binary(_LET_CONDITION_PRECEDENCE, True, None)
        return LetCondition(pattern=pattern, value=value, span=self.span_from(start))

    def parse_match(self) -> Match:
        start = self.expect_keyword("match")
        scrutinee = self.parse_expr(no_struct=True)
        self.expect_punct("{")
        self.parse_inner_attrs()
        arms: list[MatchArm] = []
        while not self.at_punct("}"):
            self.parse_outer_attrs()
            arm_start = self.peek()
            self.eat_punct("|")
            pattern = self.collect_pattern(lambda t: t.is_punct("=>") or t.is_keyword("if"))
            guard = self.parse_expr() if self.eat_keyword("if") else None
            self.expect_punct("=>")
            body, block_like = self.parse_expr_statement()
            arms.append(MatchArm(
                pattern=pattern, guard=guard, body=body, span=self.span_from(arm_start),
            ))
            if not self.eat_punct(",") and not block_like and not self.at_punct("}"):
                raise self.error("expected ',' after match arm")
        self.expect_punct("}")
        return Match(scrutinee=scrutinee, arms=tuple(arms), span=self.span_from(start))


def parse_rust(source: str) -> SyntaxTree:
    """Parse Rust source into a ``SyntaxTree``; raises ``ParseError``."""
    return Parser(source, tokenize(source)).parse_file()
