"""Tokenizer for the Rust subset used by Soroban contracts.

The lexer turns source text into a flat list of ``Token`` objects. Comments
(including ``///`` doc comments) and whitespace are dropped. String and
character literals are decoded so that detectors can compare literal values
directly (``symbol_short!("init")`` yields the value ``init``).

Token kinds
-----------
``IDENT``     identifiers and keywords (raw identifiers lose their ``r#``).
``LIFETIME``  ``'a``, ``'static`` and loop labels.
``INT``       integer literals, value keeps digits and suffix.
``FLOAT``     floating point literals.
``STR``       string, raw string and C-string literals (decoded value).
``BYTE_STR``  byte string literals (decoded value).
``CHAR``      character and byte literals (decoded value).
``PUNCT``     operators and delimiters, longest match first.
``EOF``       end of input.

Any character the grammar cannot start a token with raises ``ParseError``.
"""

from __future__ import annotations

from dataclasses import dataclass

from sanctifier.exceptions import ParseError

IDENT = "IDENT"
LIFETIME = "LIFETIME"
INT = "INT"
FLOAT = "FLOAT"
STR = "STR"
BYTE_STR = "BYTE_STR"
CHAR = "CHAR"
PUNCT = "PUNCT"
EOF = "EOF"

# Longest first so that ``>>=`` wins over ``>>`` and ``>``.
_PUNCTUATION: tuple[str, ...] = (
    ">>=", "<<=", "...", "..=",
    "::", "->", "=>", "==", "!=", "<=", ">=", "&&", "||",
    "+=", "-=", "*=", "/=", "%=", "^=", "&=", "|=", "<<", ">>", "..",
    "+", "-", "*", "/", "%", "^", "!", "&", "|", "=", "<", ">", "@",
    ".", ",", ";", ":", "#", "$", "?", "~", "{", "}", "[", "]", "(", ")",
)

_SIMPLE_ESCAPES: dict[str, str] = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "\\": "\\",
    "0": "\0",
    "'": "'",
    '"': '"',
}


@dataclass(frozen=True)
class Token:
    """A single lexical token.

    Attributes:
        kind: One of the module-level kind constants.
        value: Identifier text, punctuation, or decoded literal value.
        line: 1-based line of the first character.
        col: 1-based column of the first character.
        start: Offset of the first character in the source.
        end: Offset one past the last character in the source.
    """

    kind: str
    value: str
    line: int
    col: int
    start: int
    end: int

    def is_punct(self, *values: str) -> bool:
        return self.kind == PUNCT and self.value in values

    def is_keyword(self, *values: str) -> bool:
        return self.kind == IDENT and self.value in values


def _is_ident_start(ch: str) -> bool:
    return ch == "_" or ch.isalpha()


def _is_ident_continue(ch: str) -> bool:
    return ch == "_" or ch.isalnum()


class Lexer:
    """Single-pass tokenizer over a source string."""

    def __init__(self, source: str) -> None:
        self.source = source
        self.pos = 0
        self.line = 1
        self.line_start = 0
        self.tokens: list[Token] = []

    # -- Position helpers --

    def _peek(self, offset: int = 0) -> str:
        index = self.pos + offset
        if index < len(self.source):
            return self.source[index]
        return ""

    def _advance(self, count: int = 1) -> None:
        for _ in range(count):
            if self.pos >= len(self.source):
                return
            if self.source[self.pos] == "\n":
                self.line += 1
                self.line_start = self.pos + 1
            self.pos += 1

    def _error(self, message: str) -> ParseError:
        return ParseError(message, self.line, self.pos - self.line_start + 1)

    def _emit(self, kind: str, value: str, start: int, line: int, col: int) -> None:
        self.tokens.append(Token(kind, value, line, col, start, self.pos))

    # -- Driver --

    def tokenize(self) -> list[Token]:
        """Tokenize the whole source and return the token list ending in EOF."""
        if self.source.startswith("#!") and not self.source.startswith("#!["):
            while self.pos < len(self.source) and self.source[self.pos] != "\n":
                self._advance()

        while True:
            self._skip_trivia()
            if self.pos >= len(self.source):
                break
            start = self.pos
            line = self.line
            col = self.pos - self.line_start + 1
            ch = self._peek()

            if ch in "rbc" and self._try_prefixed_literal(start, line, col):
                continue
            if _is_ident_start(ch):
                self._lex_ident(start, line, col)
            elif ch.isdigit():
                self._lex_number(start, line, col)
            elif ch == '"':
                self._advance()
                value = self._read_quoted('"')
                self._emit(STR, value, start, line, col)
            elif ch == "'":
                self._lex_quote(start, line, col)
            else:
                self._lex_punct(start, line, col)

        self.tokens.append(
            Token(EOF, "", self.line, self.pos - self.line_start + 1, self.pos, self.pos)
        )
        return self.tokens

    # -- Trivia --

    def _skip_trivia(self) -> None:
        while self.pos < len(self.source):
            ch = self._peek()
            if ch.isspace():
                self._advance()
            elif ch == "/" and self._peek(1) == "/":
                while self.pos < len(self.source) and self._peek() != "\n":
                    self._advance()
            elif ch == "/" and self._peek(1) == "*":
                self._skip_block_comment()
            else:
                return

    def _skip_block_comment(self) -> None:
        depth = 0
        while True:
            if self.pos >= len(self.source):
                raise self._error("unterminated block comment")
            if self._peek() == "/" and self._peek(1) == "*":
                depth += 1
                self._advance(2)
            elif self._peek() == "*" and self._peek(1) == "/":
                depth -= 1
                self._advance(2)
                if depth == 0:
                    return
            else:
                self._advance()

    # -- Identifiers and prefixed literals --

    def _lex_ident(self, start: int, line: int, col: int) -> None:
        while self.pos < len(self.source) and _is_ident_continue(self._peek()):
            self._advance()
        self._emit(IDENT, self.source[start:self.pos], start, line, col)

    def _try_prefixed_literal(self, start: int, line: int, col: int) -> bool:
        """Handle ``r"..."``, ``r#"..."#``, ``b"..."``, ``br".."``, ``b'x'``, ``c".."``, ``r#ident``."""
        ch, nxt = self._peek(), self._peek(1)
        if ch == "r" and nxt == "#" and _is_ident_start(self._peek(2)):
            self._advance(2)
            ident_start = self.pos
            while self.pos < len(self.source) and _is_ident_continue(self._peek()):
                self._advance()
            self._emit(IDENT, self.source[ident_start:self.pos], start, line, col)
            return True
        if ch == "r" and nxt in ('"', "#"):
            self._advance()
            self._emit(STR, self._read_raw(), start, line, col)
            return True
        if ch == "b" and nxt == "r" and self._peek(2) in ('"', "#"):
            self._advance(2)
            self._emit(BYTE_STR, self._read_raw(), start, line, col)
            return True
        if ch == "b" and nxt == '"':
            self._advance(2)
            self._emit(BYTE_STR, self._read_quoted('"'), start, line, col)
            return True
        if ch == "b" and nxt == "'":
            self._advance(2)
            self._emit(CHAR, self._read_quoted("'"), start, line, col)
            return True
        if ch == "c" and nxt == '"':
            self._advance(2)
            self._emit(STR, self._read_quoted('"'), start, line, col)
            return True
        if ch == "c" and nxt == "r" and self._peek(2) in ('"', "#"):
            self._advance(2)
            self._emit(STR, self._read_raw(), start, line, col)
            return True
        return False

    def _read_raw(self) -> str:
        hashes = 0
        while self._peek() == "#":
            hashes += 1
            self._advance()
        if self._peek() != '"':
            raise self._error("malformed raw string literal")
        self._advance()
        terminator = '"' + "#" * hashes
        end = self.source.find(terminator, self.pos)
        if end == -1:
            raise self._error("unterminated raw string literal")
        value = self.source[self.pos:end]
        self._advance(end + len(terminator) - self.pos)
        return value

    def _read_quoted(self, quote: str) -> str:
        """Read up to the closing quote (opening quote already consumed)."""
        chars: list[str] = []
        while True:
            if self.pos >= len(self.source):
                raise self._error("unterminated literal")
            ch = self._peek()
            if ch == quote:
                self._advance()
                return "".join(chars)
            if ch == "\\":
                chars.append(self._read_escape())
            else:
                chars.append(ch)
                self._advance()

    def _read_escape(self) -> str:
        self._advance()
        ch = self._peek()
        if ch in _SIMPLE_ESCAPES:
            self._advance()
            return _SIMPLE_ESCAPES[ch]
        if ch == "x":
            digits = self.source[self.pos + 1:self.pos + 3]
            self._advance(3)
            try:
                return chr(int(digits, 16))
            except ValueError:
                raise self._error("invalid hex escape") from None
        if ch == "u" and self._peek(1) == "{":
            end = self.source.find("}", self.pos)
            if end == -1:
                raise self._error("unterminated unicode escape")
            digits = self.source[self.pos + 2:end].replace("_", "")
            self._advance(end + 1 - self.pos)
            try:
                return chr(int(digits, 16))
            except (ValueError, OverflowError):
                raise self._error("invalid unicode escape") from None
        if ch == "\n":
            # Line continuation: skip the newline and leading whitespace.
            while self.pos < len(self.source) and self._peek().isspace():
                self._advance()
            return ""
        raise self._error("unknown escape sequence")

    # -- Numbers --

    def _lex_number(self, start: int, line: int, col: int) -> None:
        after_dot = bool(self.tokens) and self.tokens[-1].is_punct(".")
        is_float = False
        if self._peek() == "0" and self._peek(1) in ("x", "o", "b"):
            self._advance(2)
            while self.pos < len(self.source) and (
                self._peek().isalnum() or self._peek() == "_"
            ):
                self._advance()
            self._emit(INT, self.source[start:self.pos], start, line, col)
            return

        self._consume_digits()
        # ``1.5`` is a float; ``1..2``, ``1.max()`` and ``t.0.1`` are not.
        if (
            not after_dot
            and self._peek() == "."
            and self._peek(1) != "."
            and not _is_ident_start(self._peek(1))
        ):
            is_float = True
            self._advance()
            self._consume_digits()
        if not after_dot and self._peek() in ("e", "E") and (
            self._peek(1).isdigit()
            or (self._peek(1) in ("+", "-") and self._peek(2).isdigit())
        ):
            is_float = True
            self._advance(2)
            self._consume_digits()
        if _is_ident_start(self._peek()):
            suffix_start = self.pos
            while self.pos < len(self.source) and _is_ident_continue(self._peek()):
                self._advance()
            if self.source[suffix_start:self.pos] in ("f32", "f64"):
                is_float = True
        self._emit(FLOAT if is_float else INT, self.source[start:self.pos], start, line, col)

    def _consume_digits(self) -> None:
        while self.pos < len(self.source) and (self._peek().isdigit() or self._peek() == "_"):
            self._advance()

    # -- Quotes: char literals vs lifetimes --

    def _lex_quote(self, start: int, line: int, col: int) -> None:
        nxt = self._peek(1)
        if nxt == "\\":
            self._advance()
            value = self._read_quoted("'")
            self._emit(CHAR, value, start, line, col)
            return
        if nxt and self._peek(2) == "'":
            self._advance(3)
            self._emit(CHAR, nxt, start, line, col)
            return
        if _is_ident_start(nxt):
            self._advance()
            while self.pos < len(self.source) and _is_ident_continue(self._peek()):
                self._advance()
            self._emit(LIFETIME, self.source[start:self.pos], start, line, col)
            return
        raise self._error("malformed character literal")

    # -- Punctuation --

    def _lex_punct(self, start: int, line: int, col: int) -> None:
        for punct in _PUNCTUATION:
            if self.source.startswith(punct, self.pos):
                self._advance(len(punct))
                self._emit(PUNCT, punct, start, line, col)
                return
        raise self._error(f"unexpected character {self._peek()!r}")


def tokenize(source: str) -> list[Token]:
    """Tokenize ``source``; raises ``ParseError`` on malformed input."""
    return Lexer(source).tokenize()
