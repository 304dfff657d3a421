"""
Tokenizer for Rust source text.

Converts source text into token trees: flat tokens, with every
parenthesized, bracketed or braced region folded into a single Group.
Offsets are kept on every token so errors can point back into the text.
"""

from __future__ import annotations

import re
from enum import StrEnum, auto

from for_else.core.errors import Span, TokenizeError


class TokenKind(StrEnum):
    """Token types for Rust source."""

    IDENT = auto()
    LIFETIME = auto()
    LITERAL = auto()
    PUNCT = auto()


class Delimiter(StrEnum):
    """Group delimiters."""

    PAREN = "()"
    BRACKET = "[]"
    BRACE = "{}"

    @property
    def open(self) -> str:
        return self.value[0]

    @property
    def close(self) -> str:
        return self.value[1]


class Token:
    """A single lexical token. Offsets do not take part in equality."""

    __slots__ = ("kind", "value", "pos", "end")

    def __init__(self, kind: TokenKind, value: str, pos: int = 0, end: int = 0) -> None:
        self.kind = kind
        self.value = value
        self.pos = pos
        self.end = end

    @property
    def span(self) -> Span:
        return Span(self.pos, self.end)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Token):
            return NotImplemented
        return self.kind == other.kind and self.value == other.value

    def __hash__(self) -> int:
        return hash((self.kind, self.value))

    def __repr__(self) -> str:
        return f"Token({self.kind}, {self.value!r}, pos={self.pos})"


class Group:
    """A delimited group of token trees."""

    __slots__ = ("delimiter", "children", "pos", "end")

    def __init__(
        self,
        delimiter: Delimiter,
        children: tuple[TokenTree, ...],
        pos: int = 0,
        end: int = 0,
    ) -> None:
        self.delimiter = delimiter
        self.children = children
        self.pos = pos
        self.end = end

    @property
    def span(self) -> Span:
        return Span(self.pos, self.end)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Group):
            return NotImplemented
        return self.delimiter == other.delimiter and self.children == other.children

    def __hash__(self) -> int:
        return hash((self.delimiter, self.children))

    def __repr__(self) -> str:
        return f"Group({self.delimiter.open}…{self.delimiter.close}, {len(self.children)} trees)"


TokenTree = Token | Group
TokenRun = tuple[TokenTree, ...]


# Longest first so that "..=" wins over ".." and "." etc.
_PUNCTUATION = sorted(
    [
        "<<=", ">>=", "...", "..=",
        "::", "->", "=>", "==", "!=", "<=", ">=", "&&", "||",
        "+=", "-=", "*=", "/=", "%=", "^=", "&=", "|=", "<<", ">>", "..",
        "+", "-", "*", "/", "%", "^", "!", "&", "|", "=", "<", ">",
        "@", ".", ",", ";", ":", "#", "$", "?", "~",
    ],
    key=len,
    reverse=True,
)

_OPENERS = {"(": Delimiter.PAREN, "[": Delimiter.BRACKET, "{": Delimiter.BRACE}
_CLOSERS = {")": Delimiter.PAREN, "]": Delimiter.BRACKET, "}": Delimiter.BRACE}

_IDENT_RE = re.compile(r"(?:r#)?[^\W\d]\w*")
_NUMBER_RE = re.compile(
    r"""
    (?:0x[0-9A-Fa-f_]+|0o[0-7_]+|0b[01_]+   # radix integers
      |[0-9][0-9_]*
        (?:\.(?![.A-Za-z_])[0-9_]*)?         # fraction, but not "0..", "1.foo"
        (?:[eE][+-]?[0-9_]+)?
    )
    (?:[iu](?:8|16|32|64|128|size)|f32|f64)?  # type suffix
    """,
    re.VERBOSE,
)
_CHAR_RE = re.compile(r"'(?:\\u\{[0-9A-Fa-f]{1,6}\}|\\x[0-9A-Fa-f]{2}|\\.|[^\\'\n])'")
_RAW_STRING_RE = re.compile(r'[bc]?r(#*)"')


class _Lexer:
    """Single pass over the text producing flat tokens."""

    def __init__(self, source: str, offset: int = 0) -> None:
        self.source = source
        self.offset = offset
        self.i = 0
        self.n = len(source)

    def error(self, message: str, pos: int) -> TokenizeError:
        return TokenizeError(message, span=Span(self.offset + pos, self.offset + pos + 1))

    def token(self, kind: TokenKind, start: int, end: int) -> Token:
        return Token(kind, self.source[start:end], self.offset + start, self.offset + end)

    def lex(self) -> list[Token]:
        tokens: list[Token] = []
        src = self.source

        while self.i < self.n:
            c = src[self.i]

            if c in " \t\r\n":
                self.i += 1
                continue

            if src.startswith("//", self.i):
                newline = src.find("\n", self.i)
                self.i = self.n if newline == -1 else newline + 1
                continue

            if src.startswith("/*", self.i):
                self._skip_block_comment()
                continue

            start = self.i

            # Raw, byte and C strings: r"..", r#".."#, b"..", br#".."#, c"..", cr#".."#, b'x'
            if c in "rbc":
                raw = _RAW_STRING_RE.match(src, self.i)
                if raw:
                    self._read_raw_string(len(raw.group(0)), len(raw.group(1)))
                    tokens.append(self.token(TokenKind.LITERAL, start, self.i))
                    continue
                if src.startswith(('b"', 'c"'), self.i):
                    self.i += 1
                    self._read_string()
                    tokens.append(self.token(TokenKind.LITERAL, start, self.i))
                    continue
                if src.startswith("b'", self.i):
                    m = _CHAR_RE.match(src, self.i + 1)
                    if not m:
                        raise self.error("Unterminated byte literal", start)
                    self.i = m.end()
                    tokens.append(self.token(TokenKind.LITERAL, start, self.i))
                    continue

            if c == '"':
                self._read_string()
                tokens.append(self.token(TokenKind.LITERAL, start, self.i))
                continue

            if c == "'":
                m = _CHAR_RE.match(src, self.i)
                if m:
                    self.i = m.end()
                    tokens.append(self.token(TokenKind.LITERAL, start, self.i))
                    continue
                ident = _IDENT_RE.match(src, self.i + 1)
                if ident:
                    self.i = ident.end()
                    tokens.append(self.token(TokenKind.LIFETIME, start, self.i))
                    continue
                raise self.error("Unterminated character literal", start)

            if c.isdigit():
                m = _NUMBER_RE.match(src, self.i)
                if not m:
                    raise self.error(f"Unexpected character: {c!r}", start)
                self.i = m.end()
                tokens.append(self.token(TokenKind.LITERAL, start, self.i))
                continue

            if c.isalpha() or c == "_":
                m = _IDENT_RE.match(src, self.i)
                if not m:
                    raise self.error(f"Unexpected character: {c!r}", start)
                self.i = m.end()
                tokens.append(self.token(TokenKind.IDENT, start, self.i))
                continue

            if c in _OPENERS or c in _CLOSERS:
                self.i += 1
                tokens.append(self.token(TokenKind.PUNCT, start, self.i))
                continue

            for punct in _PUNCTUATION:
                if src.startswith(punct, self.i):
                    self.i += len(punct)
                    tokens.append(self.token(TokenKind.PUNCT, start, self.i))
                    break
            else:
                raise self.error(f"Unexpected character: {c!r}", start)

        return tokens

    def _skip_block_comment(self) -> None:
        start = self.i
        depth = 0
        while self.i < self.n:
            if self.source.startswith("/*", self.i):
                depth += 1
                self.i += 2
            elif self.source.startswith("*/", self.i):
                depth -= 1
                self.i += 2
                if depth == 0:
                    return
            else:
                self.i += 1
        raise self.error("Unterminated block comment", start)

    def _read_string(self) -> None:
        start = self.i
        self.i += 1  # opening quote
        while self.i < self.n:
            c = self.source[self.i]
            if c == "\\":
                self.i += 2
                continue
            self.i += 1
            if c == '"':
                return
        raise self.error("Unterminated string literal", start)

    def _read_raw_string(self, prefix_len: int, hashes: int) -> None:
        start = self.i
        terminator = '"' + "#" * hashes
        close = self.source.find(terminator, self.i + prefix_len)
        if close == -1:
            raise self.error("Unterminated raw string literal", start)
        self.i = close + len(terminator)


def _fold(tokens: list[Token]) -> TokenRun:
    """Fold flat tokens into token trees, checking delimiter balance."""
    stack: list[tuple[Token, list[TokenTree]]] = []
    current: list[TokenTree] = []

    for tok in tokens:
        if tok.kind == TokenKind.PUNCT and tok.value in _OPENERS:
            stack.append((tok, current))
            current = []
            continue

        if tok.kind == TokenKind.PUNCT and tok.value in _CLOSERS:
            if not stack:
                raise TokenizeError(f"Unexpected closing delimiter {tok.value!r}", span=tok.span)
            opener, parent = stack.pop()
            delimiter = _OPENERS[opener.value]
            if _CLOSERS[tok.value] != delimiter:
                raise TokenizeError(
                    f"Mismatched closing delimiter {tok.value!r} for {opener.value!r}",
                    span=Span(opener.pos, tok.end),
                )
            parent.append(Group(delimiter, tuple(current), opener.pos, tok.end))
            current = parent
            continue

        current.append(tok)

    if stack:
        opener, _ = stack[-1]
        raise TokenizeError(f"Unclosed delimiter {opener.value!r}", span=opener.span)

    return tuple(current)


def tokenize(source: str, offset: int = 0) -> TokenRun:
    """Tokenize Rust source into token trees.

    Args:
        source: Source text.
        offset: Added to every recorded position, for text sliced out of a larger file.

    Returns:
        Tuple of top-level token trees.

    Raises:
        TokenizeError: If the text is not lexically valid or delimiters are unbalanced.
    """
    return _fold(_Lexer(source, offset).lex())


def is_ident(tree: TokenTree | None, word: str | None = None) -> bool:
    """True if `tree` is an identifier (optionally a specific one)."""
    if not isinstance(tree, Token) or tree.kind != TokenKind.IDENT:
        return False
    return word is None or tree.value == word


def is_punct(tree: TokenTree | None, value: str | None = None) -> bool:
    """True if `tree` is punctuation (optionally a specific one)."""
    if not isinstance(tree, Token) or tree.kind != TokenKind.PUNCT:
        return False
    return value is None or tree.value == value


def is_group(tree: TokenTree | None, delimiter: Delimiter | None = None) -> bool:
    """True if `tree` is a group (optionally with a specific delimiter)."""
    if not isinstance(tree, Group):
        return False
    return delimiter is None or tree.delimiter == delimiter


def is_lifetime(tree: TokenTree | None) -> bool:
    return isinstance(tree, Token) and tree.kind == TokenKind.LIFETIME


def run_span(run: TokenRun) -> Span | None:
    """Span covering a whole run, or None for an empty run."""
    if not run:
        return None
    return Span(run[0].pos, run[-1].end)
