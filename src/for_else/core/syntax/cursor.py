"""
Cursor over a run of token trees.

A cursor is cheap to copy: `fork()` returns an independent cursor at the
same position, which is how speculative parses avoid disturbing the real
scan position.
"""

from __future__ import annotations

from for_else.core.errors import Span, SyntaxParseError
from for_else.core.syntax.tokenizer import (
    Delimiter,
    Group,
    Token,
    TokenRun,
    TokenTree,
    is_group,
    is_ident,
    is_lifetime,
    is_punct,
)


class TokenCursor:
    """Position within a token run."""

    __slots__ = ("tokens", "pos", "end_pos")

    def __init__(self, tokens: TokenRun, pos: int = 0, end_pos: int | None = None) -> None:
        self.tokens = tokens
        self.pos = pos
        # Offset reported for errors at end of input
        if end_pos is None:
            end_pos = tokens[-1].end if tokens else 0
        self.end_pos = end_pos

    def fork(self) -> TokenCursor:
        return TokenCursor(self.tokens, self.pos, self.end_pos)

    def is_empty(self) -> bool:
        return self.pos >= len(self.tokens)

    def peek(self, offset: int = 0) -> TokenTree | None:
        idx = self.pos + offset
        if idx < len(self.tokens):
            return self.tokens[idx]
        return None

    def advance(self) -> TokenTree:
        if self.is_empty():
            raise self.error("Unexpected end of input")
        tree = self.tokens[self.pos]
        self.pos += 1
        return tree

    def rest(self) -> TokenRun:
        return self.tokens[self.pos :]

    def span(self) -> Span:
        """Span of the current token, or an empty span at end of input."""
        tree = self.peek()
        if tree is None:
            return Span(self.end_pos, self.end_pos)
        return Span(tree.pos, tree.end)

    def error(self, message: str) -> SyntaxParseError:
        return SyntaxParseError(message, span=self.span())

    # -- Predicates --

    def peek_ident(self, word: str | None = None, offset: int = 0) -> bool:
        return is_ident(self.peek(offset), word)

    def peek_punct(self, value: str | None = None, offset: int = 0) -> bool:
        return is_punct(self.peek(offset), value)

    def peek_group(self, delimiter: Delimiter | None = None, offset: int = 0) -> bool:
        return is_group(self.peek(offset), delimiter)

    def peek_lifetime(self, offset: int = 0) -> bool:
        return is_lifetime(self.peek(offset))

    def peek_label(self) -> bool:
        """`'name :` at the cursor."""
        return self.peek_lifetime() and self.peek_punct(":", 1)

    # -- Consumers --

    def match_ident(self, word: str) -> Token | None:
        if self.peek_ident(word):
            return self.advance()  # type: ignore[return-value]
        return None

    def match_punct(self, value: str) -> Token | None:
        if self.peek_punct(value):
            return self.advance()  # type: ignore[return-value]
        return None

    def expect_ident(self, word: str) -> Token:
        tok = self.match_ident(word)
        if tok is None:
            raise self.error(f"Expected `{word}`, got {describe(self.peek())}")
        return tok

    def expect_punct(self, value: str) -> Token:
        tok = self.match_punct(value)
        if tok is None:
            raise self.error(f"Expected `{value}`, got {describe(self.peek())}")
        return tok

    def expect_group(self, delimiter: Delimiter) -> Group:
        if not self.peek_group(delimiter):
            raise self.error(
                f"Expected `{delimiter.open} ... {delimiter.close}`, got {describe(self.peek())}"
            )
        return self.advance()  # type: ignore[return-value]

    def take_until(self, stop) -> TokenRun:
        """Consume trees until `stop(tree)` is true or input ends; the stop tree is left."""
        start = self.pos
        while not self.is_empty() and not stop(self.tokens[self.pos]):
            self.pos += 1
        return self.tokens[start : self.pos]


def describe(tree: TokenTree | None) -> str:
    """Short human description of a token tree for error messages."""
    if tree is None:
        return "end of input"
    if isinstance(tree, Group):
        return f"`{tree.delimiter.open}`"
    return f"`{tree.value}`"
