"""Tests for the Rust tokenizer and token trees."""

from __future__ import annotations

import pytest

from for_else.core.errors import TokenizeError
from for_else.core.syntax.tokenizer import (
    Delimiter,
    Group,
    Token,
    TokenKind,
    is_group,
    is_ident,
    is_lifetime,
    is_punct,
    run_span,
    tokenize,
)


def _values(run) -> list[str]:
    return [tree.value for tree in run]


class TestTokens:
    def test_identifiers_and_punctuation(self) -> None:
        run = tokenize("a.b(c)")
        assert _values(run[:3]) == ["a", ".", "b"]
        assert run[0].kind == TokenKind.IDENT
        assert run[1].kind == TokenKind.PUNCT
        assert is_group(run[3], Delimiter.PAREN)

    def test_range_is_three_tokens(self) -> None:
        run = tokenize("0..10")
        assert _values(run) == ["0", "..", "10"]

    def test_inclusive_range(self) -> None:
        assert _values(tokenize("1..=5")) == ["1", "..=", "5"]

    def test_float_literal(self) -> None:
        run = tokenize("1.5")
        assert len(run) == 1
        assert run[0].kind == TokenKind.LITERAL

    def test_method_on_integer_is_not_a_float(self) -> None:
        assert _values(tokenize("1.max(2)")[:3]) == ["1", ".", "max"]

    def test_longest_punctuation_wins(self) -> None:
        assert _values(tokenize("a <<= b => c :: d")) == ["a", "<<=", "b", "=>", "c", "::", "d"]

    def test_char_versus_lifetime(self) -> None:
        run = tokenize("'a' 'outer")
        assert run[0].kind == TokenKind.LITERAL
        assert run[0].value == "'a'"
        assert is_lifetime(run[1])
        assert run[1].value == "'outer"

    def test_label_before_colon(self) -> None:
        run = tokenize("'outer: loop {}")
        assert is_lifetime(run[0])
        assert is_punct(run[1], ":")
        assert is_ident(run[2], "loop")

    def test_escaped_char(self) -> None:
        run = tokenize(r"'\n' '\''")
        assert [tok.kind for tok in run] == [TokenKind.LITERAL, TokenKind.LITERAL]

    def test_strings_keep_braces_inside(self) -> None:
        run = tokenize('f("{ } else {")')
        assert len(run) == 2
        assert run[1].children[0].kind == TokenKind.LITERAL

    def test_raw_string(self) -> None:
        run = tokenize('r#"say "hi""#')
        assert len(run) == 1
        assert run[0].value == 'r#"say "hi""#'

    def test_byte_string_and_byte(self) -> None:
        run = tokenize("b\"ab\" b'c'")
        assert [tok.kind for tok in run] == [TokenKind.LITERAL, TokenKind.LITERAL]

    def test_raw_identifier(self) -> None:
        run = tokenize("r#match")
        assert is_ident(run[0], "r#match")

    def test_unicode_identifiers(self) -> None:
        run = tokenize("let größe = café_1;")
        assert _values(run) == ["let", "größe", "=", "café_1", ";"]
        assert is_ident(run[1], "größe")
        assert is_ident(run[3], "café_1")

    def test_unicode_label(self) -> None:
        run = tokenize("'äußere: loop")
        assert is_lifetime(run[0])
        assert run[0].value == "'äußere"

    def test_c_strings(self) -> None:
        run = tokenize('c"hi" cr#"a "b""# c')
        assert [tok.kind for tok in run] == [TokenKind.LITERAL, TokenKind.LITERAL, TokenKind.IDENT]
        assert _values(run) == ['c"hi"', 'cr#"a "b""#', "c"]

    def test_comments_are_skipped(self) -> None:
        run = tokenize("a // line { \n /* block /* nested */ } */ b")
        assert _values(run) == ["a", "b"]

    def test_positions_are_offset(self) -> None:
        run = tokenize("x y", offset=10)
        assert run[1].pos == 12
        assert run_span(run).start == 10
        assert run_span(run).end == 13


class TestGroups:
    def test_nested_groups(self) -> None:
        run = tokenize("{ a [ b ( c ) ] }")
        assert len(run) == 1
        outer = run[0]
        assert isinstance(outer, Group)
        assert outer.delimiter == Delimiter.BRACE
        inner = outer.children[1]
        assert is_group(inner, Delimiter.BRACKET)
        assert is_group(inner.children[1], Delimiter.PAREN)

    def test_group_span_covers_delimiters(self) -> None:
        group = tokenize("  {x}")[0]
        assert (group.pos, group.end) == (2, 5)

    def test_equality_ignores_positions(self) -> None:
        assert tokenize("a + {b}") == tokenize("a   +   {  b  }")
        assert Token(TokenKind.IDENT, "a", 0, 1) == Token(TokenKind.IDENT, "a", 5, 6)

    def test_run_span_of_empty_run(self) -> None:
        assert run_span(()) is None


class TestTokenizeErrors:
    def test_unclosed_delimiter(self) -> None:
        with pytest.raises(TokenizeError, match="Unclosed"):
            tokenize("{ a")

    def test_unexpected_closer(self) -> None:
        with pytest.raises(TokenizeError, match="Unexpected closing"):
            tokenize("a }")

    def test_mismatched_delimiter(self) -> None:
        with pytest.raises(TokenizeError, match="Mismatched"):
            tokenize("( ]")

    def test_unterminated_string(self) -> None:
        with pytest.raises(TokenizeError, match="Unterminated string"):
            tokenize('"abc')

    def test_unterminated_block_comment(self) -> None:
        with pytest.raises(TokenizeError, match="Unterminated block comment"):
            tokenize("/* /* */")

    def test_unexpected_character(self) -> None:
        with pytest.raises(TokenizeError, match="Unexpected character") as exc_info:
            tokenize("a ` b")
        assert exc_info.value.span.start == 2

    def test_non_ascii_digit_is_an_error(self) -> None:
        with pytest.raises(TokenizeError, match="Unexpected character") as exc_info:
            tokenize("x = ٣;")
        assert exc_info.value.span.start == 4
