"""Tests for the loop-else boundary resolver."""

from __future__ import annotations

import pytest

from for_else.core.errors import InvalidBody, InvalidElseBlock, MalformedLoopHeader
from for_else.core.resolver import find_split_point, parse_loop_header
from for_else.core.syntax import render_tokens, tokenize
from for_else.core.syntax.nodes import Break, LoopKind


def _header(source: str, kind: LoopKind = LoopKind.FOR):
    return parse_loop_header(tokenize(source), kind)


class TestSplitPoint:
    def test_simple_for(self) -> None:
        spec = _header("x in v.iter() { f(x); } else { g(); }")
        assert spec.kind == LoopKind.FOR
        assert render_tokens(spec.binding) == "x"
        assert render_tokens(spec.driver) == "v.iter()"
        assert len(spec.body.stmts) == 1
        assert len(spec.else_block.stmts) == 1

    def test_tuple_pattern(self) -> None:
        spec = _header("(i, x) in v.iter().enumerate() { } else { }")
        assert render_tokens(spec.binding) == "(i, x)"

    def test_label(self) -> None:
        spec = _header("'outer: i in 0..3 { break 'outer; } else { }")
        assert spec.label == "'outer"
        assert render_tokens(spec.driver) == "0..3"

    def test_while_condition(self) -> None:
        spec = _header("i < 10 { i += 1; } else { }", LoopKind.WHILE)
        assert spec.binding is None
        assert render_tokens(spec.driver) == "i < 10"

    def test_struct_literal_in_parens(self) -> None:
        spec = _header("(S {}).cond(x) { break; } else { }", LoopKind.WHILE)
        assert render_tokens(spec.driver) == "(S {}).cond(x)"
        assert isinstance(spec.body.stmts[0], Break)

    def test_block_expression_driver(self) -> None:
        spec = _header("{ let s = S {}; s.cond(x) } { break; } else { }", LoopKind.WHILE)
        assert render_tokens(spec.driver) == "{ let s = S {}; s.cond(x) }"
        assert len(spec.body.stmts) == 1

    def test_closure_with_block_in_driver(self) -> None:
        spec = _header("x in v.iter().filter(|y| { **y > 2 }) { } else { }")
        assert render_tokens(spec.driver).startswith("v.iter().filter(")

    def test_leftmost_valid_split_wins(self) -> None:
        # `{ a } else { b }` is itself a valid suffix, but the first brace
        # group is only a body if what follows is `else`
        tokens = tokenize("c { a } else { b }")
        assert find_split_point(tokens) == 1

    def test_split_is_deterministic(self) -> None:
        tokens = tokenize("{ x } { y } else { z }")
        assert find_split_point(tokens) == find_split_point(tokens) == 1

    def test_no_split(self) -> None:
        assert find_split_point(tokenize("c { a }")) is None

    def test_span_defaults_to_input(self) -> None:
        spec = parse_loop_header(tokenize("c { } else { }", offset=7), LoopKind.WHILE)
        assert spec.span.start == 7


class TestHeaderErrors:
    def test_empty_iterator(self) -> None:
        with pytest.raises(MalformedLoopHeader, match="expected expression after 'in'"):
            _header("x in { } else { }")

    def test_empty_condition(self) -> None:
        with pytest.raises(MalformedLoopHeader, match="expected condition expression"):
            _header("{ } else { }", LoopKind.WHILE)

    def test_missing_in(self) -> None:
        with pytest.raises(MalformedLoopHeader, match="`in`"):
            _header("x v { } else { }")

    def test_missing_pattern(self) -> None:
        with pytest.raises(MalformedLoopHeader, match="pattern"):
            _header("in v { } else { }")

    def test_missing_else(self) -> None:
        with pytest.raises(MalformedLoopHeader, match="malformed loop header") as exc_info:
            _header("x in v { f(); }")
        # the reported span covers the scanned driver region
        assert exc_info.value.span.start == 5

    def test_trailing_tokens(self) -> None:
        with pytest.raises(MalformedLoopHeader, match="after else block"):
            _header("x in v { } else { } extra")

    def test_invalid_body(self) -> None:
        with pytest.raises(InvalidBody, match="loop body"):
            _header("x in v { else } else { }")

    def test_invalid_else_block(self) -> None:
        with pytest.raises(InvalidElseBlock, match="else block"):
            _header("x in v { } else { else }")

    def test_loop_kind_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            _header("{ } else { }", LoopKind.LOOP)
