"""Tests for the break rewriter."""

from __future__ import annotations

import pytest

from for_else.core.rewriter import (
    DEFAULT_FLAG_NAME,
    BreakRewriter,
    ScopeContext,
    rewrite_breaks,
)
from for_else.core.syntax import parse_source, render_block, render_node
from for_else.core.syntax.nodes import BlockExpr, Break


def _sites(source: str, own_label: str | None = None) -> list[bool]:
    rewriter = BreakRewriter(own_label)
    rewriter.rewrite(parse_source(source))
    return [site.rewritten for site in rewriter.sites]


class TestClassification:
    def test_unlabeled_breaks_through_if_and_match(self) -> None:
        source = "if x { break; } for j in v { break; } match y { _ => break, }"
        assert _sites(source) == [True, False, True]

    def test_else_if_chain_is_descended(self) -> None:
        assert _sites("if a { f(); } else if b { break; } else { break; }") == [True, True]

    def test_blocks_are_descended(self) -> None:
        assert _sites("{ unsafe { break; } } 'b: { break 'b; }") == [True, False]

    def test_nested_loops_own_their_unlabeled_breaks(self) -> None:
        assert _sites("loop { break; } while c { break; }") == [False, False]

    def test_own_label_inside_nested_loop(self) -> None:
        source = "for j in v { if j > 2 { break 'outer; } break; }"
        assert _sites(source, own_label="'outer") == [True, False]

    def test_foreign_label_is_left_alone(self) -> None:
        assert _sites("break 'other;", own_label="'outer") == [False]

    def test_labeled_break_without_own_label(self) -> None:
        assert _sites("break 'outer;") == [False]

    def test_nested_loop_with_same_label_shadows(self) -> None:
        source = "'outer: loop { break 'outer; } loop { break 'outer; }"
        assert _sites(source, own_label="'outer") == [False, True]

    def test_labeled_block_with_own_label_shadows(self) -> None:
        source = "'outer: { break 'outer; } { break 'outer; }"
        assert _sites(source, own_label="'outer") == [False, True]

    def test_let_else_block_is_descended(self) -> None:
        source = (
            "let Some(x) = it.next() else { break; };"
            " let 0 = x else { for j in v { break; } return; };"
        )
        assert _sites(source) == [True, False]

    def test_closures_are_not_descended(self) -> None:
        assert _sites("let f = || { break; }; v.iter().for_each(|_| loop { break; });") == []

    def test_sites_record_labels_and_positions(self) -> None:
        rewriter = BreakRewriter("'a")
        rewriter.rewrite(parse_source("x; break 'a;"))
        site = rewriter.sites[0]
        assert site.label == "'a"
        assert site.pos == 3

    def test_sites_reset_between_calls(self) -> None:
        rewriter = BreakRewriter()
        rewriter.rewrite(parse_source("break;"))
        rewriter.rewrite(parse_source("f();"))
        assert rewriter.sites == []


class TestScopeContext:
    def test_entering_loop_clears_ownership(self) -> None:
        ctx = ScopeContext(own_label="'a").entering_loop(None)
        assert not ctx.is_own_construct
        assert ctx.own_label == "'a"

    def test_entering_loop_with_same_label(self) -> None:
        assert ScopeContext(own_label="'a").entering_loop("'a").own_label is None

    def test_entering_block_with_same_label(self) -> None:
        ctx = ScopeContext(own_label="'a").entering_block("'a")
        assert ctx.is_own_construct
        assert ctx.own_label is None

    def test_entering_other_block_keeps_context(self) -> None:
        ctx = ScopeContext(own_label="'a")
        assert ctx.entering_block(None) is ctx
        assert ctx.entering_block("'b") is ctx


class TestReplacement:
    def test_replacement_text(self) -> None:
        block = rewrite_breaks(parse_source("break;"))
        assert render_node(block.stmts[0]) == (
            "{\n" f"    {DEFAULT_FLAG_NAME} = true;\n" "    break;\n" "};"
        )

    def test_replacement_keeps_label_and_value(self) -> None:
        block = rewrite_breaks(parse_source("break 'l x + 1"), own_label="'l", flag_name="done")
        node = block.stmts[0]
        assert isinstance(node, BlockExpr)
        assert not node.semi
        inner = node.block.stmts[1]
        assert isinstance(inner, Break)
        assert inner.label == "'l"
        assert render_node(node) == "{\n    done = true;\n    break 'l x + 1;\n}"

    def test_match_arm_break_becomes_block(self) -> None:
        block = rewrite_breaks(parse_source("match x { 1 => break, _ => {} }"))
        rendered = render_block(block)
        assert "1 => {" in rendered
        assert f"{DEFAULT_FLAG_NAME} = true;" in rendered

    def test_let_else_break_is_instrumented(self) -> None:
        block = rewrite_breaks(parse_source("let 0 = n else { break; };"), flag_name="done")
        assert render_node(block.stmts[0]) == (
            "let 0 = n else {\n    {\n        done = true;\n        break;\n    };\n};"
        )

    def test_untouched_body_is_returned_as_is(self) -> None:
        body = parse_source("for j in v { break; } f();")
        assert rewrite_breaks(body) is body

    def test_untouched_statements_keep_identity(self) -> None:
        body = parse_source("f(); if c { break; } loop { break; }")
        result = rewrite_breaks(body)
        assert result.stmts[0] is body.stmts[0]
        assert result.stmts[1] is not body.stmts[1]
        assert result.stmts[2] is body.stmts[2]

    def test_continue_is_never_rewritten(self) -> None:
        body = parse_source("if c { continue; }")
        assert rewrite_breaks(body) is body

    @pytest.mark.parametrize("flag", ["flag", "_done_1"])
    def test_custom_flag_name(self, flag: str) -> None:
        block = rewrite_breaks(parse_source("break;"), flag_name=flag)
        assert f"{flag} = true;" in render_node(block.stmts[0])
