"""Tests for loop-else expansion of whole source texts."""

from pathlib import Path

import pytest

from for_else.core.config import ExpanderConfig
from for_else.core.errors import MalformedLoopHeader, TokenizeError
from for_else.core.expander import LoopElseExpander
from for_else.core.syntax import tokenize
from for_else.core.syntax.nodes import LoopKind

FLAG = "_for_else_break_occurred"


class TestExpandInvocation:
    def test_emitted_shape(self, expander: LoopElseExpander) -> None:
        out = expander.expand_text("for_! { x in v { break; } else { f(); } }")
        assert out == (
            "{\n"
            "    #[allow(unused_mut)]\n"
            f"    let mut {FLAG} = false;\n"
            "    for x in v {\n"
            "        {\n"
            f"            {FLAG} = true;\n"
            "            break;\n"
            "        };\n"
            "    }\n"
            f"    if !{FLAG} {{\n"
            "        f();\n"
            "    }\n"
            "}"
        )

    def test_expand_invocation_tokens(self, expander: LoopElseExpander) -> None:
        out = expander.expand_invocation(LoopKind.WHILE, tokenize("c { } else { }"))
        assert out.startswith("{\n    #[allow(unused_mut)]\n")
        assert "    while c {}\n" in out
        assert out.endswith(f"    if !{FLAG} {{}}\n}}")

    def test_label_is_kept(self, expander: LoopElseExpander) -> None:
        out = expander.expand_text("for_! { 'outer: x in v { break 'outer; } else { } }")
        assert "    'outer: for x in v {\n" in out
        assert "break 'outer;" in out

    def test_break_value_and_while(self, expander: LoopElseExpander) -> None:
        out = expander.expand_text("while_! { n > 0 { n -= 1; } else { g(); } }")
        assert "    while n > 0 {\n        n -= 1;\n    }\n" in out

    def test_driver_with_brace_group_is_parenthesized(self, expander: LoopElseExpander) -> None:
        out = expander.expand_text("for_! { x in S { a: 1 }.items() { } else { } }")
        assert "for x in (S { a: 1 }.items()) {}" in out

    def test_let_driver_is_not_parenthesized(self, expander: LoopElseExpander) -> None:
        out = expander.expand_text("while_! { let S { a } = next() { break; } else { } }")
        assert "    while let S { a } = next() {\n" in out

    def test_let_else_break_sets_flag(self, expander: LoopElseExpander) -> None:
        out = expander.expand_text(
            "for_! { x in v { let 0 = x % 2 else { break; }; } else { f(); } }"
        )
        assert (
            "        let 0 = x % 2 else {\n"
            "            {\n"
            f"                {FLAG} = true;\n"
            "                break;\n"
            "            };\n"
            "        };\n"
        ) in out

    def test_block_driver_is_kept_as_is(self, expander: LoopElseExpander) -> None:
        out = expander.expand_text("while_! { { ready() } { break; } else { } }")
        assert "while { ready() } {\n" in out

    def test_custom_config(self) -> None:
        config = ExpanderConfig(flag_name="done", for_macro="each", while_macro="until", indent=2)
        out = LoopElseExpander(config).expand_text("each! { x in v { } else { } }")
        assert out.startswith("{\n  #[allow(unused_mut)]\n  let mut done = false;\n")
        assert "for_!" not in out


class TestExpandText:
    def test_text_without_invocations_is_unchanged(self, expander: LoopElseExpander) -> None:
        source = "// for_! { }\nfn f() { /* keep   this */ let s = \"for_! {\"; }\n"
        assert expander.expand_text(source) == source

    def test_surrounding_text_is_preserved(self, expander: LoopElseExpander) -> None:
        source = "fn main() {\n    let v = 1;  // note\n    while_! { c { break; } else { } }\n}\n"
        out = expander.expand_text(source)
        assert out.startswith("fn main() {\n    let v = 1;  // note\n    {\n")
        assert out.endswith("\n    }\n}\n")

    def test_continuation_lines_follow_invocation_indent(
        self, expander: LoopElseExpander
    ) -> None:
        source = "fn main() {\n    while_! { c { break; } else { } }\n}"
        out = expander.expand_text(source)
        assert out == (
            "fn main() {\n"
            "    {\n"
            "        #[allow(unused_mut)]\n"
            f"        let mut {FLAG} = false;\n"
            "        while c {\n"
            "            {\n"
            f"                {FLAG} = true;\n"
            "                break;\n"
            "            };\n"
            "        }\n"
            f"        if !{FLAG} {{}}\n"
            "    }\n"
            "}"
        )

    def test_multiline_literal_is_not_reindented(self, expander: LoopElseExpander) -> None:
        source = 'fn f() {\n    for_! { x in v { s("a\nb"); } else { } }\n}'
        out = expander.expand_text(source)
        assert 's("a\nb");' in out
        assert "\n    #[allow(unused_mut)]\n" in out

    def test_path_prefix_is_replaced(self, expander: LoopElseExpander) -> None:
        out = expander.expand_text("loops::for_! { x in v { } else { } }")
        assert out.startswith("{\n")
        assert "loops" not in out

    def test_paren_delimiters(self, expander: LoopElseExpander) -> None:
        out = expander.expand_text("let r = for_!(x in v { } else { });")
        assert out.startswith("let r = {\n")
        assert out.endswith("\n};")

    def test_macro_name_without_bang_is_ignored(self, expander: LoopElseExpander) -> None:
        source = "for_(x); let while_ = 1;"
        assert expander.expand_text(source) == source

    def test_output_has_no_invocations_left(self, expander: LoopElseExpander) -> None:
        source = "for_! { x in v { while_! { c { break; } else { } } } else { } }"
        out = expander.expand_text(source)
        assert expander.find_invocations(out) == []
        assert expander.expand_text(out) == out

    def test_find_invocations_returns_outermost(self, expander: LoopElseExpander) -> None:
        source = (
            "for_! { x in v { while_! { c { } else { } } } else { } }\n"
            "fn g() { while_! { c { } else { } } }"
        )
        invocations = expander.find_invocations(source)
        assert [inv.name for inv in invocations] == ["for_", "while_"]
        assert [inv.kind for inv in invocations] == [LoopKind.FOR, LoopKind.WHILE]


class TestNesting:
    def test_nested_invocations_get_distinct_flags(self, expander: LoopElseExpander) -> None:
        source = "for_! { i in 0..3 { while_! { j < 2 { break; } else { g(); } } } else { h(); } }"
        out = expander.expand_text(source)
        assert f"let mut {FLAG} = false;" in out
        assert f"let mut {FLAG}_1 = false;" in out
        assert f"{FLAG}_1 = true;" in out
        # the inner break belongs to the inner loop
        assert f"{FLAG} = true;" not in out

    def test_outer_label_break_sets_outer_flag(self, expander: LoopElseExpander) -> None:
        source = (
            "for_! { 'outer: i in 0..3 {\n"
            "    for_! { j in 0..3 { if j == 1 { break 'outer; } } else { } }\n"
            "} else { } }"
        )
        out = expander.expand_text(source)
        assert f"{FLAG} = true;" in out
        assert f"{FLAG}_1 = true;" not in out

    def test_flag_name_per_depth(self, expander: LoopElseExpander) -> None:
        assert expander.flag_name(0) == FLAG
        assert expander.flag_name(2) == f"{FLAG}_2"


class TestInspect:
    def test_reports(self, expander: LoopElseExpander) -> None:
        source = (
            "for_! {\n"
            "    'outer: i in 0..3 {\n"
            "        for_! { j in 0..3 { if j == 1 { break 'outer; } } else { } }\n"
            "    } else { }\n"
            "}"
        )
        outer, inner = expander.inspect_text(source)

        assert (outer.line, outer.column) == (1, 1)
        assert outer.label == "'outer"
        assert outer.driver == "0..3"
        assert outer.depth == 0
        assert (outer.breaks_found, outer.breaks_rewritten) == (1, 1)

        assert (inner.line, inner.column) == (3, 9)
        assert inner.label is None
        assert inner.depth == 1
        assert (inner.breaks_found, inner.breaks_rewritten) == (1, 0)

    def test_no_invocations(self, expander: LoopElseExpander) -> None:
        assert expander.inspect_text("fn main() {}") == []


class TestErrors:
    def test_error_context_points_at_driver(self, expander: LoopElseExpander) -> None:
        source = "fn main() {\n    for_! { x in v { } }\n}"
        with pytest.raises(MalformedLoopHeader) as exc_info:
            expander.expand_text(source)

        context = exc_info.value.context
        assert context is not None
        assert (context.line, context.column) == (2, 18)
        assert context.module == "for_"
        assert "<input>:2:18 in for_!" in str(exc_info.value)

    def test_error_in_changed_text_points_at_macro(self, expander: LoopElseExpander) -> None:
        source = "for_! { x in v { while_! { c { } else { } } } }"
        with pytest.raises(MalformedLoopHeader) as exc_info:
            expander.expand_text(source)
        assert exc_info.value.context.column == 1

    def test_tokenize_error_has_file_context(self, expander: LoopElseExpander) -> None:
        with pytest.raises(TokenizeError) as exc_info:
            expander.expand_text('for_! { x in v { "abc } else { } }', file=Path("a.rs"))
        assert exc_info.value.context.file == Path("a.rs")
        assert "a.rs:1:" in str(exc_info.value)


class TestExpandFile:
    def test_writes_output(self, expander: LoopElseExpander, rust_file, tmp_path: Path) -> None:
        source = rust_file("fn main() { while_! { c { } else { } } }\n")
        output = tmp_path / "out" / "main.rs"

        result = expander.expand_file(source, output)

        assert output.read_text() == result
        assert "let mut" in result

    def test_returns_without_writing(self, expander: LoopElseExpander, rust_file) -> None:
        source = rust_file("fn main() {}\n")
        assert expander.expand_file(source) == "fn main() {}\n"

    def test_missing_file(self, expander: LoopElseExpander, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError, match="Input file not found"):
            expander.expand_file(tmp_path / "missing.rs")
