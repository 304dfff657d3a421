"""
Minimal Rust syntax support for loop-else expansion.

Tokenizer, cursor, statement parser, tree nodes, and emitter. Only the
shapes that matter to `break` classification are parsed; everything else
is carried through as opaque token runs.

Usage:
    from for_else.core.syntax import parse_source, render_block

    block = parse_source("if x { break; } y += 1;")
    print(render_block(block))
"""

from for_else.core.syntax.emitter import render_block, render_node, render_tokens
from for_else.core.syntax.parser import parse_block, parse_source, parse_statements
from for_else.core.syntax.tokenizer import tokenize

__all__ = [
    "parse_block",
    "parse_source",
    "parse_statements",
    "render_block",
    "render_node",
    "render_tokens",
    "tokenize",
]
