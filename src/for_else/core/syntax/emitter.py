"""
Render token runs and statement trees back to Rust source.

Token runs are joined with deterministic spacing: spaces are dropped only
where Rust does not need them (around `.`, `::` and ranges, before `,`,
`;` and `?`, between a callee and its argument group), so the output always
lexes back to the same tokens. Statement trees are pretty-printed one
statement per line.
"""

from __future__ import annotations

from for_else.core.syntax.nodes import (
    Block,
    BlockExpr,
    Break,
    IfExpr,
    LetElse,
    LoopExpr,
    LoopKind,
    MatchExpr,
    Node,
    Opaque,
)
from for_else.core.syntax.tokenizer import (
    Delimiter,
    Group,
    Token,
    TokenKind,
    TokenRun,
    TokenTree,
)

_NO_SPACE_BEFORE = {",", ";", "?", ".", "::", "..", "..=", ":"}
_NO_SPACE_AFTER = {".", "::", "..", "..=", "#", "$"}


def render_tokens(run: TokenRun) -> str:
    """Render a run of token trees on a single line."""
    parts: list[str] = []
    prev: TokenTree | None = None
    for tree in run:
        text = _render_tree(tree)
        if prev is not None and _needs_space(prev, tree):
            parts.append(" ")
        parts.append(text)
        prev = tree
    return "".join(parts)


def _render_tree(tree: TokenTree) -> str:
    if isinstance(tree, Token):
        return tree.value
    inner = render_tokens(tree.children)
    if tree.delimiter == Delimiter.BRACE and inner:
        return f"{{ {inner} }}"
    return f"{tree.delimiter.open}{inner}{tree.delimiter.close}"


def _needs_space(prev: TokenTree, cur: TokenTree) -> bool:
    if _is_punct(prev) and _is_punct(cur):
        # adjacent punctuation could lex as a different operator
        return cur.value not in (",", ";")  # type: ignore[union-attr]
    if _is_punct(cur) and cur.value in _NO_SPACE_BEFORE:  # type: ignore[union-attr]
        return False
    if isinstance(prev, Token) and prev.kind == TokenKind.PUNCT and prev.value in _NO_SPACE_AFTER:
        return False
    if isinstance(cur, Group) and cur.delimiter != Delimiter.BRACE:
        # call, index or macro arguments attach to what precedes them
        if isinstance(prev, Group):
            return False
        if isinstance(prev, Token) and (
            prev.kind == TokenKind.IDENT and not _is_keyword(prev.value)
            or prev.kind == TokenKind.PUNCT and prev.value in ("!", ">")
        ):
            return False
    if _is_punct(cur) and cur.value == "!" and isinstance(prev, Token):  # type: ignore[union-attr]
        # macro bang: `println!`
        return prev.kind != TokenKind.IDENT or _is_keyword(prev.value)
    return True


def _is_punct(tree: TokenTree) -> bool:
    return isinstance(tree, Token) and tree.kind == TokenKind.PUNCT


_KEYWORDS = {
    "as", "break", "const", "continue", "else", "for", "if", "in", "let", "loop",
    "match", "move", "mut", "ref", "return", "unsafe", "while",
}


def _is_keyword(word: str) -> bool:
    return word in _KEYWORDS


# -- Statement trees --


def render_block(block: Block, indent: int = 0, width: int = 4) -> str:
    """Render `{ ... }` with statements on their own lines.

    The opening brace is not indented; the closing brace is indented to
    `indent` levels.
    """
    if not block.stmts:
        return "{}"
    pad = " " * (width * (indent + 1))
    lines = ["{"]
    for stmt in block.stmts:
        lines.append(pad + render_node(stmt, indent + 1, width))
    lines.append(" " * (width * indent) + "}")
    return "\n".join(lines)


def render_node(node: Node, indent: int = 0, width: int = 4) -> str:
    """Render one statement-level node, including its trailing `;`."""
    text = _render_node_body(node, indent, width)
    if getattr(node, "semi", False):
        text += ";"
    return text


def _render_node_body(node: Node, indent: int, width: int) -> str:
    if isinstance(node, Opaque):
        return render_tokens(node.tokens)

    if isinstance(node, Break):
        parts = ["break"]
        if node.label:
            parts.append(node.label)
        if node.value:
            parts.append(render_tokens(node.value))
        return " ".join(parts)

    if isinstance(node, BlockExpr):
        prefix = ""
        if node.label:
            prefix = f"{node.label}: "
        if node.unsafe:
            prefix += "unsafe "
        return prefix + render_block(node.block, indent, width)

    if isinstance(node, IfExpr):
        return _render_if(node, indent, width)

    if isinstance(node, LetElse):
        return f"{render_tokens(node.tokens)} else {render_block(node.else_block, indent, width)}"

    if isinstance(node, MatchExpr):
        pad = " " * (width * (indent + 1))
        lines = [f"match {render_tokens(node.scrutinee)} {{"]
        for arm in node.arms:
            body = _render_node_body(arm.body, indent + 1, width)
            comma = "," if arm.comma else ""
            lines.append(f"{pad}{render_tokens(arm.pattern)} => {body}{comma}")
        lines.append(" " * (width * indent) + "}")
        return "\n".join(lines)

    if isinstance(node, LoopExpr):
        prefix = f"{node.label}: " if node.label else ""
        body = render_block(node.body, indent, width)
        if node.kind == LoopKind.LOOP:
            return f"{prefix}loop {body}"
        if node.kind == LoopKind.WHILE:
            return f"{prefix}while {render_tokens(node.header)} {body}"
        assert node.pattern is not None
        return f"{prefix}for {render_tokens(node.pattern)} in {render_tokens(node.header)} {body}"

    raise TypeError(f"Unknown node type: {type(node).__name__}")


def _render_if(node: IfExpr, indent: int, width: int) -> str:
    text = f"if {render_tokens(node.condition)} {render_block(node.then_block, indent, width)}"
    if isinstance(node.else_branch, IfExpr):
        text += " else " + _render_if(node.else_branch, indent, width)
    elif isinstance(node.else_branch, Block):
        text += " else " + render_block(node.else_branch, indent, width)
    return text
