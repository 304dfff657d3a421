"""
Statement parser for loop bodies.

This is not a Rust parser. It recognises exactly the shapes a `break` can
travel through to reach an enclosing loop and treats every other statement
as an opaque token run:

    block       → "{" stmt* "}"
    stmt        → attribute | item | brace_macro | block_like [";"] | break [";"]
                | let_else [";"] | opaque [";"]
    let_else    → "let" opaque "else" block
    block_like  → [label ":"] ( block | "loop" block | "while" head block
                                | "for" pattern "in" head block )
                | "unsafe" block | if | match
    if          → "if" head block ["else" (if | block)]
    match       → "match" head "{" (pattern "=>" arm_body [","])* "}"
    arm_body    → break | block_like | opaque-up-to-","
    break       → "break" [label] opaque-up-to-terminator

A loop/if/match `head` runs up to the first top-level brace group that
follows a token ending an expression. Brace groups in operand position
(`while { ready() } { .. }`, `if x == { y } { .. }`) and struct patterns in
`let` positions stay part of the head.
"""

from __future__ import annotations

from for_else.core.syntax.cursor import TokenCursor
from for_else.core.syntax.nodes import (
    Block,
    BlockExpr,
    Break,
    IfExpr,
    LetElse,
    LoopExpr,
    LoopKind,
    MatchArm,
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
    is_group,
    is_ident,
    is_punct,
    tokenize,
)

_LOOP_KEYWORDS = {"loop", "while", "for"}
_ITEM_KEYWORDS = {
    "fn", "struct", "enum", "impl", "trait", "mod", "use", "type", "static", "extern",
    "macro_rules",
}
# Identifiers after which a brace group is an operand, not a body
_OPERAND_KEYWORDS = {
    "as", "async", "box", "break", "dyn", "else", "for", "if", "impl", "in", "let",
    "loop", "match", "move", "mut", "ref", "return", "unsafe", "while", "yield",
}


def parse_block(cur: TokenCursor) -> Block:
    """Parse the brace group at the cursor as a block."""
    group = cur.expect_group(Delimiter.BRACE)
    return parse_statements(group.children, end_pos=group.end - 1)


def parse_statements(tokens: TokenRun, end_pos: int | None = None) -> Block:
    """Parse a run of token trees as the contents of a block."""
    cur = TokenCursor(tokens, end_pos=end_pos)
    stmts: list[Node] = []
    while not cur.is_empty():
        stmts.append(_parse_statement(cur))
    return Block(stmts=tuple(stmts))


def parse_source(source: str) -> Block:
    """Tokenize and parse source text as a statement list."""
    return parse_statements(tokenize(source), end_pos=len(source))


# -- Statements --


def _parse_statement(cur: TokenCursor) -> Node:
    start = cur.pos

    if cur.peek_punct(";"):
        cur.advance()
        return Opaque(tokens=(), semi=True)

    if cur.peek_punct("#"):
        return _parse_attribute(cur)

    if cur.peek_ident("else"):
        raise cur.error("Unexpected `else` without a preceding `if`")

    if _is_item_start(cur):
        return _parse_item(cur)

    if cur.peek_ident() and cur.peek_punct("!", 1) and cur.peek_group(Delimiter.BRACE, 2):
        tokens = (cur.advance(), cur.advance(), cur.advance())
        return Opaque(tokens=tokens, semi=bool(cur.match_punct(";")))

    if cur.peek_ident("break"):
        brk = _parse_break(cur, terminator=";")
        return brk.model_copy(update={"semi": bool(cur.match_punct(";"))})

    if cur.peek_ident("let"):
        return _parse_let(cur)

    if _starts_block_like(cur):
        node = _parse_block_like(cur)
        if not _continues_expression(cur):
            return node.model_copy(update={"semi": bool(cur.match_punct(";"))})
        # `match x { .. }.len();` and friends are ordinary expressions
        cur.pos = start

    tokens = cur.take_until(lambda t: is_punct(t, ";"))
    return Opaque(tokens=tokens, semi=bool(cur.match_punct(";")))


def _parse_let(cur: TokenCursor) -> LetElse | Opaque:
    """
    A `let` statement, opaque unless it ends in `else { .. }`.

    An initializer ending in `}` cannot take a let-else block, so in
    `let x = if c { a } else { b };` the trailing `else` belongs to the `if`.
    """
    tokens = cur.take_until(lambda t: is_punct(t, ";"))
    semi = bool(cur.match_punct(";"))
    if (
        len(tokens) >= 4
        and is_group(tokens[-1], Delimiter.BRACE)
        and is_ident(tokens[-2], "else")
        and not is_group(tokens[-3], Delimiter.BRACE)
    ):
        group = tokens[-1]
        else_block = parse_statements(group.children, end_pos=group.end - 1)  # type: ignore[union-attr]
        return LetElse(tokens=tokens[:-2], else_block=else_block, semi=semi)
    return Opaque(tokens=tokens, semi=semi)


def _parse_attribute(cur: TokenCursor) -> Opaque:
    """`#[..]` or `#![..]` as a statement of its own."""
    tokens: list[TokenTree] = [cur.expect_punct("#")]
    bang = cur.match_punct("!")
    if bang:
        tokens.append(bang)
    tokens.append(cur.expect_group(Delimiter.BRACKET))
    return Opaque(tokens=tuple(tokens))


def _is_item_start(cur: TokenCursor) -> bool:
    tree = cur.peek()
    if not is_ident(tree):
        return False
    word = tree.value  # type: ignore[union-attr]
    if word == "pub" or word in _ITEM_KEYWORDS:
        return True
    if word == "const":
        return not cur.peek_group(Delimiter.BRACE, 1)
    if word in ("unsafe", "async"):
        nxt = cur.peek(1)
        return is_ident(nxt) and nxt.value in _ITEM_KEYWORDS | {"const"}  # type: ignore[union-attr]
    return False


def _parse_item(cur: TokenCursor) -> Opaque:
    """Items end at `;` or after their first top-level brace group."""
    tokens: list[TokenTree] = []
    while not cur.is_empty():
        tree = cur.advance()
        tokens.append(tree)
        if is_punct(tree, ";"):
            return Opaque(tokens=tuple(tokens[:-1]), semi=True)
        if is_group(tree, Delimiter.BRACE):
            break
    return Opaque(tokens=tuple(tokens), semi=bool(cur.match_punct(";")))


def _parse_break(cur: TokenCursor, terminator: str) -> Break:
    keyword = cur.expect_ident("break")
    label = None
    if cur.peek_lifetime():
        label = cur.advance().value  # type: ignore[union-attr]
    value = cur.take_until(lambda t: is_punct(t, terminator))
    return Break(label=label, value=value, pos=keyword.pos)


def _starts_block_like(cur: TokenCursor) -> bool:
    if cur.peek_group(Delimiter.BRACE) or cur.peek_label():
        return True
    if cur.peek_ident("unsafe"):
        return cur.peek_group(Delimiter.BRACE, 1)
    tree = cur.peek()
    return is_ident(tree) and tree.value in ("if", "match", *_LOOP_KEYWORDS)  # type: ignore[union-attr]


def _continues_expression(cur: TokenCursor) -> bool:
    return cur.peek_punct(".") or cur.peek_punct("?")


def _parse_block_like(cur: TokenCursor) -> Node:
    label = None
    if cur.peek_label():
        label = cur.advance().value  # type: ignore[union-attr]
        cur.advance()  # ':'
        tree = cur.peek()
        if not (
            cur.peek_group(Delimiter.BRACE)
            or (is_ident(tree) and tree.value in _LOOP_KEYWORDS)  # type: ignore[union-attr]
        ):
            raise cur.error(f"Expected a loop or block after label {label}")

    if cur.peek_group(Delimiter.BRACE):
        return BlockExpr(block=parse_block(cur), label=label)

    if cur.match_ident("unsafe"):
        return BlockExpr(block=parse_block(cur), unsafe=True)

    if cur.peek_ident("if"):
        return _parse_if(cur)

    if cur.peek_ident("match"):
        return _parse_match(cur)

    if cur.match_ident("loop"):
        return LoopExpr(kind=LoopKind.LOOP, label=label, body=parse_block(cur))

    if cur.match_ident("while"):
        header = _parse_head(cur, "loop condition")
        return LoopExpr(kind=LoopKind.WHILE, label=label, header=header, body=parse_block(cur))

    cur.expect_ident("for")
    pattern = cur.take_until(lambda t: is_ident(t, "in"))
    if cur.is_empty():
        raise cur.error("Expected `in` in `for` loop")
    if not pattern:
        raise cur.error("Expected a pattern before `in`")
    cur.advance()  # in
    header = _parse_head(cur, "iterator expression")
    return LoopExpr(
        kind=LoopKind.FOR,
        label=label,
        pattern=pattern,
        header=header,
        body=parse_block(cur),
    )


def _parse_if(cur: TokenCursor) -> IfExpr:
    cur.expect_ident("if")
    condition = _parse_head(cur, "condition")
    then_block = parse_block(cur)

    else_branch: Block | IfExpr | None = None
    if cur.match_ident("else"):
        if cur.peek_ident("if"):
            else_branch = _parse_if(cur)
        elif cur.peek_group(Delimiter.BRACE):
            else_branch = parse_block(cur)
        else:
            raise cur.error("Expected a block or `if` after `else`")

    return IfExpr(condition=condition, then_block=then_block, else_branch=else_branch)


def _parse_match(cur: TokenCursor) -> MatchExpr:
    cur.expect_ident("match")
    scrutinee = _parse_head(cur, "match scrutinee")
    group = cur.expect_group(Delimiter.BRACE)
    return MatchExpr(scrutinee=scrutinee, arms=_parse_arms(group))


def _parse_arms(group: Group) -> tuple[MatchArm, ...]:
    cur = TokenCursor(group.children, end_pos=group.end - 1)
    arms: list[MatchArm] = []
    while not cur.is_empty():
        pattern = cur.take_until(lambda t: is_punct(t, "=>"))
        if cur.is_empty():
            raise cur.error("Expected `=>` in match arm")
        if not pattern:
            raise cur.error("Expected a pattern before `=>`")
        cur.advance()  # =>
        body = _parse_arm_body(cur)
        arms.append(MatchArm(pattern=pattern, body=body, comma=bool(cur.match_punct(","))))
    return tuple(arms)


def _parse_arm_body(cur: TokenCursor) -> Node:
    start = cur.pos

    if cur.peek_ident("break"):
        return _parse_break(cur, terminator=",")

    if _starts_block_like(cur):
        node = _parse_block_like(cur)
        if not _continues_expression(cur):
            return node
        cur.pos = start

    tokens = cur.take_until(lambda t: is_punct(t, ","))
    if not tokens:
        raise cur.error("Expected an expression after `=>`")
    return Opaque(tokens=tokens)


def _parse_head(cur: TokenCursor, what: str) -> TokenRun:
    """Tokens of a loop/if/match head, stopping before the body block."""
    head: list[TokenTree] = []
    in_let_pattern = False
    while not cur.is_empty():
        tree = cur.peek()
        if is_group(tree, Delimiter.BRACE) and head and not in_let_pattern:
            if _ends_expression(head[-1]):
                break
        if is_ident(tree, "let"):
            in_let_pattern = True
        elif in_let_pattern and is_punct(tree, "="):
            in_let_pattern = False
        head.append(cur.advance())

    if not head:
        raise cur.error(f"Expected {what}")
    if not cur.peek_group(Delimiter.BRACE):
        raise cur.error(f"Expected a block after {what}")
    return tuple(head)


def _ends_expression(tree: TokenTree) -> bool:
    if isinstance(tree, Group):
        return True
    assert isinstance(tree, Token)
    if tree.kind == TokenKind.IDENT:
        return tree.value not in _OPERAND_KEYWORDS
    if tree.kind == TokenKind.PUNCT:
        return tree.value == "?"
    return True
