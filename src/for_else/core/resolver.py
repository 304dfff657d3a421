"""
Boundary resolver for loop-else headers.

A loop-else invocation reads

    ['label:] pattern in <driver> { body } else { else-body }     (for_!)
    ['label:] <driver> { body } else { else-body }                (while_!)

The driver is an arbitrary expression and may itself contain brace groups
(block expressions, struct literals inside parentheses, closures), so the
end of the driver cannot be found by looking for the first `{`. Instead
the driver is accumulated one token tree at a time; whenever the remainder
starts with a brace group, forked cursors check whether the remainder
parses as `Block else Block`. The first (leftmost) position where it does
is the split point, and it is never revised.
"""

from __future__ import annotations

import logging

from for_else.core.errors import (
    ExpansionError,
    InvalidBody,
    InvalidElseBlock,
    MalformedLoopHeader,
    Span,
    SyntaxParseError,
)
from for_else.core.syntax.cursor import TokenCursor
from for_else.core.syntax.nodes import Block, LoopKind, LoopSpec
from for_else.core.syntax.parser import parse_block
from for_else.core.syntax.tokenizer import (
    Delimiter,
    Group,
    TokenRun,
    TokenTree,
    is_group,
    is_ident,
    run_span,
)

logger = logging.getLogger(__name__)

_EMPTY_DRIVER = {
    LoopKind.FOR: "expected expression after 'in'",
    LoopKind.WHILE: "expected condition expression",
}
_MISSING_SUFFIX = "malformed loop header: expected `{ ... } else { ... }` after the loop driver"


def _suffix_is_body_else(cur: TokenCursor) -> bool:
    """Whether `{ block } else { block }` starts at the cursor. Never moves `cur`."""
    attempt = cur.fork()
    try:
        parse_block(attempt)
        if not (attempt.peek_ident("else") and attempt.peek_group(Delimiter.BRACE, 1)):
            return False
        attempt.advance()  # else
        parse_block(attempt)
    except SyntaxParseError:
        return False
    return True


def scan_driver(cur: TokenCursor) -> TokenRun | None:
    """Consume the driver expression from `cur`.

    On success the cursor is left on the body block and the accumulated
    driver tokens are returned (possibly empty). Returns None if the input
    ran out before a valid split was found.
    """
    accumulated: list[TokenTree] = []
    while not cur.is_empty():
        if cur.peek_group(Delimiter.BRACE) and _suffix_is_body_else(cur):
            return tuple(accumulated)
        accumulated.append(cur.advance())
    return None


def find_split_point(tokens: TokenRun) -> int | None:
    """Index of the leftmost split between driver and `{ body } else { .. }`.

    Returns None if no split exists. Deterministic for a given run.
    """
    cur = TokenCursor(tokens)
    if scan_driver(cur) is None:
        return None
    return cur.pos


def parse_loop_header(
    tokens: TokenRun,
    kind: LoopKind,
    span: Span | None = None,
) -> LoopSpec:
    """Resolve a loop-else invocation's tokens into a LoopSpec.

    Args:
        tokens: Token trees inside the macro delimiters.
        kind: LoopKind.FOR or LoopKind.WHILE.
        span: Span of the whole invocation input, for diagnostics.

    Raises:
        MalformedLoopHeader: No valid split, empty driver, missing `in`, or
            trailing tokens after the else block.
        InvalidBody: The body block isolated by the split does not parse.
        InvalidElseBlock: The else block isolated by the split does not parse.
    """
    if kind not in _EMPTY_DRIVER:
        raise ValueError(f"Loop-else is not defined for `{kind}` loops")

    span = span or run_span(tokens) or Span(0, 0)
    cur = TokenCursor(tokens, end_pos=span.end)

    label = None
    if cur.peek_label():
        label = cur.advance().value  # type: ignore[union-attr]
        cur.advance()  # ':'

    binding = None
    if kind == LoopKind.FOR:
        binding = cur.take_until(lambda t: is_ident(t, "in"))
        if cur.is_empty():
            raise MalformedLoopHeader("expected `in` after loop pattern", span=span)
        if not binding:
            raise MalformedLoopHeader("expected pattern before `in`", span=cur.span())
        cur.advance()  # in

    scan_start = cur.pos
    scanned = run_span(cur.rest()) or Span(span.end, span.end)
    driver = scan_driver(cur)

    if driver is None:
        raise _diagnose_missing_split(tokens[scan_start:], scanned)
    if not driver:
        raise MalformedLoopHeader(_EMPTY_DRIVER[kind], span=scanned)

    logger.debug(
        "Resolved %s header: driver is %d token trees, split at index %d",
        kind,
        len(driver),
        cur.pos,
    )

    body = _isolate_block(cur, InvalidBody, "loop body")
    cur.expect_ident("else")
    else_block = _isolate_block(cur, InvalidElseBlock, "else block")

    if not cur.is_empty():
        raise MalformedLoopHeader("unexpected tokens after else block", span=cur.span())

    return LoopSpec(
        kind=kind,
        label=label,
        binding=binding,
        driver=driver,
        body=body,
        else_block=else_block,
        span=span,
    )


def _isolate_block(cur: TokenCursor, error_type: type, what: str) -> Block:
    try:
        return parse_block(cur)
    except SyntaxParseError as e:
        raise error_type(f"invalid {what}: {e.message}", span=e.span) from e


def _diagnose_missing_split(rest: TokenRun, scanned: Span) -> ExpansionError:
    """Explain why no split was found without choosing a different one.

    If the run ends in something shaped like `{ .. } else { .. }`, the
    problem is inside one of those blocks; report the first one that fails.
    """
    for i in range(len(rest) - 3, -1, -1):
        body, keyword, other = rest[i], rest[i + 1], rest[i + 2]
        if is_group(body, Delimiter.BRACE) and is_ident(keyword, "else") and is_group(
            other, Delimiter.BRACE
        ):
            for group, error_type, what in (
                (body, InvalidBody, "loop body"),
                (other, InvalidElseBlock, "else block"),
            ):
                assert isinstance(group, Group)
                try:
                    parse_block(TokenCursor((group,)))
                except SyntaxParseError as e:
                    return error_type(f"invalid {what}: {e.message}", span=e.span)
            break
    return MalformedLoopHeader(_MISSING_SUFFIX, span=scanned)
