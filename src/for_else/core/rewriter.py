"""
Break rewriter for loop-else bodies.

Walks a parsed loop body and replaces every `break` that targets the
loop-else construct with

    { <flag> = true; break ['label] [value]; }

so that reaching the else check with the flag still false means no such
`break` ran. Breaks that target other loops are left exactly as they are.

Classification, given the current ScopeContext:

- `break 'label`: rewritten iff 'label is the construct's own label.
- `break`:        rewritten iff the walk has not entered a nested loop.

Only the shapes in the node set are descended into. Opaque runs
(closures, `let` initialisers, calls, macro invocations) never are: a
break inside a closure cannot target this loop, and anything else the
parser did not recognise is left alone rather than guessed at.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from for_else.core.errors import ForElseError, RewriteInvariantError
from for_else.core.syntax.emitter import render_tokens
from for_else.core.syntax.nodes import (
    Block,
    BlockExpr,
    Break,
    IfExpr,
    LetElse,
    LoopExpr,
    MatchExpr,
    Node,
    Opaque,
)
from for_else.core.syntax.parser import parse_source

logger = logging.getLogger(__name__)

DEFAULT_FLAG_NAME = "_for_else_break_occurred"


@dataclass(frozen=True)
class ScopeContext:
    """Ownership of breaks at the current point of the walk."""

    is_own_construct: bool = True
    own_label: str | None = None

    def entering_loop(self, label: str | None) -> ScopeContext:
        """Context for the body of a nested loop.

        Unlabeled breaks now belong to the nested loop. A nested loop that
        re-uses the construct's label shadows it.
        """
        own_label = None if label is not None and label == self.own_label else self.own_label
        return ScopeContext(is_own_construct=False, own_label=own_label)

    def entering_block(self, label: str | None) -> ScopeContext:
        """Context for a block; a labeled block re-using the construct's label shadows it."""
        if label is None or label != self.own_label:
            return self
        return ScopeContext(is_own_construct=self.is_own_construct, own_label=None)


@dataclass(frozen=True)
class BreakSite:
    """A `break` found during the walk and what was done with it."""

    label: str | None
    pos: int
    rewritten: bool


class BreakRewriter:
    """
    Rewrites the breaks of one loop-else construct.

    One instance per construct; `sites` lists every break classified by
    the last call to `rewrite`, in source order.
    """

    def __init__(self, own_label: str | None = None, flag_name: str = DEFAULT_FLAG_NAME):
        self.own_label = own_label
        self.flag_name = flag_name
        self.sites: list[BreakSite] = []

    def rewrite(self, body: Block) -> Block:
        self.sites = []
        block = self._rewrite_block(body, ScopeContext(own_label=self.own_label))
        logger.debug(
            "Rewrote %d of %d break sites (label=%s)",
            sum(1 for site in self.sites if site.rewritten),
            len(self.sites),
            self.own_label,
        )
        return block

    def _rewrite_block(self, block: Block, ctx: ScopeContext) -> Block:
        stmts = tuple(self._rewrite_node(stmt, ctx) for stmt in block.stmts)
        if all(new is old for new, old in zip(stmts, block.stmts)):
            return block
        return block.model_copy(update={"stmts": stmts})

    def _rewrite_node(self, node: Node, ctx: ScopeContext) -> Node:
        if isinstance(node, Break):
            qualifies = self._qualifies(node, ctx)
            self.sites.append(BreakSite(label=node.label, pos=node.pos, rewritten=qualifies))
            if not qualifies:
                return node
            return self._replacement(node)

        if isinstance(node, BlockExpr):
            inner = ctx.entering_block(node.label)
            return _replace(node, block=self._rewrite_block(node.block, inner))

        if isinstance(node, IfExpr):
            return self._rewrite_if(node, ctx)

        if isinstance(node, LetElse):
            return _replace(node, else_block=self._rewrite_block(node.else_block, ctx))

        if isinstance(node, MatchExpr):
            arms = tuple(
                _replace(arm, body=self._rewrite_node(arm.body, ctx)) for arm in node.arms
            )
            if all(new is old for new, old in zip(arms, node.arms)):
                return node
            return node.model_copy(update={"arms": arms})

        if isinstance(node, LoopExpr):
            inner = ctx.entering_loop(node.label)
            return _replace(node, body=self._rewrite_block(node.body, inner))

        if isinstance(node, Opaque):
            return node

        raise TypeError(f"Unknown node type: {type(node).__name__}")

    def _rewrite_if(self, node: IfExpr, ctx: ScopeContext) -> IfExpr:
        then_block = self._rewrite_block(node.then_block, ctx)
        else_branch = node.else_branch
        if isinstance(else_branch, IfExpr):
            else_branch = self._rewrite_if(else_branch, ctx)
        elif isinstance(else_branch, Block):
            else_branch = self._rewrite_block(else_branch, ctx)
        return _replace(node, then_block=then_block, else_branch=else_branch)

    def _qualifies(self, node: Break, ctx: ScopeContext) -> bool:
        if node.label is not None:
            return node.label == ctx.own_label
        return ctx.is_own_construct

    def _replacement(self, node: Break) -> BlockExpr:
        parts = ["break"]
        if node.label:
            parts.append(node.label)
        if node.value:
            parts.append(render_tokens(node.value))
        source = f"{{ {self.flag_name} = true; {' '.join(parts)}; }}"

        try:
            parsed = parse_source(source)
        except ForElseError as e:
            raise RewriteInvariantError(
                f"internal error: break replacement failed to parse: {source!r}: {e.message}"
            ) from e

        if len(parsed.stmts) != 1 or not isinstance(parsed.stmts[0], BlockExpr):
            raise RewriteInvariantError(
                f"internal error: break replacement is not a single block: {source!r}"
            )
        return parsed.stmts[0].model_copy(update={"semi": node.semi})


def _replace(node, **changes):
    """model_copy that keeps `node` itself when nothing changed."""
    if all(getattr(node, key) is value for key, value in changes.items()):
        return node
    return node.model_copy(update=changes)


def rewrite_breaks(
    body: Block,
    own_label: str | None = None,
    flag_name: str = DEFAULT_FLAG_NAME,
) -> Block:
    """Instrument the breaks in `body` that target a loop-else construct.

    Args:
        body: Parsed loop body.
        own_label: The construct's label (e.g. "'outer"), if it has one.
        flag_name: Name of the completion flag variable.

    Returns:
        A new Block; statements that were not rewritten are the same objects.
    """
    return BreakRewriter(own_label, flag_name).rewrite(body)
