"""
Statement tree for loop bodies.

The tree is a closed set of tagged variants: the shapes that can carry a
`break` through to an enclosing loop (blocks, conditionals, let-else blocks,
match arms, nested loops) plus `Break` itself. Everything else is an
`Opaque` run of token trees that is carried through untouched.

Every statement-level node records whether it was followed by `;`.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from for_else.core.errors import Span
from for_else.core.syntax.tokenizer import Group, Token, TokenRun  # noqa: F401


class LoopKind(StrEnum):
    """Native loop keywords."""

    FOR = "for"
    WHILE = "while"
    LOOP = "loop"


_NODE_CONFIG = ConfigDict(frozen=True, arbitrary_types_allowed=True)


class Opaque(BaseModel):
    """A statement or expression the parser does not look inside."""

    tokens: TokenRun = Field(description="Original token trees")
    semi: bool = False

    model_config = _NODE_CONFIG


class Break(BaseModel):
    """`break`, `break 'label`, `break value` or `break 'label value`."""

    label: str | None = Field(default=None, description="Target label, e.g. 'outer")
    value: TokenRun = Field(default=(), description="Break value tokens, if any")
    semi: bool = False
    pos: int = Field(default=0, description="Offset of the `break` keyword")

    model_config = _NODE_CONFIG


class Block(BaseModel):
    """`{ stmt* }`"""

    stmts: tuple[Node, ...] = ()

    model_config = _NODE_CONFIG


class BlockExpr(BaseModel):
    """A block in statement or arm position: plain, `unsafe`, or labeled."""

    block: Block
    unsafe: bool = False
    label: str | None = None
    semi: bool = False

    model_config = _NODE_CONFIG


class IfExpr(BaseModel):
    """`if cond { .. } [else if .. | else { .. }]`"""

    condition: TokenRun
    then_block: Block
    else_branch: Block | IfExpr | None = None
    semi: bool = False

    model_config = _NODE_CONFIG


class LetElse(BaseModel):
    """`let pattern = value else { .. }`; the else block must diverge."""

    tokens: TokenRun = Field(description="Tokens from `let` up to the `else`")
    else_block: Block
    semi: bool = False

    model_config = _NODE_CONFIG


class MatchArm(BaseModel):
    """`pattern [if guard] => body [,]`"""

    pattern: TokenRun = Field(description="Pattern tokens including any guard")
    body: Node
    comma: bool = False

    model_config = _NODE_CONFIG


class MatchExpr(BaseModel):
    """`match scrutinee { arm* }`"""

    scrutinee: TokenRun
    arms: tuple[MatchArm, ...] = ()
    semi: bool = False

    model_config = _NODE_CONFIG


class LoopExpr(BaseModel):
    """
    A native loop.

    - for:   `['l:] for pattern in header { body }`
    - while: `['l:] while header { body }`
    - loop:  `['l:] loop { body }` (empty header)
    """

    kind: LoopKind
    label: str | None = None
    pattern: TokenRun | None = None
    header: TokenRun = ()
    body: Block
    semi: bool = False

    model_config = _NODE_CONFIG


Node = Opaque | Break | BlockExpr | IfExpr | LetElse | MatchExpr | LoopExpr


class LoopSpec(BaseModel):
    """
    A resolved loop-else invocation.

    `binding` is present for `for` loops only; `driver` is the iterable for
    `for` loops and the condition for `while` loops.
    """

    kind: LoopKind
    label: str | None = None
    binding: TokenRun | None = None
    driver: TokenRun
    body: Block
    else_block: Block
    span: Span | None = None

    model_config = _NODE_CONFIG


# Rebuild models for recursive forward references
Block.model_rebuild()
BlockExpr.model_rebuild()
IfExpr.model_rebuild()
LetElse.model_rebuild()
MatchArm.model_rebuild()
MatchExpr.model_rebuild()
LoopExpr.model_rebuild()
LoopSpec.model_rebuild()
