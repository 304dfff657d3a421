"""
Program tree for the reference interpreter.

Covers the statement and expression subset that loop-else bodies and
their expansions use:
- Bindings: let [mut], let-else, assignment, compound assignment
- Literals: integers, bool, char, string, arrays, vec![], tuples
- Operators: arithmetic, comparison, logic, bitwise, ranges, casts
- Control flow: blocks, if/else, match, loop/while/for, labels, break, continue
- Macros: println!/print!/eprintln!/eprint! (no-op), assert!, assert_eq!,
  assert_ne!, panic!, unreachable!
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

_PROGRAM_CONFIG = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Operators
# ---------------------------------------------------------------------------


class BinaryOp(StrEnum):
    """Binary operators."""

    # Arithmetic
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    MOD = "%"
    # Bitwise
    BIT_AND = "&"
    BIT_OR = "|"
    BIT_XOR = "^"
    SHL = "<<"
    SHR = ">>"
    # Comparison
    EQ = "=="
    NE = "!="
    LT = "<"
    GT = ">"
    LE = "<="
    GE = ">="
    # Logic
    AND = "&&"
    OR = "||"


class UnaryOp(StrEnum):
    """Unary operators."""

    NEG = "-"
    NOT = "!"
    REF = "&"
    DEREF = "*"


# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------


class WildcardPattern(BaseModel):
    """`_`"""

    model_config = _PROGRAM_CONFIG


class LiteralPattern(BaseModel):
    """`1`, `-1`, `'a'`, `"s"`, `true`"""

    value: Any

    model_config = _PROGRAM_CONFIG


class RangePattern(BaseModel):
    """`lo..=hi` or `lo..hi`"""

    low: Any
    high: Any
    inclusive: bool = True

    model_config = _PROGRAM_CONFIG


class BindingPattern(BaseModel):
    """`[mut] name [@ subpattern]`"""

    name: str
    mutable: bool = False
    subpattern: Pattern | None = None

    model_config = _PROGRAM_CONFIG


class TuplePattern(BaseModel):
    """`(p, q, ..)`"""

    items: tuple[Pattern, ...] = ()

    model_config = _PROGRAM_CONFIG


class OrPattern(BaseModel):
    """`p | q`"""

    alternatives: tuple[Pattern, ...]

    model_config = _PROGRAM_CONFIG


Pattern = WildcardPattern | LiteralPattern | RangePattern | BindingPattern | TuplePattern | OrPattern


# ---------------------------------------------------------------------------
# Expressions
# ---------------------------------------------------------------------------


class Literal(BaseModel):
    """Integer, bool, char, string or unit (None) literal."""

    value: Any = None

    model_config = _PROGRAM_CONFIG


class VarRef(BaseModel):
    """Reference to a binding."""

    name: str
    pos: int = 0

    model_config = _PROGRAM_CONFIG


class UnaryExpr(BaseModel):
    op: UnaryOp
    operand: Expr

    model_config = _PROGRAM_CONFIG


class BinaryExpr(BaseModel):
    op: BinaryOp
    left: Expr
    right: Expr

    model_config = _PROGRAM_CONFIG


class RangeExpr(BaseModel):
    """`a..b`, `a..=b`, `a..`"""

    start: Expr | None = None
    end: Expr | None = None
    inclusive: bool = False

    model_config = _PROGRAM_CONFIG


class CastExpr(BaseModel):
    """`expr as Type`"""

    operand: Expr
    type_name: str

    model_config = _PROGRAM_CONFIG


class ArrayExpr(BaseModel):
    """`[a, b, c]` or `vec![a, b, c]`"""

    items: tuple[Expr, ...] = ()

    model_config = _PROGRAM_CONFIG


class RepeatExpr(BaseModel):
    """`[value; count]`"""

    value: Expr
    count: Expr

    model_config = _PROGRAM_CONFIG


class TupleExpr(BaseModel):
    items: tuple[Expr, ...]

    model_config = _PROGRAM_CONFIG


class IndexExpr(BaseModel):
    target: Expr
    index: Expr

    model_config = _PROGRAM_CONFIG


class FieldExpr(BaseModel):
    """Tuple field access: `t.0`"""

    target: Expr
    index: int

    model_config = _PROGRAM_CONFIG


class MethodCall(BaseModel):
    target: Expr
    method: str
    args: tuple[Expr, ...] = ()

    model_config = _PROGRAM_CONFIG


class MacroCall(BaseModel):
    """`name!(args)`; args are parsed only for macros that use them."""

    name: str
    args: tuple[Expr, ...] = ()
    source: str = Field(default="", description="Argument text, for assertion messages")

    model_config = _PROGRAM_CONFIG


class BlockExpr(BaseModel):
    """`['label:] [unsafe] { stmt* [tail] }`"""

    stmts: tuple[Stmt, ...] = ()
    tail: Expr | None = None
    label: str | None = None

    model_config = _PROGRAM_CONFIG


class IfExpr(BaseModel):
    condition: Expr
    then_block: BlockExpr
    else_branch: BlockExpr | IfExpr | None = None

    model_config = _PROGRAM_CONFIG


class MatchArm(BaseModel):
    pattern: Pattern
    guard: Expr | None = None
    body: Expr

    model_config = _PROGRAM_CONFIG


class MatchExpr(BaseModel):
    scrutinee: Expr
    arms: tuple[MatchArm, ...]

    model_config = _PROGRAM_CONFIG


class LoopExpr(BaseModel):
    """`['label:] loop { .. }`"""

    body: BlockExpr
    label: str | None = None

    model_config = _PROGRAM_CONFIG


class WhileExpr(BaseModel):
    condition: Expr
    body: BlockExpr
    label: str | None = None

    model_config = _PROGRAM_CONFIG


class ForExpr(BaseModel):
    pattern: Pattern
    iterable: Expr
    body: BlockExpr
    label: str | None = None

    model_config = _PROGRAM_CONFIG


class BreakExpr(BaseModel):
    label: str | None = None
    value: Expr | None = None

    model_config = _PROGRAM_CONFIG


class ContinueExpr(BaseModel):
    label: str | None = None

    model_config = _PROGRAM_CONFIG


class AssignExpr(BaseModel):
    """`place = value` or `place op= value`"""

    target: Expr = Field(description="VarRef or IndexExpr")
    value: Expr
    op: BinaryOp | None = Field(default=None, description="Operator for compound assignment")

    model_config = _PROGRAM_CONFIG


Expr = (
    Literal
    | VarRef
    | UnaryExpr
    | BinaryExpr
    | RangeExpr
    | CastExpr
    | ArrayExpr
    | RepeatExpr
    | TupleExpr
    | IndexExpr
    | FieldExpr
    | MethodCall
    | MacroCall
    | BlockExpr
    | IfExpr
    | MatchExpr
    | LoopExpr
    | WhileExpr
    | ForExpr
    | BreakExpr
    | ContinueExpr
    | AssignExpr
)


# ---------------------------------------------------------------------------
# Statements
# ---------------------------------------------------------------------------


class LetStmt(BaseModel):
    """`let pattern [: Type] [= value] [else { .. }];`"""

    pattern: Pattern
    value: Expr | None = None
    else_block: BlockExpr | None = None

    model_config = _PROGRAM_CONFIG


class ExprStmt(BaseModel):
    expr: Expr
    semi: bool = False

    model_config = _PROGRAM_CONFIG


Stmt = LetStmt | ExprStmt


# Rebuild models for recursive forward references
for _model in (
    BindingPattern,
    TuplePattern,
    OrPattern,
    UnaryExpr,
    BinaryExpr,
    RangeExpr,
    CastExpr,
    ArrayExpr,
    RepeatExpr,
    TupleExpr,
    IndexExpr,
    FieldExpr,
    MethodCall,
    MacroCall,
    BlockExpr,
    IfExpr,
    MatchArm,
    MatchExpr,
    LoopExpr,
    WhileExpr,
    ForExpr,
    BreakExpr,
    AssignExpr,
    LetStmt,
    ExprStmt,
):
    _model.model_rebuild()
