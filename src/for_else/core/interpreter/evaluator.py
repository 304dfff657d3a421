"""
Evaluator for the interpreter subset.

A safe tree-walking interpreter over the program tree in `program.py`.
Only the closed set of node types is handled; there is no I/O and the
output macros are no-ops. Integers are unbounded, with Rust's truncating
division and sign-of-dividend remainder.

Control flow uses exceptions: `break` and `continue` raise signals that
the loop (or labeled block) they target catches.
"""

from __future__ import annotations

import copy
import itertools
import math
from dataclasses import dataclass
from typing import Any

from for_else.core.errors import EvaluationError
from for_else.core.interpreter.program import (
    ArrayExpr,
    AssignExpr,
    BinaryExpr,
    BinaryOp,
    BindingPattern,
    BlockExpr,
    BreakExpr,
    CastExpr,
    ContinueExpr,
    Expr,
    ExprStmt,
    FieldExpr,
    ForExpr,
    IfExpr,
    IndexExpr,
    LetStmt,
    Literal,
    LiteralPattern,
    LoopExpr,
    MacroCall,
    MatchExpr,
    MethodCall,
    OrPattern,
    Pattern,
    RangeExpr,
    RangePattern,
    RepeatExpr,
    Stmt,
    TupleExpr,
    TuplePattern,
    UnaryExpr,
    UnaryOp,
    VarRef,
    WhileExpr,
    WildcardPattern,
)


class _BreakSignal(Exception):
    def __init__(self, label: str | None, value: Any) -> None:
        super().__init__(label)
        self.label = label
        self.value = value


class _ContinueSignal(Exception):
    def __init__(self, label: str | None) -> None:
        super().__init__(label)
        self.label = label


_UNSET = object()


@dataclass
class Binding:
    value: Any
    mutable: bool = False

    @property
    def initialized(self) -> bool:
        return self.value is not _UNSET


class Scope:
    """Lexical scope: bindings plus a link to the enclosing scope."""

    def __init__(self, parent: Scope | None = None) -> None:
        self.parent = parent
        self.bindings: dict[str, Binding] = {}

    def declare(self, name: str, value: Any, mutable: bool = False) -> None:
        self.bindings[name] = Binding(value, mutable)

    def resolve(self, name: str) -> Binding:
        scope: Scope | None = self
        while scope is not None:
            if name in scope.bindings:
                return scope.bindings[name]
            scope = scope.parent
        raise EvaluationError(f"cannot find value `{name}` in this scope")

    def values(self) -> dict[str, Any]:
        return {
            name: binding.value for name, binding in self.bindings.items() if binding.initialized
        }


def execute(program: BlockExpr, scope: Scope) -> Any:
    """Run a program's statements directly in `scope`, so its bindings stay visible.

    Raises:
        EvaluationError: On runtime errors, failed assertions, or a
            `break`/`continue` with no enclosing loop.
    """
    try:
        return _interpret_block_body(program, scope)
    except _BreakSignal as sig:
        target = f" to {sig.label}" if sig.label else ""
        raise EvaluationError(f"`break`{target} outside of a loop") from None
    except _ContinueSignal as sig:
        target = f" to {sig.label}" if sig.label else ""
        raise EvaluationError(f"`continue`{target} outside of a loop") from None


def _interpret(expr: Expr, scope: Scope) -> Any:
    """Dispatch evaluation to the appropriate handler."""
    if isinstance(expr, Literal):
        return expr.value

    if isinstance(expr, VarRef):
        binding = scope.resolve(expr.name)
        if not binding.initialized:
            raise EvaluationError(f"used binding `{expr.name}` isn't initialized")
        return binding.value

    if isinstance(expr, BinaryExpr):
        return _interpret_binary(expr, scope)

    if isinstance(expr, UnaryExpr):
        return _interpret_unary(expr, scope)

    if isinstance(expr, AssignExpr):
        return _interpret_assign(expr, scope)

    if isinstance(expr, RangeExpr):
        return _interpret_range(expr, scope)

    if isinstance(expr, CastExpr):
        return _cast(_interpret(expr.operand, scope), expr.type_name)

    if isinstance(expr, ArrayExpr):
        return [_interpret(item, scope) for item in expr.items]

    if isinstance(expr, RepeatExpr):
        value = _interpret(expr.value, scope)
        count = _require_int(_interpret(expr.count, scope), "array length")
        return [_copy_value(value) for _ in range(count)]

    if isinstance(expr, TupleExpr):
        return tuple(_interpret(item, scope) for item in expr.items)

    if isinstance(expr, IndexExpr):
        return _index(_interpret(expr.target, scope), _interpret(expr.index, scope))

    if isinstance(expr, FieldExpr):
        target = _interpret(expr.target, scope)
        if not isinstance(target, tuple) or expr.index >= len(target):
            raise EvaluationError(f"no field `{expr.index}` on value {target!r}")
        return target[expr.index]

    if isinstance(expr, MethodCall):
        return _interpret_method(expr, scope)

    if isinstance(expr, MacroCall):
        return _interpret_macro(expr, scope)

    if isinstance(expr, BlockExpr):
        return _interpret_block(expr, scope)

    if isinstance(expr, IfExpr):
        return _interpret_if(expr, scope)

    if isinstance(expr, MatchExpr):
        return _interpret_match(expr, scope)

    if isinstance(expr, LoopExpr):
        return _interpret_loop(expr, scope)

    if isinstance(expr, WhileExpr):
        return _interpret_while(expr, scope)

    if isinstance(expr, ForExpr):
        return _interpret_for(expr, scope)

    if isinstance(expr, BreakExpr):
        value = _interpret(expr.value, scope) if expr.value is not None else None
        raise _BreakSignal(expr.label, value)

    if isinstance(expr, ContinueExpr):
        raise _ContinueSignal(expr.label)

    raise EvaluationError(f"Unknown expression type: {type(expr).__name__}")


# -- Statements and blocks --


def _interpret_stmt(stmt: Stmt, scope: Scope) -> None:
    if isinstance(stmt, LetStmt):
        if stmt.value is None:
            _declare_uninitialized(stmt.pattern, scope)
            return
        value = _copy_value(_interpret(stmt.value, scope))
        bindings: dict[str, Binding] = {}
        if not _match_pattern(stmt.pattern, value, bindings):
            if stmt.else_block is None:
                raise EvaluationError("refutable pattern in local binding")
            _interpret_block(stmt.else_block, scope)
            raise EvaluationError("`else` clause of `let...else` does not diverge")
        scope.bindings.update(bindings)
        return

    if isinstance(stmt, ExprStmt):
        _interpret(stmt.expr, scope)
        return

    raise EvaluationError(f"Unknown statement type: {type(stmt).__name__}")


def _declare_uninitialized(pattern: Pattern, scope: Scope) -> None:
    if not isinstance(pattern, BindingPattern):
        raise EvaluationError("`let` without a value needs a plain binding")
    scope.declare(pattern.name, _UNSET, pattern.mutable)


def _interpret_block_body(block: BlockExpr, scope: Scope) -> Any:
    for stmt in block.stmts:
        _interpret_stmt(stmt, scope)
    if block.tail is None:
        return None
    return _interpret(block.tail, scope)


def _interpret_block(block: BlockExpr, scope: Scope) -> Any:
    inner = Scope(scope)
    if block.label is None:
        return _interpret_block_body(block, inner)
    try:
        return _interpret_block_body(block, inner)
    except _BreakSignal as sig:
        # Only labeled breaks can leave a labeled block
        if sig.label == block.label:
            return sig.value
        raise


def _interpret_if(expr: IfExpr, scope: Scope) -> Any:
    condition = _require_bool(_interpret(expr.condition, scope), "`if` condition")
    if condition:
        return _interpret_block(expr.then_block, scope)
    if expr.else_branch is None:
        return None
    return _interpret(expr.else_branch, scope)


def _interpret_match(expr: MatchExpr, scope: Scope) -> Any:
    value = _interpret(expr.scrutinee, scope)
    for arm in expr.arms:
        bindings: dict[str, Binding] = {}
        if not _match_pattern(arm.pattern, value, bindings):
            continue
        arm_scope = Scope(scope)
        arm_scope.bindings.update(bindings)
        if arm.guard is not None and not _require_bool(
            _interpret(arm.guard, arm_scope), "match guard"
        ):
            continue
        return _interpret(arm.body, arm_scope)
    raise EvaluationError(f"non-exhaustive patterns: {value!r} not covered")


# -- Loops --


def _targets(signal_label: str | None, loop_label: str | None) -> bool:
    return signal_label is None or signal_label == loop_label


def _run_body(body: BlockExpr, scope: Scope, label: str | None) -> tuple[bool, Any]:
    """Run one iteration. Returns (stop, break value)."""
    try:
        _interpret_block(body, scope)
    except _BreakSignal as sig:
        if _targets(sig.label, label):
            return True, sig.value
        raise
    except _ContinueSignal as sig:
        if not _targets(sig.label, label):
            raise
    return False, None


def _interpret_loop(expr: LoopExpr, scope: Scope) -> Any:
    while True:
        stop, value = _run_body(expr.body, scope, expr.label)
        if stop:
            return value


def _interpret_while(expr: WhileExpr, scope: Scope) -> None:
    while _require_bool(_interpret(expr.condition, scope), "`while` condition"):
        stop, _value = _run_body(expr.body, scope, expr.label)
        if stop:
            break
    return None


def _interpret_for(expr: ForExpr, scope: Scope) -> None:
    for item in _iterate(_interpret(expr.iterable, scope)):
        iteration = Scope(scope)
        if not _match_pattern(expr.pattern, item, iteration.bindings):
            raise EvaluationError(f"refutable pattern in `for` loop: {item!r}")
        stop, _value = _run_body(expr.body, iteration, expr.label)
        if stop:
            break
    return None


def _iterate(value: Any):
    if isinstance(value, (list, tuple, str)):
        # snapshot; the body may not observe its own mutations
        return list(value)
    if isinstance(value, (range, itertools.count)):
        return value
    raise EvaluationError(f"{_type_name(value)} is not an iterator")


# -- Patterns --


def _match_pattern(pattern: Pattern, value: Any, bindings: dict[str, Binding]) -> bool:
    if isinstance(pattern, WildcardPattern):
        return True

    if isinstance(pattern, LiteralPattern):
        return _same_kind(pattern.value, value) and pattern.value == value

    if isinstance(pattern, RangePattern):
        if not (_same_kind(pattern.low, value) and _same_kind(pattern.high, value)):
            return False
        if pattern.inclusive:
            return pattern.low <= value <= pattern.high
        return pattern.low <= value < pattern.high

    if isinstance(pattern, BindingPattern):
        if pattern.subpattern is not None and not _match_pattern(
            pattern.subpattern, value, bindings
        ):
            return False
        bindings[pattern.name] = Binding(value, pattern.mutable)
        return True

    if isinstance(pattern, TuplePattern):
        if not isinstance(value, tuple) or len(value) != len(pattern.items):
            return False
        return all(_match_pattern(p, v, bindings) for p, v in zip(pattern.items, value))

    if isinstance(pattern, OrPattern):
        for alternative in pattern.alternatives:
            attempt: dict[str, Binding] = {}
            if _match_pattern(alternative, value, attempt):
                bindings.update(attempt)
                return True
        return False

    raise EvaluationError(f"Unknown pattern type: {type(pattern).__name__}")


def _same_kind(a: Any, b: Any) -> bool:
    # bool is an int subclass in Python but not in Rust
    return isinstance(a, bool) == isinstance(b, bool)


# -- Assignment --


def _interpret_assign(expr: AssignExpr, scope: Scope) -> None:
    value = _copy_value(_interpret(expr.value, scope))
    target = expr.target

    if isinstance(target, VarRef):
        binding = scope.resolve(target.name)
        if expr.op is not None:
            if not binding.initialized:
                raise EvaluationError(f"used binding `{target.name}` isn't initialized")
            value = _binary(expr.op, binding.value, value)
        if binding.initialized and not binding.mutable:
            raise EvaluationError(f"cannot assign twice to immutable variable `{target.name}`")
        binding.value = value
        return None

    if isinstance(target, IndexExpr):
        container = _mutable_place(target.target, scope)
        index = _interpret(target.index, scope)
        if expr.op is not None:
            value = _binary(expr.op, _index(container, index), value)
        _check_index(container, index)
        container[index] = value
        return None

    raise EvaluationError("invalid left-hand side of assignment")


def _mutable_place(expr: Expr, scope: Scope) -> Any:
    """Value behind a place expression, checking that its root binding is mutable."""
    if isinstance(expr, UnaryExpr) and expr.op in (UnaryOp.DEREF, UnaryOp.REF):
        return _mutable_place(expr.operand, scope)
    if isinstance(expr, VarRef):
        binding = scope.resolve(expr.name)
        if not binding.mutable:
            raise EvaluationError(f"cannot borrow `{expr.name}` as mutable")
        return binding.value
    if isinstance(expr, IndexExpr):
        container = _mutable_place(expr.target, scope)
        return _index(container, _interpret(expr.index, scope))
    raise EvaluationError("cannot mutate a temporary value")


# -- Operators --


def _interpret_binary(expr: BinaryExpr, scope: Scope) -> Any:
    # Short-circuit for logical operators
    if expr.op == BinaryOp.AND:
        if not _require_bool(_interpret(expr.left, scope), "`&&` operand"):
            return False
        return _require_bool(_interpret(expr.right, scope), "`&&` operand")

    if expr.op == BinaryOp.OR:
        if _require_bool(_interpret(expr.left, scope), "`||` operand"):
            return True
        return _require_bool(_interpret(expr.right, scope), "`||` operand")

    return _binary(expr.op, _interpret(expr.left, scope), _interpret(expr.right, scope))


def _binary(op: BinaryOp, left: Any, right: Any) -> Any:
    if op in (BinaryOp.EQ, BinaryOp.NE):
        equal = _same_kind(left, right) and left == right
        return equal if op == BinaryOp.EQ else not equal

    if op in (BinaryOp.LT, BinaryOp.GT, BinaryOp.LE, BinaryOp.GE):
        if not _same_kind(left, right):
            raise EvaluationError(
                f"cannot compare {_type_name(left)} with {_type_name(right)}"
            )
        try:
            if op == BinaryOp.LT:
                return left < right
            if op == BinaryOp.GT:
                return left > right
            if op == BinaryOp.LE:
                return left <= right
            return left >= right
        except TypeError as e:
            raise EvaluationError(f"cannot compare {left!r} with {right!r}") from e

    if op == BinaryOp.ADD and isinstance(left, str) and isinstance(right, str):
        return left + right

    if op in (BinaryOp.BIT_AND, BinaryOp.BIT_OR, BinaryOp.BIT_XOR) and (
        isinstance(left, bool) and isinstance(right, bool)
    ):
        if op == BinaryOp.BIT_AND:
            return left and right
        if op == BinaryOp.BIT_OR:
            return left or right
        return left != right

    _require_number(left, op)
    _require_number(right, op)

    if op == BinaryOp.ADD:
        return left + right
    if op == BinaryOp.SUB:
        return left - right
    if op == BinaryOp.MUL:
        return left * right
    if op == BinaryOp.DIV:
        return _div(left, right)
    if op == BinaryOp.MOD:
        return _rem(left, right)

    if isinstance(left, float) or isinstance(right, float):
        raise EvaluationError(f"cannot apply `{op}` to floats")
    if op == BinaryOp.BIT_AND:
        return left & right
    if op == BinaryOp.BIT_OR:
        return left | right
    if op == BinaryOp.BIT_XOR:
        return left ^ right
    if op == BinaryOp.SHL:
        return left << right
    if op == BinaryOp.SHR:
        return left >> right

    raise EvaluationError(f"Unknown operator: {op}")


def _div(left: Any, right: Any) -> Any:
    if isinstance(left, float) or isinstance(right, float):
        if right == 0:
            return math.copysign(math.inf, left) if left else math.nan
        return left / right
    if right == 0:
        raise EvaluationError("attempt to divide by zero")
    quotient = abs(left) // abs(right)
    return quotient if (left >= 0) == (right >= 0) else -quotient


def _rem(left: Any, right: Any) -> Any:
    if isinstance(left, float) or isinstance(right, float):
        return math.fmod(left, right)
    if right == 0:
        raise EvaluationError("attempt to calculate the remainder with a divisor of zero")
    return left - right * _div(left, right)


def _interpret_unary(expr: UnaryExpr, scope: Scope) -> Any:
    operand = _interpret(expr.operand, scope)

    if expr.op == UnaryOp.NEG:
        _require_number(operand, expr.op)
        return -operand
    if expr.op == UnaryOp.NOT:
        if isinstance(operand, bool):
            return not operand
        if isinstance(operand, int):
            return ~operand
        raise EvaluationError(f"cannot apply unary operator `!` to {_type_name(operand)}")
    # references and dereferences are transparent
    return operand


def _interpret_range(expr: RangeExpr, scope: Scope) -> Any:
    if expr.start is None:
        raise EvaluationError("ranges without a start are only supported as indices")
    start = _require_int(_interpret(expr.start, scope), "range start")
    if expr.end is None:
        return itertools.count(start)
    end = _require_int(_interpret(expr.end, scope), "range end")
    return range(start, end + 1 if expr.inclusive else end)


def _cast(value: Any, type_name: str) -> Any:
    if type_name in ("f32", "f64"):
        return float(value)
    if type_name == "char":
        return chr(value) if isinstance(value, int) else value
    if type_name == "bool":
        raise EvaluationError("cannot cast to `bool`")
    if isinstance(value, str) and len(value) == 1:
        return ord(value)
    if isinstance(value, (bool, int)):
        return int(value)
    if isinstance(value, float):
        return int(value)
    raise EvaluationError(f"cannot cast {_type_name(value)} as `{type_name}`")


# -- Indexing --


def _index(container: Any, index: Any) -> Any:
    if isinstance(index, range):
        if not isinstance(container, (list, str)):
            raise EvaluationError(f"cannot slice {_type_name(container)}")
        if index.start < 0 or index.stop > len(container) or index.start > index.stop:
            raise EvaluationError(
                f"range {index.start}..{index.stop} out of range for length {len(container)}"
            )
        return container[index.start : index.stop]
    _check_index(container, index)
    return container[index]


def _check_index(container: Any, index: Any) -> None:
    if not isinstance(container, list):
        raise EvaluationError(f"cannot index into a value of type {_type_name(container)}")
    if isinstance(index, bool) or not isinstance(index, int):
        raise EvaluationError(f"cannot index with {_type_name(index)}")
    if not 0 <= index < len(container):
        raise EvaluationError(
            f"index out of bounds: the len is {len(container)} but the index is {index}"
        )


# -- Methods and macros --


def _interpret_method(expr: MethodCall, scope: Scope) -> Any:
    args = [_interpret(arg, scope) for arg in expr.args]

    if expr.method == "push":
        target = _mutable_place(expr.target, scope)
        if not isinstance(target, list) or len(args) != 1:
            raise EvaluationError("`push` takes one argument on a vector")
        target.append(_copy_value(args[0]))
        return None

    target = _interpret(expr.target, scope)
    method = _METHODS.get(expr.method)
    if method is None:
        raise EvaluationError(f"no method named `{expr.method}` is supported")
    try:
        return method(target, *args)
    except TypeError as e:
        raise EvaluationError(
            f"`{expr.method}` cannot be called on {_type_name(target)} with {len(args)} argument(s)"
        ) from e


def _rev(value: Any) -> Any:
    if isinstance(value, range):
        return value[::-1]
    if isinstance(value, (list, tuple, str)):
        return list(reversed(value))
    raise EvaluationError(f"cannot reverse {_type_name(value)}")


def _pow(base: Any, exponent: Any) -> Any:
    if isinstance(base, int) and (isinstance(exponent, bool) or exponent < 0):
        raise EvaluationError("`pow` takes a non-negative integer exponent")
    return base**exponent


def _identity(value: Any) -> Any:
    return value


def _copy_value(value: Any) -> Any:
    # vectors have value semantics; everything else here is immutable
    if isinstance(value, list):
        return copy.deepcopy(value)
    return value


_METHODS: dict[str, Any] = {
    "len": len,
    "is_empty": lambda value: len(value) == 0,
    "iter": _identity,
    "into_iter": _identity,
    "iter_mut": _identity,
    "copied": _identity,
    "cloned": _identity,
    "clone": _copy_value,
    "rev": _rev,
    "contains": lambda value, item: item in value,
    "abs": abs,
    "min": min,
    "max": max,
    "pow": _pow,
    "enumerate": lambda value: list(enumerate(_iterate(value))),
    "chars": list,
    "sum": lambda value: sum(_iterate(value)),
}


def _interpret_macro(expr: MacroCall, scope: Scope) -> Any:
    name = expr.name.removeprefix("debug_")
    args = [_interpret(arg, scope) for arg in expr.args]

    if name == "assert":
        if not _require_bool(args[0], "`assert!` argument"):
            raise EvaluationError(f"assertion failed: {expr.source}")
        return None
    if name in ("assert_eq", "assert_ne"):
        left, right = args
        equal = _binary(BinaryOp.EQ, left, right)
        if equal != (name == "assert_eq"):
            op = "==" if name == "assert_eq" else "!="
            raise EvaluationError(
                f"assertion `left {op} right` failed\n  left: {left!r}\n right: {right!r}"
            )
        return None
    if name == "panic":
        raise EvaluationError(f"panicked: {expr.source}" if expr.source else "explicit panic")
    if name == "unreachable":
        raise EvaluationError("internal error: entered unreachable code")
    if name == "todo":
        raise EvaluationError("not yet implemented")

    # println!, print!, eprintln!, eprint!, dbg!
    return None


# -- Type checks --


def _type_name(value: Any) -> str:
    if value is None:
        return "`()`"
    if isinstance(value, bool):
        return "`bool`"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "float"
    if isinstance(value, str):
        return "`char`" if len(value) == 1 else "`&str`"
    if isinstance(value, list):
        return "`Vec`"
    if isinstance(value, tuple):
        return "tuple"
    if isinstance(value, (range, itertools.count)):
        return "`Range`"
    return type(value).__name__


def _require_bool(value: Any, what: str) -> bool:
    if not isinstance(value, bool):
        raise EvaluationError(f"mismatched types: {what} must be `bool`, found {_type_name(value)}")
    return value


def _require_int(value: Any, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise EvaluationError(f"mismatched types: {what} must be an integer, found {_type_name(value)}")
    return value


def _require_number(value: Any, op: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise EvaluationError(f"cannot apply `{op}` to {_type_name(value)}")
