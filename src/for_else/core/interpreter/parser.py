"""
Recursive descent parser for the interpreter subset.

Grammar (precedence low to high):
    block       → "{" (stmt | attribute)* expr? "}"
    stmt        → "let" pattern (":" type)? ("=" expr ("else" block)?)? ";"
                | block_like ";"?
                | expr ";"
    expr        → range (("=" | op "=") expr)?
    range       → binary? (".." | "..=") binary?
    binary      → unary (binop unary)*          precedence climbing, "as" binds tightest
    unary       → ("-" | "!" | "&" "mut"? | "*") unary | postfix
    postfix     → primary ("." IDENT args? | "." INT | "[" expr "]")*
    primary     → literal | path | macro | "(" expr,* ")" | "[" expr,* "]"
                | "[" expr ";" expr "]" | block_like | "break" | "continue"
    block_like  → (LIFETIME ":")? ( block | "unsafe" block | if | match
                | "loop" block | "while" expr block | "for" pattern "in" expr block )

Braces after an expression never continue it (no struct literals), so
`while i < n { .. }` needs no special casing.
"""

from __future__ import annotations

import re
from typing import Any

from for_else.core.errors import SyntaxParseError
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
    MatchArm,
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
from for_else.core.syntax.cursor import TokenCursor, describe
from for_else.core.syntax.emitter import render_tokens
from for_else.core.syntax.tokenizer import (
    Delimiter,
    Group,
    Token,
    TokenKind,
    TokenRun,
    is_punct,
    tokenize,
)

_BINARY_OPS: dict[str, tuple[int, BinaryOp]] = {
    "||": (3, BinaryOp.OR),
    "&&": (4, BinaryOp.AND),
    "==": (5, BinaryOp.EQ),
    "!=": (5, BinaryOp.NE),
    "<": (5, BinaryOp.LT),
    ">": (5, BinaryOp.GT),
    "<=": (5, BinaryOp.LE),
    ">=": (5, BinaryOp.GE),
    "|": (6, BinaryOp.BIT_OR),
    "^": (7, BinaryOp.BIT_XOR),
    "&": (8, BinaryOp.BIT_AND),
    "<<": (9, BinaryOp.SHL),
    ">>": (9, BinaryOp.SHR),
    "+": (10, BinaryOp.ADD),
    "-": (10, BinaryOp.SUB),
    "*": (11, BinaryOp.MUL),
    "/": (11, BinaryOp.DIV),
    "%": (11, BinaryOp.MOD),
}
_LOWEST_BINARY = 3
_CAST_PRECEDENCE = 12

_COMPOUND_ASSIGN = {
    "+=": BinaryOp.ADD,
    "-=": BinaryOp.SUB,
    "*=": BinaryOp.MUL,
    "/=": BinaryOp.DIV,
    "%=": BinaryOp.MOD,
    "&=": BinaryOp.BIT_AND,
    "|=": BinaryOp.BIT_OR,
    "^=": BinaryOp.BIT_XOR,
    "<<=": BinaryOp.SHL,
    ">>=": BinaryOp.SHR,
}

_BLOCK_LIKE = {"if", "match", "loop", "while", "for", "unsafe"}
_ITEM_KEYWORDS = {"fn", "struct", "enum", "impl", "trait", "mod", "use", "type", "static", "pub"}

# Macros whose arguments are ignored
_OUTPUT_MACROS = {"println", "print", "eprintln", "eprint", "dbg"}
# Macro name -> number of leading arguments that are evaluated
_CHECK_MACROS = {
    "assert": 1,
    "assert_eq": 2,
    "assert_ne": 2,
    "debug_assert": 1,
    "debug_assert_eq": 2,
    "debug_assert_ne": 2,
    "panic": 0,
    "unreachable": 0,
    "todo": 0,
}

_INT_BOUNDS = {
    "i8": (-(2**7), 2**7 - 1),
    "i16": (-(2**15), 2**15 - 1),
    "i32": (-(2**31), 2**31 - 1),
    "i64": (-(2**63), 2**63 - 1),
    "i128": (-(2**127), 2**127 - 1),
    "isize": (-(2**63), 2**63 - 1),
    "u8": (0, 2**8 - 1),
    "u16": (0, 2**16 - 1),
    "u32": (0, 2**32 - 1),
    "u64": (0, 2**64 - 1),
    "u128": (0, 2**128 - 1),
    "usize": (0, 2**64 - 1),
}

_NUMBER_SUFFIX_RE = re.compile(r"(?:[iu](?:8|16|32|64|128|size)|f32|f64)$")
_INT_SUFFIX_RE = re.compile(r"[iu](?:8|16|32|64|128|size)$")
_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "0": "\0", "\\": "\\", "'": "'", '"': '"'}


class _Parser:
    """Recursive descent parser over one token run."""

    def __init__(self, tokens: TokenRun, end_pos: int | None = None) -> None:
        self.cur = TokenCursor(tokens, end_pos=end_pos)

    @classmethod
    def for_group(cls, group: Group) -> _Parser:
        return cls(group.children, end_pos=group.end - 1)

    def error(self, message: str) -> SyntaxParseError:
        return self.cur.error(message)

    def expect_end(self, what: str) -> None:
        if not self.cur.is_empty():
            raise self.error(f"Unexpected {describe(self.cur.peek())} after {what}")

    # -- Blocks and statements --

    def parse_block_contents(self, label: str | None = None) -> BlockExpr:
        stmts: list[Stmt] = []
        tail: Expr | None = None
        cur = self.cur

        while not cur.is_empty():
            if cur.match_punct(";"):
                continue

            if cur.peek_punct("#"):
                self._skip_attribute()
                continue

            if cur.peek_ident("let"):
                stmts.append(self.parse_let())
                continue

            if cur.peek_ident() and cur.peek().value in _ITEM_KEYWORDS:  # type: ignore[union-attr]
                raise self.error(f"Items are not supported: `{cur.peek().value}`")  # type: ignore[union-attr]

            if self._starts_block_like():
                expr = self.parse_block_like()
                semi = bool(cur.match_punct(";"))
                if cur.is_empty() and not semi:
                    tail = expr
                else:
                    stmts.append(ExprStmt(expr=expr, semi=semi))
                continue

            expr = self.parse_expr()
            if cur.match_punct(";"):
                stmts.append(ExprStmt(expr=expr, semi=True))
            elif cur.is_empty():
                tail = expr
            else:
                raise self.error(f"Expected `;`, got {describe(cur.peek())}")

        return BlockExpr(stmts=tuple(stmts), tail=tail, label=label)

    def _skip_attribute(self) -> None:
        self.cur.expect_punct("#")
        self.cur.match_punct("!")
        self.cur.expect_group(Delimiter.BRACKET)

    def parse_let(self) -> LetStmt:
        """let pattern (: type)? (= expr (else block)?)? ;"""
        cur = self.cur
        cur.expect_ident("let")
        pattern = self.parse_pattern()

        has_value = False
        if cur.match_punct(":"):
            # Skip the type; `Vec<i32>= ..` lexes its `>=` as one token
            while not cur.is_empty() and not cur.peek_punct("=") and not cur.peek_punct(";"):
                if cur.match_punct(">="):
                    has_value = True
                    break
                cur.advance()

        value = None
        else_block = None
        if has_value or cur.match_punct("="):
            value = self.parse_expr()
            if cur.match_ident("else"):
                else_block = self.parse_block()
        cur.expect_punct(";")
        return LetStmt(pattern=pattern, value=value, else_block=else_block)

    def _starts_block_like(self) -> bool:
        cur = self.cur
        if cur.peek_group(Delimiter.BRACE) or cur.peek_label():
            return True
        tok = cur.peek()
        return isinstance(tok, Token) and tok.kind == TokenKind.IDENT and tok.value in _BLOCK_LIKE

    def parse_block_like(self) -> Expr:
        cur = self.cur
        label = None
        if cur.peek_label():
            label = cur.advance().value  # type: ignore[union-attr]
            cur.advance()  # ':'

        if cur.peek_group(Delimiter.BRACE):
            return self.parse_block(label)
        if cur.match_ident("unsafe"):
            return self.parse_block(label)
        if cur.match_ident("loop"):
            return LoopExpr(body=self.parse_block(), label=label)
        if cur.match_ident("while"):
            condition = self.parse_expr()
            return WhileExpr(condition=condition, body=self.parse_block(), label=label)
        if cur.match_ident("for"):
            pattern = self.parse_pattern()
            cur.expect_ident("in")
            iterable = self.parse_expr()
            return ForExpr(pattern=pattern, iterable=iterable, body=self.parse_block(), label=label)

        if label is not None:
            raise self.error(f"Expected a loop or block after label {label}")
        if cur.peek_ident("if"):
            return self.parse_if()
        if cur.peek_ident("match"):
            return self.parse_match()
        raise self.error(f"Expected a block, got {describe(cur.peek())}")

    def parse_block(self, label: str | None = None) -> BlockExpr:
        group = self.cur.expect_group(Delimiter.BRACE)
        return _Parser.for_group(group).parse_block_contents(label)

    def parse_if(self) -> IfExpr:
        """if cond { .. } (else if .. | else { .. })?"""
        self.cur.expect_ident("if")
        if self.cur.peek_ident("let"):
            raise self.error("`if let` is not supported")
        condition = self.parse_expr()
        then_block = self.parse_block()
        else_branch: BlockExpr | IfExpr | None = None
        if self.cur.match_ident("else"):
            if self.cur.peek_ident("if"):
                else_branch = self.parse_if()
            else:
                else_branch = self.parse_block()
        return IfExpr(condition=condition, then_block=then_block, else_branch=else_branch)

    def parse_match(self) -> MatchExpr:
        """match scrutinee { (pattern (if guard)? => expr ,?)* }"""
        self.cur.expect_ident("match")
        scrutinee = self.parse_expr()
        group = self.cur.expect_group(Delimiter.BRACE)
        arms_parser = _Parser.for_group(group)
        arms: list[MatchArm] = []
        cur = arms_parser.cur

        while not cur.is_empty():
            pattern = arms_parser.parse_pattern()
            guard = None
            if cur.match_ident("if"):
                guard = arms_parser.parse_expr()
            cur.expect_punct("=>")
            if arms_parser._starts_block_like():
                body = arms_parser.parse_block_like()
                cur.match_punct(",")
            else:
                body = arms_parser.parse_expr()
                if not cur.is_empty():
                    cur.expect_punct(",")
            arms.append(MatchArm(pattern=pattern, guard=guard, body=body))

        return MatchExpr(scrutinee=scrutinee, arms=tuple(arms))

    # -- Expressions --

    def parse_expr(self) -> Expr:
        """range (('=' | op=) expr)?"""
        cur = self.cur
        target = self.parse_range()

        if cur.match_punct("="):
            value = self.parse_expr()
            return AssignExpr(target=self._place(target), value=value)

        tok = cur.peek()
        if isinstance(tok, Token) and tok.kind == TokenKind.PUNCT and tok.value in _COMPOUND_ASSIGN:
            cur.advance()
            value = self.parse_expr()
            return AssignExpr(
                target=self._place(target), value=value, op=_COMPOUND_ASSIGN[tok.value]
            )

        return target

    def _place(self, expr: Expr) -> Expr:
        if isinstance(expr, (VarRef, IndexExpr)):
            return expr
        if isinstance(expr, UnaryExpr) and expr.op == UnaryOp.DEREF:
            return self._place(expr.operand)
        raise self.error("Invalid left-hand side of assignment")

    def parse_range(self) -> Expr:
        """binary? ('..' | '..=') binary?"""
        cur = self.cur
        start = None
        if not (cur.peek_punct("..") or cur.peek_punct("..=")):
            start = self.parse_binary(_LOWEST_BINARY)
            if not (cur.peek_punct("..") or cur.peek_punct("..=")):
                return start

        inclusive = cur.advance().value == "..="  # type: ignore[union-attr]
        end = None
        if not self._at_expression_end():
            end = self.parse_binary(_LOWEST_BINARY)
        elif inclusive:
            raise self.error("Inclusive range with no end")
        return RangeExpr(start=start, end=end, inclusive=inclusive)

    def _at_expression_end(self) -> bool:
        cur = self.cur
        return (
            cur.is_empty()
            or cur.peek_punct(",")
            or cur.peek_punct(";")
            or cur.peek_punct("=>")
            or cur.peek_group(Delimiter.BRACE)
        )

    def parse_binary(self, min_precedence: int) -> Expr:
        """Precedence climbing over _BINARY_OPS; all binary operators are left-associative."""
        cur = self.cur
        left = self.parse_unary()

        while True:
            if cur.peek_ident("as") and _CAST_PRECEDENCE >= min_precedence:
                cur.advance()
                left = CastExpr(operand=left, type_name=self._parse_type_name())
                continue

            tok = cur.peek()
            if not (isinstance(tok, Token) and tok.kind == TokenKind.PUNCT):
                break
            entry = _BINARY_OPS.get(tok.value)
            if entry is None or entry[0] < min_precedence:
                break
            precedence, op = entry
            cur.advance()
            right = self.parse_binary(precedence + 1)
            left = BinaryExpr(op=op, left=left, right=right)

        return left

    def _parse_type_name(self) -> str:
        tok = self.cur.advance()
        if not (isinstance(tok, Token) and tok.kind == TokenKind.IDENT):
            raise self.error(f"Expected a type after `as`, got {describe(tok)}")
        return tok.value

    def parse_unary(self) -> Expr:
        """('-' | '!' | '&' 'mut'? | '*') unary | postfix"""
        cur = self.cur
        if cur.match_punct("-"):
            return UnaryExpr(op=UnaryOp.NEG, operand=self.parse_unary())
        if cur.match_punct("!"):
            return UnaryExpr(op=UnaryOp.NOT, operand=self.parse_unary())
        if cur.match_punct("&"):
            cur.match_ident("mut")
            return UnaryExpr(op=UnaryOp.REF, operand=self.parse_unary())
        if cur.match_punct("&&"):
            cur.match_ident("mut")
            inner = UnaryExpr(op=UnaryOp.REF, operand=self.parse_unary())
            return UnaryExpr(op=UnaryOp.REF, operand=inner)
        if cur.match_punct("*"):
            return UnaryExpr(op=UnaryOp.DEREF, operand=self.parse_unary())
        return self.parse_postfix()

    def parse_postfix(self) -> Expr:
        """primary ('.' method | '.' index | '[' expr ']')*"""
        cur = self.cur
        expr = self.parse_primary()

        while True:
            if cur.match_punct("."):
                tok = cur.advance()
                if isinstance(tok, Token) and tok.kind == TokenKind.LITERAL and tok.value.isdigit():
                    expr = FieldExpr(target=expr, index=int(tok.value))
                    continue
                if not (isinstance(tok, Token) and tok.kind == TokenKind.IDENT):
                    raise self.error(f"Expected a method name, got {describe(tok)}")
                if not cur.peek_group(Delimiter.PAREN):
                    raise self.error(f"Field access `.{tok.value}` is not supported")
                group = cur.advance()
                assert isinstance(group, Group)
                expr = MethodCall(target=expr, method=tok.value, args=self._parse_list(group))
            elif cur.peek_group(Delimiter.BRACKET):
                group = cur.advance()
                assert isinstance(group, Group)
                inner = _Parser.for_group(group)
                index = inner.parse_expr()
                inner.expect_end("index")
                expr = IndexExpr(target=expr, index=index)
            elif cur.peek_punct("?"):
                raise self.error("The `?` operator is not supported")
            else:
                return expr

    def parse_primary(self) -> Expr:
        cur = self.cur
        tok = cur.peek()

        if tok is None:
            raise self.error("Expected expression, got end of input")

        if isinstance(tok, Group):
            if tok.delimiter == Delimiter.BRACE:
                return self.parse_block()
            cur.advance()
            if tok.delimiter == Delimiter.PAREN:
                return self._parse_paren(tok)
            return self._parse_array(tok)

        if cur.peek_label():
            return self.parse_block_like()

        if tok.kind == TokenKind.LITERAL:
            cur.advance()
            return Literal(value=literal_value(tok.value))

        if tok.kind != TokenKind.IDENT:
            raise self.error(f"Expected expression, got {describe(tok)}")

        word = tok.value
        if word in ("true", "false"):
            cur.advance()
            return Literal(value=word == "true")
        if word in _BLOCK_LIKE:
            return self.parse_block_like()
        if word == "break":
            return self._parse_break()
        if word == "continue":
            cur.advance()
            label = cur.advance().value if cur.peek_lifetime() else None  # type: ignore[union-attr]
            return ContinueExpr(label=label)
        if word in ("return", "move", "async", "await"):
            raise self.error(f"`{word}` is not supported")

        if cur.peek_punct("!", 1) and cur.peek_group(offset=2):
            return self._parse_macro()
        if cur.peek_punct("::", 1):
            return self._parse_path()

        cur.advance()
        return VarRef(name=word, pos=tok.pos)

    def _parse_break(self) -> BreakExpr:
        cur = self.cur
        cur.expect_ident("break")
        label = None
        if cur.peek_lifetime():
            label = cur.advance().value  # type: ignore[union-attr]
        value = None
        if not self._at_expression_end():
            value = self.parse_expr()
        return BreakExpr(label=label, value=value)

    def _parse_paren(self, group: Group) -> Expr:
        if not group.children:
            return Literal(value=None)
        parts = _split_commas(group.children)
        if len(parts) == 1 and not is_punct(group.children[-1], ","):
            inner = _Parser(parts[0], end_pos=group.end - 1)
            expr = inner.parse_expr()
            inner.expect_end("expression")
            return expr
        return TupleExpr(items=tuple(_parse_single(part) for part in parts))

    def _parse_array(self, group: Group) -> Expr:
        parser = _Parser.for_group(group)
        if parser.cur.is_empty():
            return ArrayExpr()
        first = parser.parse_expr()
        if parser.cur.match_punct(";"):
            count = parser.parse_expr()
            parser.expect_end("array length")
            return RepeatExpr(value=first, count=count)
        items = [first]
        while parser.cur.match_punct(","):
            if parser.cur.is_empty():
                break
            items.append(parser.parse_expr())
        parser.expect_end("array element")
        return ArrayExpr(items=tuple(items))

    def _parse_list(self, group: Group) -> tuple[Expr, ...]:
        return tuple(_parse_single(part) for part in _split_commas(group.children))

    def _parse_macro(self) -> Expr:
        cur = self.cur
        name = cur.advance().value  # type: ignore[union-attr]
        cur.advance()  # '!'
        group = cur.advance()
        assert isinstance(group, Group)

        if name == "vec":
            return self._parse_array(group)
        if name in _OUTPUT_MACROS:
            return MacroCall(name=name)
        if name in _CHECK_MACROS:
            needed = _CHECK_MACROS[name]
            parts = _split_commas(group.children)
            if len(parts) < needed:
                raise self.error(f"`{name}!` takes at least {needed} argument(s)")
            args = tuple(_parse_single(part) for part in parts[:needed])
            source = ", ".join(render_tokens(part) for part in parts[: needed or len(parts)])
            return MacroCall(name=name, args=args, source=source)
        raise self.error(f"Unsupported macro `{name}!`")

    def _parse_path(self) -> Expr:
        """`i32::MAX` and friends; other paths are not supported."""
        cur = self.cur
        type_name = cur.advance().value  # type: ignore[union-attr]
        cur.expect_punct("::")
        const = cur.advance()
        bounds = _INT_BOUNDS.get(type_name)
        if bounds is None or not isinstance(const, Token) or const.value not in ("MIN", "MAX"):
            raise self.error(f"Unsupported path `{type_name}::{describe(const)}`")
        return Literal(value=bounds[0] if const.value == "MIN" else bounds[1])

    # -- Patterns --

    def parse_pattern(self) -> Pattern:
        """'|'? single ('|' single)*"""
        cur = self.cur
        cur.match_punct("|")
        alternatives = [self._parse_single_pattern()]
        while cur.match_punct("|"):
            alternatives.append(self._parse_single_pattern())
        if len(alternatives) == 1:
            return alternatives[0]
        return OrPattern(alternatives=tuple(alternatives))

    def _parse_single_pattern(self) -> Pattern:
        cur = self.cur
        tok = cur.peek()

        if tok is None:
            raise self.error("Expected pattern, got end of input")

        if isinstance(tok, Group):
            if tok.delimiter != Delimiter.PAREN:
                raise self.error(f"Unsupported pattern {describe(tok)}")
            cur.advance()
            parts = _split_commas(tok.children)
            items = []
            for part in parts:
                sub = _Parser(part, end_pos=tok.end - 1)
                items.append(sub.parse_pattern())
                sub.expect_end("pattern")
            if len(items) == 1 and not is_punct(tok.children[-1], ","):
                return items[0]
            return TuplePattern(items=tuple(items))

        if cur.match_punct("&"):
            return self._parse_single_pattern()

        if cur.peek_punct("-") or tok.kind == TokenKind.LITERAL:
            low = self._parse_pattern_literal()
            if cur.peek_punct("..=") or cur.peek_punct(".."):
                inclusive = cur.advance().value == "..="  # type: ignore[union-attr]
                high = self._parse_pattern_literal()
                return RangePattern(low=low, high=high, inclusive=inclusive)
            return LiteralPattern(value=low)

        if tok.kind != TokenKind.IDENT:
            raise self.error(f"Expected pattern, got {describe(tok)}")

        cur.advance()
        if tok.value == "_":
            return WildcardPattern()
        if tok.value in ("true", "false"):
            return LiteralPattern(value=tok.value == "true")
        if tok.value == "ref":
            return self._parse_single_pattern()

        mutable = False
        name = tok.value
        if name == "mut":
            mutable = True
            name_tok = cur.advance()
            if not (isinstance(name_tok, Token) and name_tok.kind == TokenKind.IDENT):
                raise self.error(f"Expected binding name after `mut`, got {describe(name_tok)}")
            name = name_tok.value

        if cur.peek_punct("::") or cur.peek_group(Delimiter.PAREN) or cur.peek_group(
            Delimiter.BRACE
        ):
            raise self.error(f"Enum and struct patterns are not supported: `{name}`")

        subpattern = None
        if cur.match_punct("@"):
            subpattern = self._parse_single_pattern()
        return BindingPattern(name=name, mutable=mutable, subpattern=subpattern)

    def _parse_pattern_literal(self) -> Any:
        cur = self.cur
        negative = bool(cur.match_punct("-"))
        tok = cur.advance()
        if not (isinstance(tok, Token) and tok.kind == TokenKind.LITERAL):
            raise self.error(f"Expected literal in pattern, got {describe(tok)}")
        value = literal_value(tok.value)
        return -value if negative else value


def _split_commas(run: TokenRun) -> list[TokenRun]:
    """Split a run at top-level commas, dropping a trailing empty part."""
    parts: list[TokenRun] = []
    start = 0
    for i, tree in enumerate(run):
        if is_punct(tree, ","):
            parts.append(run[start:i])
            start = i + 1
    if start < len(run):
        parts.append(run[start:])
    return parts


def _parse_single(run: TokenRun) -> Expr:
    parser = _Parser(run)
    expr = parser.parse_expr()
    parser.expect_end("expression")
    return expr


def literal_value(text: str) -> Any:
    """Python value of a Rust literal token."""
    if text.startswith('"'):
        return _unescape(text[1:-1])
    if text.startswith("'"):
        return _unescape(text[1:-1])
    if text.startswith("b'"):
        return ord(_unescape(text[2:-1]))
    if text.startswith(('b"', 'c"')):
        return _unescape(text[2:-1])
    if text.startswith(("r", "br", "cr")):
        body = text[text.index('"') :]
        hashes = len(text) - len(text.rstrip("#"))
        return body[1 : len(body) - 1 - hashes]

    number = text.replace("_", "")
    if number.startswith(("0x", "0o", "0b")):
        return int(_INT_SUFFIX_RE.sub("", number), 0)
    is_float = number.endswith(("f32", "f64"))
    number = _NUMBER_SUFFIX_RE.sub("", number)
    if is_float or "." in number or "e" in number.lower():
        return float(number)
    return int(number)


def _unescape(body: str) -> str:
    out: list[str] = []
    i = 0
    while i < len(body):
        c = body[i]
        if c != "\\":
            out.append(c)
            i += 1
            continue
        nxt = body[i + 1]
        if nxt in _ESCAPES:
            out.append(_ESCAPES[nxt])
            i += 2
        elif nxt == "x":
            out.append(chr(int(body[i + 2 : i + 4], 16)))
            i += 4
        elif nxt == "u":
            close = body.index("}", i)
            out.append(chr(int(body[i + 3 : close], 16)))
            i = close + 1
        elif nxt == "\n":
            # line continuation: skip the newline and leading whitespace
            i += 2
            while i < len(body) and body[i] in " \t\n\r":
                i += 1
        else:
            out.append(nxt)
            i += 2
    return "".join(out)


def parse_program(source: str) -> BlockExpr:
    """Parse a statement list (the inside of a block) into a program tree.

    Raises:
        TokenizeError: If the source is not lexically valid.
        SyntaxParseError: If it uses syntax outside the supported subset.
    """
    tokens = tokenize(source)
    return _Parser(tokens, end_pos=len(source)).parse_block_contents()
