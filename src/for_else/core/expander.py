"""
Loop-else expander.

Finds `for_! { .. }` and `while_! { .. }` invocations in Rust source and
replaces each with plain Rust:

    {
        #[allow(unused_mut)]
        let mut _for_else_break_occurred = false;
        'label: for PAT in DRIVER { body with breaks instrumented }
        if !_for_else_break_occurred { else block }
    }

Nested invocations are expanded first, so the outer body only ever sees
native loops. Each nesting level gets its own flag variable
(`_for_else_break_occurred_1`, `_2`, ...) so an inner declaration never
shadows the flag an outer labeled break has to set.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from jinja2 import BaseLoader, Environment, StrictUndefined, TemplateError
from pydantic import BaseModel, ConfigDict, Field

from for_else.core.config import ExpanderConfig
from for_else.core.errors import (
    ExpansionError,
    ForElseError,
    RewriteInvariantError,
    Span,
    locate,
    make_expansion_context,
)
from for_else.core.resolver import parse_loop_header
from for_else.core.rewriter import BreakRewriter, BreakSite
from for_else.core.syntax.emitter import render_block, render_tokens
from for_else.core.syntax.nodes import Block, LoopKind, LoopSpec
from for_else.core.syntax.tokenizer import (
    Delimiter,
    Group,
    Token,
    TokenKind,
    TokenRun,
    is_group,
    is_ident,
    is_punct,
    tokenize,
)

logger = logging.getLogger(__name__)

EXPANSION_TEMPLATE = """\
{
{{ pad }}#[allow(unused_mut)]
{{ pad }}let mut {{ flag }} = false;
{{ pad }}{% if label %}{{ label }}: {% endif %}{{ head }} {{ body }}
{{ pad }}if !{{ flag }} {{ else_block }}
}"""


@dataclass(frozen=True)
class Invocation:
    """A loop-else macro call found in source text."""

    name: str  # macro name without path, e.g. "for_"
    kind: LoopKind
    start: int  # offset of the first path segment
    name_pos: int  # offset of the macro name
    group: Group  # delimited input

    @property
    def end(self) -> int:
        return self.group.end

    @property
    def inner_span(self) -> Span:
        return Span(self.group.pos + 1, self.group.end - 1)


class ExpansionReport(BaseModel):
    """What one invocation expanded to, for `inspect`."""

    line: int
    column: int
    macro: str
    kind: LoopKind
    label: str | None = None
    driver: str = Field(description="Driver expression as rendered in the output")
    depth: int = Field(default=0, description="Number of enclosing loop-else invocations")
    breaks_found: int = 0
    breaks_rewritten: int = 0

    model_config = ConfigDict(frozen=True)


def find_invocations(tokens: TokenRun, macro_kinds: dict[str, str]) -> list[Invocation]:
    """Outermost invocations in a token run, in source order.

    Args:
        tokens: Tokenized source.
        macro_kinds: Macro name -> "for" / "while".
    """
    found: list[Invocation] = []
    _collect(tokens, macro_kinds, found)
    return found


def _collect(run: TokenRun, macro_kinds: dict[str, str], found: list[Invocation]) -> None:
    i = 0
    while i < len(run):
        tree = run[i]
        if (
            isinstance(tree, Token)
            and is_ident(tree)
            and tree.value in macro_kinds
            and i + 2 < len(run)
            and is_punct(run[i + 1], "!")
            and is_group(run[i + 2])
        ):
            group = run[i + 2]
            assert isinstance(group, Group)
            found.append(
                Invocation(
                    name=tree.value,
                    kind=LoopKind(macro_kinds[tree.value]),
                    start=_path_start(run, i),
                    name_pos=tree.pos,
                    group=group,
                )
            )
            i += 3
            continue
        if isinstance(tree, Group):
            _collect(tree.children, macro_kinds, found)
        i += 1


def _path_start(run: TokenRun, i: int) -> int:
    """Offset where `a::b::for_` (or `::for_`) begins."""
    j = i
    while j >= 2 and is_punct(run[j - 1], "::") and is_ident(run[j - 2]):
        j -= 2
    if j >= 1 and is_punct(run[j - 1], "::"):
        j -= 1
    return run[j].pos


class LoopElseExpander:
    """
    Expands loop-else invocations to core Rust.

    The expander holds only configuration; every call works on its own
    inputs.
    """

    def __init__(self, config: ExpanderConfig | None = None):
        """
        Initialize expander.

        Args:
            config: Expansion settings (defaults if omitted)
        """
        self.config = config or ExpanderConfig()
        self.jinja_env = Environment(
            loader=BaseLoader(),
            undefined=StrictUndefined,  # Raise error on undefined variables
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.template = self.jinja_env.from_string(EXPANSION_TEMPLATE)

    # -- single invocation --

    def expand_invocation(
        self,
        kind: LoopKind,
        tokens: TokenRun,
        span: Span | None = None,
    ) -> str:
        """
        Expand the input of one invocation.

        Args:
            kind: LoopKind.FOR or LoopKind.WHILE
            tokens: Token trees inside the macro delimiters
            span: Span of the input, for diagnostics

        Returns:
            Replacement Rust source for the whole invocation

        Raises:
            ExpansionError: If the input is not a valid loop-else
        """
        expanded, _spec, _sites = self._expand_tokens(kind, tokens, span, depth=0)
        return expanded

    def flag_name(self, depth: int) -> str:
        """Flag variable for an invocation nested `depth` levels deep."""
        if depth == 0:
            return self.config.flag_name
        return f"{self.config.flag_name}_{depth}"

    def _expand_tokens(
        self,
        kind: LoopKind,
        tokens: TokenRun,
        span: Span | None,
        depth: int,
        base_indent: str = "",
    ) -> tuple[str, LoopSpec, list[BreakSite]]:
        spec = parse_loop_header(tokens, kind, span)
        flag = self.flag_name(depth)
        rewriter = BreakRewriter(spec.label, flag)
        body = rewriter.rewrite(spec.body)
        text = self._render(spec, body, flag)
        if base_indent:
            text = text.replace("\n", "\n" + base_indent)
        return text, spec, rewriter.sites

    def _render(self, spec: LoopSpec, body: Block, flag: str) -> str:
        width = self.config.indent
        driver = _driver_text(spec.driver)
        if spec.kind == LoopKind.FOR:
            assert spec.binding is not None
            head = f"for {render_tokens(spec.binding)} in {driver}"
        else:
            head = f"while {driver}"

        try:
            return self.template.render(
                pad=" " * width,
                flag=flag,
                label=spec.label,
                head=head,
                body=render_block(body, indent=1, width=width),
                else_block=render_block(spec.else_block, indent=1, width=width),
            )
        except TemplateError as e:
            raise ExpansionError(f"Template expansion failed: {e}") from e

    # -- text --

    def expand_text(self, text: str, file: Path | None = None) -> str:
        """
        Expand all loop-else invocations in text.

        Text outside invocations is left byte-for-byte unchanged.

        Args:
            text: Rust source
            file: Path used in error messages

        Returns:
            Text with every invocation expanded

        Raises:
            ForElseError: If tokenizing or any expansion fails
        """
        return _TextExpansion(self, text, file).run()

    def inspect_text(self, text: str, file: Path | None = None) -> list[ExpansionReport]:
        """Expand `text` and describe every invocation, outermost first."""
        expansion = _TextExpansion(self, text, file)
        expansion.run()
        return sorted(expansion.reports, key=lambda r: (r.line, r.column))

    def find_invocations(self, text: str) -> list[Invocation]:
        """Outermost invocations of the configured macros in `text`."""
        return find_invocations(tokenize(text), self.config.macro_kinds)

    def expand_file(self, input_path: Path, output_path: Path | None = None) -> str:
        """
        Expand loop-else invocations in a file.

        Args:
            input_path: Rust source file
            output_path: Optional path to write expanded output

        Returns:
            Expanded text

        Raises:
            ForElseError: If expansion fails
            FileNotFoundError: If input file doesn't exist
        """
        if not input_path.exists():
            raise FileNotFoundError(f"Input file not found: {input_path}")

        text = input_path.read_text(encoding="utf-8")
        expanded = self.expand_text(text, file=input_path)

        if output_path:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_text(expanded, encoding="utf-8")
            logger.info("Wrote %s", output_path)

        return expanded


class _TextExpansion:
    """One `expand_text` call: the source it reports against and its reports."""

    def __init__(self, expander: LoopElseExpander, source: str, file: Path | None):
        self.expander = expander
        self.source = source
        self.file = file
        self.reports: list[ExpansionReport] = []

    def run(self) -> str:
        return self._expand_slice(self.source, base=0, depth=0)

    def _expand_slice(self, text: str, base: int, depth: int) -> str:
        """Expand invocations in `text`, which is `source[base:base + len(text)]`."""
        try:
            tokens = tokenize(text, offset=base)
        except ForElseError as e:
            self._attach(e, e.span.start if e.span else base, None)
            raise

        invocations = find_invocations(tokens, self.expander.config.macro_kinds)
        if not invocations:
            return text

        logger.debug("Found %d invocation(s) at depth %d", len(invocations), depth)

        # Expand in reverse order to preserve positions
        result = text
        for inv in reversed(invocations):
            replacement = self._expand_invocation(inv, depth)
            start, end = inv.start - base, inv.end - base
            result = result[:start] + replacement + result[end:]
        return result

    def _expand_invocation(self, inv: Invocation, depth: int) -> str:
        inner_span = inv.inner_span
        inner = self.source[inner_span.start : inner_span.end]
        expanded_inner = self._expand_slice(inner, inner_span.start, depth + 1)
        # spans are only meaningful while the input is still the original text
        exact = expanded_inner == inner

        try:
            if exact:
                tokens = inv.group.children
            else:
                tokens = tokenize(expanded_inner)
            text, spec, sites = self.expander._expand_tokens(
                inv.kind,
                tokens,
                inner_span if exact else None,
                depth,
                base_indent="" if _has_multiline_literal(tokens) else self._line_indent(inv.start),
            )
        except ForElseError as e:
            offset = e.span.start if exact and e.span else inv.name_pos
            self._attach(e, offset, inv.name)
            raise

        line, column = locate(self.source, inv.name_pos)
        self.reports.append(
            ExpansionReport(
                line=line,
                column=column,
                macro=inv.name,
                kind=inv.kind,
                label=spec.label,
                driver=_driver_text(spec.driver),
                depth=depth,
                breaks_found=len(sites),
                breaks_rewritten=sum(1 for site in sites if site.rewritten),
            )
        )
        logger.debug(
            "Expanded %s! at %d:%d (%d of %d breaks rewritten)",
            inv.name,
            line,
            column,
            self.reports[-1].breaks_rewritten,
            len(sites),
        )
        return text

    def _line_indent(self, offset: int) -> str:
        line_start = self.source.rfind("\n", 0, offset) + 1
        prefix = self.source[line_start:offset]
        return prefix[: len(prefix) - len(prefix.lstrip(" \t"))]

    def _attach(self, error: ForElseError, offset: int, module: str | None) -> None:
        if error.context is None:
            error.with_context(make_expansion_context(self.source, offset, self.file, module))
        if isinstance(error, RewriteInvariantError):
            logger.error("Rewrite invariant violated: %s", error.message)


def _driver_text(driver: TokenRun) -> str:
    """Render a driver; parenthesize it if a top-level `{}` could end the head early.

    A `let` scrutinee is never parenthesized: `while (let ..)` is not valid Rust.
    """
    text = render_tokens(driver)
    if driver and is_ident(driver[0], "let"):
        return text
    if len(driver) > 1 and any(is_group(tree, Delimiter.BRACE) for tree in driver):
        return f"({text})"
    return text


def _has_multiline_literal(run: TokenRun) -> bool:
    # re-indenting would change the literal's value
    for tree in run:
        if isinstance(tree, Group):
            if _has_multiline_literal(tree.children):
                return True
        elif tree.kind == TokenKind.LITERAL and "\n" in tree.value:
            return True
    return False
