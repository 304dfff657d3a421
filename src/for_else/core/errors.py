"""
Error types for for-else tokenizing, parsing, expansion and evaluation.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class Span:
    """Half-open range of offsets into the text that was tokenized."""

    start: int
    end: int


class ForElseError(Exception):
    """Base exception for all for-else errors."""

    def __init__(
        self,
        message: str,
        context: Optional["ErrorContext"] = None,
        span: Span | None = None,
    ):
        self.message = message
        self.context = context
        self.span = span
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format error message with context if available."""
        if self.context:
            return f"{self.context.format()}\n{self.message}"
        return self.message

    def with_context(self, context: "ErrorContext") -> "ForElseError":
        """Attach source context after the fact, keeping the original type."""
        self.context = context
        self.args = (self._format_message(),)
        return self


class TokenizeError(ForElseError):
    """
    Raised when source text cannot be split into tokens.

    Examples:
    - Unterminated string, char or block comment
    - Unbalanced or mismatched delimiters
    - Characters outside the Rust lexical grammar
    """

    pass


class SyntaxParseError(ForElseError):
    """
    Raised when a token run does not have the statement shape expected.

    Examples:
    - `if` without a block
    - A stray `else`
    - A label not followed by a loop or block
    """

    pass


class ExpansionError(ForElseError):
    """Raised when a loop-else invocation cannot be expanded."""

    pass


class MalformedLoopHeader(ExpansionError):
    """
    Raised when no `{ body } else { else }` suffix follows a driver.

    Examples:
    - Missing driver expression
    - Missing `else` block
    - Tokens left over after the else block
    """

    pass


class InvalidBody(ExpansionError):
    """Raised when the isolated loop body is not a well-formed block."""

    pass


class InvalidElseBlock(ExpansionError):
    """Raised when the isolated else block is not a well-formed block."""

    pass


class RewriteInvariantError(ForElseError):
    """
    Internal error: a synthesized replacement failed to re-parse.

    This indicates a bug in the rewriter rather than bad user input.
    """

    pass


class EvaluationError(ForElseError):
    """Raised when the reference interpreter cannot execute a program."""

    pass


class ConfigError(ForElseError):
    """Raised when for-else configuration is missing values or invalid."""

    pass


@dataclass
class ErrorContext:
    """
    Context information for an error, including source location.

    Attributes:
        file: Path to the source file where error occurred
        line: Line number (1-indexed)
        column: Column number (1-indexed)
        snippet: Optional code snippet showing the error location
        module: Optional macro name the error was raised for
    """

    file: Path
    line: int
    column: int
    snippet: str | None = None
    module: str | None = None

    def format(self) -> str:
        """
        Format error context as a human-readable string.

        Returns:
            Formatted string like: "main.rs:10:5 in for_!"
        """
        location = f"{self.file}:{self.line}:{self.column}"
        if self.module:
            location += f" in {self.module}!"

        if self.snippet:
            return f"{location}\n{self._format_snippet()}"
        return location

    def _format_snippet(self) -> str:
        """Format code snippet with line numbers and error marker."""
        if not self.snippet:
            return ""

        lines = self.snippet.split("\n")
        formatted = []

        # Snippet shows up to 2 lines before the error line
        start_line = max(1, self.line - 2)

        for i, line in enumerate(lines):
            line_num = start_line + i
            prefix = f"{line_num:4d} | "
            formatted.append(prefix + line)

            if line_num == self.line:
                marker_pos = len(prefix) + self.column - 1
                formatted.append(" " * marker_pos + "^^^")

        return "\n".join(formatted)


def locate(text: str, offset: int) -> tuple[int, int]:
    """Convert a text offset to a 1-indexed (line, column) pair."""
    offset = max(0, min(offset, len(text)))
    line = text.count("\n", 0, offset) + 1
    line_start = text.rfind("\n", 0, offset) + 1
    return line, offset - line_start + 1


def snippet_around(text: str, line: int, before: int = 2, after: int = 2) -> str:
    """Return the lines surrounding `line`, starting at most `before` lines earlier."""
    lines = text.split("\n")
    start = max(1, line - before)
    end = min(len(lines), line + after)
    return "\n".join(lines[start - 1 : end])


def make_expansion_context(
    text: str,
    offset: int,
    file: Path | None = None,
    module: str | None = None,
) -> ErrorContext:
    """
    Helper to build an ErrorContext for an offset into source text.

    Args:
        text: Full source text the offset refers to
        offset: Character offset of the error
        file: Source file path (defaults to "<input>")
        module: Optional macro name

    Returns:
        ErrorContext pointing at the offset
    """
    line, column = locate(text, offset)
    return ErrorContext(
        file=file or Path("<input>"),
        line=line,
        column=column,
        snippet=snippet_around(text, line, after=0),
        module=module,
    )
