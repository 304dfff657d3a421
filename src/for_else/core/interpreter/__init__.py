"""
Reference interpreter for a small Rust subset.

Runs statement lists such as the output of the loop-else expander, so
that expansions can be checked by what they do rather than by how they
read.

Usage:
    from for_else.core.interpreter import run

    bindings = run("let mut n = 0; for i in 0..4 { n += i; }")
    # bindings == {"n": 6}
"""

from __future__ import annotations

import logging
from typing import Any

from for_else.core.interpreter.evaluator import Scope, execute
from for_else.core.interpreter.parser import parse_program

logger = logging.getLogger(__name__)


def run(source: str, env: dict[str, Any] | None = None) -> dict[str, Any]:
    """Execute a statement list and return its top-level bindings.

    Args:
        source: Rust statements (the inside of a block, not an item).
        env: Initial immutable bindings visible to the program.

    Returns:
        Name -> value for every initialized top-level binding, `env` included.

    Raises:
        TokenizeError: If the source is not lexically valid.
        SyntaxParseError: If the source uses syntax outside the supported subset.
        EvaluationError: On runtime errors and failed assertions.
    """
    program = parse_program(source)
    scope = Scope()
    for name, value in (env or {}).items():
        scope.declare(name, value)

    logger.debug("Running %d statement(s)", len(program.stmts) + (program.tail is not None))
    execute(program, scope)
    return scope.values()


__all__ = ["run"]
