"""
for-else - loop-else constructs for Rust, expanded to plain Rust.

Rewrites `for_! { pat in expr { .. } else { .. } }` and
`while_! { cond { .. } else { .. } }` so that the else block runs only
when the loop finished without a `break` that targets it.
"""

from __future__ import annotations

from ._version import get_version
from .core.errors import ExpansionError, ForElseError, TokenizeError
from .core.expander import LoopElseExpander

__version__ = get_version()

__all__ = [
    "__version__",
    "ExpansionError",
    "ForElseError",
    "LoopElseExpander",
    "TokenizeError",
]
