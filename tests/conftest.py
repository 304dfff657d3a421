"""Shared pytest fixtures for for-else tests."""

from collections.abc import Callable
from pathlib import Path

import pytest

from for_else.core.config import ExpanderConfig
from for_else.core.expander import LoopElseExpander


@pytest.fixture
def expander() -> LoopElseExpander:
    """Return an expander with default settings."""
    return LoopElseExpander(ExpanderConfig())


@pytest.fixture
def rust_file(tmp_path: Path) -> Callable[[str, str], Path]:
    """Return a factory that writes Rust source into the temporary directory."""

    def write(source: str, name: str = "input.rs") -> Path:
        path = tmp_path / name
        path.write_text(source)
        return path

    return write


@pytest.fixture(autouse=True)
def _clear_log_level_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep FOR_ELSE_LOG_LEVEL from the outer environment out of tests."""
    monkeypatch.delenv("FOR_ELSE_LOG_LEVEL", raising=False)
