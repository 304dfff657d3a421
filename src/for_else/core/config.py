"""
Configuration for for-else expansion.

Settings are read from TOML, in this order:

1. an explicit file passed by the caller,
2. `for-else.toml` in the project directory,
3. the `[tool.for-else]` table of `pyproject.toml` in the project directory,
4. built-in defaults.

A `for-else.toml` may hold the keys at top level or under a `[for-else]`
table:

    flag_name = "_for_else_break_occurred"
    for_macro = "for_"
    while_macro = "while_"
    indent = 4
    log_level = "WARNING"

The FOR_ELSE_LOG_LEVEL environment variable overrides `log_level`.

Usage:
    from for_else.core.config import load_config

    config = load_config()
    expander = LoopElseExpander(config)
"""

from __future__ import annotations

import logging
import os
import re
import tomllib
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

from for_else.core.errors import ConfigError

CONFIG_FILE_NAME = "for-else.toml"
PYPROJECT_TABLE = "for-else"

# Environment variable name for the log level override
LOG_LEVEL_ENV_VAR = "FOR_ELSE_LOG_LEVEL"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
_IDENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass(frozen=True)
class ExpanderConfig:
    """Settings for one expansion run."""

    flag_name: str = "_for_else_break_occurred"  # completion flag variable
    for_macro: str = "for_"  # macro name for iterator loops
    while_macro: str = "while_"  # macro name for condition loops
    indent: int = 4  # spaces per indentation level in emitted code
    log_level: str = "WARNING"

    def __post_init__(self) -> None:
        for name in ("flag_name", "for_macro", "while_macro"):
            value = getattr(self, name)
            if not isinstance(value, str) or not _IDENT_RE.match(value):
                raise ConfigError(f"{name} must be a Rust identifier, got {value!r}")
        if self.for_macro == self.while_macro:
            raise ConfigError("for_macro and while_macro must differ")
        if not isinstance(self.indent, int) or isinstance(self.indent, bool) or self.indent < 1:
            raise ConfigError(f"indent must be a positive integer, got {self.indent!r}")
        if not isinstance(self.log_level, str) or self.log_level.upper() not in _LOG_LEVELS:
            raise ConfigError(
                f"log_level must be one of {', '.join(_LOG_LEVELS)}, got {self.log_level!r}"
            )

    @property
    def macro_kinds(self) -> dict[str, str]:
        """Macro name -> loop keyword."""
        return {self.for_macro: "for", self.while_macro: "while"}


def load_config(path: Path | None = None, start: Path | None = None) -> ExpanderConfig:
    """
    Load configuration.

    Args:
        path: Explicit TOML file. Must exist if given.
        start: Directory searched for for-else.toml / pyproject.toml
            (defaults to the current directory).

    Returns:
        ExpanderConfig with the environment override applied.

    Raises:
        ConfigError: If a file cannot be read or holds invalid values.
    """
    data: dict[str, Any] = {}

    if path is not None:
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        data = _read_table(path, _config_section)
    else:
        directory = start or Path.cwd()
        config_file = directory / CONFIG_FILE_NAME
        pyproject = directory / "pyproject.toml"
        if config_file.exists():
            data = _read_table(config_file, _config_section)
        elif pyproject.exists():
            data = _read_table(pyproject, _pyproject_section)

    known = {f.name for f in fields(ExpanderConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")

    config = ExpanderConfig(**data)
    return _apply_env_override(config)


def _read_table(path: Path, section) -> dict[str, Any]:
    try:
        document = tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"Could not read {path}: {e}") from e
    return dict(section(document))


def _config_section(document: dict[str, Any]) -> dict[str, Any]:
    return document.get(PYPROJECT_TABLE, document)


def _pyproject_section(document: dict[str, Any]) -> dict[str, Any]:
    return document.get("tool", {}).get(PYPROJECT_TABLE, {})


def _apply_env_override(config: ExpanderConfig) -> ExpanderConfig:
    """Apply FOR_ELSE_LOG_LEVEL; unknown values are ignored with a warning."""
    env_value = os.environ.get(LOG_LEVEL_ENV_VAR, "").strip().upper()
    if not env_value:
        return config
    if env_value not in _LOG_LEVELS:
        logging.getLogger(__name__).warning(
            "Unknown %s value '%s'. Valid values: %s. Keeping %s.",
            LOG_LEVEL_ENV_VAR,
            env_value,
            ", ".join(_LOG_LEVELS),
            config.log_level,
        )
        return config
    return replace(config, log_level=env_value)
