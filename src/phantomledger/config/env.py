"""Environment variable loaders for configuration."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from .errors import MissingConfigurationError

if TYPE_CHECKING:
    from collections.abc import Sequence


def require_env_vars(names: Sequence[str]) -> dict[str, str]:
    """Return the given environment variables or raise if any are missing/blank."""

    missing: list[str] = []
    values: dict[str, str] = {}
    for name in names:
        value = os.getenv(name)
        if value is None or not value.strip():
            missing.append(name)
            continue
        values[name] = value

    if missing:
        missing_list = ", ".join(sorted(missing))
        raise MissingConfigurationError(f"Missing configuration for: {missing_list}")

    return values


def require_env_var(name: str) -> str:
    """Return a required environment variable by name."""

    return require_env_vars([name])[name]


def prefixed_env(prefix: str) -> dict[str, str]:
    """Return environment values whose name starts with ``prefix``, keyed without it.

    Keys are lower-cased so they line up with settings-table names.
    """

    values: dict[str, str] = {}
    for name, value in os.environ.items():
        if name.startswith(prefix):
            values[name.removeprefix(prefix).lower()] = value
    return values
