"""Typed readers for environment variables."""

from __future__ import annotations

import os
from typing import Final

from .errors import ConfigurationError

_TRUE_VALUES: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES: Final[frozenset[str]] = frozenset({"0", "false", "no", "off", ""})


def env_flag(name: str, *, default: bool = False) -> bool:
    """Interpret an environment variable as a boolean switch."""

    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ConfigurationError(name, f"expected a boolean switch, got {value!r}")
