"""Errors raised while reading configuration from the environment."""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """An environment variable holds a value tradepost cannot use."""

    def __init__(self, variable: str, detail: str) -> None:
        self.variable = variable
        super().__init__(f"{variable}: {detail}")
