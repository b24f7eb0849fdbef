"""Error types shared across the page locator and its collaborators."""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Required settings or credentials are missing or invalid."""


class NavigationError(RuntimeError):
    """The preview viewer could not be opened, read, or driven."""


class ModelRequestError(RuntimeError):
    """A model call failed after retries or returned no usable text."""

    def __init__(self, model: str, message: str) -> None:
        super().__init__(message)
        self.model = model
        self.message = message

    def __str__(self) -> str:
        return f"{self.message} (model={self.model})"
