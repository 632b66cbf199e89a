"""Errors raised by content generators."""

from __future__ import annotations


class ContentGeneratorError(Exception):
    """A provider call failed. The message carries the provider prefix."""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.status_code = status_code

    def __str__(self) -> str:
        return self.message
