"""Exceptions raised by the client core."""
from __future__ import annotations


class EdubridgeClientError(RuntimeError):
    """Base class for every client-side failure."""


class BackendError(EdubridgeClientError):
    """The data platform rejected a request or could not be reached."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class BackendNotConfiguredError(EdubridgeClientError):
    """No usable API URL is configured; the client runs disabled."""


class MalformedRecordError(EdubridgeClientError):
    """A row returned by the data platform failed validation."""


__all__ = ["EdubridgeClientError", "BackendError", "BackendNotConfiguredError", "MalformedRecordError"]
