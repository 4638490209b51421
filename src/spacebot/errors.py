"""Exception types raised by spacebot."""

from __future__ import annotations


class SpacebotError(Exception):
    """Base class for spacebot errors."""


class NotFoundError(SpacebotError):
    """A location id or search term could not be resolved."""


class ValidationError(SpacebotError):
    """Malformed tool or CLI input."""


class UpstreamError(SpacebotError):
    """The booking API failed or returned a non-success status."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status
