"""Exception hierarchy shared by the SheetDB store, registry and grid client."""

from __future__ import annotations

from typing import Optional

__all__ = [
    "SheetDBError",
    "IndexOutOfRangeError",
    "InvalidUsageError",
    "RemoteFailureError",
    "AuthError",
    "DuplicateNameError",
    "CollectionNotFoundError",
    "SheetNotFoundError",
]


class SheetDBError(Exception):
    """Base error raised by every SheetDB component."""


class IndexOutOfRangeError(SheetDBError, ValueError):
    """Raised when a column offset below 1 is converted to a column letter."""


class InvalidUsageError(SheetDBError):
    """Raised when an operation is called with a missing collection or bad record."""


class RemoteFailureError(SheetDBError):
    """Raised when the spreadsheet service rejects or fails a request."""

    def __init__(self, message: str, *, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class AuthError(RemoteFailureError):
    """Raised when credentials cannot be loaded or authorised."""


class DuplicateNameError(RemoteFailureError):
    """Raised when a sheet with the requested title already exists."""


class CollectionNotFoundError(SheetDBError):
    """Raised when a refresh targets a collection that does not exist."""


class SheetNotFoundError(SheetDBError):
    """Raised when a registered collection lost its backing sheet."""
