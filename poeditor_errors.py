#!/usr/bin/env python3
"""Exception types raised while synchronizing strings with PoEditor."""

from typing import Optional, Sequence

__all__ = [
    "PoEditorSyncError",
    "ConfigurationError",
    "ParseError",
    "ApiError",
    "ValidationError",
]


class PoEditorSyncError(Exception):
    """Base class for every error that aborts an upload run."""


class ConfigurationError(PoEditorSyncError):
    """A required setting is missing or has an invalid value."""


class ParseError(PoEditorSyncError):
    """The local strings file is missing, unreadable or not well-formed XML."""


class ApiError(PoEditorSyncError):
    """
    The PoEditor API answered with a non-success envelope, or the request failed.

    Attributes:
        code: Error code reported by PoEditor, if any
        message: Error message reported by PoEditor (or a transport description)
        status_code: HTTP status of the response, None on transport failures
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(str(self))

    def __str__(self) -> str:
        details = []
        if self.code:
            details.append(f"Error code: {self.code}")
        if self.status_code is not None:
            details.append(f"HTTP status: {self.status_code}")
        if details:
            return f"{self.message} ({', '.join(details)})"
        return self.message


class ValidationError(PoEditorSyncError, ValueError):
    """An enumerated option does not match any of its allowed values."""

    def __init__(self, message: str, allowed: Sequence[str] = ()) -> None:
        self.allowed = tuple(allowed)
        super().__init__(message)
