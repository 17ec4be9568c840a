from __future__ import annotations

from typing import Any, Optional


class DirectoryError(Exception):
    """
    Base class for errors raised by the resolution and permission layers.

    Each subclass carries a machine-readable `error_type` that the HTTP layer
    copies into the standard error envelope.
    """

    error_type: str = "directory_error"

    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(DirectoryError):
    """No slug binding exists for the requested triple. Never retried."""

    error_type = "not_found"


class UnavailableError(DirectoryError):
    """
    The lookup capability failed (database down, timeout, ...).

    Distinct from NotFoundError so callers can show a transient error and skip
    redirecting instead of serving a 404. Callers may retry the whole
    navigation with backoff.
    """

    error_type = "unavailable"


class InvalidRequestError(DirectoryError):
    """Programmer error in a permission check, e.g. an unknown role token."""

    error_type = "invalid_request"


class SlugConflictError(DirectoryError):
    """A slug triple is already bound to a different entity."""

    error_type = "slug_conflict"
