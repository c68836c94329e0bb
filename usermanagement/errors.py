"""Exception hierarchy shared by the store, service, seeding and API layers."""

from __future__ import annotations

from typing import Iterable, List


class UserManagementError(Exception):
    """Base class for all service-specific failures."""


class ValidationError(UserManagementError, ValueError):
    """Raised when one or more user fields violate their constraints."""

    def __init__(self, errors: Iterable[str]) -> None:
        self.errors: List[str] = list(errors)
        super().__init__("; ".join(self.errors) or "Validation failed")


class ConflictError(UserManagementError):
    """Raised when an email address is already registered to another user."""

    def __init__(self, email: str) -> None:
        super().__init__(f"Email '{email}' is already registered")
        self.email = email


class NotFoundError(UserManagementError, LookupError):
    """Raised when no user exists for the requested identifier."""

    def __init__(self, user_id: int) -> None:
        super().__init__(f"User with ID {user_id} not found")
        self.user_id = user_id


class UpstreamUnavailableError(UserManagementError):
    """Raised when a request to the seed source fails or returns an error status."""


class MalformedUpstreamDataError(UserManagementError, ValueError):
    """Raised when the seed source returned a payload that cannot be parsed."""


class StoreError(UserManagementError, RuntimeError):
    """Raised when the record store detects an inconsistent operation."""


__all__ = [
    "ConflictError",
    "MalformedUpstreamDataError",
    "NotFoundError",
    "StoreError",
    "UpstreamUnavailableError",
    "UserManagementError",
    "ValidationError",
]
