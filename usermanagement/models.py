"""Domain models for the user management service."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100
EMAIL_MAX_LENGTH = 255
PHONE_MAX_LENGTH = 20
WEBSITE_MAX_LENGTH = 255
COMPANY_MAX_LENGTH = 255


@dataclass(frozen=True)
class User:
    """Represents a user record held by the in-memory store."""

    id: int
    name: str
    email: str
    created_at: datetime
    updated_at: datetime
    phone: Optional[str] = None
    website: Optional[str] = None
    company: Optional[str] = None

    def matches(self, needle: str) -> bool:
        """Return ``True`` when ``needle`` (already lower-cased) occurs in name, email or company."""

        if needle in self.name.lower() or needle in self.email.lower():
            return True
        return self.company is not None and needle in self.company.lower()


@dataclass(frozen=True)
class UserInput:
    """Fields accepted when creating or updating a user."""

    name: str
    email: str
    phone: Optional[str] = None
    website: Optional[str] = None
    company: Optional[str] = None


__all__ = [
    "COMPANY_MAX_LENGTH",
    "EMAIL_MAX_LENGTH",
    "NAME_MAX_LENGTH",
    "NAME_MIN_LENGTH",
    "PHONE_MAX_LENGTH",
    "User",
    "UserInput",
    "WEBSITE_MAX_LENGTH",
]
