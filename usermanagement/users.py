"""Business rules for creating, updating, deleting and searching users."""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import Iterable, List, Optional, Set

from .errors import ConflictError, NotFoundError, StoreError, ValidationError
from .models import (
    COMPANY_MAX_LENGTH,
    EMAIL_MAX_LENGTH,
    NAME_MAX_LENGTH,
    NAME_MIN_LENGTH,
    PHONE_MAX_LENGTH,
    WEBSITE_MAX_LENGTH,
    User,
    UserInput,
)
from .store import UserStore

logger = logging.getLogger("usermanagement.users")

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _normalise_name(value: Optional[str], errors: List[str]) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        errors.append("Name is required")
    elif not NAME_MIN_LENGTH <= len(cleaned) <= NAME_MAX_LENGTH:
        errors.append(
            f"Name must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters"
        )
    return cleaned


def _normalise_email(value: Optional[str], errors: List[str]) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        errors.append("Email is required")
    elif len(cleaned) > EMAIL_MAX_LENGTH:
        errors.append(f"Email cannot exceed {EMAIL_MAX_LENGTH} characters")
    elif not _EMAIL_PATTERN.fullmatch(cleaned):
        errors.append("Email must be a valid email address")
    return cleaned


def _normalise_optional(
    value: Optional[str],
    *,
    label: str,
    max_length: int,
    errors: List[str],
) -> Optional[str]:
    if value is None:
        return None
    cleaned = value.strip()
    if not cleaned:
        return None
    if len(cleaned) > max_length:
        errors.append(f"{label} cannot exceed {max_length} characters")
    return cleaned


def validate_user_input(data: UserInput) -> UserInput:
    """Return a normalised copy of ``data`` or raise :class:`ValidationError`.

    Every violated constraint is reported, not just the first one.
    """

    errors: List[str] = []
    name = _normalise_name(data.name, errors)
    email = _normalise_email(data.email, errors)
    phone = _normalise_optional(
        data.phone, label="Phone number", max_length=PHONE_MAX_LENGTH, errors=errors
    )
    website = _normalise_optional(
        data.website, label="Website URL", max_length=WEBSITE_MAX_LENGTH, errors=errors
    )
    company = _normalise_optional(
        data.company, label="Company name", max_length=COMPANY_MAX_LENGTH, errors=errors
    )
    if errors:
        raise ValidationError(errors)
    return UserInput(name=name, email=email, phone=phone, website=website, company=company)


class UserService:
    """Validate and apply user operations against a :class:`UserStore`.

    This is the only component that mutates the store. Validation,
    conflict and missing-record failures are raised as
    :class:`ValidationError`, :class:`ConflictError` and
    :class:`NotFoundError`; anything else is an internal failure and is left
    to propagate.
    """

    def __init__(self, store: UserStore | None = None) -> None:
        self._store = store or UserStore()

    def is_empty(self) -> bool:
        return self._store.is_empty()

    def list_all(self) -> List[User]:
        users = list(self._store.all())
        logger.info("Retrieved %s users", len(users))
        return users

    def get_by_id(self, user_id: int) -> User:
        user = self._store.get(user_id)
        if user is None:
            logger.warning("User with ID %s not found", user_id)
            raise NotFoundError(user_id)
        return user

    def create(self, data: UserInput) -> User:
        cleaned = validate_user_input(data)
        with self._store.transaction():
            if self._email_taken(cleaned.email):
                logger.warning("Email %s already exists", cleaned.email)
                raise ConflictError(cleaned.email)
            user = self._store.insert(cleaned)
        logger.info("Created user with ID %s", user.id)
        return user

    def update(self, user_id: int, data: UserInput) -> User:
        with self._store.transaction():
            current = self._store.get(user_id)
            if current is None:
                logger.warning("User with ID %s not found for update", user_id)
                raise NotFoundError(user_id)
            cleaned = validate_user_input(data)
            if current.email.lower() != cleaned.email.lower() and self._email_taken(
                cleaned.email, exclude_id=user_id
            ):
                logger.warning("Email %s already exists for another user", cleaned.email)
                raise ConflictError(cleaned.email)
            updated = self._store.update(
                replace(
                    current,
                    name=cleaned.name,
                    email=cleaned.email,
                    phone=cleaned.phone,
                    website=cleaned.website,
                    company=cleaned.company,
                )
            )
        logger.info("Updated user with ID %s", user_id)
        return updated

    def delete(self, user_id: int) -> bool:
        removed = self._store.remove(user_id)
        if removed:
            logger.info("Deleted user with ID %s", user_id)
        else:
            logger.warning("User with ID %s not found for deletion", user_id)
        return removed

    def search(self, term: Optional[str]) -> List[User]:
        if term is None or not term.strip():
            return self.list_all()
        needle = term.lower()
        users = [user for user in self._store.all() if user.matches(needle)]
        logger.info("Found %s users matching search term %r", len(users), term)
        return users

    def load_seed(self, users: Iterable[User]) -> int:
        """Insert pre-built records as is, skipping email uniqueness checks.

        The batch is loaded all-or-nothing: a repeated or already-live id
        raises :class:`StoreError` before any record is stored.
        """

        batch = list(users)
        with self._store.transaction():
            seen: Set[int] = set()
            for user in batch:
                if user.id < 1:
                    raise StoreError(f"Invalid user identifier {user.id} in seed data")
                if user.id in seen or self._store.get(user.id) is not None:
                    raise StoreError(f"Duplicate user identifier {user.id} in seed data")
                seen.add(user.id)
            for user in batch:
                self._store.insert_existing(user)
        return len(batch)

    def _email_taken(self, email: str, *, exclude_id: int | None = None) -> bool:
        lowered = email.lower()
        return any(
            user.email.lower() == lowered and user.id != exclude_id
            for user in self._store.all()
        )


__all__ = ["UserService", "validate_user_input"]
