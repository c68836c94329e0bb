"""In-memory record store for user accounts."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Dict, Iterator, List, Optional

from .errors import NotFoundError, StoreError
from .models import User, UserInput


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _sort_key(user: User) -> tuple[str, int]:
    return (user.name, user.id)


class UserStore:
    """Hold user records keyed by id and hand out identifiers.

    Identifiers are monotonic for the lifetime of the store and are never
    reused, even after the record holding them is removed. All access goes
    through a single re-entrant lock; :meth:`transaction` exposes it so that
    callers can make a read-check-then-write sequence atomic.
    """

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._records: Dict[int, User] = {}
        self._next_id = 1
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    @contextmanager
    def transaction(self) -> Iterator["UserStore"]:
        with self._lock:
            yield self

    def is_empty(self) -> bool:
        with self._lock:
            return not self._records

    def insert(self, candidate: UserInput) -> User:
        """Store a new record under the next free identifier."""

        with self._lock:
            timestamp = self._clock()
            user = User(
                id=self._next_id,
                name=candidate.name,
                email=candidate.email,
                phone=candidate.phone,
                website=candidate.website,
                company=candidate.company,
                created_at=timestamp,
                updated_at=timestamp,
            )
            self._records[user.id] = user
            self._next_id += 1
            return user

    def insert_existing(self, user: User) -> User:
        """Store a record that already carries its identifier and timestamps."""

        with self._lock:
            if user.id in self._records:
                raise StoreError(f"User with ID {user.id} already exists")
            if user.id < 1:
                raise StoreError(f"Invalid user identifier {user.id}")
            self._records[user.id] = user
            self._next_id = max(self._next_id, user.id + 1)
            return user

    def get(self, user_id: int) -> Optional[User]:
        with self._lock:
            return self._records.get(user_id)

    def update(self, record: User) -> User:
        """Replace the stored record sharing ``record.id``.

        The stored creation timestamp is kept and the modification timestamp
        refreshed; neither is taken from ``record``.
        """

        with self._lock:
            current = self._records.get(record.id)
            if current is None:
                raise NotFoundError(record.id)
            timestamp = max(self._clock(), current.created_at)
            updated = replace(record, created_at=current.created_at, updated_at=timestamp)
            self._records[record.id] = updated
            return updated

    def remove(self, user_id: int) -> bool:
        with self._lock:
            return self._records.pop(user_id, None) is not None

    def all(self) -> Iterator[User]:
        """Yield a snapshot of every record ordered by name, then id."""

        with self._lock:
            snapshot: List[User] = list(self._records.values())
        snapshot.sort(key=_sort_key)
        yield from snapshot


__all__ = ["UserStore"]
