"""Fetch the initial user dataset from the external seed source."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, List, Mapping, Optional

import httpx

from .errors import MalformedUpstreamDataError, UpstreamUnavailableError
from .models import User

logger = logging.getLogger("usermanagement.seed")

DEFAULT_SEED_URL = "https://jsonplaceholder.typicode.com/users"
DEFAULT_TIMEOUT = 10.0
DEFAULT_MAX_ATTEMPTS = 3


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _optional_text(payload: Mapping[str, Any], key: str) -> Optional[str]:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise MalformedUpstreamDataError(f"Field {key!r} must be a string")
    return value


def _company_name(payload: Mapping[str, Any]) -> Optional[str]:
    company = payload.get("company")
    if company is None:
        return None
    if not isinstance(company, Mapping):
        raise MalformedUpstreamDataError("Field 'company' must be an object")
    return _optional_text(company, "name")


def parse_seed_user(payload: object, *, now: datetime) -> User:
    """Convert one object from the seed payload into a :class:`User`."""

    if not isinstance(payload, Mapping):
        raise MalformedUpstreamDataError("Seed entries must be JSON objects")

    raw_id = payload.get("id")
    if isinstance(raw_id, bool) or not isinstance(raw_id, int):
        raise MalformedUpstreamDataError("Seed entries must carry an integer 'id'")

    return User(
        id=raw_id,
        name=_optional_text(payload, "name") or "",
        email=_optional_text(payload, "email") or "",
        phone=_optional_text(payload, "phone"),
        website=_optional_text(payload, "website"),
        company=_company_name(payload),
        created_at=now,
        updated_at=now,
    )


def parse_seed_payload(payload: object, *, now: datetime) -> List[User]:
    if not isinstance(payload, list):
        raise MalformedUpstreamDataError("Seed payload must be a JSON array")
    return [parse_seed_user(item, now=now) for item in payload]


class SeedFetcher:
    """Retrieve and parse the seed dataset, tolerating transient failures.

    :meth:`fetch_initial_users` never raises. Transport failures and error
    responses are retried with exponential backoff (``2 ** attempt``
    seconds); a malformed payload or any unexpected error aborts immediately.
    Every failure path resolves to an empty list so the host process can
    start without seed data.
    """

    def __init__(
        self,
        url: str = DEFAULT_SEED_URL,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        client: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._url = url
        self._timeout = timeout
        self._max_attempts = max_attempts
        self._client = client
        self._sleep = sleep
        self._clock = clock

    @property
    def url(self) -> str:
        return self._url

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def fetch_initial_users(self) -> List[User]:
        for attempt in range(1, self._max_attempts + 1):
            logger.info(
                "Fetching users from %s (attempt %s/%s)", self._url, attempt, self._max_attempts
            )
            try:
                users = self._fetch_once()
            except UpstreamUnavailableError as exc:
                logger.error("Seed request failed on attempt %s: %s", attempt, exc)
            except MalformedUpstreamDataError as exc:
                logger.error("Seed payload could not be parsed: %s", exc)
                return []
            except Exception:
                logger.exception("Unexpected error while fetching seed users")
                return []
            else:
                if users:
                    logger.info("Fetched %s users from %s", len(users), self._url)
                else:
                    logger.warning("No users returned from %s", self._url)
                return users

            if attempt < self._max_attempts:
                delay = float(2**attempt)
                logger.info("Waiting %s seconds before retry", delay)
                self._sleep(delay)

        logger.warning(
            "Failed to fetch users after %s attempts; starting without seed data",
            self._max_attempts,
        )
        return []

    def _fetch_once(self) -> List[User]:
        try:
            response = self._get()
        except httpx.TransportError as exc:
            raise UpstreamUnavailableError(f"Failed to contact seed source: {exc}") from exc

        if response.is_error:
            raise UpstreamUnavailableError(
                f"Seed source responded with status {response.status_code}"
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise MalformedUpstreamDataError("Seed source returned invalid JSON") from exc

        return parse_seed_payload(payload, now=self._clock())

    def _get(self) -> httpx.Response:
        if self._client is not None:
            return self._client.get(self._url, timeout=self._timeout)
        return httpx.get(self._url, timeout=self._timeout)


__all__ = [
    "DEFAULT_MAX_ATTEMPTS",
    "DEFAULT_SEED_URL",
    "DEFAULT_TIMEOUT",
    "SeedFetcher",
    "parse_seed_payload",
    "parse_seed_user",
]
