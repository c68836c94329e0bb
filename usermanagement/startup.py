"""One-shot seeding of the user store when the service starts."""

from __future__ import annotations

import logging
import threading
from enum import Enum

from .seed import SeedFetcher
from .users import UserService

logger = logging.getLogger("usermanagement.startup")


class SeedState(str, Enum):
    """Lifecycle of the startup seeding step."""

    UNSEEDED = "unseeded"
    SEEDED = "seeded"


class SeedingOrchestrator:
    """Populate an empty store from the seed source exactly once.

    Seeding never overwrites or duplicates existing data: a store that
    already holds users is left untouched and the fetcher is not called.
    Failures are logged and swallowed so that startup always completes.
    """

    def __init__(self, fetcher: SeedFetcher, service: UserService) -> None:
        self._fetcher = fetcher
        self._service = service
        self._state = SeedState.UNSEEDED
        self._lock = threading.Lock()

    @property
    def state(self) -> SeedState:
        return self._state

    def run(self) -> int:
        """Seed the store if required and return the number of users loaded."""

        with self._lock:
            if self._state is SeedState.SEEDED:
                return 0
            loaded = 0
            try:
                if not self._service.is_empty():
                    logger.info("User store already contains users; skipping initial seed")
                else:
                    logger.info("User store is empty; fetching initial users")
                    users = self._fetcher.fetch_initial_users()
                    if users:
                        loaded = self._service.load_seed(users)
                        logger.info("Seeded user store with %s users", loaded)
                    else:
                        logger.warning("No users were fetched; user store remains empty")
            except Exception:
                logger.exception(
                    "Seeding the user store failed; continuing with existing data"
                )
            finally:
                self._state = SeedState.SEEDED
            return loaded


__all__ = ["SeedState", "SeedingOrchestrator"]
