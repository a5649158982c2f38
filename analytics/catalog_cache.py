"""TTL-bounded in-memory cache of the Codeforces problemset with stale-on-error fallback."""
import threading
import time
from typing import Callable

from utils.errors import CatalogUnavailable
from utils.logging import get_logger

logger = get_logger(__name__)


class CatalogCache:
    """Process-local snapshot of a large shared catalog.

    Warm reads never block. Refreshes (cold start or expiry) run one at a time
    behind a lock; callers that waited re-check the snapshot before fetching.
    Once a snapshot exists, fetch failures are logged and the stale snapshot is
    served instead.
    """

    def __init__(
        self,
        fetch: Callable[[], list[dict]],
        ttl_seconds: float,
        name: str = "catalog",
        retry_seconds: float = 0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._fetch = fetch
        self._ttl = ttl_seconds
        self._retry = retry_seconds
        self._clock = clock
        self.name = name
        # (entries, refreshed_at), replaced as a whole so readers see a consistent pair
        self._snapshot: tuple[list[dict], float] | None = None
        self._last_failure: float | None = None
        self._refresh_lock = threading.Lock()

    @property
    def state(self) -> str:
        snapshot = self._snapshot
        if snapshot is None:
            return "empty"
        return "stale" if self._expired(snapshot) else "fresh"

    @property
    def refreshed_at(self) -> float | None:
        snapshot = self._snapshot
        return snapshot[1] if snapshot else None

    def _expired(self, snapshot: tuple[list[dict], float]) -> bool:
        return self._clock() - snapshot[1] > self._ttl

    def _in_retry_backoff(self) -> bool:
        return self._last_failure is not None and self._clock() - self._last_failure < self._retry

    def get(self) -> list[dict]:
        snapshot = self._snapshot
        if snapshot is not None and (not self._expired(snapshot) or self._in_retry_backoff()):
            return snapshot[0]
        with self._refresh_lock:
            snapshot = self._snapshot
            if snapshot is not None and (not self._expired(snapshot) or self._in_retry_backoff()):
                return snapshot[0]
            try:
                entries = self._fetch()
            except Exception as e:
                self._last_failure = self._clock()
                if snapshot is None:
                    logger.warning("%s cache: initial fetch failed: %s", self.name, e)
                    raise CatalogUnavailable(f"{self.name} catalog unavailable: {e}") from e
                logger.warning("%s cache: refresh failed, serving stale snapshot (%s entries): %s", self.name, len(snapshot[0]), e)
                return snapshot[0]
            self._snapshot = (entries, self._clock())
            self._last_failure = None
            logger.info("%s cache refreshed: %s entries", self.name, len(entries))
            return entries

    def invalidate(self) -> None:
        """Mark the snapshot expired; it is still served if the next refresh fails."""
        snapshot = self._snapshot
        if snapshot is not None:
            self._snapshot = (snapshot[0], float("-inf"))

    def clear(self) -> None:
        self._snapshot = None
        self._last_failure = None


__all__ = ["CatalogCache"]
