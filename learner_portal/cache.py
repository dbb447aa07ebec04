"""Listing cache for course and lesson reads.

A plain object with a declared staleness window, a retry count and an
exponential backoff. One instance lives on ``app.state.cache`` and is passed
by reference into the services that read listings.

Failed loads never raise a StoreError: after the last retry the previous
value is served if there is one, otherwise an empty list. A key whose reload
failed is not retried again until ``failure_cooldown`` has passed, so an
outage costs one retry chain per cooldown rather than one per request.
"""

import logging
import threading
import time
from typing import Callable

from learner_portal.config import (
    CACHE_BACKOFF_BASE,
    CACHE_FAILURE_COOLDOWN,
    CACHE_RETRIES,
    CACHE_STALE_SECONDS,
)
from learner_portal.supabase_client import StoreError

logger = logging.getLogger(__name__)


class QueryCache:
    """Keyed listing cache: stale window, bounded retries, exponential backoff."""

    def __init__(
        self,
        stale_seconds: float = CACHE_STALE_SECONDS,
        retries: int = CACHE_RETRIES,
        backoff_base: float = CACHE_BACKOFF_BASE,
        failure_cooldown: float = CACHE_FAILURE_COOLDOWN,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.stale_seconds = stale_seconds
        self.retries = retries
        self.backoff_base = backoff_base
        self.failure_cooldown = failure_cooldown
        self._clock = clock
        self._sleep = sleep
        self._entries: dict[str, tuple[float, list]] = {}
        self._failed_at: dict[str, float] = {}
        self._lock = threading.Lock()

    def _fallback(self, entry: tuple[float, list] | None) -> list:
        return entry[1] if entry else []

    def get(self, key: str, loader: Callable[[], list]) -> list:
        """Return the cached listing for key, loading it when missing or stale."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            failed_at = self._failed_at.get(key)
        if entry and now - entry[0] < self.stale_seconds:
            return entry[1]
        if failed_at is not None and now - failed_at < self.failure_cooldown:
            return self._fallback(entry)

        try:
            value = self._load_with_retry(key, loader)
        except StoreError as e:
            with self._lock:
                self._failed_at[key] = self._clock()
            if entry:
                logger.warning("Serving stale %s after failed refresh: %s", key, e)
            else:
                logger.warning("Read degraded for %s, using empty list: %s", key, e)
            return self._fallback(entry)

        with self._lock:
            self._entries[key] = (self._clock(), value)
            self._failed_at.pop(key, None)
        return value

    def _load_with_retry(self, key: str, loader: Callable[[], list]) -> list:
        for attempt in range(self.retries + 1):
            try:
                return loader()
            except StoreError:
                if attempt >= self.retries:
                    raise
                wait = self.backoff_base * (2 ** attempt)
                logger.info("Load of %s failed (attempt %d), retrying in %.2fs", key, attempt + 1, wait)
                self._sleep(wait)
        return []

    def invalidate(self, key: str | None = None) -> None:
        """Drop one key, or everything when key is None."""
        with self._lock:
            if key is None:
                self._entries.clear()
                self._failed_at.clear()
            else:
                self._entries.pop(key, None)
                self._failed_at.pop(key, None)

    def refresh(self, key: str, loader: Callable[[], list]) -> list:
        """Force a reload of key regardless of staleness or cooldown, keeping the old value as fallback."""
        with self._lock:
            entry = self._entries.get(key)
            if entry:
                self._entries[key] = (float("-inf"), entry[1])
            self._failed_at.pop(key, None)
        return self.get(key, loader)


# Shared by the app and the background refresh job
listing_cache = QueryCache()
