"""
Cache/fetch coordinator — the SINGLE entry point for upstream data.

Policy (per ``get_data`` call)
------------------------------
1. Force if asked to, or if an operator left a refresh flag in the store.
2. Not forcing and the cache is still valid → return it. The fetcher is
   never touched on a cache hit.
3. Forcing → delete the refresh flag *before* fetching, so a failed fetch
   can't leave it stuck.
4. Fetch. On success, store payload + timestamp as one entry.
5. On failure, serve whatever payload is cached, however old. Only when
   nothing was ever cached does the error reach the caller.

Concurrent misses each fetch on their own unless ``single_flight`` is on.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any

from miusage_feed.errors import FetchError
from miusage_feed.services.cache import CacheStore
from miusage_feed.services.fetcher import Fetcher

logger = logging.getLogger(__name__)

PAYLOAD_KEY = "miusage_feed_data"
REFRESH_FLAG_KEY = "miusage_feed_force_refresh"

DEFAULT_TTL = 3600
DEFAULT_REFRESH_FLAG_TTL = 60


@dataclass(frozen=True)
class CacheInfo:
    has_cache: bool
    age: float
    is_valid: bool
    expires_in: float
    timestamp: float | None = None


class DataCoordinator:
    """
    Decide, per request, between cached data, a fresh fetch, or stale data.

    Args:
        store:            Backing ``CacheStore`` (payload slot and flag slot).
        fetcher:          ``Fetcher`` for the upstream endpoint.
        ttl:              Seconds a fetched payload stays valid.
        refresh_flag_ttl: Seconds an unconsumed force-refresh flag survives.
        single_flight:    Serialise concurrent cache misses behind one fetch.

    Example:
        >>> coordinator = DataCoordinator(MemoryCacheStore(), Fetcher(url))
        >>> coordinator.get_data()
        {'title': ..., 'data': {...}}
    """

    def __init__(
        self,
        store: CacheStore,
        fetcher: Fetcher,
        ttl: float = DEFAULT_TTL,
        refresh_flag_ttl: float = DEFAULT_REFRESH_FLAG_TTL,
        single_flight: bool = False,
    ) -> None:
        self.store = store
        self.fetcher = fetcher
        self.ttl = ttl
        self.refresh_flag_ttl = refresh_flag_ttl
        self.single_flight = single_flight
        self._fetch_lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self.fetch_count = 0
        self.fallback_count = 0

    # ── public API ────────────────────────────────────────────────────────

    def get_data(self, force: bool = False) -> Any:
        """
        Return the payload, fetching only when the policy requires it.

        Args:
            force: Bypass a valid cache for this call.

        Returns:
            The decoded payload (``dict`` or ``list``). A stale fallback has
            the same shape as a fresh result.

        Raises:
            FetchError: The fetch failed and nothing was ever cached.
        """
        should_force = force or self.is_refresh_pending()

        if not should_force:
            cached = self.get_cached_data()
            if cached is not None:
                logger.debug("Cache hit for %s", PAYLOAD_KEY)
                return cached

        if should_force:
            self.store.delete(REFRESH_FLAG_KEY)
            logger.info("Forced refresh, bypassing cache")

        if self.single_flight:
            with self._fetch_lock:
                if not should_force:
                    # Another thread may have filled the cache while we waited.
                    cached = self.get_cached_data()
                    if cached is not None:
                        return cached
                return self._fetch_and_store()
        return self._fetch_and_store()

    def get_cached_data(self) -> Any | None:
        """Return the cached payload if it is younger than ``ttl``, else None."""
        entry = self.store.get_entry(PAYLOAD_KEY, include_expired=True)
        if entry is None:
            return None
        if self.store.clock() - entry.stored_at < self.ttl:
            return entry.payload
        return None

    def mark_for_refresh(self) -> bool:
        """Make the next ``get_data`` call bypass the cache, once."""
        ok = self.store.set(REFRESH_FLAG_KEY, True, self.refresh_flag_ttl)
        if ok:
            logger.info("Marked data for refresh (flag expires in %ss)", self.refresh_flag_ttl)
        return ok

    def is_refresh_pending(self) -> bool:
        return bool(self.store.get(REFRESH_FLAG_KEY))

    def clear_cache(self) -> None:
        """Drop the payload and any pending refresh flag."""
        self.store.delete(PAYLOAD_KEY)
        self.store.delete(REFRESH_FLAG_KEY)
        logger.info("Cache cleared")

    def get_cache_info(self) -> CacheInfo:
        """Describe the cached payload. Never fetches, never writes."""
        entry = self.store.get_entry(PAYLOAD_KEY, include_expired=True)
        if entry is None:
            return CacheInfo(has_cache=False, age=0, is_valid=False, expires_in=0)

        age = max(0.0, self.store.clock() - entry.stored_at)
        return CacheInfo(
            has_cache=True,
            age=age,
            is_valid=age < self.ttl,
            expires_in=max(0.0, self.ttl - age),
            timestamp=entry.stored_at,
        )

    # ── private helpers ───────────────────────────────────────────────────

    def _fetch_and_store(self) -> Any:
        with self._stats_lock:
            self.fetch_count += 1
        try:
            data = self.fetcher.fetch()
        except FetchError as e:
            stale = self.store.get_entry(PAYLOAD_KEY, include_expired=True)
            if stale is not None:
                with self._stats_lock:
                    self.fallback_count += 1
                logger.warning(
                    "API call failed, returning stale cache (kind=%s): %s", e.kind, e.message
                )
                return stale.payload
            logger.error("API call failed and no cached data is available: %s", e.message)
            raise

        if not self.store.set(PAYLOAD_KEY, data, self.ttl):
            logger.error("Failed to write fetched data to cache")
        return data
