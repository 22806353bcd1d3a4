"""TTL cache stores backing the data coordinator.

Every entry carries its own ``stored_at`` timestamp, so a payload and the
time it was fetched are always written and removed together. Expired entries
are not evicted on read; they stay until overwritten or deleted so the
coordinator can fall back to them when the upstream API is down.

Note: ``MemoryCacheStore`` is per-process. Each uvicorn worker has its own
instance and the CLI cannot see it, which is why the default backend is the
JSON file store.
"""

import json
import logging
import os
import tempfile
import threading
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Callable, Iterator

from filelock import FileLock

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass(frozen=True)
class CacheEntry:
    payload: Any
    stored_at: float
    ttl: float | None = None

    @property
    def expires_at(self) -> float | None:
        if self.ttl is None:
            return None
        return self.stored_at + self.ttl

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class CacheStore(ABC):
    """Key/value store with per-entry expiration and timestamp retrieval."""

    def __init__(self, clock: Clock = time.time):
        self.clock = clock

    @abstractmethod
    def get_entry(self, key: str, include_expired: bool = False) -> CacheEntry | None:
        """Return the raw entry, or None. Expired entries only when asked for."""

    @abstractmethod
    def set(self, key: str, value: Any, ttl: float | None) -> bool:
        """Store ``value`` stamped with the current time. Returns success."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``; a missing key is not an error."""

    @abstractmethod
    def clear(self) -> None:
        """Remove every entry."""

    def get(self, key: str) -> Any | None:
        entry = self.get_entry(key)
        return entry.payload if entry is not None else None

    def get_timestamp(self, key: str) -> float | None:
        entry = self.get_entry(key)
        return entry.stored_at if entry is not None else None

    def _live(self, entry: CacheEntry | None, include_expired: bool) -> CacheEntry | None:
        if entry is None:
            return None
        if not include_expired and entry.is_expired(self.clock()):
            return None
        return entry


class MemoryCacheStore(CacheStore):
    """Process-wide in-memory store. Thread-safe via a lock."""

    def __init__(self, clock: Clock = time.time):
        super().__init__(clock)
        self._lock = threading.RLock()
        self._store: dict[str, CacheEntry] = {}

    def get_entry(self, key: str, include_expired: bool = False) -> CacheEntry | None:
        with self._lock:
            entry = self._store.get(key)
        return self._live(entry, include_expired)

    def set(self, key: str, value: Any, ttl: float | None) -> bool:
        entry = CacheEntry(payload=value, stored_at=self.clock(), ttl=ttl)
        with self._lock:
            self._store[key] = entry
        return True

    def delete(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()


class FileCacheStore(CacheStore):
    """JSON file store shared between the web process and CLI invocations.

    Writes go to a temp file in the same directory and are moved into place
    with ``os.replace``, so a concurrent reader sees either the old or the new
    file, never a half-written one. Every read-modify-write holds a sidecar
    ``.lock`` file, so writers in other processes can't interleave. A missing
    or unreadable file reads as an empty store.
    """

    LOCK_TIMEOUT = 10

    def __init__(self, path: Path | str, clock: Clock = time.time):
        super().__init__(clock)
        self.path = Path(path)
        self._lock = threading.RLock()
        self._file_lock = FileLock(str(self.path) + ".lock", timeout=self.LOCK_TIMEOUT)

    def get_entry(self, key: str, include_expired: bool = False) -> CacheEntry | None:
        with self._lock:
            raw = self._read().get(key)
        if raw is None:
            return None
        try:
            entry = CacheEntry(**raw)
        except TypeError:
            logger.warning("Malformed cache entry %r in %s, ignoring", key, self.path)
            return None
        return self._live(entry, include_expired)

    def set(self, key: str, value: Any, ttl: float | None) -> bool:
        try:
            with self._transaction():
                entry = CacheEntry(payload=value, stored_at=self.clock(), ttl=ttl)
                data = self._read()
                data[key] = asdict(entry)
                return self._write(data)
        except OSError as e:
            logger.error("Failed to lock cache file %s: %s", self.path, e)
            return False

    def delete(self, key: str) -> None:
        try:
            with self._transaction():
                data = self._read()
                if data.pop(key, None) is not None:
                    self._write(data)
        except OSError as e:
            logger.error("Failed to lock cache file %s: %s", self.path, e)

    def clear(self) -> None:
        try:
            with self._transaction():
                self._write({})
        except OSError as e:
            logger.error("Failed to lock cache file %s: %s", self.path, e)

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        """Hold the in-process and the cross-process lock.

        Raises ``OSError`` (``filelock.Timeout`` included) when the lock file
        can't be created or acquired.
        """
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self._file_lock:
                yield

    def _read(self) -> dict[str, dict]:
        try:
            with self.path.open(encoding="utf-8") as fh:
                data = json.load(fh)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning("Cache file %s unreadable, treating as empty: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Cache file %s has unexpected shape, treating as empty", self.path)
            return {}
        return data

    def _write(self, data: dict[str, dict]) -> bool:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".cache-", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(data, fh)
                os.replace(tmp, self.path)
            except BaseException:
                os.unlink(tmp)
                raise
        except OSError as e:
            logger.error("Failed to write cache file %s: %s", self.path, e)
            return False
        return True


def build_store(backend: str, path: Path | str, clock: Clock = time.time) -> CacheStore:
    """Create the store named by ``CACHE_BACKEND``."""
    if backend == "memory":
        return MemoryCacheStore(clock=clock)
    if backend == "file":
        return FileCacheStore(path, clock=clock)
    raise ValueError(f"Unsupported cache backend: {backend}. Supported: ['file', 'memory']")
