"""
In-memory TTL cache with stale-while-revalidate tracking.

Generic cache -- not transaction-specific. Stores any value by string key.
Each write carries its own TTL and stale threshold (seconds at the API,
milliseconds internally). Expired entries are removed lazily when a read
observes them; nothing runs in the background.

Values are stored and returned by reference. Treat cached values as read-only.
Each process holds its own cache; there is no cross-process coherency.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, NamedTuple, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheConfig:
    """Per-write durations, in seconds."""

    ttl: float
    stale_time: float

    def __post_init__(self) -> None:
        if self.ttl < 0:
            raise ValueError(f"ttl must be >= 0, got {self.ttl}")
        if self.stale_time < 0:
            raise ValueError(f"stale_time must be >= 0, got {self.stale_time}")


@dataclass
class CacheEntry:
    """A cached value with its write timestamp and durations (all in ms)."""

    value: Any
    created_at: float
    ttl: float
    stale_after: float

    def age(self, now: float) -> float:
        """Milliseconds since this entry was stored."""
        return now - self.created_at

    def is_expired(self, now: float) -> bool:
        return self.age(now) > self.ttl

    def is_stale(self, now: float) -> bool:
        return self.age(now) > self.stale_after


class CacheLookup(NamedTuple):
    data: Any
    is_stale: bool


MISS = CacheLookup(data=None, is_stale=False)


class TTLCache:
    """
    Simple in-memory cache with per-entry TTL and stale threshold.

    - set(): stores a value with the current timestamp, replacing any prior entry.
    - get(): returns the value if not expired.
    - get_with_stale(): returns the value plus whether it is past its stale threshold.
    - has(): True if a live entry exists.
    - clear() / clear_all(): explicit removal.
    """

    def __init__(self) -> None:
        self._store: dict[str, CacheEntry] = {}
        self._clock = time.monotonic  # seconds; overridable for testing

    def _now(self) -> float:
        return self._clock() * 1000

    def _live_entry(self, key: str, now: float) -> Optional[CacheEntry]:
        """Return the entry for key, deleting it first if it has expired."""
        entry = self._store.get(key)
        if entry is None:
            return None
        if entry.is_expired(now):
            logger.debug("Cache entry expired: %s", key)
            del self._store[key]
            return None
        return entry

    def set(self, key: str, data: Any, config: CacheConfig) -> None:
        """Store a value with the current timestamp."""
        self._store[key] = CacheEntry(
            value=data,
            created_at=self._now(),
            ttl=config.ttl * 1000,
            stale_after=config.stale_time * 1000,
        )

    def get(self, key: str) -> Any:
        """Return the stored value, or None if missing or expired."""
        entry = self._live_entry(key, self._now())
        if entry is None:
            return None
        return entry.value

    def get_with_stale(self, key: str) -> CacheLookup:
        """Return (data, is_stale). Missing or expired keys give (None, False)."""
        now = self._now()
        entry = self._live_entry(key, now)
        if entry is None:
            return MISS
        return CacheLookup(data=entry.value, is_stale=entry.is_stale(now))

    def has(self, key: str) -> bool:
        return self._live_entry(key, self._now()) is not None

    def clear(self, key: str) -> None:
        """Remove one entry. Missing keys are ignored."""
        self._store.pop(key, None)

    def clear_all(self) -> None:
        """Remove all entries."""
        self._store.clear()

    def purge_expired(self) -> int:
        """Delete every expired entry and return how many were removed."""
        now = self._now()
        expired = [key for key, entry in self._store.items() if entry.is_expired(now)]
        for key in expired:
            del self._store[key]
        if expired:
            logger.debug("Purged %d expired cache entries", len(expired))
        return len(expired)

    def __len__(self) -> int:
        return len(self._store)
