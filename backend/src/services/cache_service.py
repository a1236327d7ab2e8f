"""
In-process TTL cache for financial summaries.

One instance is created per application (see ``main.lifespan``) and injected
into the financial aggregators; nothing here is module-global. Entries are
keyed by (operation name, parameters) and expire ``ttl_seconds`` after they
were stored. Expired entries are never returned, and a periodic sweep
(``services.cache_sweep_scheduler``) drops them from memory.
"""

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Hashable, List, Mapping, Optional, Tuple, TypeVar

from core.config import FINANCIAL_CACHE_TTL_SECONDS
from utils.datetime_utils import clinic_now

logger = logging.getLogger(__name__)

T = TypeVar("T")

CacheKey = Tuple[str, Tuple[Tuple[str, Hashable], ...]]

_MISSING = object()


@dataclass
class _Entry:
    value: Any
    stored_at: float  # clock value
    stored_wall: datetime


def make_key(operation: str, params: Optional[Mapping[str, Hashable]] = None) -> CacheKey:
    """Order-independent cache key for an operation and its parameters."""
    return operation, tuple(sorted((params or {}).items()))


class TTLCache:
    """
    Thread-safe time-to-live cache.

    Args:
        ttl_seconds: Lifetime of an entry
        clock: Monotonic seconds source, injectable for tests
    """

    def __init__(
        self,
        ttl_seconds: float = FINANCIAL_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[CacheKey, _Entry] = {}
        self._lock = threading.RLock()
        # bumped by clear/evict; a computation started before a bump is not stored
        self._generation = 0

    def _is_expired(self, entry: _Entry, now: float) -> bool:
        return now - entry.stored_at >= self.ttl_seconds

    def get(self, operation: str, params: Optional[Mapping[str, Hashable]] = None, default: Any = None) -> Any:
        """Return the live cached value, or ``default`` on a miss or expiry."""
        key = make_key(operation, params)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            if self._is_expired(entry, self._clock()):
                del self._entries[key]
                return default
            return entry.value

    def set(self, operation: str, params: Optional[Mapping[str, Hashable]], value: Any) -> None:
        with self._lock:
            self._entries[make_key(operation, params)] = _Entry(value, self._clock(), clinic_now())

    def get_or_compute(
        self,
        operation: str,
        params: Optional[Mapping[str, Hashable]],
        compute: Callable[[], T],
        use_cache: bool = True,
    ) -> T:
        """
        Return the cached value or compute, store and return a fresh one.

        With ``use_cache=False`` the stored value is ignored and replaced by a
        fresh computation. Errors raised by ``compute`` propagate and nothing
        is stored.
        """
        if use_cache:
            cached = self.get(operation, params, default=_MISSING)
            if cached is not _MISSING:
                logger.debug(f"Cache hit: {operation} {params}")
                return cached
        with self._lock:
            generation = self._generation
        value = compute()
        with self._lock:
            if generation == self._generation:
                self._entries[make_key(operation, params)] = _Entry(value, self._clock(), clinic_now())
            else:
                logger.debug(f"Cache invalidated during compute, not storing: {operation} {params}")
        return value

    def evict(self, operation: str, params: Optional[Mapping[str, Hashable]] = None) -> bool:
        """Remove one entry. Returns True if it was present."""
        with self._lock:
            self._generation += 1
            return self._entries.pop(make_key(operation, params), None) is not None

    def clear(self) -> int:
        """Remove every entry. Returns the number removed."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self._generation += 1
        logger.info(f"Financial cache cleared ({count} entries)")
        return count

    def sweep(self) -> int:
        """Drop expired entries. Returns the number evicted."""
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if self._is_expired(entry, now)]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.info(f"Financial cache sweep evicted {len(expired)} entries")
        return len(expired)

    def describe(self) -> List[Dict[str, Any]]:
        """Debug listing of cached keys with their storage time and age."""
        with self._lock:
            now = self._clock()
            return [
                {
                    "operation": operation,
                    "params": dict(params),
                    "stored_at": entry.stored_wall.isoformat(),
                    "age_seconds": round(now - entry.stored_at, 3),
                    "expired": self._is_expired(entry, now),
                }
                for (operation, params), entry in self._entries.items()
            ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
