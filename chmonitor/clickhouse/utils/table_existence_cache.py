"""
Table Existence Cache

Memoizes "does database.table exist on host N?" answers for a limited time so
that chart renders do not query system.tables on every request.

Concurrency:
    The first caller for a key becomes the owner of the remote check and runs
    it on its own thread. Callers arriving while that check is in flight wait
    on the same Future and receive the same answer (or the same exception).
    The internal lock only guards the entry and in-flight maps and is never
    held while the remote check runs, so unrelated keys do not wait on each
    other.

    A check that fails is not cached; the next caller retries it.
"""

import logging
import threading
import time
from collections import OrderedDict
from concurrent.futures import Future
from typing import Callable, Dict, NamedTuple

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300
DEFAULT_MAX_ENTRIES = 500


class TableKey(NamedTuple):
    host_id: int
    database: str
    table: str

    def __str__(self):
        return f"{self.host_id}:{self.database}.{self.table}"


class _CacheEntry(NamedTuple):
    exists: bool
    expires_at: float


class TableExistenceCache:
    """
    TTL + LRU cache in front of a table existence check.

    Args:
        check_exists: Callable (host_id, database, table) -> bool that performs
            the remote check.
        ttl_seconds: Lifetime of an answer, positive or negative.
        max_entries: Number of answers kept before least recently used ones
            are evicted.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(self, check_exists: Callable[[int, str, str], bool],
                 ttl_seconds: float = DEFAULT_TTL_SECONDS,
                 max_entries: int = DEFAULT_MAX_ENTRIES,
                 clock: Callable[[], float] = time.monotonic):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")

        self._check_exists = check_exists
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock

        self._lock = threading.Lock()
        self._entries: "OrderedDict[TableKey, _CacheEntry]" = OrderedDict()
        self._in_flight: Dict[TableKey, Future] = {}

        self._hits = 0
        self._misses = 0
        self._coalesced = 0
        self._evictions = 0

    def check_table_exists(self, host_id, database: str, table: str) -> bool:
        """
        Returns whether the table exists, using the cached answer while fresh.

        Raises:
            Exception: Whatever the remote check raised, for the owner and every
                caller coalesced onto that check.
        """
        key = TableKey(host_id, database, table)

        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                if self._clock() < entry.expires_at:
                    self._entries.move_to_end(key)
                    self._hits += 1
                    logger.debug(f"Table existence cache hit for {key}: {entry.exists}")
                    return entry.exists
                del self._entries[key]

            future = self._in_flight.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._in_flight[key] = future
                self._misses += 1
            else:
                self._coalesced += 1

        if not owner:
            logger.debug(f"Waiting on in-flight existence check for {key}")
            return future.result()

        return self._run_check(key, future)

    def _run_check(self, key: TableKey, future: Future) -> bool:
        try:
            exists = bool(self._check_exists(key.host_id, key.database, key.table))
        except BaseException as e:
            with self._lock:
                self._in_flight.pop(key, None)
            future.set_exception(e)
            raise

        with self._lock:
            self._entries[key] = _CacheEntry(exists, self._clock() + self.ttl_seconds)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                self._evictions += 1
                logger.debug(f"Evicted table existence entry {evicted}")
            self._in_flight.pop(key, None)

        future.set_result(exists)
        logger.debug(f"Table existence checked for {key}: {exists}")
        return exists

    def invalidate(self, host_id, database: str, table: str):
        """Drops the cached answer for one table, if any."""
        with self._lock:
            self._entries.pop(TableKey(host_id, database, table), None)

    def clear(self):
        """Drops every cached answer. In-flight checks still complete."""
        with self._lock:
            self._entries.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_metrics(self) -> Dict[str, float]:
        """Returns cache size, limits and counters."""
        with self._lock:
            return {
                'size': len(self._entries),
                'max_entries': self.max_entries,
                'ttl_seconds': self.ttl_seconds,
                'hits': self._hits,
                'misses': self._misses,
                'coalesced': self._coalesced,
                'evictions': self._evictions,
                'in_flight': len(self._in_flight),
            }
