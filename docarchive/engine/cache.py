"""
DocArchive Query Cache — Per-session cache for backend query results.

Keys are tuples whose first element names the collection:
    ("documents", category, office, direction, start_ns, end_ns)
    ("document", document_id)
    ("categories",) ("dashboardMetrics",) ("callerRole",) ("users",) ...

Behavior:
- A cached value is served while it is younger than its staleness window.
- Identical concurrent fetches for one key collapse to a single in-flight load.
- Errors are never cached; every waiter of the failed load sees the error.
- invalidate(collection) drops the collection's entries. A load already in
  flight still answers its waiters but its result is not stored.

All data is a transient copy of backend state and can always be refetched.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional, Tuple

logger = logging.getLogger("docarchive.engine.cache")

CacheKey = Tuple[Hashable, ...]
Loader = Callable[[], Awaitable[Any]]


class _Entry:
    __slots__ = ("value", "fetched_at")

    def __init__(self, value: Any, fetched_at: float):
        self.value = value
        self.fetched_at = fetched_at


class QueryCache:
    """
    In-memory query cache with staleness window and in-flight de-duplication.

    Not thread-safe: owned by one session and used from one event loop.
    """

    def __init__(
        self,
        default_stale_time: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._default_stale_time = default_stale_time
        self._clock = clock
        self._entries: Dict[CacheKey, _Entry] = {}
        self._inflight: Dict[CacheKey, "asyncio.Task[Any]"] = {}
        self._generations: Dict[Hashable, int] = defaultdict(int)

        self._hits = 0
        self._misses = 0
        self._joined = 0

    # ── Core Operations ──

    async def fetch(
        self,
        key: CacheKey,
        loader: Loader,
        stale_time: Optional[float] = None,
    ) -> Any:
        """
        Return the cached value for key when fresh, otherwise load it.

        Args:
            key: Tuple cache key; key[0] is the collection name.
            loader: Zero-arg coroutine function producing the value.
            stale_time: Seconds a value stays fresh. Defaults to the cache default.
        """
        window = self._default_stale_time if stale_time is None else stale_time
        entry = self._entries.get(key)
        if entry is not None and self._clock() - entry.fetched_at < window:
            self._hits += 1
            return entry.value

        task = self._inflight.get(key)
        if task is None:
            self._misses += 1
            generation = self._generations[key[0]]
            task = asyncio.ensure_future(self._load(key, loader, generation))
            self._inflight[key] = task
        else:
            self._joined += 1
            logger.debug(f"Joined in-flight load for {key!r}")

        # Shield so a cancelled waiter does not cancel the shared load
        return await asyncio.shield(task)

    async def _load(self, key: CacheKey, loader: Loader, generation: int) -> Any:
        try:
            value = await loader()
        finally:
            if self._inflight.get(key) is asyncio.current_task():
                del self._inflight[key]

        if self._generations[key[0]] == generation:
            self._entries[key] = _Entry(value, self._clock())
        else:
            logger.debug(f"Discarded result for invalidated key {key!r}")
        return value

    def peek(self, key: CacheKey) -> Optional[Any]:
        """Return the cached value regardless of freshness, or None."""
        entry = self._entries.get(key)
        return entry.value if entry is not None else None

    def set(self, key: CacheKey, value: Any) -> None:
        """Store a value directly (e.g. a mutation that returns fresh data)."""
        self._entries[key] = _Entry(value, self._clock())

    def is_fetching(self, key: CacheKey) -> bool:
        return key in self._inflight

    # ── Invalidation ──

    def invalidate(self, *collections: Hashable) -> int:
        """
        Drop every entry of the given collections.

        In-flight loads are detached, not cancelled: their waiters still get
        an answer, the next fetch starts a new load.

        Returns:
            Number of entries dropped.
        """
        dropped = 0
        for collection in collections:
            self._generations[collection] += 1
            for key in [k for k in self._entries if k[0] == collection]:
                del self._entries[key]
                dropped += 1
            for key in [k for k in self._inflight if k[0] == collection]:
                del self._inflight[key]
        if dropped:
            logger.debug(f"Invalidated {dropped} entries in {collections!r}")
        return dropped

    def clear(self) -> None:
        """Drop everything (logout)."""
        for collection in {k[0] for k in self._entries} | {k[0] for k in self._inflight}:
            self._generations[collection] += 1
        self._entries.clear()
        self._inflight.clear()

    # ── Introspection ──

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._entries

    def stats(self) -> Dict[str, int]:
        return {
            "entries": len(self._entries),
            "inflight": len(self._inflight),
            "hits": self._hits,
            "misses": self._misses,
            "joined": self._joined,
        }
