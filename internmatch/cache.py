"""
Per-candidate recommendation cache.

Entries are keyed by (candidate_id, limit) and replaced wholesale, never
edited, so readers need no lock. Expiry is checked lazily on access.
Concurrent misses on one key share a single in-flight computation.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Dict, Optional, Tuple

from .logger import StructuredLogger, get_logger
from .models import CacheEntry, Recommendations

ComputeFn = Callable[[str, int], Awaitable[Recommendations]]
Clock = Callable[[], datetime]

CacheKey = Tuple[str, int]


class RecommendationCache:
    def __init__(
        self,
        compute: ComputeFn,
        ttl_seconds: float = 3600.0,
        clock: Optional[Clock] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        """
        Args:
            compute: Coroutine function (candidate_id, limit) -> Recommendations
            ttl_seconds: Entry validity window
            clock: Returns the current time; injectable for expiry tests
            logger: Structured logger
        """
        self._compute = compute
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock or datetime.now
        self.logger = logger or get_logger()
        self._entries: Dict[CacheKey, CacheEntry] = {}
        self._pending: Dict[CacheKey, "asyncio.Task[Recommendations]"] = {}

    def peek(self, candidate_id: str, limit: int) -> Optional[CacheEntry]:
        """Return the live entry for a key without computing anything."""
        entry = self._entries.get((candidate_id, limit))
        if entry is None or entry.is_expired(self._clock()):
            return None
        return entry

    async def get(self, candidate_id: str, limit: int, force_refresh: bool = False) -> Recommendations:
        """
        Return cached recommendations, computing them on a miss.

        A miss, an expired entry or force_refresh triggers a computation;
        callers arriving while one is in flight for the same key await it
        instead of starting another. Failures are not cached.
        """
        key = (candidate_id, limit)

        if not force_refresh:
            entry = self.peek(candidate_id, limit)
            if entry is not None:
                self.logger.record_cache_hit()
                self.logger.debug("Cache hit", candidate_id=candidate_id, limit=limit)
                return entry.results

        self.logger.record_cache_miss()
        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(self._refresh(key))
            self._pending[key] = task
            task.add_done_callback(lambda t, key=key: self._forget(key, t))
        else:
            self.logger.debug("Joining in-flight computation", candidate_id=candidate_id, limit=limit)

        # Shield so a cancelled waiter does not cancel the shared computation
        return await asyncio.shield(task)

    async def _refresh(self, key: CacheKey) -> Recommendations:
        candidate_id, limit = key
        self.logger.record_cache_computation()
        results = await self._compute(candidate_id, limit)
        computed_at = self._clock()
        self._entries[key] = CacheEntry(
            candidate_id=candidate_id,
            limit=limit,
            results=results,
            computed_at=computed_at,
            expires_at=computed_at + self.ttl,
        )
        return results

    def _forget(self, key: CacheKey, task: "asyncio.Task[Recommendations]") -> None:
        if self._pending.get(key) is task:
            del self._pending[key]
        if not task.cancelled() and task.exception() is not None:
            self.logger.debug(
                "Cache computation failed",
                candidate_id=key[0],
                limit=key[1],
                error=repr(task.exception()),
            )

    async def settled(self, candidate_id: str, limit: int) -> None:
        """Wait until any in-flight computation for the key has finished, whatever its outcome."""
        task = self._pending.get((candidate_id, limit))
        if task is not None:
            await asyncio.wait({task})

    def invalidate(self, candidate_id: Optional[str] = None) -> int:
        """Drop one candidate's entries, or all entries. Returns the count removed."""
        if candidate_id is None:
            removed = len(self._entries)
            self._entries = {}
            return removed
        keys = [k for k in self._entries if k[0] == candidate_id]
        for k in keys:
            del self._entries[k]
        return len(keys)

    def __len__(self) -> int:
        return len(self._entries)
