"""
Tests for the recommendation cache.
"""

import asyncio

import pytest

from internmatch.cache import RecommendationCache
from internmatch.errors import NotFoundError
from internmatch.models import Recommendations


class CountingCompute:
    """Compute function that counts calls and can be slowed down."""

    def __init__(self, delay: float = 0.0, fail_first: int = 0):
        self.calls = 0
        self.delay = delay
        self.fail_first = fail_first

    async def __call__(self, candidate_id: str, limit: int) -> Recommendations:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.calls <= self.fail_first:
            raise NotFoundError("candidate", candidate_id)
        return Recommendations(candidate_id=candidate_id, results=(), reason=f"call-{self.calls}")


@pytest.fixture
def compute():
    return CountingCompute()


@pytest.fixture
def cache(compute, clock, quiet_logger):
    return RecommendationCache(compute, ttl_seconds=60, clock=clock, logger=quiet_logger)


class TestCacheHits:
    """Test hit/miss behaviour."""

    @pytest.mark.asyncio
    async def test_second_get_is_cached(self, cache, compute):
        """Second get for a key returns the same object."""
        first = await cache.get("c1", 5)
        second = await cache.get("c1", 5)
        assert first is second
        assert compute.calls == 1

    @pytest.mark.asyncio
    async def test_key_includes_limit(self, cache, compute):
        """Different limits are different entries."""
        await cache.get("c1", 5)
        await cache.get("c1", 10)
        assert compute.calls == 2

    @pytest.mark.asyncio
    async def test_force_refresh_recomputes(self, cache, compute):
        """force_refresh replaces a live entry."""
        first = await cache.get("c1", 5)
        refreshed = await cache.get("c1", 5, force_refresh=True)
        assert compute.calls == 2
        assert refreshed.reason != first.reason
        # Refreshed entry replaces the old one
        assert await cache.get("c1", 5) is refreshed

    @pytest.mark.asyncio
    async def test_metrics(self, cache, quiet_logger):
        """Hits, misses and computations are counted."""
        await cache.get("c1", 5)
        await cache.get("c1", 5)
        metrics = quiet_logger.get_metrics()
        assert metrics["cache_hits"] == 1
        assert metrics["cache_misses"] == 1
        assert metrics["cache_computations"] == 1


class TestExpiry:
    """Test lazy TTL expiry with an injected clock."""

    @pytest.mark.asyncio
    async def test_valid_within_ttl(self, cache, compute, clock):
        """Entry is served until the TTL elapses."""
        await cache.get("c1", 5)
        clock.advance(59)
        await cache.get("c1", 5)
        assert compute.calls == 1

    @pytest.mark.asyncio
    async def test_expired_entry_recomputed(self, cache, compute, clock):
        """Entry at its TTL is expired and recomputed."""
        await cache.get("c1", 5)
        clock.advance(60)
        assert cache.peek("c1", 5) is None
        await cache.get("c1", 5)
        assert compute.calls == 2

    @pytest.mark.asyncio
    async def test_entry_timestamps(self, cache, clock):
        """Entry records when it was computed and when it expires."""
        await cache.get("c1", 5)
        entry = cache.peek("c1", 5)
        assert entry.computed_at == clock.now
        assert (entry.expires_at - entry.computed_at).total_seconds() == 60


class TestCoalescing:
    """Test at-most-one computation per key."""

    @pytest.mark.asyncio
    async def test_concurrent_misses_share_one_computation(self, clock, quiet_logger):
        """Ten concurrent misses run one computation."""
        compute = CountingCompute(delay=0.05)
        cache = RecommendationCache(compute, ttl_seconds=60, clock=clock, logger=quiet_logger)

        results = await asyncio.gather(*(cache.get("c1", 5) for _ in range(10)))

        assert compute.calls == 1
        assert all(r is results[0] for r in results)

    @pytest.mark.asyncio
    async def test_different_keys_compute_independently(self, clock, quiet_logger):
        """Distinct keys each compute once."""
        compute = CountingCompute(delay=0.01)
        cache = RecommendationCache(compute, ttl_seconds=60, clock=clock, logger=quiet_logger)
        await asyncio.gather(cache.get("c1", 5), cache.get("c2", 5), cache.get("c1", 5))
        assert compute.calls == 2

    @pytest.mark.asyncio
    async def test_failure_reaches_every_waiter_and_is_not_cached(self, clock, quiet_logger):
        """Every waiter sees the failure, and the next get retries."""
        compute = CountingCompute(delay=0.02, fail_first=1)
        cache = RecommendationCache(compute, ttl_seconds=60, clock=clock, logger=quiet_logger)

        outcomes = await asyncio.gather(cache.get("c1", 5), cache.get("c1", 5), return_exceptions=True)
        assert all(isinstance(o, NotFoundError) for o in outcomes)
        assert compute.calls == 1

        recovered = await cache.get("c1", 5)
        assert recovered.reason == "call-2"

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_computation(self, clock, quiet_logger):
        """Cancelling one waiter leaves the shared computation running."""
        compute = CountingCompute(delay=0.05)
        cache = RecommendationCache(compute, ttl_seconds=60, clock=clock, logger=quiet_logger)

        first = asyncio.ensure_future(cache.get("c1", 5))
        second = asyncio.ensure_future(cache.get("c1", 5))
        await asyncio.sleep(0.01)
        first.cancel()

        result = await second
        assert result.reason == "call-1"
        assert compute.calls == 1
        assert first.cancelled()

    @pytest.mark.asyncio
    async def test_settled_waits_for_abandoned_computation(self, clock, quiet_logger):
        """settled returns only once a computation its waiter gave up on has finished."""
        compute = CountingCompute(delay=0.05)
        cache = RecommendationCache(compute, ttl_seconds=60, clock=clock, logger=quiet_logger)
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(cache.get("c1", 5), timeout=0.01)
        assert cache.peek("c1", 5) is None

        await cache.settled("c1", 5)
        assert cache.peek("c1", 5) is not None
        assert compute.calls == 1

    @pytest.mark.asyncio
    async def test_settled_swallows_failure(self, clock, quiet_logger):
        """settled does not raise when the computation failed."""
        compute = CountingCompute(delay=0.02, fail_first=1)
        cache = RecommendationCache(compute, ttl_seconds=60, clock=clock, logger=quiet_logger)
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(cache.get("c1", 5), timeout=0.005)
        await cache.settled("c1", 5)
        assert cache.peek("c1", 5) is None

    @pytest.mark.asyncio
    async def test_settled_without_computation(self, cache):
        """settled returns at once when nothing is in flight."""
        await cache.settled("c1", 5)
        assert len(cache) == 0


class TestInvalidate:
    """Test explicit invalidation."""

    @pytest.mark.asyncio
    async def test_invalidate_candidate(self, cache, compute):
        """Invalidating a candidate drops all its limits."""
        await cache.get("c1", 5)
        await cache.get("c1", 10)
        await cache.get("c2", 5)
        assert cache.invalidate("c1") == 2
        assert len(cache) == 1
        await cache.get("c1", 5)
        assert compute.calls == 4

    @pytest.mark.asyncio
    async def test_invalidate_all(self, cache):
        """Invalidating without an id clears the cache."""
        await cache.get("c1", 5)
        await cache.get("c2", 5)
        assert cache.invalidate() == 2
        assert len(cache) == 0
