"""
Recommendation service facade.

Wires the matching components to the persistence collaborators and
exposes the operations the routing layer calls. Stored candidates go
through the cache; ad-hoc profiles are validated, normalized and scored
directly.
"""

import functools
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from .analytics import PerformanceAnalyzer
from .batch import BatchOrchestrator
from .cache import Clock, RecommendationCache
from .config import MatchingConfig
from .errors import NoEligibleInternshipsError, StoreUnavailableError, ValidationError
from .logger import StructuredLogger, get_logger
from .matcher import CandidateInternshipMatcher, ReverseMatcher, clamp_limit
from .models import (
    NO_ELIGIBLE_INTERNSHIPS,
    BatchReport,
    Candidate,
    DateRange,
    Internship,
    MatchResult,
    RecommendationEvent,
    Recommendations,
)
from .retry import RetryError, exponential_backoff
from .schema import candidate_from_dict, event_from_dict

DEFAULT_LIMIT = 5
DEFAULT_SIMILAR_LIMIT = 10

_backoff = exponential_backoff(max_retries=2, base_delay=0.2, exceptions=(StoreUnavailableError,))


def _store_retry(func):
    """Retry a store call on StoreUnavailableError; re-raise it once attempts run out."""
    retried = _backoff(func)

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await retried(*args, **kwargs)
        except RetryError as e:
            raise StoreUnavailableError(str(e)) from e

    return wrapper


class RecommendationService:
    def __init__(
        self,
        profiles,
        events=None,
        config: Optional[MatchingConfig] = None,
        logger: Optional[StructuredLogger] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Args:
            profiles: Profile store exposing load_candidate, load_internship,
                load_internship_catalog and load_candidate_pool coroutines
            events: Event store exposing record_event and query_events
                coroutines; reports are zero-filled without one
            config: Matching configuration
            logger: Structured logger
            clock: Current-time source shared with the cache
        """
        self.profiles = profiles
        self.events = events
        self.config = config or MatchingConfig()
        self.logger = logger or get_logger()
        self._clock = clock or datetime.now

        self.matcher = CandidateInternshipMatcher(self.config, logger=self.logger)
        self.reverse_matcher = ReverseMatcher(self.config, calculator=self.matcher.calculator, logger=self.logger)
        self.cache = RecommendationCache(
            self._compute,
            ttl_seconds=self.config.cache_ttl_seconds,
            clock=self._clock,
            logger=self.logger,
        )
        self.batch = BatchOrchestrator(
            self.cache.get,
            concurrency=self.config.batch_concurrency,
            max_size=self.config.batch_max_size,
            timeout=self.config.batch_timeout_seconds,
            settle=self.cache.settled,
            logger=self.logger,
        )
        self.analyzer = PerformanceAnalyzer(self._query_events, logger=self.logger)

    # Collaborator access

    @_store_retry
    async def _load_candidate(self, candidate_id: str) -> Candidate:
        return await self.profiles.load_candidate(candidate_id)

    @_store_retry
    async def _load_internship(self, internship_id: str) -> Internship:
        return await self.profiles.load_internship(internship_id)

    @_store_retry
    async def _load_catalog(self) -> List[Internship]:
        return await self.profiles.load_internship_catalog()

    @_store_retry
    async def _load_pool(self) -> List[Candidate]:
        return await self.profiles.load_candidate_pool()

    async def _query_events(self, date_range: DateRange) -> List[RecommendationEvent]:
        if self.events is None:
            return []
        return await self.events.query_events(date_range)

    # Helpers

    def _limit(self, limit: Any) -> int:
        if isinstance(limit, bool) or not isinstance(limit, int):
            raise ValidationError([f"limit must be an integer (got {limit!r})"])
        return clamp_limit(limit, self.config.max_results)

    @staticmethod
    def _require_id(value: Any, name: str) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValidationError([f"{name} must be a non-empty string"])
        return value.strip()

    def _rank(self, candidate: Candidate, catalog: List[Internship], limit: int) -> Recommendations:
        try:
            results = self.matcher.top_k(candidate, catalog, limit)
            reason = None
        except NoEligibleInternshipsError:
            results, reason = [], NO_ELIGIBLE_INTERNSHIPS

        self.logger.record_recommendations(len(results))
        self.logger.info(
            "Recommendations generated",
            candidate_id=candidate.id,
            recommendation_count=len(results),
            top_score=results[0].match_score if results else 0,
            reason=reason,
        )
        return Recommendations(
            candidate_id=candidate.id,
            results=tuple(results),
            reason=reason,
            generated_at=self._clock(),
        )

    async def _compute(self, candidate_id: str, limit: int) -> Recommendations:
        candidate = await self._load_candidate(candidate_id)
        catalog = await self._load_catalog()
        return self._rank(candidate, catalog, limit)

    # Operations

    async def generate_recommendations(
        self,
        candidate_or_id: Union[str, Dict[str, Any], Candidate],
        limit: int = DEFAULT_LIMIT,
        force_refresh: bool = False,
    ) -> Recommendations:
        """
        Rank internships for a stored candidate id or an ad-hoc profile.

        Raises:
            ValidationError: Malformed profile, id or limit
            NotFoundError: Unknown candidate id
        """
        limit = self._limit(limit)
        if isinstance(candidate_or_id, str):
            candidate_id = self._require_id(candidate_or_id, "candidateId")
            return await self.cache.get(candidate_id, limit, force_refresh=force_refresh)

        if isinstance(candidate_or_id, dict):
            candidate = candidate_from_dict(candidate_or_id, candidate_id=f"adhoc-{uuid.uuid4().hex[:12]}")
        elif isinstance(candidate_or_id, Candidate):
            candidate = candidate_or_id
        else:
            raise ValidationError(["Either a candidate id or a candidate profile is required"])

        catalog = await self._load_catalog()
        return self._rank(candidate, catalog, limit)

    async def get_cached_recommendations(
        self,
        candidate_id: str,
        limit: int = DEFAULT_LIMIT,
        refresh: bool = False,
    ) -> Recommendations:
        candidate_id = self._require_id(candidate_id, "candidateId")
        return await self.cache.get(candidate_id, self._limit(limit), force_refresh=refresh)

    async def get_similar_candidates(self, internship_id: str, limit: int = DEFAULT_SIMILAR_LIMIT) -> List[MatchResult]:
        """
        Rank the candidate pool for one internship.

        Raises:
            NotFoundError: Unknown internship id
        """
        internship_id = self._require_id(internship_id, "internshipId")
        limit = self._limit(limit)
        internship = await self._load_internship(internship_id)
        pool = await self._load_pool()
        results = self.reverse_matcher.similar_candidates(internship, pool, limit)
        self.logger.info(
            "Similar candidates ranked",
            internship_id=internship_id,
            pool_size=len(pool),
            count=len(results),
        )
        return results

    async def batch_recommendations(self, candidate_ids: List[str], limit: int = DEFAULT_LIMIT) -> BatchReport:
        return await self.batch.run(candidate_ids, self._limit(limit))

    async def performance_report(self, date_range: Optional[DateRange] = None) -> Dict[str, Any]:
        return await self.analyzer.analyze(date_range)

    async def record_recommendation_event(
        self, event: Union[RecommendationEvent, Dict[str, Any]]
    ) -> RecommendationEvent:
        if isinstance(event, dict):
            event = event_from_dict(event)
        elif not isinstance(event, RecommendationEvent):
            raise ValidationError(["Event must be an object"])
        if self.events is None:
            raise ValidationError(["No event store configured"])
        await self.events.record_event(event)
        self.logger.debug(
            "Recommendation event recorded",
            candidate_id=event.candidate_id,
            internship_id=event.internship_id,
            outcome=event.outcome,
        )
        return event

    def invalidate(self, candidate_id: Optional[str] = None) -> int:
        removed = self.cache.invalidate(candidate_id)
        self.logger.info("Cache invalidated", candidate_id=candidate_id, removed=removed)
        return removed
