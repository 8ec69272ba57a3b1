"""
Top-K ranking in both directions.

CandidateInternshipMatcher ranks an internship catalog for one candidate;
ReverseMatcher ranks a candidate pool for one internship. Both share the
same ScoreCalculator and the same deterministic ordering: match score
descending, distance ascending (unknown distance last), then id.
"""

import math
from typing import Iterable, List, Optional

from .config import MatchingConfig
from .errors import InvalidCoordinateError, NoEligibleInternshipsError
from .logger import StructuredLogger, get_logger
from .models import Candidate, Internship, MatchResult
from .scoring import ScoreCalculator


def clamp_limit(k, max_results: int) -> int:
    return max(1, min(int(k), max_results))


def _distance_key(result: MatchResult) -> float:
    return result.distance_km if result.distance_km is not None else math.inf


class CandidateInternshipMatcher:
    def __init__(
        self,
        config: Optional[MatchingConfig] = None,
        calculator: Optional[ScoreCalculator] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        self.config = config or MatchingConfig()
        self.calculator = calculator or ScoreCalculator(self.config)
        self.logger = logger or get_logger()

    def rank(self, candidate: Candidate, catalog: Iterable[Internship]) -> List[MatchResult]:
        """Score every internship and return all survivors in ranked order."""
        results: List[MatchResult] = []
        for internship in catalog:
            try:
                result = self.calculator.score(candidate, internship)
            except InvalidCoordinateError as e:
                self.logger.warning(
                    "Excluding pair with invalid coordinates",
                    candidate_id=candidate.id,
                    internship_id=internship.id,
                    error=str(e),
                )
                self.logger.record_pair_excluded()
                continue
            if result is None:
                self.logger.record_pair_excluded()
                continue
            results.append(result)

        results.sort(key=lambda r: (-r.match_score, _distance_key(r), r.internship_id))
        return results

    def top_k(self, candidate: Candidate, catalog: Iterable[Internship], k: int) -> List[MatchResult]:
        """
        Return the k best internships for a candidate.

        Args:
            candidate: Candidate snapshot
            catalog: Internships to consider
            k: Result count, clamped to [1, max_results]

        Raises:
            NoEligibleInternshipsError: If every pair was filtered out
        """
        k = clamp_limit(k, self.config.max_results)
        ranked = self.rank(candidate, catalog)
        if not ranked:
            raise NoEligibleInternshipsError(candidate.id)
        return ranked[:k]


class ReverseMatcher:
    def __init__(
        self,
        config: Optional[MatchingConfig] = None,
        calculator: Optional[ScoreCalculator] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        self.config = config or MatchingConfig()
        self.calculator = calculator or ScoreCalculator(self.config)
        self.logger = logger or get_logger()

    def similar_candidates(
        self,
        internship: Internship,
        candidate_pool: Iterable[Candidate],
        limit: int,
    ) -> List[MatchResult]:
        """
        Rank candidates for an internship.

        The candidates' own local-distance hard filter is not applied here;
        distance still counts toward the score. An empty pool gives [].
        """
        limit = clamp_limit(limit, self.config.max_results)
        results: List[MatchResult] = []
        for candidate in candidate_pool:
            try:
                result = self.calculator.score(candidate, internship, enforce_distance_filter=False)
            except InvalidCoordinateError as e:
                self.logger.warning(
                    "Excluding pair with invalid coordinates",
                    candidate_id=candidate.id,
                    internship_id=internship.id,
                    error=str(e),
                )
                self.logger.record_pair_excluded()
                continue
            if result is not None:
                results.append(result)

        results.sort(key=lambda r: (-r.match_score, _distance_key(r), r.candidate_id))
        return results[:limit]
