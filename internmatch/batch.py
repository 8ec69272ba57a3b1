"""
Bounded-concurrency batch recommendation generation.

Each candidate is processed independently under a semaphore; whatever
happens to one candidate (malformed id, not found, timeout, unexpected
error) is captured as that candidate's Err outcome and never affects the
others. A slot is held until the candidate's computation has actually
finished, so a timed-out computation still counts against the ceiling.
"""

import asyncio
from typing import Any, Awaitable, Callable, List, Optional

from .errors import (
    BatchEmptyError,
    BatchTooLargeError,
    ComputationTimeout,
    MatchingError,
    ValidationError,
)
from .logger import StructuredLogger, get_logger
from .models import BatchReport, BatchResult, Err, Ok, Recommendations

FetchFn = Callable[[str, int], Awaitable[Recommendations]]
SettleFn = Callable[[str, int], Awaitable[None]]


def _is_valid_id(candidate_id: Any) -> bool:
    return isinstance(candidate_id, str) and candidate_id.strip() != ""


def dedupe(candidate_ids: List[Any]) -> List[Any]:
    """Drop repeated string ids, keeping first occurrences. Other items are kept as-is."""
    seen = set()
    unique = []
    for cid in candidate_ids:
        if isinstance(cid, str):
            if cid in seen:
                continue
            seen.add(cid)
        unique.append(cid)
    return unique


class BatchOrchestrator:
    def __init__(
        self,
        fetch: FetchFn,
        concurrency: int = 5,
        max_size: int = 50,
        timeout: Optional[float] = None,
        settle: Optional[SettleFn] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        """
        Args:
            fetch: Coroutine function (candidate_id, limit) -> Recommendations
            concurrency: Maximum computations in flight at once
            max_size: Largest accepted batch after de-duplication
            timeout: Optional per-candidate time budget in seconds
            settle: Coroutine function (candidate_id, limit) that returns once
                background work started by fetch has finished; awaited after
                a timeout before the slot is released
            logger: Structured logger
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._fetch = fetch
        self._settle = settle
        self.concurrency = concurrency
        self.max_size = max_size
        self.timeout = timeout
        self.logger = logger or get_logger()

    def validate(self, candidate_ids) -> List[Any]:
        """
        Check the batch as a whole and return the de-duplicated items.

        Malformed elements are kept; they fail individually when the batch runs.
        """
        if not isinstance(candidate_ids, (list, tuple)):
            raise ValidationError(["candidateIds must be a list of ids"])
        if not candidate_ids:
            raise BatchEmptyError()
        unique = dedupe([cid.strip() if isinstance(cid, str) else cid for cid in candidate_ids])
        if len(unique) > self.max_size:
            raise BatchTooLargeError(len(unique), self.max_size)
        return unique

    def _failure(self, candidate_id: str, error: Exception) -> BatchResult:
        self.logger.record_batch_failure(type(error).__name__)
        if isinstance(error, MatchingError):
            self.logger.warning("Batch item failed", candidate_id=candidate_id, error=str(error))
            return BatchResult(candidate_id, Err(reason=str(error), code=error.code))
        self.logger.error(
            "Batch item raised unexpected error",
            candidate_id=candidate_id,
            error=repr(error),
        )
        return BatchResult(candidate_id, Err(reason=str(error) or type(error).__name__, code="internal_error"))

    async def _fetch_within_budget(self, candidate_id: str, limit: int) -> Recommendations:
        if self.timeout is None:
            return await self._fetch(candidate_id, limit)
        try:
            return await asyncio.wait_for(self._fetch(candidate_id, limit), timeout=self.timeout)
        except asyncio.TimeoutError:
            if self._settle is not None:
                await self._settle(candidate_id, limit)
            raise ComputationTimeout(candidate_id, self.timeout)

    async def _run_one(self, semaphore: asyncio.Semaphore, candidate_id: Any, limit: int) -> BatchResult:
        if not _is_valid_id(candidate_id):
            label = candidate_id if isinstance(candidate_id, str) else repr(candidate_id)
            error = ValidationError([f"Candidate id must be a non-empty string (got {candidate_id!r})"])
            return self._failure(label, error)

        async with semaphore:
            try:
                recommendations = await self._fetch_within_budget(candidate_id, limit)
            except Exception as e:
                return self._failure(candidate_id, e)

        self.logger.record_batch_success()
        return BatchResult(candidate_id, Ok(recommendations))

    async def run(self, candidate_ids, limit: int) -> BatchReport:
        """
        Generate recommendations for many candidates.

        Results keep input order. Blank or non-string ids become
        validation_error failures.

        Raises:
            ValidationError: If candidate_ids is not a list
            BatchEmptyError: If the list is empty
            BatchTooLargeError: If more than max_size unique ids were given
        """
        unique = self.validate(candidate_ids)
        semaphore = asyncio.Semaphore(self.concurrency)
        outcomes = await asyncio.gather(*(self._run_one(semaphore, cid, limit) for cid in unique))

        successes = tuple(r for r in outcomes if r.ok)
        failures = tuple(r for r in outcomes if not r.ok)
        summary = {
            "total_requested": len(candidate_ids),
            "unique": len(unique),
            "successful": len(successes),
            "failed": len(failures),
        }
        self.logger.info("Batch recommendations generated", **summary)
        return BatchReport(successes=successes, failures=failures, summary=summary)
