"""
Error taxonomy for the matching engine.

Only malformed top-level input is surfaced as a hard failure; per-item
problems (bad coordinates, a failing candidate inside a batch) are caught
by the component that owns the item and reported structurally.
"""

from typing import List, Optional


class MatchingError(Exception):
    """Base class for all engine errors."""

    code = "matching_error"


class ValidationError(MatchingError):
    """Raised when caller input is malformed. Never retried."""

    code = "validation_error"

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Invalid input")


class NotFoundError(MatchingError):
    """Raised when a candidate or internship does not exist."""

    code = "not_found"

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind.capitalize()} not found: {identifier}")


class NoEligibleInternshipsError(MatchingError):
    """Raised by the matcher when every pair was filtered out."""

    code = "no_eligible_internships"

    def __init__(self, candidate_id: str):
        self.candidate_id = candidate_id
        super().__init__(f"No eligible internships for candidate {candidate_id}")


class InvalidCoordinateError(MatchingError):
    """Raised for latitude outside [-90, 90] or longitude outside [-180, 180]."""

    code = "invalid_coordinate"


class BatchEmptyError(ValidationError):
    code = "batch_empty"

    def __init__(self):
        super().__init__(["candidateIds must contain at least one id"])


class BatchTooLargeError(ValidationError):
    code = "batch_too_large"

    def __init__(self, size: int, max_size: int):
        self.size = size
        self.max_size = max_size
        super().__init__([f"Maximum {max_size} candidates allowed per batch (got {size})"])


class ComputationTimeout(MatchingError):
    """A single candidate's computation exceeded its time budget."""

    code = "computation_timeout"

    def __init__(self, candidate_id: str, timeout: Optional[float]):
        self.candidate_id = candidate_id
        self.timeout = timeout
        super().__init__(f"Recommendation for {candidate_id} timed out after {timeout}s")


class StoreUnavailableError(MatchingError):
    """Transient persistence failure; safe to retry."""

    code = "store_unavailable"
