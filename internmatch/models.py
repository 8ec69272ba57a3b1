"""
Domain types shared by the matching components.

All types are frozen dataclasses. Candidates and internships are read-only
snapshots borrowed from the profile store; match results, cache entries and
batch results are produced by the engine and never edited in place.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, FrozenSet, Optional, Tuple, Union

SKILL_SOURCES = ("user", "inferred", "verified")
DISTANCE_PREFS = ("local", "state", "any")
WORK_TYPES = ("onsite", "remote", "either")
EVENT_OUTCOMES = ("applied", "accepted", "dropped")

NO_ELIGIBLE_INTERNSHIPS = "no_eligible_internships"


@dataclass(frozen=True)
class Skill:
    name: str
    canonical: str
    confidence: float = 1.0
    source: str = "user"


@dataclass(frozen=True)
class Location:
    lat: Optional[float] = None
    lon: Optional[float] = None
    district: str = ""
    state: str = ""

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lon is not None


@dataclass(frozen=True)
class Education:
    level: str = ""
    field: str = ""
    year: Optional[int] = None


@dataclass(frozen=True)
class DurationRange:
    min: int
    max: int

    def contains(self, months: int) -> bool:
        return self.min <= months <= self.max


@dataclass(frozen=True)
class Preferences:
    distance_pref: str = "any"
    work_type: str = "either"
    min_stipend: float = 0.0
    sectors: FrozenSet[str] = frozenset()
    duration: Optional[DurationRange] = None


@dataclass(frozen=True)
class Candidate:
    id: str
    skills: Tuple[Skill, ...] = ()
    location: Location = field(default_factory=Location)
    education: Education = field(default_factory=Education)
    preferences: Preferences = field(default_factory=Preferences)


@dataclass(frozen=True)
class Internship:
    id: str
    required_skills: Tuple[Skill, ...] = ()
    location: Location = field(default_factory=Location)
    stipend: float = 0.0
    duration: Optional[int] = None
    sector: str = ""
    work_type: str = "onsite"
    capacity: int = 1
    title: str = ""
    company: str = ""


@dataclass(frozen=True)
class ExplanationItem:
    factor: str
    contribution: float
    text: str


@dataclass(frozen=True)
class MatchResult:
    candidate_id: str
    internship_id: str
    match_score: int
    explanation: Tuple[ExplanationItem, ...]
    distance_km: Optional[float]
    skill_overlap: float
    missing_skills: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["explanation"] = [asdict(item) for item in self.explanation]
        data["missing_skills"] = list(self.missing_skills)
        return data


@dataclass(frozen=True)
class Recommendations:
    """Ranked output for one candidate; empty results carry a reason code."""

    candidate_id: str
    results: Tuple[MatchResult, ...]
    reason: Optional[str] = None
    generated_at: Optional[datetime] = None

    def __len__(self) -> int:
        return len(self.results)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "candidate_id": self.candidate_id,
            "results": [r.to_dict() for r in self.results],
            "reason": self.reason,
            "generated_at": self.generated_at.isoformat() if self.generated_at else None,
            "count": len(self.results),
        }


@dataclass(frozen=True)
class CacheEntry:
    candidate_id: str
    limit: int
    results: Recommendations
    computed_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class Ok:
    recommendations: Recommendations


@dataclass(frozen=True)
class Err:
    reason: str
    code: str = "error"


@dataclass(frozen=True)
class BatchResult:
    candidate_id: str
    outcome: Union[Ok, Err]

    @property
    def ok(self) -> bool:
        return isinstance(self.outcome, Ok)

    def to_dict(self) -> Dict[str, Any]:
        if isinstance(self.outcome, Ok):
            return {
                "candidate_id": self.candidate_id,
                "success": True,
                "recommendations": self.outcome.recommendations.to_dict(),
            }
        return {
            "candidate_id": self.candidate_id,
            "success": False,
            "error": self.outcome.reason,
            "code": self.outcome.code,
        }


@dataclass(frozen=True)
class BatchReport:
    successes: Tuple[BatchResult, ...]
    failures: Tuple[BatchResult, ...]
    summary: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "results": [r.to_dict() for r in self.successes],
            "errors": [r.to_dict() for r in self.failures],
            "summary": dict(self.summary),
        }


@dataclass(frozen=True)
class RecommendationEvent:
    candidate_id: str
    internship_id: str
    outcome: str
    match_score: float
    occurred_at: datetime
    skill_overlap: Optional[float] = None
    distance_km: Optional[float] = None
    missing_skills: Tuple[str, ...] = ()


@dataclass(frozen=True)
class DateRange:
    """Inclusive range; a missing bound is open."""

    start: Optional[datetime] = None
    end: Optional[datetime] = None

    def contains(self, moment: datetime) -> bool:
        if self.start is not None and moment < self.start:
            return False
        if self.end is not None and moment > self.end:
            return False
        return True
