"""
Aggregate analytics over recorded recommendation outcomes.

An empty range produces a zero-filled report with the same shape as a
populated one.
"""

from collections import Counter
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from .logger import StructuredLogger, get_logger
from .models import EVENT_OUTCOMES, DateRange, RecommendationEvent

QueryFn = Callable[[DateRange], Awaitable[List[RecommendationEvent]]]

OVERLAP_BUCKETS = (
    ("0.00-0.25", 0.0, 0.25),
    ("0.25-0.50", 0.25, 0.5),
    ("0.50-0.75", 0.5, 0.75),
    ("0.75-1.00", 0.75, 1.0),
)

DISTANCE_BUCKETS = (
    ("0-10km", 0.0, 10.0),
    ("10-50km", 10.0, 50.0),
    ("50-200km", 50.0, 200.0),
    ("200-500km", 200.0, 500.0),
)

TOP_MISSING_SKILLS = 10


def _overlap_bucket(overlap: float) -> str:
    for label, lo, hi in OVERLAP_BUCKETS:
        if lo <= overlap < hi:
            return label
    return OVERLAP_BUCKETS[-1][0]


def _distance_bucket(distance: Optional[float]) -> str:
    if distance is None:
        return "unknown"
    for label, lo, hi in DISTANCE_BUCKETS:
        if lo <= distance < hi:
            return label
    return "500km+"


def empty_report() -> Dict[str, Any]:
    return {
        "total_events": 0,
        "by_outcome": {o: {"count": 0, "average_match_score": 0.0} for o in EVENT_OUTCOMES},
        "average_match_score": 0.0,
        "acceptance_rate": 0.0,
        "skill_overlap_distribution": {label: 0 for label, _, _ in OVERLAP_BUCKETS},
        "distance_distribution": {
            **{label: 0 for label, _, _ in DISTANCE_BUCKETS},
            "500km+": 0,
            "unknown": 0,
        },
        "top_missing_skills": [],
    }


def summarize(events: Iterable[RecommendationEvent]) -> Dict[str, Any]:
    """Aggregate a sequence of events into a performance report."""
    report = empty_report()
    scores: Dict[str, List[float]] = {o: [] for o in EVENT_OUTCOMES}
    missing = Counter()
    total = 0

    for event in events:
        total += 1
        scores.setdefault(event.outcome, []).append(event.match_score)
        if event.skill_overlap is not None:
            report["skill_overlap_distribution"][_overlap_bucket(event.skill_overlap)] += 1
        report["distance_distribution"][_distance_bucket(event.distance_km)] += 1
        if event.outcome == "dropped":
            missing.update(event.missing_skills)

    if total == 0:
        return report

    report["total_events"] = total
    all_scores = []
    for outcome, values in scores.items():
        all_scores.extend(values)
        report["by_outcome"][outcome] = {
            "count": len(values),
            "average_match_score": round(sum(values) / len(values), 2) if values else 0.0,
        }
    report["average_match_score"] = round(sum(all_scores) / len(all_scores), 2)

    applied = len(scores["applied"]) + len(scores["accepted"])
    if applied:
        report["acceptance_rate"] = round(len(scores["accepted"]) / applied, 3)

    # Most common first, ties alphabetical
    ranked = sorted(missing.items(), key=lambda kv: (-kv[1], kv[0]))
    report["top_missing_skills"] = [
        {"skill": skill, "count": count} for skill, count in ranked[:TOP_MISSING_SKILLS]
    ]
    return report


class PerformanceAnalyzer:
    def __init__(self, query_events: QueryFn, logger: Optional[StructuredLogger] = None):
        self._query_events = query_events
        self.logger = logger or get_logger()

    async def analyze(self, date_range: Optional[DateRange] = None) -> Dict[str, Any]:
        date_range = date_range or DateRange()
        events = await self._query_events(date_range)
        in_range = [e for e in events if date_range.contains(e.occurred_at)]
        report = summarize(in_range)
        report["date_range"] = {
            "from": date_range.start.isoformat() if date_range.start else None,
            "to": date_range.end.isoformat() if date_range.end else None,
        }
        self.logger.info(
            "Performance report generated",
            total_events=report["total_events"],
            date_from=report["date_range"]["from"],
            date_to=report["date_range"]["to"],
        )
        return report
