"""
Match scoring for one candidate/internship pair.

Responsibilities:
- Combine skill, distance and preference fit into a 0-100 match score.
- Emit an explanation trail, one line per component.
- Apply the hard filters (no skill overlap; local candidates too far away).

Given identical inputs the score and explanation are always identical.
"""

from typing import List, Optional, Tuple

from .config import MatchingConfig
from .geo import distance_km
from .models import Candidate, ExplanationItem, Internship, MatchResult
from .skills import EXACT, FUZZY, RELATED, SkillMatcher, SkillMatchReport

SKILL = "skill"
DISTANCE = "distance"
PREFERENCE = "preference"

# Explanation tie-break order
_FACTOR_ORDER = {SKILL: 0, DISTANCE: 1, PREFERENCE: 2}


class ScoreCalculator:
    def __init__(self, config: Optional[MatchingConfig] = None, skill_matcher: Optional[SkillMatcher] = None):
        self.config = config or MatchingConfig()
        self.skill_matcher = skill_matcher or SkillMatcher(self.config)

    # Distance

    def distance_decay(self, distance: Optional[float], distance_pref: str) -> float:
        """1.0 within the full-credit radius, linear to 0 at the preference cutoff."""
        if distance is None:
            return 0.0
        full = self.config.full_credit_km
        cutoff = self.config.cutoff_for(distance_pref)
        if distance <= full:
            return 1.0
        if distance >= cutoff:
            return 0.0
        return (cutoff - distance) / (cutoff - full)

    def exceeds_hard_filter(self, distance: Optional[float], distance_pref: str) -> bool:
        if distance is None or distance_pref != "local":
            return False
        return distance > self.config.local_cutoff_km * self.config.local_filter_multiplier

    # Preferences

    def preference_credits(self, candidate: Candidate, internship: Internship) -> List[Tuple[str, float]]:
        prefs = candidate.preferences
        credits = []

        if "either" in (prefs.work_type, internship.work_type) or prefs.work_type == internship.work_type:
            credits.append(("work type", 1.0))
        else:
            credits.append(("work type", 0.0))

        if prefs.min_stipend <= 0 or internship.stipend >= prefs.min_stipend:
            credits.append(("stipend", 1.0))
        else:
            shortfall = (prefs.min_stipend - internship.stipend) / prefs.min_stipend
            tolerance = self.config.stipend_tolerance
            credits.append(("stipend", max(0.0, 1.0 - shortfall / tolerance) if tolerance > 0 else 0.0))

        if prefs.duration is None or internship.duration is None:
            credits.append(("duration", 1.0))
        else:
            credits.append(("duration", 1.0 if prefs.duration.contains(internship.duration) else 0.0))

        if not prefs.sectors:
            credits.append(("sector", 0.5))
        else:
            credits.append(("sector", 1.0 if internship.sector in prefs.sectors else 0.0))

        return credits

    # Explanation text

    @staticmethod
    def _skill_text(report: SkillMatchReport) -> str:
        total = len(report.matches)
        parts = []
        for tier in (EXACT, FUZZY, RELATED):
            n = report.tier_count(tier)
            if n:
                parts.append(f"{n} {tier}")
        text = f"Matches {len(report.matched)} of {total} required skills"
        if parts:
            text += f" ({', '.join(parts)})"
        if report.missing:
            text += f"; missing {', '.join(report.missing)}"
        return text

    def _distance_text(self, distance: Optional[float], distance_pref: str) -> str:
        if distance is None:
            return "Distance unknown (no coordinates)"
        cutoff = self.config.cutoff_for(distance_pref)
        if distance <= self.config.full_credit_km:
            return f"{distance:.1f} km away, within {self.config.full_credit_km:g} km"
        if distance < cutoff:
            return f"{distance:.1f} km away, inside the {distance_pref} range of {cutoff:g} km"
        return f"{distance:.1f} km away, beyond the {distance_pref} range of {cutoff:g} km"

    @staticmethod
    def _preference_text(credits: List[Tuple[str, float]]) -> str:
        met = [name for name, credit in credits if credit >= 1.0]
        partial = [name for name, credit in credits if 0.0 < credit < 1.0]
        unmet = [name for name, credit in credits if credit <= 0.0]
        pieces = []
        if met:
            pieces.append(f"matches {', '.join(met)}")
        if partial:
            pieces.append(f"partially matches {', '.join(partial)}")
        if unmet:
            pieces.append(f"misses {', '.join(unmet)}")
        return "Preferences: " + "; ".join(pieces)

    # Scoring

    def score(
        self,
        candidate: Candidate,
        internship: Internship,
        enforce_distance_filter: bool = True,
    ) -> Optional[MatchResult]:
        """
        Score one pair.

        Args:
            candidate: Candidate snapshot
            internship: Internship snapshot
            enforce_distance_filter: Apply the local-preference hard filter

        Returns:
            MatchResult, or None when the pair is excluded from ranking
            (no skill credit, or a local candidate beyond the hard limit)

        Raises:
            InvalidCoordinateError: If either location is out of range
        """
        weights = self.config.score_weights
        prefs = candidate.preferences

        report = self.skill_matcher.match(candidate.skills, internship.required_skills)
        skill_component = report.score * weights.skill
        if skill_component <= 0:
            return None

        distance = None
        if candidate.location.has_coordinates and internship.location.has_coordinates:
            distance = distance_km(candidate.location, internship.location)
        if enforce_distance_filter and self.exceeds_hard_filter(distance, prefs.distance_pref):
            return None
        distance_component = self.distance_decay(distance, prefs.distance_pref) * weights.distance

        credits = self.preference_credits(candidate, internship)
        preference_component = (sum(c for _, c in credits) / len(credits)) * weights.preference

        total = skill_component + distance_component + preference_component
        match_score = int(min(100, max(0, round(100 * total))))

        components = [
            (SKILL, skill_component, self._skill_text(report)),
            (DISTANCE, distance_component, self._distance_text(distance, prefs.distance_pref)),
            (PREFERENCE, preference_component, self._preference_text(credits)),
        ]
        explanation = sorted(
            (
                ExplanationItem(factor=factor, contribution=round(100 * value, 2), text=text)
                for factor, value, text in components
            ),
            key=lambda item: (-item.contribution, _FACTOR_ORDER[item.factor]),
        )

        return MatchResult(
            candidate_id=candidate.id,
            internship_id=internship.id,
            match_score=match_score,
            explanation=tuple(explanation),
            distance_km=round(distance, 3) if distance is not None else None,
            skill_overlap=round(report.overlap, 4),
            missing_skills=report.missing,
        )
