"""
Tiered skill-overlap scoring.

Each required skill is matched against the candidate's skills at the best
tier available: exact canonical match, fuzzy string similarity, or
membership in the related-skills table. The tier weight is scaled by the
confidence of the candidate skill that produced it.
"""

from dataclasses import dataclass
from difflib import SequenceMatcher
from functools import lru_cache
from typing import Iterable, List, Optional, Sequence, Tuple

from .config import MatchingConfig
from .models import Skill

EXACT = "exact"
FUZZY = "fuzzy"
RELATED = "related"


@lru_cache(maxsize=4096)
def similarity(a: str, b: str) -> float:
    """Symmetric string similarity ratio in [0, 1]."""
    if a > b:
        a, b = b, a
    return SequenceMatcher(None, a, b).ratio()


@dataclass(frozen=True)
class SkillMatch:
    required: str
    matched_with: Optional[str]
    tier: Optional[str]
    credit: float


@dataclass(frozen=True)
class SkillMatchReport:
    score: float
    matches: Tuple[SkillMatch, ...]

    @property
    def matched(self) -> Tuple[SkillMatch, ...]:
        return tuple(m for m in self.matches if m.tier is not None)

    @property
    def missing(self) -> Tuple[str, ...]:
        return tuple(m.required for m in self.matches if m.tier is None)

    @property
    def overlap(self) -> float:
        """Share of required skills matched at any tier."""
        if not self.matches:
            return 0.0
        return len(self.matched) / len(self.matches)

    def tier_count(self, tier: str) -> int:
        return sum(1 for m in self.matches if m.tier == tier)


class SkillMatcher:
    def __init__(self, config: Optional[MatchingConfig] = None):
        self.config = config or MatchingConfig()

    def cap(self, candidate_skills: Iterable[Skill]) -> List[Skill]:
        """Keep the max_skills most confident skills (ties by canonical)."""
        ranked = sorted(candidate_skills, key=lambda s: (-s.confidence, s.canonical))
        return ranked[: self.config.max_skills]

    def is_related(self, a: str, b: str) -> bool:
        table = self.config.related_skills
        return b in table.get(a, ()) or a in table.get(b, ())

    def _tier(self, required: str, offered: str) -> Optional[str]:
        if required == offered:
            return EXACT
        if similarity(required, offered) >= self.config.fuzzy_threshold:
            return FUZZY
        if self.is_related(required, offered):
            return RELATED
        return None

    def _weight(self, tier: str) -> float:
        weights = self.config.skill_weights
        return {EXACT: weights.exact, FUZZY: weights.fuzzy, RELATED: weights.related}[tier]

    def match(self, candidate_skills: Iterable[Skill], required_skills: Sequence[Skill]) -> SkillMatchReport:
        offered = self.cap(candidate_skills)
        matches: List[SkillMatch] = []
        for req in required_skills:
            best = SkillMatch(required=req.canonical, matched_with=None, tier=None, credit=0.0)
            for skill in offered:
                tier = self._tier(req.canonical, skill.canonical)
                if tier is None:
                    continue
                credit = self._weight(tier) * skill.confidence
                if credit > best.credit or best.tier is None:
                    best = SkillMatch(
                        required=req.canonical,
                        matched_with=skill.canonical,
                        tier=tier,
                        credit=credit,
                    )
            matches.append(best)

        if not matches:
            return SkillMatchReport(score=0.0, matches=())
        score = sum(m.credit for m in matches) / len(matches)
        return SkillMatchReport(score=min(1.0, max(0.0, score)), matches=tuple(matches))

    def skill_score(self, candidate_skills: Iterable[Skill], required_skills: Sequence[Skill]) -> float:
        return self.match(candidate_skills, required_skills).score
