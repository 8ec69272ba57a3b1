"""
Matching configuration.

A single immutable MatchingConfig is built once (usually from the
environment) and handed to each component at construction.
"""

import os
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Dict, FrozenSet, List, Mapping, Optional

from .errors import ValidationError

DEFAULT_RELATED_SKILLS: Dict[str, FrozenSet[str]] = {
    "react": frozenset({"javascript", "typescript", "redux", "nextjs"}),
    "angular": frozenset({"typescript", "javascript"}),
    "vue": frozenset({"javascript", "typescript"}),
    "node": frozenset({"javascript", "express", "typescript"}),
    "python": frozenset({"django", "flask", "fastapi", "pandas"}),
    "pandas": frozenset({"numpy", "data analysis"}),
    "machine learning": frozenset({"tensorflow", "pytorch", "scikit-learn", "data analysis"}),
    "java": frozenset({"spring", "kotlin"}),
    "sql": frozenset({"mysql", "postgresql", "sqlite"}),
    "excel": frozenset({"data analysis", "accounting"}),
    "communication": frozenset({"customer service", "sales"}),
    "tally": frozenset({"accounting", "gst"}),
}


@dataclass(frozen=True)
class SkillWeights:
    exact: float = 1.0
    fuzzy: float = 0.7
    related: float = 0.5


@dataclass(frozen=True)
class ScoreWeights:
    skill: float = 0.5
    distance: float = 0.3
    preference: float = 0.2


@dataclass(frozen=True)
class MatchingConfig:
    skill_weights: SkillWeights = field(default_factory=SkillWeights)
    score_weights: ScoreWeights = field(default_factory=ScoreWeights)
    fuzzy_threshold: float = 0.8
    max_skills: int = 50
    max_distance_km: float = 500.0
    full_credit_km: float = 10.0
    local_cutoff_km: float = 50.0
    state_cutoff_km: float = 200.0
    local_filter_multiplier: float = 2.0
    stipend_tolerance: float = 0.2
    max_results: int = 20
    cache_ttl_seconds: float = 3600.0
    batch_concurrency: int = 5
    batch_max_size: int = 50
    batch_timeout_seconds: Optional[float] = None
    related_skills: Mapping[str, FrozenSet[str]] = field(
        default_factory=lambda: MappingProxyType(dict(DEFAULT_RELATED_SKILLS))
    )

    def cutoff_for(self, distance_pref: str) -> float:
        """Distance at which the distance credit reaches zero."""
        if distance_pref == "local":
            return self.local_cutoff_km
        if distance_pref == "state":
            return self.state_cutoff_km
        return self.max_distance_km

    def with_overrides(self, **changes) -> "MatchingConfig":
        config = replace(self, **changes)
        config.validate()
        return config

    def validate(self) -> None:
        errors: List[str] = []
        for name in ("exact", "fuzzy", "related"):
            value = getattr(self.skill_weights, name)
            if not 0.0 <= value <= 1.0:
                errors.append(f"skill weight '{name}' must be within [0, 1]")
        if not (self.skill_weights.exact >= self.skill_weights.fuzzy >= self.skill_weights.related):
            errors.append("skill weights must satisfy exact >= fuzzy >= related")
        total = self.score_weights.skill + self.score_weights.distance + self.score_weights.preference
        if abs(total - 1.0) > 1e-6:
            errors.append(f"score weights must sum to 1.0 (got {total:.3f})")
        if not 0.0 < self.fuzzy_threshold <= 1.0:
            errors.append("fuzzy_threshold must be within (0, 1]")
        if self.max_skills < 1:
            errors.append("max_skills must be at least 1")
        if not (0 <= self.full_credit_km < self.local_cutoff_km <= self.state_cutoff_km <= self.max_distance_km):
            errors.append("distance bands must satisfy full_credit < local <= state <= max_distance")
        if self.batch_concurrency < 1:
            errors.append("batch_concurrency must be at least 1")
        if self.batch_max_size < 1:
            errors.append("batch_max_size must be at least 1")
        if self.cache_ttl_seconds <= 0:
            errors.append("cache_ttl_seconds must be positive")
        if self.batch_timeout_seconds is not None and self.batch_timeout_seconds <= 0:
            errors.append("batch_timeout_seconds must be positive when set")
        if errors:
            raise ValidationError(errors)


def _env_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ValidationError([f"{name} must be a {cast.__name__} (got {raw!r})"])


def load_config() -> MatchingConfig:
    """
    Build configuration from INTERNMATCH_* environment variables.

    Unset variables fall back to defaults. Call load_env() first to pick up
    a .env file.

    Raises:
        ValidationError: If a variable is malformed or the result is inconsistent
    """
    defaults = MatchingConfig()
    config = MatchingConfig(
        skill_weights=SkillWeights(
            exact=_env_number("INTERNMATCH_SKILL_WEIGHT_EXACT", defaults.skill_weights.exact, float),
            fuzzy=_env_number("INTERNMATCH_SKILL_WEIGHT_FUZZY", defaults.skill_weights.fuzzy, float),
            related=_env_number("INTERNMATCH_SKILL_WEIGHT_RELATED", defaults.skill_weights.related, float),
        ),
        fuzzy_threshold=_env_number("INTERNMATCH_FUZZY_THRESHOLD", defaults.fuzzy_threshold, float),
        max_skills=_env_number("INTERNMATCH_MAX_SKILLS", defaults.max_skills, int),
        max_distance_km=_env_number("INTERNMATCH_MAX_DISTANCE_KM", defaults.max_distance_km, float),
        cache_ttl_seconds=_env_number("INTERNMATCH_CACHE_TTL_SECONDS", defaults.cache_ttl_seconds, float),
        batch_concurrency=_env_number("INTERNMATCH_BATCH_CONCURRENCY", defaults.batch_concurrency, int),
        batch_max_size=_env_number("INTERNMATCH_BATCH_MAX_SIZE", defaults.batch_max_size, int),
        batch_timeout_seconds=_env_number("INTERNMATCH_BATCH_TIMEOUT_SECONDS", None, float),
    )
    config.validate()
    return config
