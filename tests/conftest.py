"""
Pytest configuration and shared fixtures.
"""

import json
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List

import pytest

from internmatch.config import MatchingConfig
from internmatch.errors import NotFoundError
from internmatch.logger import StructuredLogger, reset_logger
from internmatch.models import (
    Candidate,
    DurationRange,
    Internship,
    Location,
    Preferences,
    Skill,
)

# Bangalore, and a point 18 km due north of it
BANGALORE = (12.9716, 77.5946)
NORTH_18KM = (12.9716 + 18 / 111.195, 77.5946)


def skill(canonical: str, confidence: float = 1.0) -> Skill:
    return Skill(name=canonical.title(), canonical=canonical, confidence=confidence)


def make_candidate(
    candidate_id: str = "c1",
    skills=("react",),
    coords=BANGALORE,
    distance_pref: str = "local",
    work_type: str = "either",
    min_stipend: float = 0.0,
    sectors=(),
    duration=None,
) -> Candidate:
    lat, lon = coords if coords else (None, None)
    return Candidate(
        id=candidate_id,
        skills=tuple(s if isinstance(s, Skill) else skill(s) for s in skills),
        location=Location(lat=lat, lon=lon, district="Bangalore Urban", state="Karnataka"),
        preferences=Preferences(
            distance_pref=distance_pref,
            work_type=work_type,
            min_stipend=min_stipend,
            sectors=frozenset(sectors),
            duration=DurationRange(*duration) if duration else None,
        ),
    )


def make_internship(
    internship_id: str = "i1",
    skills=("react", "node"),
    coords=NORTH_18KM,
    stipend: float = 10000,
    duration=3,
    sector: str = "technology",
    work_type: str = "onsite",
) -> Internship:
    lat, lon = coords if coords else (None, None)
    return Internship(
        id=internship_id,
        required_skills=tuple(s if isinstance(s, Skill) else skill(s) for s in skills),
        location=Location(lat=lat, lon=lon, district="Bangalore Urban", state="Karnataka"),
        stipend=stipend,
        duration=duration,
        sector=sector,
        work_type=work_type,
    )


class FakeProfileStore:
    """In-memory profile store with call counters."""

    def __init__(self, candidates: List[Candidate] = (), internships: List[Internship] = ()):
        self.candidates = {c.id: c for c in candidates}
        self.internships = {i.id: i for i in internships}
        self.calls: Dict[str, int] = {"candidate": 0, "internship": 0, "catalog": 0, "pool": 0}

    async def load_candidate(self, candidate_id):
        self.calls["candidate"] += 1
        if candidate_id not in self.candidates:
            raise NotFoundError("candidate", candidate_id)
        return self.candidates[candidate_id]

    async def load_internship(self, internship_id):
        self.calls["internship"] += 1
        if internship_id not in self.internships:
            raise NotFoundError("internship", internship_id)
        return self.internships[internship_id]

    async def load_internship_catalog(self, filters=None):
        self.calls["catalog"] += 1
        return list(self.internships.values())

    async def load_candidate_pool(self, filters=None):
        self.calls["pool"] += 1
        return list(self.candidates.values())


class FakeClock:
    def __init__(self, start: datetime = datetime(2024, 1, 1, 12, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture(autouse=True)
def _fresh_global_logger():
    reset_logger()
    yield
    reset_logger()


@pytest.fixture
def quiet_logger() -> StructuredLogger:
    return StructuredLogger(name="internmatch-test", enable_console=False, enable_file=False)


@pytest.fixture
def config() -> MatchingConfig:
    return MatchingConfig()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def profile_document() -> Dict[str, Any]:
    """Stored candidate document (GeoJSON location, camelCase keys)."""
    return {
        "_id": "64b7f0c2a1b2c3d4e5f60718",
        "name": "Asha",
        "skills": [
            {"name": "React", "canonical": "react", "confidence": 0.9, "source": "verified"},
            {"name": "JavaScript", "canonical": "javascript", "confidence": 0.8},
        ],
        "location": {
            "type": "Point",
            "coordinates": [BANGALORE[1], BANGALORE[0]],
            "district": "Bangalore Urban",
            "state": "Karnataka",
        },
        "education": {"level": "undergraduate", "field": "computer science", "year": 2025},
        "preferences": {
            "distancePref": "local",
            "workType": "either",
            "minStipend": 5000,
            "sectors": ["Technology"],
            "duration": {"min": 2, "max": 6},
        },
    }


@pytest.fixture
def store_file(tmp_path, profile_document) -> Path:
    """JSON profile store with two candidates and three internships."""
    store = {
        "candidates": {
            "c1": profile_document,
            "c2": {
                "skills": ["python", "sql"],
                "location": {"lat": 19.076, "lon": 72.8777, "district": "Mumbai", "state": "Maharashtra"},
                "preferences": {"distancePref": "any"},
            },
        },
        "internships": [
            {
                "id": "i-web",
                "title": "Frontend Intern",
                "company": "WebWorks",
                "requiredSkills": ["react", "node"],
                "location": {"lat": NORTH_18KM[0], "lon": NORTH_18KM[1], "district": "Bangalore Urban", "state": "Karnataka"},
                "stipend": 8000,
                "duration": 3,
                "sector": "technology",
                "workType": "onsite",
            },
            {
                "id": "i-data",
                "title": "Data Intern",
                "company": "DataCorp",
                "requiredSkills": ["python", "sql"],
                "location": {"lat": 19.07, "lon": 72.88, "district": "Mumbai", "state": "Maharashtra"},
                "stipend": 12000,
                "duration": 6,
                "sector": "analytics",
                "workType": "remote",
            },
            {
                "id": "i-broken",
                "requiredSkills": "not-a-list",
            },
        ],
    }
    path = tmp_path / "store.json"
    path.write_text(json.dumps(store))
    return path
