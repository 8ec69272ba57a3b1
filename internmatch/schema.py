"""
Validation and normalization of profile, internship and event payloads.

Stored profiles and ad-hoc request profiles arrive in slightly different
shapes (camelCase or snake_case keys, flat lat/lon or GeoJSON points).
Everything is normalized here into the frozen types in models.py so the
matching components never branch on where a profile came from.
"""

import math
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from .errors import ValidationError
from .models import (
    DISTANCE_PREFS,
    EVENT_OUTCOMES,
    SKILL_SOURCES,
    WORK_TYPES,
    Candidate,
    DateRange,
    DurationRange,
    Education,
    Internship,
    Location,
    Preferences,
    RecommendationEvent,
    Skill,
)
from .normalize import (
    normalize_distance_pref,
    normalize_sector,
    normalize_text,
    normalize_work_type,
)


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v)


def _get(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for k in keys:
        if k in data and data[k] is not None:
            return data[k]
    return default


def _parse_skills(raw: Any, field_name: str, errors: List[str]) -> Tuple[Skill, ...]:
    """Skills are dicts with a canonical tag, or bare tag strings."""
    if raw is None:
        return ()
    if not isinstance(raw, (list, tuple)):
        errors.append(f"Field '{field_name}' must be a list")
        return ()

    by_canonical: Dict[str, Skill] = {}
    for i, item in enumerate(raw):
        if isinstance(item, str):
            if not item.strip():
                errors.append(f"{field_name}[{i}] must be a non-empty string")
                continue
            skill = Skill(name=item.strip(), canonical=normalize_text(item))
        elif isinstance(item, dict):
            canonical = item.get("canonical")
            if not _is_non_empty_str(canonical):
                errors.append(f"{field_name}[{i}].canonical must be a non-empty string")
                continue
            name = item.get("name") if _is_non_empty_str(item.get("name")) else canonical
            confidence = item.get("confidence", 1.0)
            if confidence is None:
                confidence = 1.0
            if not _is_number(confidence) or not 0.0 <= confidence <= 1.0:
                errors.append(f"{field_name}[{i}].confidence must be a number within [0, 1]")
                continue
            source = item.get("source") or "user"
            if source not in SKILL_SOURCES:
                errors.append(f"{field_name}[{i}].source must be one of {', '.join(SKILL_SOURCES)}")
                continue
            skill = Skill(
                name=name.strip(),
                canonical=normalize_text(canonical),
                confidence=float(confidence),
                source=source,
            )
        else:
            errors.append(f"{field_name}[{i}] must be an object or string")
            continue

        # Unique by canonical; keep the most confident claim
        existing = by_canonical.get(skill.canonical)
        if existing is None or skill.confidence > existing.confidence:
            by_canonical[skill.canonical] = skill

    return tuple(by_canonical.values())


def _parse_location(raw: Any, errors: List[str]) -> Location:
    if raw is None:
        return Location()
    if not isinstance(raw, dict):
        errors.append("Field 'location' must be an object")
        return Location()

    lat = lon = None
    coordinates = raw.get("coordinates")
    if coordinates is not None:
        # GeoJSON order is [lon, lat]
        if (
            isinstance(coordinates, (list, tuple))
            and len(coordinates) == 2
            and all(_is_number(c) for c in coordinates)
        ):
            lon, lat = float(coordinates[0]), float(coordinates[1])
        else:
            errors.append("Field 'location.coordinates' must be [lon, lat]")
    else:
        raw_lat, raw_lon = raw.get("lat"), raw.get("lon", raw.get("lng"))
        if raw_lat is not None or raw_lon is not None:
            if _is_number(raw_lat) and _is_number(raw_lon):
                lat, lon = float(raw_lat), float(raw_lon)
            else:
                errors.append("Fields 'location.lat' and 'location.lon' must both be numbers")

    # Range is checked at scoring time so one bad pair is excluded, not the call
    district = raw.get("district") or ""
    state = raw.get("state") or ""
    if not isinstance(district, str) or not isinstance(state, str):
        errors.append("Fields 'location.district' and 'location.state' must be strings")
        district, state = "", ""
    return Location(lat=lat, lon=lon, district=district.strip(), state=state.strip())


def _parse_duration_range(raw: Any, errors: List[str]) -> Optional[DurationRange]:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        errors.append("Field 'preferences.duration' must be an object with min and max")
        return None
    lo, hi = raw.get("min"), raw.get("max")
    if not (_is_number(lo) and _is_number(hi)):
        errors.append("Fields 'preferences.duration.min' and '.max' must be numbers")
        return None
    if lo < 0 or hi < lo:
        errors.append("Field 'preferences.duration' must satisfy 0 <= min <= max")
        return None
    return DurationRange(min=int(lo), max=int(hi))


def _parse_preferences(raw: Any, errors: List[str]) -> Preferences:
    if raw is None:
        return Preferences()
    if not isinstance(raw, dict):
        errors.append("Field 'preferences' must be an object")
        return Preferences()

    raw_pref = _get(raw, "distancePref", "distance_pref")
    distance_pref = normalize_distance_pref(raw_pref) if isinstance(raw_pref, (str, type(None))) else None
    if distance_pref is None:
        errors.append(f"Field 'preferences.distancePref' must be one of {', '.join(DISTANCE_PREFS)}")
        distance_pref = "any"

    raw_work = _get(raw, "workType", "work_type")
    work_type = normalize_work_type(raw_work) if isinstance(raw_work, (str, type(None))) else None
    if work_type is None:
        errors.append(f"Field 'preferences.workType' must be one of {', '.join(WORK_TYPES)}")
        work_type = "either"

    min_stipend = _get(raw, "minStipend", "min_stipend", default=0)
    if not _is_number(min_stipend) or min_stipend < 0:
        errors.append("Field 'preferences.minStipend' must be a non-negative number")
        min_stipend = 0

    sectors = _get(raw, "sectors", default=[])
    if not isinstance(sectors, (list, tuple, set, frozenset)) or not all(isinstance(s, str) for s in sectors):
        errors.append("Field 'preferences.sectors' must be a list of strings")
        sectors = []

    return Preferences(
        distance_pref=distance_pref,
        work_type=work_type,
        min_stipend=float(min_stipend),
        sectors=frozenset(normalize_sector(s) for s in sectors if s.strip()),
        duration=_parse_duration_range(raw.get("duration"), errors),
    )


def _parse_education(raw: Any, errors: List[str]) -> Education:
    if raw is None:
        return Education()
    if not isinstance(raw, dict):
        errors.append("Field 'education' must be an object")
        return Education()
    year = raw.get("year")
    if year is not None and not (_is_number(year) and float(year).is_integer()):
        errors.append("Field 'education.year' must be an integer")
        year = None
    return Education(
        level=str(raw.get("level") or ""),
        field=str(raw.get("field") or ""),
        year=int(year) if year is not None else None,
    )


def _parse_id(data: Dict[str, Any], errors: List[str], fallback: Optional[str]) -> str:
    identifier = _get(data, "id", "_id", default=fallback)
    if identifier is None:
        errors.append("Missing required field: id")
        return ""
    identifier = str(identifier).strip()
    if not identifier:
        errors.append("Field 'id' must be non-empty")
    return identifier


def validate_candidate_profile(data: Any, candidate_id: Optional[str] = None) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means valid.
    """
    errors: List[str] = []
    if not isinstance(data, dict):
        return ["Candidate profile must be an object"]
    _parse_id(data, errors, candidate_id)
    _parse_skills(data.get("skills"), "skills", errors)
    _parse_location(data.get("location"), errors)
    _parse_education(data.get("education"), errors)
    _parse_preferences(data.get("preferences"), errors)
    return errors


def candidate_from_dict(data: Any, candidate_id: Optional[str] = None) -> Candidate:
    """
    Normalize a stored or ad-hoc candidate profile into a Candidate.

    Args:
        data: Profile dict (stored document or request payload)
        candidate_id: Id to use when the payload carries none

    Raises:
        ValidationError: With every problem found, not just the first
    """
    if not isinstance(data, dict):
        raise ValidationError(["Candidate profile must be an object"])
    errors: List[str] = []
    candidate = Candidate(
        id=_parse_id(data, errors, candidate_id),
        skills=_parse_skills(data.get("skills"), "skills", errors),
        location=_parse_location(data.get("location"), errors),
        education=_parse_education(data.get("education"), errors),
        preferences=_parse_preferences(data.get("preferences"), errors),
    )
    if errors:
        raise ValidationError(errors)
    return candidate


def internship_from_dict(data: Any) -> Internship:
    """Normalize an internship document into an Internship."""
    if not isinstance(data, dict):
        raise ValidationError(["Internship must be an object"])
    errors: List[str] = []
    identifier = _parse_id(data, errors, None)
    required = _parse_skills(
        _get(data, "requiredSkills", "required_skills", "skillsRequired"), "requiredSkills", errors
    )
    location = _parse_location(data.get("location"), errors)

    stipend = data.get("stipend", 0) or 0
    if not _is_number(stipend) or stipend < 0:
        errors.append("Field 'stipend' must be a non-negative number")
        stipend = 0

    duration = data.get("duration")
    if duration is not None and not (_is_number(duration) and duration >= 0):
        errors.append("Field 'duration' must be a non-negative number of months")
        duration = None

    raw_work = _get(data, "workType", "work_type")
    work_type = normalize_work_type(raw_work, default="onsite") if isinstance(raw_work, (str, type(None))) else None
    if work_type is None:
        errors.append(f"Field 'workType' must be one of {', '.join(WORK_TYPES)}")
        work_type = "onsite"

    capacity = data.get("capacity", 1)
    if not isinstance(capacity, int) or isinstance(capacity, bool) or capacity < 0:
        errors.append("Field 'capacity' must be a non-negative integer")
        capacity = 1

    sector = data.get("sector") or ""
    if not isinstance(sector, str):
        errors.append("Field 'sector' must be a string")
        sector = ""

    if errors:
        raise ValidationError(errors)
    return Internship(
        id=identifier,
        required_skills=required,
        location=location,
        stipend=float(stipend),
        duration=int(duration) if duration is not None else None,
        sector=normalize_sector(sector),
        work_type=work_type,
        capacity=capacity,
        title=str(data.get("title") or data.get("jobTitle") or ""),
        company=str(data.get("company") or data.get("companyName") or ""),
    )


def parse_datetime(value: Any, field_name: str) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip())
        except ValueError:
            pass
    raise ValidationError([f"Field '{field_name}' must be an ISO 8601 datetime"])


def event_from_dict(data: Any) -> RecommendationEvent:
    """Normalize a recommendation outcome event."""
    if not isinstance(data, dict):
        raise ValidationError(["Event must be an object"])
    errors: List[str] = []

    candidate_id = _get(data, "candidateId", "candidate_id")
    internship_id = _get(data, "internshipId", "internship_id")
    for name, value in (("candidateId", candidate_id), ("internshipId", internship_id)):
        if not _is_non_empty_str(value):
            errors.append(f"Field '{name}' must be a non-empty string")

    outcome = data.get("outcome")
    if outcome not in EVENT_OUTCOMES:
        errors.append(f"Field 'outcome' must be one of {', '.join(EVENT_OUTCOMES)}")

    match_score = _get(data, "matchScore", "match_score")
    if not _is_number(match_score) or not 0 <= match_score <= 100:
        errors.append("Field 'matchScore' must be a number within [0, 100]")

    skill_overlap = _get(data, "skillOverlap", "skill_overlap")
    if skill_overlap is not None and (not _is_number(skill_overlap) or not 0 <= skill_overlap <= 1):
        errors.append("Field 'skillOverlap' must be a number within [0, 1]")

    distance = _get(data, "distanceKm", "distance_km")
    if distance is not None and (not _is_number(distance) or distance < 0):
        errors.append("Field 'distanceKm' must be a non-negative number")

    missing = _get(data, "missingSkills", "missing_skills", default=[])
    if not isinstance(missing, (list, tuple)) or not all(isinstance(s, str) for s in missing):
        errors.append("Field 'missingSkills' must be a list of strings")
        missing = []

    occurred_at = _get(data, "occurredAt", "occurred_at")
    try:
        occurred = parse_datetime(occurred_at, "occurredAt") if occurred_at is not None else datetime.now()
    except ValidationError as e:
        errors.extend(e.errors)
        occurred = None

    if errors:
        raise ValidationError(errors)
    return RecommendationEvent(
        candidate_id=candidate_id.strip(),
        internship_id=internship_id.strip(),
        outcome=outcome,
        match_score=float(match_score),
        occurred_at=occurred,
        skill_overlap=float(skill_overlap) if skill_overlap is not None else None,
        distance_km=float(distance) if distance is not None else None,
        missing_skills=tuple(normalize_text(s) for s in missing if s.strip()),
    )


def parse_date_range(start: Any = None, end: Any = None) -> DateRange:
    """Build an inclusive DateRange from optional ISO strings or datetimes."""
    range_start = parse_datetime(start, "from") if start not in (None, "") else None
    range_end = parse_datetime(end, "to") if end not in (None, "") else None
    if range_start and range_end and range_start > range_end:
        raise ValidationError(["Date range start must not be after its end"])
    return DateRange(start=range_start, end=range_end)
