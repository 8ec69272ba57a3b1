"""
Reference adapters for the persistence collaborator.

JsonProfileStore serves candidates and internships from a JSON document
({"candidates": {...}, "internships": {...}}, maps keyed by id or lists
of documents carrying an id). SqlEventStore records and queries
recommendation outcome events in SQLite. Both expose coroutine methods;
file and database work runs in a worker thread.
"""

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import OperationalError

from .database import RecommendationEventRecord, get_session, init_database
from .errors import NotFoundError, StoreUnavailableError, ValidationError
from .logger import StructuredLogger, get_logger
from .models import Candidate, DateRange, Internship, RecommendationEvent
from .retry import RetryError, exponential_backoff
from .schema import candidate_from_dict, internship_from_dict


def load_store(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {"candidates": {}, "internships": {}}
    try:
        with path.open("r", encoding="utf-8") as f:
            content = f.read().strip()
    except OSError as e:
        raise StoreUnavailableError(f"Cannot read profile store {path}: {e}") from e
    if not content:
        return {"candidates": {}, "internships": {}}
    try:
        return json.loads(content)
    except json.JSONDecodeError as e:
        raise StoreUnavailableError(f"Profile store {path} is not valid JSON: {e}") from e


def save_store(path: Path, store: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(store, f, indent=2, ensure_ascii=False)


def _documents(store: Dict[str, Any], section: str) -> Dict[str, Dict[str, Any]]:
    """Index a section by id whether it is stored as a map or a list."""
    raw = store.get(section) or {}
    if isinstance(raw, dict):
        # Map keys are authoritative ids
        return {str(k): {**v, "id": str(k)} for k, v in raw.items()}
    docs = {}
    for doc in raw:
        identifier = doc.get("id", doc.get("_id"))
        if identifier is not None:
            docs[str(identifier)] = doc
    return docs


def _field_value(obj: Any, key: str) -> Any:
    if hasattr(obj, key):
        return getattr(obj, key)
    if hasattr(obj, "location") and hasattr(obj.location, key):
        return getattr(obj.location, key)
    if hasattr(obj, "preferences") and hasattr(obj.preferences, key):
        return getattr(obj.preferences, key)
    return None


def _matches(obj: Any, filters: Optional[Dict[str, Any]]) -> bool:
    if not filters:
        return True
    for key, expected in filters.items():
        value = _field_value(obj, key)
        if isinstance(value, str) and isinstance(expected, str):
            if value.strip().lower() != expected.strip().lower():
                return False
        elif value != expected:
            return False
    return True


class JsonProfileStore:
    def __init__(self, path: Path, logger: Optional[StructuredLogger] = None):
        self.path = Path(path)
        self.logger = logger or get_logger()

    async def _read(self) -> Dict[str, Any]:
        return await asyncio.to_thread(load_store, self.path)

    async def load_candidate(self, candidate_id: str) -> Candidate:
        docs = _documents(await self._read(), "candidates")
        doc = docs.get(candidate_id)
        if doc is None:
            raise NotFoundError("candidate", candidate_id)
        return candidate_from_dict(doc, candidate_id=candidate_id)

    async def load_internship(self, internship_id: str) -> Internship:
        docs = _documents(await self._read(), "internships")
        doc = docs.get(internship_id)
        if doc is None:
            raise NotFoundError("internship", internship_id)
        return internship_from_dict(doc)

    async def load_internship_catalog(self, filters: Optional[Dict[str, Any]] = None) -> List[Internship]:
        catalog = []
        for internship_id, doc in _documents(await self._read(), "internships").items():
            try:
                internship = internship_from_dict(doc)
            except ValidationError as e:
                self.logger.warning("Skipping invalid internship", internship_id=internship_id, errors=e.errors)
                continue
            if _matches(internship, filters):
                catalog.append(internship)
        return catalog

    async def load_candidate_pool(self, filters: Optional[Dict[str, Any]] = None) -> List[Candidate]:
        pool = []
        for candidate_id, doc in _documents(await self._read(), "candidates").items():
            try:
                candidate = candidate_from_dict(doc, candidate_id=candidate_id)
            except ValidationError as e:
                self.logger.warning("Skipping invalid candidate", candidate_id=candidate_id, errors=e.errors)
                continue
            if _matches(candidate, filters):
                pool.append(candidate)
        return pool


def _to_event(record: RecommendationEventRecord) -> RecommendationEvent:
    return RecommendationEvent(
        candidate_id=record.candidate_id,
        internship_id=record.internship_id,
        outcome=record.outcome,
        match_score=record.match_score,
        occurred_at=record.occurred_at,
        skill_overlap=record.skill_overlap,
        distance_km=record.distance_km,
        missing_skills=tuple(record.missing_skills or ()),
    )


class SqlEventStore:
    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        init_database(self.db_path)

    @exponential_backoff(max_retries=2, base_delay=0.1, exceptions=(OperationalError,))
    def _insert(self, event: RecommendationEvent) -> None:
        session = get_session(self.db_path)
        try:
            session.add(
                RecommendationEventRecord(
                    candidate_id=event.candidate_id,
                    internship_id=event.internship_id,
                    outcome=event.outcome,
                    match_score=event.match_score,
                    skill_overlap=event.skill_overlap,
                    distance_km=event.distance_km,
                    missing_skills=list(event.missing_skills),
                    occurred_at=event.occurred_at,
                )
            )
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @exponential_backoff(max_retries=2, base_delay=0.1, exceptions=(OperationalError,))
    def _select(self, date_range: DateRange) -> List[RecommendationEvent]:
        session = get_session(self.db_path)
        try:
            query = session.query(RecommendationEventRecord)
            if date_range.start is not None:
                query = query.filter(RecommendationEventRecord.occurred_at >= date_range.start)
            if date_range.end is not None:
                query = query.filter(RecommendationEventRecord.occurred_at <= date_range.end)
            records = query.order_by(
                RecommendationEventRecord.occurred_at, RecommendationEventRecord.id
            ).all()
            return [_to_event(r) for r in records]
        finally:
            session.close()

    async def record_event(self, event: RecommendationEvent) -> None:
        try:
            await asyncio.to_thread(self._insert, event)
        except RetryError as e:
            raise StoreUnavailableError(f"Cannot record event in {self.db_path}: {e}") from e

    async def query_events(self, date_range: DateRange) -> List[RecommendationEvent]:
        try:
            return await asyncio.to_thread(self._select, date_range)
        except RetryError as e:
            raise StoreUnavailableError(f"Cannot query events in {self.db_path}: {e}") from e
