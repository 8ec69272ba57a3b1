"""
Tests for the JSON profile store and the SQLite event store.
"""

from datetime import datetime

import pytest
from sqlalchemy.exc import OperationalError

from internmatch.database import RecommendationEventRecord, get_session, init_database
from internmatch.errors import NotFoundError, StoreUnavailableError
from internmatch.models import DateRange, RecommendationEvent
from internmatch.storage import JsonProfileStore, SqlEventStore, load_store, save_store


class TestLoadStore:
    """Test reading the store document."""

    def test_missing_file_is_empty(self, tmp_path):
        """Missing file reads as an empty store."""
        assert load_store(tmp_path / "nope.json") == {"candidates": {}, "internships": {}}

    def test_blank_file_is_empty(self, tmp_path):
        """Whitespace-only file reads as an empty store."""
        path = tmp_path / "store.json"
        path.write_text("   \n")
        assert load_store(path) == {"candidates": {}, "internships": {}}

    def test_invalid_json_is_unavailable(self, tmp_path):
        """Corrupt JSON raises StoreUnavailableError."""
        path = tmp_path / "store.json"
        path.write_text("{not json")
        with pytest.raises(StoreUnavailableError):
            load_store(path)

    def test_save_then_load(self, tmp_path):
        """Saved document reads back, creating parent directories."""
        path = tmp_path / "nested" / "store.json"
        save_store(path, {"candidates": {"c9": {"skills": ["go"]}}, "internships": []})
        assert load_store(path)["candidates"]["c9"] == {"skills": ["go"]}


class TestJsonProfileStore:
    """Test profile loading and catalog filtering."""

    @pytest.fixture
    def store(self, store_file, quiet_logger):
        return JsonProfileStore(store_file, logger=quiet_logger)

    @pytest.mark.asyncio
    async def test_load_candidate_from_geojson(self, store):
        """GeoJSON coordinates are read as lon, lat."""
        candidate = await store.load_candidate("c1")
        assert candidate.id == "c1"
        assert candidate.location.lat == pytest.approx(12.9716)
        assert candidate.location.lon == pytest.approx(77.5946)
        assert candidate.preferences.distance_pref == "local"
        assert candidate.preferences.sectors == frozenset({"technology"})
        assert {s.canonical for s in candidate.skills} == {"react", "javascript"}

    @pytest.mark.asyncio
    async def test_load_candidate_with_flat_coordinates(self, store):
        """Flat lat/lon keys and plain skill strings are accepted."""
        candidate = await store.load_candidate("c2")
        assert candidate.location.lat == pytest.approx(19.076)
        assert [s.canonical for s in candidate.skills] == ["python", "sql"]

    @pytest.mark.asyncio
    async def test_unknown_candidate(self, store):
        """Unknown candidate raises NotFoundError naming the kind."""
        with pytest.raises(NotFoundError) as exc_info:
            await store.load_candidate("ghost")
        assert exc_info.value.kind == "candidate"

    @pytest.mark.asyncio
    async def test_load_internship(self, store):
        """Internship loads by id; unknown ids raise NotFoundError."""
        internship = await store.load_internship("i-data")
        assert internship.work_type == "remote"
        assert internship.company == "DataCorp"
        with pytest.raises(NotFoundError):
            await store.load_internship("i-ghost")

    @pytest.mark.asyncio
    async def test_catalog_skips_invalid_documents(self, store):
        """Invalid internship documents are left out of the catalog."""
        catalog = await store.load_internship_catalog()
        assert sorted(i.id for i in catalog) == ["i-data", "i-web"]

    @pytest.mark.asyncio
    async def test_catalog_filters_case_insensitive(self, store):
        """String filters ignore case."""
        catalog = await store.load_internship_catalog({"sector": "Technology"})
        assert [i.id for i in catalog] == ["i-web"]

    @pytest.mark.asyncio
    async def test_candidate_pool_filters_on_location(self, store):
        """Filters reach into the location fields."""
        pool = await store.load_candidate_pool({"state": "maharashtra"})
        assert [c.id for c in pool] == ["c2"]

    @pytest.mark.asyncio
    async def test_unreadable_store(self, tmp_path, quiet_logger):
        """Unparseable store raises StoreUnavailableError."""
        path = tmp_path / "store.json"
        path.write_text("[")
        with pytest.raises(StoreUnavailableError):
            await JsonProfileStore(path, logger=quiet_logger).load_internship_catalog()


class TestDatabase:
    """Test the event table."""

    def test_init_creates_database(self, tmp_path):
        """init_database creates the file and its directory."""
        db_path = tmp_path / "db" / "events.db"
        init_database(db_path)
        assert db_path.exists()

    def test_record_defaults(self, tmp_path):
        """Optional columns get their defaults."""
        db_path = tmp_path / "events.db"
        init_database(db_path)
        session = get_session(db_path)
        try:
            session.add(
                RecommendationEventRecord(
                    candidate_id="c1", internship_id="i1", outcome="applied", match_score=70.0
                )
            )
            session.commit()
            record = session.query(RecommendationEventRecord).one()
            assert record.missing_skills == []
            assert record.occurred_at is not None
            assert record.skill_overlap is None
        finally:
            session.close()


class TestSqlEventStore:
    """Test recording and querying outcome events."""

    @pytest.fixture
    def events_store(self, tmp_path):
        return SqlEventStore(tmp_path / "events.db")

    @pytest.mark.asyncio
    async def test_record_and_query(self, events_store):
        """A recorded event reads back unchanged."""
        event = RecommendationEvent(
            candidate_id="c1",
            internship_id="i1",
            outcome="dropped",
            match_score=42.0,
            occurred_at=datetime(2024, 5, 1, 10, 30),
            skill_overlap=0.5,
            distance_km=12.5,
            missing_skills=("node",),
        )
        await events_store.record_event(event)
        assert await events_store.query_events(DateRange()) == [event]

    @pytest.mark.asyncio
    async def test_query_by_range(self, events_store):
        """Query returns only events inside the range, oldest first."""
        for day in (1, 10, 20):
            await events_store.record_event(
                RecommendationEvent(
                    candidate_id="c1",
                    internship_id=f"i{day}",
                    outcome="applied",
                    match_score=50.0,
                    occurred_at=datetime(2024, 5, day),
                )
            )
        events = await events_store.query_events(DateRange(datetime(2024, 5, 5), datetime(2024, 5, 20)))
        assert [e.internship_id for e in events] == ["i10", "i20"]


class TestSqlEventStoreUnavailable:
    """Test a database that stays locked through every retry."""

    @pytest.fixture
    def locked_store(self, tmp_path, monkeypatch):
        store = SqlEventStore(tmp_path / "events.db")

        def locked_session(db_path):
            raise OperationalError("INSERT", {}, Exception("database is locked"))

        monkeypatch.setattr("internmatch.storage.get_session", locked_session)
        return store

    @pytest.mark.asyncio
    async def test_record_event_raises_store_unavailable(self, locked_store):
        """Locked database on record surfaces as StoreUnavailableError."""
        event = RecommendationEvent(
            candidate_id="c1",
            internship_id="i1",
            outcome="applied",
            match_score=50.0,
            occurred_at=datetime(2024, 5, 1),
        )
        with pytest.raises(StoreUnavailableError) as exc_info:
            await locked_store.record_event(event)
        assert exc_info.value.code == "store_unavailable"

    @pytest.mark.asyncio
    async def test_query_events_raises_store_unavailable(self, locked_store):
        """Locked database on query surfaces as StoreUnavailableError."""
        with pytest.raises(StoreUnavailableError):
            await locked_store.query_events(DateRange())
