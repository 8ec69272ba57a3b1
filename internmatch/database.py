"""
Database schema and connection management.

Uses SQLite with SQLAlchemy for recommendation outcome events.
"""

from datetime import datetime
from pathlib import Path

from sqlalchemy import JSON, Column, DateTime, Float, Index, Integer, String, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


class RecommendationEventRecord(Base):
    """Outcome of one recommendation (applied, accepted or dropped)."""

    __tablename__ = "recommendation_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    candidate_id = Column(String, nullable=False)
    internship_id = Column(String, nullable=False)
    outcome = Column(String, nullable=False)  # applied, accepted, dropped
    match_score = Column(Float, nullable=False)
    skill_overlap = Column(Float, nullable=True)
    distance_km = Column(Float, nullable=True)
    missing_skills = Column(JSON, nullable=False, default=list)
    occurred_at = Column(DateTime, nullable=False, default=datetime.now)
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    __table_args__ = (Index("ix_recommendation_events_occurred_at", "occurred_at"),)


def init_database(db_path: Path) -> None:
    """
    Initialize database and create tables.

    Args:
        db_path: Path to SQLite database file
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(engine)
    engine.dispose()


def get_session(db_path: Path):
    """
    Get database session.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLAlchemy session
    """
    engine = create_engine(f"sqlite:///{db_path}")
    Session = sessionmaker(bind=engine)
    return Session()
