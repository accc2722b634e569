"""Database models for the SQL progress store."""
from sqlalchemy import JSON, Column, DateTime, Integer, String

from lexitrack.models.base import Base, TimestampMixin


class WordProgressRecord(Base, TimestampMixin):
    """Per-word learning state."""

    __tablename__ = "word_progress"

    id = Column(Integer, primary_key=True)  # insertion order
    word_id = Column(String, unique=True, nullable=False, index=True)
    word = Column(String, nullable=False)
    status = Column(String, nullable=False, default="new")  # new/learning/reviewing/mastered
    first_seen = Column(DateTime(timezone=True), nullable=False)
    last_reviewed = Column(DateTime(timezone=True), nullable=True)
    next_review = Column(DateTime(timezone=True), nullable=True)
    recognition_score = Column(Integer, nullable=False, default=0)
    production_score = Column(Integer, nullable=False, default=0)
    review_count = Column(Integer, nullable=False, default=0)
    correct_count = Column(Integer, nullable=False, default=0)
    incorrect_count = Column(Integer, nullable=False, default=0)
    confidence_level = Column(Integer, nullable=False, default=0)
    extra = Column(JSON, nullable=False, default=dict)


class SessionStatsRecord(Base, TimestampMixin):
    """Aggregate statistics; the store keeps a single row."""

    __tablename__ = "session_stats"

    id = Column(Integer, primary_key=True)
    total_words_studied = Column(Integer, nullable=False, default=0)
    total_reviews = Column(Integer, nullable=False, default=0)
    current_streak = Column(Integer, nullable=False, default=0)
    last_study_date = Column(DateTime(timezone=True), nullable=True)
    extra = Column(JSON, nullable=False, default=dict)


class StoreMeta(Base):
    """Key/value metadata, currently only the schema version."""

    __tablename__ = "store_meta"

    key = Column(String, primary_key=True)
    value = Column(String, nullable=False)
