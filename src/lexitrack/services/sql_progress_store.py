"""SQLAlchemy-backed progress store."""
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lexitrack.clock import optional_utc
from lexitrack.errors import PersistenceError
from lexitrack.models.base import create_session_factory, init_db
from lexitrack.models.models import SessionStatsRecord, StoreMeta, WordProgressRecord
from lexitrack.models.progress_models import SessionStats, WordProgress, WordStatus
from lexitrack.services.progress_store import STORE_VERSION, ProgressStore, parse_container

logger = logging.getLogger(__name__)

STATS_ROW_ID = 1


def _to_progress(record: WordProgressRecord) -> WordProgress:
    try:
        status = WordStatus(record.status)
    except ValueError as e:
        raise PersistenceError(f"Unknown status {record.status!r} for {record.word_id!r}") from e
    return WordProgress(
        word_id=record.word_id,
        word=record.word,
        status=status,
        first_seen=record.first_seen,
        last_reviewed=record.last_reviewed,
        next_review=record.next_review,
        recognition_score=record.recognition_score,
        production_score=record.production_score,
        review_count=record.review_count,
        correct_count=record.correct_count,
        incorrect_count=record.incorrect_count,
        confidence_level=record.confidence_level,
        extra=dict(record.extra or {}),
    )


def _apply_progress(record: WordProgressRecord, progress: WordProgress) -> None:
    record.word = progress.word
    record.status = progress.status.value
    # SQLite keeps wall time only, so write UTC and read naive values back as UTC
    record.first_seen = optional_utc(progress.first_seen)
    record.last_reviewed = optional_utc(progress.last_reviewed)
    record.next_review = optional_utc(progress.next_review)
    record.recognition_score = progress.recognition_score
    record.production_score = progress.production_score
    record.review_count = progress.review_count
    record.correct_count = progress.correct_count
    record.incorrect_count = progress.incorrect_count
    record.confidence_level = progress.confidence_level
    record.extra = dict(progress.extra)


def _to_stats(record: Optional[SessionStatsRecord]) -> SessionStats:
    if record is None:
        return SessionStats()
    return SessionStats(
        total_words_studied=record.total_words_studied,
        total_reviews=record.total_reviews,
        current_streak=record.current_streak,
        last_study_date=record.last_study_date,
        extra=dict(record.extra or {}),
    )


class SqlProgressStore(ProgressStore):
    """Store persisted in a relational database through SQLAlchemy."""

    def __init__(self, database_url: str, echo: bool = False):
        self.database_url = database_url
        try:
            self.engine, self.SessionLocal = create_session_factory(database_url, echo=echo)
            init_db(self.engine)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not initialize progress database: {e}") from e
        self._check_version()

    @contextmanager
    def _session(self, name: str) -> Iterator[Session]:
        """Session that commits on success and rolls back on any failure."""
        with self._operation(name):
            db = self.SessionLocal()
            try:
                yield db
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                raise PersistenceError(f"Progress database {name} failed: {e}") from e
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()

    def _check_version(self) -> None:
        with self._session("migrate") as db:
            meta = db.get(StoreMeta, "version")
            if meta is None:
                if db.query(WordProgressRecord).count() > 0:
                    raise PersistenceError("Progress database has records but no version tag")
                db.add(StoreMeta(key="version", value=STORE_VERSION))
            elif meta.value != STORE_VERSION:
                logger.warning("Progress version mismatch (%s != %s), migrating...", meta.value, STORE_VERSION)
                meta.value = STORE_VERSION

    def _find(self, db: Session, word_id: str) -> Optional[WordProgressRecord]:
        return db.query(WordProgressRecord).filter(WordProgressRecord.word_id == word_id).first()

    def _put(self, db: Session, progress: WordProgress) -> None:
        record = self._find(db, progress.word_id)
        if record is None:
            record = WordProgressRecord(word_id=progress.word_id)
            db.add(record)
        _apply_progress(record, progress)

    def _put_stats(self, db: Session, stats: SessionStats) -> None:
        record = db.get(SessionStatsRecord, STATS_ROW_ID)
        if record is None:
            record = SessionStatsRecord(id=STATS_ROW_ID)
            db.add(record)
        record.total_words_studied = stats.total_words_studied
        record.total_reviews = stats.total_reviews
        record.current_streak = stats.current_streak
        record.last_study_date = optional_utc(stats.last_study_date)
        record.extra = dict(stats.extra)

    def get(self, word_id: str) -> Optional[WordProgress]:
        with self._session("get") as db:
            record = self._find(db, word_id)
            return _to_progress(record) if record is not None else None

    def set(self, progress: WordProgress) -> None:
        with self._session("set") as db:
            self._put(db, progress)

    def list(self) -> List[WordProgress]:
        with self._session("list") as db:
            records = db.query(WordProgressRecord).order_by(WordProgressRecord.id).all()
            return [_to_progress(record) for record in records]

    def get_session_stats(self) -> SessionStats:
        with self._session("get_stats") as db:
            return _to_stats(db.get(SessionStatsRecord, STATS_ROW_ID))

    def set_session_stats(self, stats: SessionStats) -> None:
        with self._session("set_stats") as db:
            self._put_stats(db, stats)

    def commit(self, progress: WordProgress, stats: SessionStats) -> None:
        with self._session("commit") as db:
            self._put(db, progress)
            self._put_stats(db, stats)

    def clear(self) -> None:
        with self._session("clear") as db:
            db.query(WordProgressRecord).delete()
            db.query(SessionStatsRecord).delete()

    def import_data(self, data: Dict[str, Any]) -> None:
        words, stats = parse_container(data)
        with self._session("import") as db:
            db.query(WordProgressRecord).delete()
            db.query(SessionStatsRecord).delete()
            for progress in words:
                record = WordProgressRecord(word_id=progress.word_id)
                _apply_progress(record, progress)
                db.add(record)
            self._put_stats(db, stats)

    def close(self) -> None:
        """Release pooled connections."""
        self.engine.dispose()
