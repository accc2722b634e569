"""Service for recording review events."""
import logging
import time
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Iterable, Optional

from lexitrack.clock import Clock, SystemClock, ensure_utc, utc_day
from lexitrack.errors import ValidationError
from lexitrack.models.progress_models import DifficultyRating, SessionStats, WordProgress, WordStatus
from lexitrack.monitoring import current_streak, review_duration, reviews_recorded, words_mastered
from lexitrack.services import mastery_evaluator, review_scheduler
from lexitrack.services.progress_store import ProgressStore

logger = logging.getLogger(__name__)


def recompute_totals(stats: SessionStats, words: Iterable[WordProgress]) -> SessionStats:
    """Return stats with totals recounted over every record."""
    words = list(words)
    return replace(
        stats,
        total_words_studied=sum(1 for word in words if word.review_count > 0),
        total_reviews=sum(word.review_count for word in words),
    )


def update_streak(stats: SessionStats, now: datetime) -> SessionStats:
    """Advance the daily streak for a review at ``now`` (UTC calendar days)."""
    now = ensure_utc(now)
    if stats.last_study_date is not None:
        today = utc_day(now)
        last_day = utc_day(stats.last_study_date)
        if last_day == today:
            # Already studied today, keep streak
            return stats
        if last_day == today - timedelta(days=1):
            return replace(stats, current_streak=stats.current_streak + 1, last_study_date=now)
    # First study session or streak broken
    return replace(stats, current_streak=1, last_study_date=now)


class ProgressUpdater:
    """Applies one review at a time to the progress store."""

    def __init__(self, store: ProgressStore, clock: Optional[Clock] = None):
        """Initialize the service with a progress store and a clock."""
        self.store = store
        self.clock = clock or SystemClock()

    def record_review(
        self,
        word_id: str,
        word: Optional[str],
        difficulty: DifficultyRating,
        now: Optional[datetime] = None,
    ) -> WordProgress:
        """Record one review and return the updated record.

        Unknown words are created on the fly. The word record and the
        session stats are written together; if the store fails the error
        propagates and nothing counts as committed.
        """
        if not isinstance(word_id, str) or not word_id.strip():
            raise ValidationError(f"Word id must be a non-empty string, got {word_id!r}")
        difficulty = DifficultyRating.parse(difficulty)
        now = ensure_utc(now) if now is not None else self.clock.now()

        started = time.perf_counter()
        current = self.store.get(word_id)
        if current is None:
            logger.info("First review of word %s", word_id)
            current = WordProgress.new(word_id, word or word_id, now)

        result = mastery_evaluator.evaluate(current, difficulty)
        updated = replace(
            current,
            word=word or current.word,
            status=result.status,
            last_reviewed=now,
            next_review=review_scheduler.next_review_date(current.review_count, difficulty, now),
            recognition_score=result.recognition_score,
            review_count=result.review_count,
            correct_count=result.correct_count,
            incorrect_count=result.incorrect_count,
            confidence_level=result.confidence_level,
        )

        others = [progress for progress in self.store.list() if progress.word_id != word_id]
        stats = recompute_totals(self.store.get_session_stats(), others + [updated])
        stats = update_streak(stats, now)

        self.store.commit(updated, stats)

        reviews_recorded.labels(difficulty=difficulty.value).inc()
        if updated.status is WordStatus.MASTERED and current.status is not WordStatus.MASTERED:
            words_mastered.inc()
        current_streak.set(stats.current_streak)
        review_duration.observe(time.perf_counter() - started)

        logger.info(
            "Reviewed %s as %s: score %d, status %s, next review %s",
            word_id, difficulty.value, updated.recognition_score,
            updated.status.value, updated.next_review.isoformat(),
        )
        return updated

    def reset(self) -> None:
        """Erase all progress."""
        logger.warning("Resetting all learning progress")
        self.store.clear()
