"""Service for choosing what to study and reporting progress."""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List

from lexitrack.clock import ensure_utc, utc_day
from lexitrack.errors import NotFoundError, ValidationError
from lexitrack.models.progress_models import SessionStats, WordProgress, WordStatus
from lexitrack.services.mastery_evaluator import round_half_up
from lexitrack.services.progress_store import ProgressStore

logger = logging.getLogger(__name__)

# Mastered = 100%, Reviewing = 75%, Learning = 40%, New = 0%
STATUS_WEIGHTS: Dict[WordStatus, int] = {
    WordStatus.MASTERED: 100,
    WordStatus.REVIEWING: 75,
    WordStatus.LEARNING: 40,
    WordStatus.NEW: 0,
}

DEFAULT_CAPACITY = 20
DEFAULT_WEAK_LIMIT = 10


@dataclass
class ProgressReport:
    """Snapshot of overall learning progress."""
    stats: SessionStats
    status_counts: Dict[str, int] = field(default_factory=dict)
    total_words: int = 0
    due_for_review: int = 0
    overall_progress: int = 0


def _check_non_negative(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"{name} must be a non-negative integer, got {value!r}")


def _error_rate(progress: WordProgress) -> float:
    return progress.incorrect_count / max(progress.review_count, 1)


class StudySelector:
    """Read-only queries over the progress store."""

    def __init__(self, store: ProgressStore):
        """Initialize the service with a progress store."""
        self.store = store

    def get_word(self, word_id: str) -> WordProgress:
        """Get progress for a word that must already exist."""
        progress = self.store.get(word_id)
        if progress is None:
            raise NotFoundError(word_id)
        return progress

    def words_due_for_review(self, now: datetime) -> List[WordProgress]:
        """Words whose next review time has passed, in store order."""
        now = ensure_utc(now)
        return [progress for progress in self.store.list() if progress.is_due(now)]

    def words_due_today(self, now: datetime) -> List[WordProgress]:
        """Words due at any time up to the end of ``now``'s UTC day."""
        today = utc_day(now)
        return [
            progress for progress in self.store.list()
            if progress.next_review is not None and utc_day(progress.next_review) <= today
        ]

    def words_by_status(self, status: WordStatus) -> List[WordProgress]:
        """Get words by status."""
        if not isinstance(status, WordStatus):
            try:
                status = WordStatus(str(status).lower())
            except ValueError as e:
                raise ValidationError(f"Unknown status: {status!r}") from e
        return [progress for progress in self.store.list() if progress.status is status]

    def overall_progress(self) -> int:
        """Calculate overall progress percentage (0-100)."""
        words = self.store.list()
        if not words:
            return 0
        total = sum(STATUS_WEIGHTS[progress.status] for progress in words)
        return round_half_up(total / len(words))

    def weak_words(self, limit: int = DEFAULT_WEAK_LIMIT) -> List[WordProgress]:
        """Reviewed words with the highest share of hard ratings."""
        _check_non_negative("limit", limit)
        reviewed = [progress for progress in self.store.list() if progress.review_count > 0]
        # sorted() is stable, so ties keep store order
        return sorted(reviewed, key=_error_rate, reverse=True)[:limit]

    def recommended_study_queue(self, now: datetime, capacity: int = DEFAULT_CAPACITY) -> List[WordProgress]:
        """Due words first, then new words while there is room.

        Unlike a plain ``due + new`` concatenation, a new word that is
        already due (as every freshly created record is) appears only once,
        in the due part, and does not take a second slot from the new part.
        """
        _check_non_negative("capacity", capacity)
        words = self.store.list()
        now = ensure_utc(now)

        due = [progress for progress in words if progress.is_due(now)]
        room = max(0, capacity - len(due))
        new = [
            progress for progress in words
            if progress.status is WordStatus.NEW and not progress.is_due(now)
        ][:room]

        queue = (due + new)[:capacity]
        logger.debug("Study queue: %d due, %d new, capacity %d", len(due), len(new), capacity)
        return queue

    def recommended_study_count(self, now: datetime, capacity: int = DEFAULT_CAPACITY) -> int:
        """Get recommended number of words to study now."""
        _check_non_negative("capacity", capacity)
        words = self.store.list()
        now = ensure_utc(now)

        due_count = sum(1 for progress in words if progress.is_due(now))
        new_count = sum(
            1 for progress in words
            if progress.status is WordStatus.NEW and not progress.is_due(now)
        )
        return due_count + min(new_count, max(0, capacity - due_count))

    def progress_stats(self, now: datetime) -> ProgressReport:
        """Session stats plus per-status counts and the due total."""
        words = self.store.list()
        now = ensure_utc(now)

        status_counts = {status.value: 0 for status in WordStatus}
        for progress in words:
            status_counts[progress.status.value] += 1

        total = sum(STATUS_WEIGHTS[progress.status] for progress in words)
        return ProgressReport(
            stats=self.store.get_session_stats(),
            status_counts=status_counts,
            total_words=len(words),
            due_for_review=sum(1 for progress in words if progress.is_due(now)),
            overall_progress=round_half_up(total / len(words)) if words else 0,
        )
