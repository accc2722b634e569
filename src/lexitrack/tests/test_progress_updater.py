"""Tests for recording review events."""
from datetime import UTC, datetime, timedelta
from typing import Callable

import pytest
from faker import Faker
from prometheus_client import REGISTRY

from lexitrack.clock import FixedClock
from lexitrack.errors import PersistenceError, ValidationError
from lexitrack.models.progress_models import DifficultyRating, SessionStats, WordProgress, WordStatus
from lexitrack.services.progress_store import InMemoryProgressStore, ProgressStore
from lexitrack.services.progress_updater import ProgressUpdater, recompute_totals, update_streak

fake = Faker()


class FailingStore(InMemoryProgressStore):
    """Store whose writes always fail."""

    def commit(self, progress: WordProgress, stats: SessionStats) -> None:
        with self._operation("commit"):
            raise PersistenceError("disk full")


def test_first_review_hard(updater: ProgressUpdater, memory_store: InMemoryProgressStore, start: datetime) -> None:
    """Test a hard first review of an unseen word."""
    progress = updater.record_review("w1", "hello", DifficultyRating.HARD, start)

    assert progress.review_count == 1
    assert progress.incorrect_count == 1
    assert progress.correct_count == 0
    assert progress.recognition_score == 0
    assert progress.status is WordStatus.LEARNING
    assert progress.confidence_level == 0
    assert progress.first_seen == start
    assert progress.last_reviewed == start
    assert progress.next_review == start + timedelta(days=1)
    assert memory_store.get("w1") == progress


def test_second_review_easy(updater: ProgressUpdater, start: datetime) -> None:
    """Test an easy review one day after a hard one."""
    updater.record_review("w1", "hello", DifficultyRating.HARD, start)
    later = start + timedelta(days=1)
    progress = updater.record_review("w1", "hello", DifficultyRating.EASY, later)

    assert progress.review_count == 2
    assert progress.correct_count == 1
    assert progress.recognition_score == 15
    assert progress.status is WordStatus.LEARNING
    assert progress.confidence_level == 1
    # EASY table, index 1
    assert progress.next_review == later + timedelta(days=7)
    assert progress.first_seen == start


def test_uses_clock_when_no_time_given(updater: ProgressUpdater, clock: FixedClock) -> None:
    """Test the injected clock supplies the review time."""
    progress = updater.record_review("w1", "hello", "medium")
    assert progress.last_reviewed == clock.now()
    assert progress.next_review == clock.now() + timedelta(days=1)


def test_word_defaults_to_id(updater: ProgressUpdater, start: datetime) -> None:
    """Test a missing surface form falls back to the id, later forms win."""
    assert updater.record_review("run", None, "easy", start).word == "run"
    assert updater.record_review("run", "Run", "easy", start).word == "Run"
    assert updater.record_review("run", None, "easy", start).word == "Run"


def test_existing_fields_preserved(
    updater: ProgressUpdater,
    memory_store: InMemoryProgressStore,
    make_progress: Callable[..., WordProgress],
    start: datetime,
) -> None:
    """Test fields the engine does not own are carried over."""
    memory_store.set(make_progress(
        word_id="w1",
        first_seen=start - timedelta(days=30),
        production_score=40,
        extra={"cefrLevel": "A2"},
    ))
    progress = updater.record_review("w1", None, "easy", start)

    assert progress.first_seen == start - timedelta(days=30)
    assert progress.production_score == 40
    assert progress.extra == {"cefrLevel": "A2"}


def test_totals_recomputed(updater: ProgressUpdater, memory_store: InMemoryProgressStore,
                           make_progress: Callable[..., WordProgress], start: datetime) -> None:
    """Test totals count every record in the store."""
    memory_store.set(make_progress(word_id="untouched"))
    updater.record_review("w1", "one", "easy", start)
    updater.record_review("w1", "one", "hard", start)
    updater.record_review("w2", "two", "medium", start)

    stats = memory_store.get_session_stats()
    assert stats.total_words_studied == 2
    assert stats.total_reviews == 3


def test_streak_starts_at_one(updater: ProgressUpdater, memory_store: InMemoryProgressStore, start: datetime) -> None:
    """Test the first ever review starts a streak."""
    updater.record_review("w1", "one", "easy", start)
    stats = memory_store.get_session_stats()
    assert stats.current_streak == 1
    assert stats.last_study_date == start


def test_streak_increments_after_yesterday(
    updater: ProgressUpdater, memory_store: InMemoryProgressStore, start: datetime
) -> None:
    """Test a review the day after the last study day extends the streak."""
    memory_store.set_session_stats(SessionStats(current_streak=4, last_study_date=start - timedelta(days=1)))
    updater.record_review("w1", "one", "easy", start)

    stats = memory_store.get_session_stats()
    assert stats.current_streak == 5
    assert stats.last_study_date == start


def test_streak_resets_after_gap(updater: ProgressUpdater, memory_store: InMemoryProgressStore, start: datetime) -> None:
    """Test a missed day resets the streak."""
    memory_store.set_session_stats(SessionStats(current_streak=4, last_study_date=start - timedelta(days=2)))
    updater.record_review("w1", "one", "easy", start)

    stats = memory_store.get_session_stats()
    assert stats.current_streak == 1
    assert stats.last_study_date == start


def test_streak_unchanged_same_day(updater: ProgressUpdater, memory_store: InMemoryProgressStore, start: datetime) -> None:
    """Test more reviews on the same day leave the streak alone."""
    morning = start.replace(hour=0, minute=5)
    memory_store.set_session_stats(SessionStats(current_streak=3, last_study_date=morning))
    updater.record_review("w1", "one", "easy", start)

    stats = memory_store.get_session_stats()
    assert stats.current_streak == 3
    assert stats.last_study_date == morning


def test_streak_uses_utc_calendar_days() -> None:
    """Test day boundaries are UTC midnight, not 24 hours."""
    late = datetime(2024, 3, 9, 23, 50, tzinfo=UTC)
    early = datetime(2024, 3, 10, 0, 10, tzinfo=UTC)
    stats = update_streak(SessionStats(current_streak=2, last_study_date=late), early)
    assert stats.current_streak == 3


def test_update_streak_is_pure(start: datetime) -> None:
    """Test the input stats are left alone."""
    stats = SessionStats(current_streak=2, last_study_date=start - timedelta(days=1))
    update_streak(stats, start)
    assert stats.current_streak == 2


def test_recompute_totals(make_progress: Callable[..., WordProgress]) -> None:
    """Test totals over a list of records."""
    words = [make_progress(review_count=count) for count in (0, 2, 5)]
    stats = recompute_totals(SessionStats(current_streak=7), words)
    assert (stats.total_words_studied, stats.total_reviews, stats.current_streak) == (2, 7, 7)


@pytest.mark.parametrize("word_id", ["", "   ", None, 12])
def test_invalid_word_id(updater: ProgressUpdater, memory_store: InMemoryProgressStore, word_id) -> None:
    """Test malformed ids are rejected before touching the store."""
    with pytest.raises(ValidationError):
        updater.record_review(word_id, "x", "easy")
    assert memory_store.list() == []


def test_invalid_difficulty(updater: ProgressUpdater, memory_store: InMemoryProgressStore) -> None:
    """Test unknown ratings are rejected before touching the store."""
    with pytest.raises(ValidationError):
        updater.record_review("w1", "x", "trivial")
    assert memory_store.list() == []


def test_persistence_failure_propagates(clock: FixedClock) -> None:
    """Test a failed write surfaces and nothing is committed."""
    store = FailingStore()
    updater = ProgressUpdater(store, clock)

    before = REGISTRY.get_sample_value("lexitrack_persistence_errors_total", {"operation": "commit"}) or 0
    with pytest.raises(PersistenceError):
        updater.record_review("w1", "one", "easy")
    after = REGISTRY.get_sample_value("lexitrack_persistence_errors_total", {"operation": "commit"})

    assert store.list() == []
    assert store.get_session_stats() == SessionStats()
    assert after == before + 1


def test_reviews_counted_in_metrics(updater: ProgressUpdater, start: datetime) -> None:
    """Test each review increments the labelled counter."""
    before = REGISTRY.get_sample_value("lexitrack_reviews_total", {"difficulty": "hard"}) or 0
    updater.record_review("w1", "one", "hard", start)
    updater.record_review("w2", "two", "hard", start)
    assert REGISTRY.get_sample_value("lexitrack_reviews_total", {"difficulty": "hard"}) == before + 2


def test_reset_clears_store(updater: ProgressUpdater, memory_store: InMemoryProgressStore, start: datetime) -> None:
    """Test reset wipes words and stats."""
    updater.record_review("w1", "one", "easy", start)
    updater.reset()
    assert memory_store.list() == []
    assert memory_store.get_session_stats() == SessionStats()


def test_daily_study_over_backends(store: ProgressStore, start: datetime) -> None:
    """Test a week of study against every backend."""
    clock = FixedClock(start)
    updater = ProgressUpdater(store, clock)
    words = [(f"w{i}", fake.word()) for i in range(3)]

    for _ in range(7):
        for word_id, word in words:
            updater.record_review(word_id, word, "easy")
        clock.advance(days=1)

    stats = store.get_session_stats()
    assert stats.current_streak == 7
    assert stats.total_reviews == 21
    assert stats.total_words_studied == 3
    assert all(progress.review_count == 7 for progress in store.list())


def test_repeated_easy_masters_word(updater: ProgressUpdater, clock: FixedClock) -> None:
    """Test a word reviewed easy on schedule is mastered within ten reviews."""
    statuses = []
    for _ in range(10):
        progress = updater.record_review("w1", "hello", "easy")
        statuses.append(progress.status)
        clock.set(progress.next_review)

    assert WordStatus.MASTERED in statuses
    assert statuses.index(WordStatus.MASTERED) <= 9
    assert statuses[-1] is WordStatus.MASTERED


if __name__ == "__main__":
    pytest.main([__file__])
