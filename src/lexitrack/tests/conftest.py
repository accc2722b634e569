"""Test configuration."""
import os
from datetime import UTC, datetime
from pathlib import Path
from typing import Callable, Generator

import pytest
from dotenv import load_dotenv
from faker import Faker

# Set test environment before any imports
os.environ["ENV"] = "test"

# Load test environment variables
test_env_path = Path(__file__).parent.parent.parent.parent / ".env.test"
load_dotenv(test_env_path)

# Import after environment setup
from lexitrack.clock import FixedClock
from lexitrack.models.progress_models import WordProgress, WordStatus
from lexitrack.services.progress_store import (
    InMemoryProgressStore,
    JsonFileProgressStore,
    ProgressStore,
)
from lexitrack.services.progress_updater import ProgressUpdater
from lexitrack.services.sql_progress_store import SqlProgressStore
from lexitrack.services.study_selector import StudySelector

fake = Faker()

START = datetime(2024, 3, 10, 9, 30, tzinfo=UTC)


@pytest.fixture
def start() -> datetime:
    """Fixed reference time for a test."""
    return START


@pytest.fixture
def clock(start: datetime) -> FixedClock:
    """Clock pinned to the reference time."""
    return FixedClock(start)


@pytest.fixture
def sql_store(tmp_path: Path) -> Generator[SqlProgressStore, None, None]:
    """SQLite-backed store in a temporary directory."""
    store = SqlProgressStore(f"sqlite:///{tmp_path / 'progress.db'}")
    try:
        yield store
    finally:
        store.close()


@pytest.fixture(params=["memory", "json", "sql"])
def store(request, tmp_path: Path) -> Generator[ProgressStore, None, None]:
    """Each store backend in turn."""
    if request.param == "memory":
        yield InMemoryProgressStore()
    elif request.param == "json":
        yield JsonFileProgressStore(tmp_path / "progress.json")
    else:
        store = SqlProgressStore(f"sqlite:///{tmp_path / 'progress.db'}")
        try:
            yield store
        finally:
            store.close()


@pytest.fixture
def memory_store() -> InMemoryProgressStore:
    """Plain dictionary store."""
    return InMemoryProgressStore()


@pytest.fixture
def updater(memory_store: InMemoryProgressStore, clock: FixedClock) -> ProgressUpdater:
    """Create a progress updater over the in-memory store."""
    return ProgressUpdater(memory_store, clock)


@pytest.fixture
def selector(memory_store: InMemoryProgressStore) -> StudySelector:
    """Create a study selector over the in-memory store."""
    return StudySelector(memory_store)


@pytest.fixture
def make_progress(start: datetime) -> Callable[..., WordProgress]:
    """Factory for progress records with Faker-generated words."""
    counter = {"n": 0}

    def factory(**overrides) -> WordProgress:
        counter["n"] += 1
        word = overrides.pop("word", fake.word())
        word_id = overrides.pop("word_id", f"{word}-{counter['n']}")
        progress = WordProgress.new(word_id, word, overrides.pop("first_seen", start))
        for key, value in overrides.items():
            setattr(progress, key, value)
        return progress

    return factory


@pytest.fixture
def reviewed(make_progress: Callable[..., WordProgress]) -> Callable[..., WordProgress]:
    """Factory for records that have been through at least one review."""

    def factory(**overrides) -> WordProgress:
        overrides.setdefault("status", WordStatus.LEARNING)
        overrides.setdefault("review_count", 1)
        return make_progress(**overrides)

    return factory
