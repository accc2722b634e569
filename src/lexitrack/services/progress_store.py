"""Progress store interface and the in-memory and JSON file backends.

A store owns the ``word_id -> WordProgress`` map and the single
SessionStats record. Writes replace whole records; there is no locking,
the last writer wins.

The persisted layout is a versioned container::

    {"version": "1.0", "userId": ..., "words": {word_id: {...}}, "stats": {...}}

Unknown fields at any level are preserved.
"""
import copy
import json
import logging
import os
import tempfile
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from lexitrack.errors import NotFoundError, PersistenceError, ValidationError
from lexitrack.models.progress_models import SessionStats, WordProgress
from lexitrack.monitoring import persistence_errors, store_operations

logger = logging.getLogger(__name__)

STORE_VERSION = "1.0"


def new_container(user_id: Optional[str] = None) -> Dict[str, Any]:
    """Empty container for a fresh learner."""
    return {
        "version": STORE_VERSION,
        "userId": user_id or f"local-user-{uuid.uuid4().hex}",
        "words": {},
        "stats": SessionStats().to_dict(),
    }


def migrate_container(data: Dict[str, Any]) -> Tuple[Dict[str, Any], bool]:
    """Bring a container to STORE_VERSION.

    Returns the container and whether it changed. Unversioned data is
    refused rather than guessed at.
    """
    if not isinstance(data, dict):
        raise PersistenceError(f"Progress container must be an object, got {type(data).__name__}")
    if "version" not in data:
        raise PersistenceError("Progress container has no version tag")
    if data["version"] == STORE_VERSION:
        return data, False

    logger.warning("Progress version mismatch (%s != %s), migrating...", data["version"], STORE_VERSION)
    migrated = dict(data)
    migrated["version"] = STORE_VERSION
    migrated.setdefault("words", {})
    migrated.setdefault("stats", SessionStats().to_dict())
    return migrated, True


def check_container(data: Dict[str, Any]) -> None:
    """Raise PersistenceError unless ``words`` and ``stats`` are objects."""
    if not isinstance(data.get("words"), dict):
        raise PersistenceError("Progress container field 'words' must be an object")
    if not isinstance(data.get("stats"), dict):
        raise PersistenceError("Progress container field 'stats' must be an object")


def parse_container(data: Any) -> Tuple[List[WordProgress], SessionStats]:
    """Validate an imported container and build its records.

    Containers of another version are rejected with ValidationError;
    malformed content raises PersistenceError.
    """
    if not isinstance(data, dict):
        raise ValidationError("Progress file must contain a JSON object")
    if data.get("version") != STORE_VERSION:
        raise ValidationError(f"Incompatible progress file version: {data.get('version')!r}")
    check_container(data)
    words = [WordProgress.from_dict(raw, word_id) for word_id, raw in data["words"].items()]
    return words, SessionStats.from_dict(data["stats"])


class ProgressStore(ABC):
    """Durable per-word learning state."""

    @abstractmethod
    def get(self, word_id: str) -> Optional[WordProgress]:
        """Get progress for a word, or None if it was never seen."""
        pass

    @abstractmethod
    def set(self, progress: WordProgress) -> None:
        """Replace the whole record stored under ``progress.word_id``."""
        pass

    @abstractmethod
    def list(self) -> List[WordProgress]:
        """All records in store order."""
        pass

    @abstractmethod
    def get_session_stats(self) -> SessionStats:
        """Session statistics, created with defaults on first use."""
        pass

    @abstractmethod
    def set_session_stats(self, stats: SessionStats) -> None:
        """Replace the session statistics."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove all progress and statistics."""
        pass

    def require(self, word_id: str) -> WordProgress:
        """Get progress for a word, raising NotFoundError if absent."""
        progress = self.get(word_id)
        if progress is None:
            raise NotFoundError(word_id)
        return progress

    def commit(self, progress: WordProgress, stats: SessionStats) -> None:
        """Write a word record and the session stats together."""
        self.set(progress)
        self.set_session_stats(stats)

    def export_data(self) -> Dict[str, Any]:
        """Full progress as a versioned container."""
        with self._operation("export"):
            return {
                "version": STORE_VERSION,
                "words": {progress.word_id: progress.to_dict() for progress in self.list()},
                "stats": self.get_session_stats().to_dict(),
            }

    def import_data(self, data: Dict[str, Any]) -> None:
        """Replace all progress with an exported container."""
        words, stats = parse_container(data)
        with self._operation("import"):
            self.clear()
            for progress in words:
                self.set(progress)
            self.set_session_stats(stats)

    @contextmanager
    def _operation(self, name: str) -> Iterator[None]:
        """Count an operation and its persistence failures."""
        store_operations.labels(operation=name).inc()
        try:
            yield
        except PersistenceError as e:
            persistence_errors.labels(operation=name).inc()
            logger.error("Progress store %s failed: %s", name, e)
            raise


class InMemoryProgressStore(ProgressStore):
    """Dictionary-backed store. Records are copied in and out."""

    def __init__(self):
        self.words: Dict[str, WordProgress] = {}
        self.stats: Optional[SessionStats] = None

    def get(self, word_id: str) -> Optional[WordProgress]:
        with self._operation("get"):
            progress = self.words.get(word_id)
            return copy.deepcopy(progress) if progress is not None else None

    def set(self, progress: WordProgress) -> None:
        with self._operation("set"):
            stored = copy.deepcopy(progress)
            stored.normalize_timestamps()
            self.words[progress.word_id] = stored

    def list(self) -> List[WordProgress]:
        with self._operation("list"):
            return [copy.deepcopy(progress) for progress in self.words.values()]

    def get_session_stats(self) -> SessionStats:
        with self._operation("get_stats"):
            if self.stats is None:
                self.stats = SessionStats()
            return copy.deepcopy(self.stats)

    def set_session_stats(self, stats: SessionStats) -> None:
        with self._operation("set_stats"):
            self.stats = copy.deepcopy(stats)
            self.stats.normalize_timestamps()

    def clear(self) -> None:
        with self._operation("clear"):
            self.words = {}
            self.stats = None


class JsonFileProgressStore(ProgressStore):
    """Store backed by a single JSON file.

    Every operation reads the file; writes go through a temporary file and
    ``os.replace`` so a crash never leaves a half-written container.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return new_container()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise PersistenceError(f"Progress file {self.path} is corrupted: {e}") from e
        except OSError as e:
            raise PersistenceError(f"Could not read progress file {self.path}: {e}") from e

        data, migrated = migrate_container(data)
        check_container(data)
        if migrated:
            self._write(data)
        return data

    def _write(self, data: Dict[str, Any]) -> None:
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".progress-", suffix=".json")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except (OSError, TypeError, ValueError) as e:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.remove(tmp_name)
            raise PersistenceError(f"Could not write progress file {self.path}: {e}") from e

    def get(self, word_id: str) -> Optional[WordProgress]:
        with self._operation("get"):
            words = self._read()["words"]
            if word_id not in words:
                return None
            return WordProgress.from_dict(words[word_id], word_id)

    def set(self, progress: WordProgress) -> None:
        with self._operation("set"):
            data = self._read()
            data["words"][progress.word_id] = progress.to_dict()
            self._write(data)

    def list(self) -> List[WordProgress]:
        with self._operation("list"):
            words = self._read()["words"]
            return [WordProgress.from_dict(raw, word_id) for word_id, raw in words.items()]

    def get_session_stats(self) -> SessionStats:
        with self._operation("get_stats"):
            return SessionStats.from_dict(self._read()["stats"])

    def set_session_stats(self, stats: SessionStats) -> None:
        with self._operation("set_stats"):
            data = self._read()
            data["stats"] = stats.to_dict()
            self._write(data)

    def commit(self, progress: WordProgress, stats: SessionStats) -> None:
        with self._operation("commit"):
            data = self._read()
            data["words"][progress.word_id] = progress.to_dict()
            data["stats"] = stats.to_dict()
            self._write(data)

    def clear(self) -> None:
        with self._operation("clear"):
            user_id = None
            if self.path.exists():
                try:
                    user_id = self._read().get("userId")
                except PersistenceError:
                    logger.warning("Resetting unreadable progress file %s", self.path)
            self._write(new_container(user_id))

    def export_data(self) -> Dict[str, Any]:
        with self._operation("export"):
            data = self._read()
            # Parse every record so corrupted data is never exported silently
            for word_id, raw in data["words"].items():
                WordProgress.from_dict(raw, word_id)
            SessionStats.from_dict(data["stats"])
            return copy.deepcopy(data)

    def import_data(self, data: Dict[str, Any]) -> None:
        words, stats = parse_container(data)
        with self._operation("import"):
            container = {key: value for key, value in data.items() if key not in ("words", "stats")}
            container.setdefault("userId", new_container()["userId"])
            container["words"] = {progress.word_id: progress.to_dict() for progress in words}
            container["stats"] = stats.to_dict()
            self._write(container)


def create_store(storage_settings) -> ProgressStore:
    """Build the store selected by configuration."""
    backend = storage_settings.backend
    if backend == "memory":
        return InMemoryProgressStore()
    if backend == "json":
        return JsonFileProgressStore(storage_settings.progress_file)
    if backend == "sql":
        from lexitrack.services.sql_progress_store import SqlProgressStore
        return SqlProgressStore(storage_settings.database_url, echo=storage_settings.echo)
    raise ValueError(f"Unknown progress backend: {backend}")
