"""Models for per-word learning progress and session statistics."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from lexitrack.clock import ensure_utc, from_iso, optional_utc, to_iso
from lexitrack.errors import PersistenceError, ValidationError


class DifficultyRating(Enum):
    """Learner's self-assessment for one review."""
    HARD = "hard"  # User doesn't know the word
    MEDIUM = "medium"  # User finds it difficult but remembers
    EASY = "easy"  # User knows the word well

    @classmethod
    def parse(cls, value: Any) -> "DifficultyRating":
        """Accept a member or its name/value in any case."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise ValidationError(f"Unknown difficulty rating: {value!r}")


class WordStatus(Enum):
    """Lifecycle stage of a word."""
    NEW = "new"
    LEARNING = "learning"
    REVIEWING = "reviewing"
    MASTERED = "mastered"


# Persisted (camelCase) key -> attribute name
WORD_FIELDS = {
    "wordId": "word_id",
    "word": "word",
    "status": "status",
    "firstSeen": "first_seen",
    "lastReviewed": "last_reviewed",
    "nextReview": "next_review",
    "recognitionScore": "recognition_score",
    "productionScore": "production_score",
    "reviewCount": "review_count",
    "correctCount": "correct_count",
    "incorrectCount": "incorrect_count",
    "confidenceLevel": "confidence_level",
}

STATS_FIELDS = {
    "totalWordsStudied": "total_words_studied",
    "totalReviews": "total_reviews",
    "currentStreak": "current_streak",
    "lastStudyDate": "last_study_date",
}

_WORD_COUNTERS = (
    "recognitionScore", "productionScore", "reviewCount",
    "correctCount", "incorrectCount", "confidenceLevel",
)
_STATS_COUNTERS = ("totalWordsStudied", "totalReviews", "currentStreak")


def _read_int(data: Dict[str, Any], key: str) -> int:
    value = data.get(key, 0)
    if value is None:
        return 0
    # bool is an int subclass; reject it along with floats and strings
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise PersistenceError(f"Field {key!r} must be a non-negative integer, got {value!r}")
    return value


def _read_timestamp(data: Dict[str, Any], key: str) -> Optional[datetime]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise PersistenceError(f"Field {key!r} must be an ISO timestamp, got {value!r}")
    try:
        return from_iso(value)
    except ValueError as e:
        raise PersistenceError(f"Field {key!r} is not a valid timestamp: {value!r}") from e


@dataclass
class WordProgress:
    """Learning state of one vocabulary item."""
    word_id: str
    word: str
    first_seen: datetime
    next_review: Optional[datetime]
    status: WordStatus = WordStatus.NEW
    last_reviewed: Optional[datetime] = None
    recognition_score: int = 0
    production_score: int = 0
    review_count: int = 0
    correct_count: int = 0
    incorrect_count: int = 0
    confidence_level: int = 0
    extra: Dict[str, Any] = field(default_factory=dict)  # unknown persisted fields

    def __post_init__(self):
        self.normalize_timestamps()

    def normalize_timestamps(self) -> None:
        """Convert every timestamp to aware UTC; naive values are taken as UTC."""
        self.first_seen = ensure_utc(self.first_seen)
        self.last_reviewed = optional_utc(self.last_reviewed)
        self.next_review = optional_utc(self.next_review)

    @classmethod
    def new(cls, word_id: str, word: str, now: datetime) -> "WordProgress":
        """Fresh record, due immediately."""
        now = ensure_utc(now)
        return cls(word_id=word_id, word=word, first_seen=now, next_review=now)

    def is_due(self, now: datetime) -> bool:
        return self.next_review is not None and self.next_review <= ensure_utc(now)

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data.update({
            "wordId": self.word_id,
            "word": self.word,
            "status": self.status.value,
            "firstSeen": to_iso(self.first_seen),
            "lastReviewed": to_iso(self.last_reviewed),
            "nextReview": to_iso(self.next_review),
            "recognitionScore": self.recognition_score,
            "productionScore": self.production_score,
            "reviewCount": self.review_count,
            "correctCount": self.correct_count,
            "incorrectCount": self.incorrect_count,
            "confidenceLevel": self.confidence_level,
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any], word_id: Optional[str] = None) -> "WordProgress":
        """Build a record from its persisted form.

        ``word_id`` is the key the record was stored under; it wins when the
        record itself carries no ``wordId``. Malformed records raise
        PersistenceError rather than being dropped.
        """
        if not isinstance(data, dict):
            raise PersistenceError(f"Word progress must be an object, got {type(data).__name__}")

        stored_id = data.get("wordId", word_id)
        if not isinstance(stored_id, str) or not stored_id:
            raise PersistenceError(f"Word progress has no valid wordId: {stored_id!r}")
        if word_id is not None and stored_id != word_id:
            raise PersistenceError(f"Word progress stored under {word_id!r} claims wordId {stored_id!r}")

        try:
            status = WordStatus(data.get("status", WordStatus.NEW.value))
        except ValueError as e:
            raise PersistenceError(f"Unknown status {data.get('status')!r} for {stored_id!r}") from e

        first_seen = _read_timestamp(data, "firstSeen")
        if first_seen is None:
            raise PersistenceError(f"Word progress {stored_id!r} has no firstSeen")

        counters = {key: _read_int(data, key) for key in _WORD_COUNTERS}
        if counters["recognitionScore"] > 100 or counters["confidenceLevel"] > 5:
            raise PersistenceError(f"Score fields out of range for {stored_id!r}")

        word = data.get("word", stored_id)
        if word is None:
            word = stored_id

        return cls(
            word_id=stored_id,
            word=str(word),
            status=status,
            first_seen=first_seen,
            last_reviewed=_read_timestamp(data, "lastReviewed"),
            next_review=_read_timestamp(data, "nextReview"),
            **{WORD_FIELDS[key]: value for key, value in counters.items()},
            extra={key: value for key, value in data.items() if key not in WORD_FIELDS},
        )


@dataclass
class SessionStats:
    """Aggregate learner statistics."""
    total_words_studied: int = 0
    total_reviews: int = 0
    current_streak: int = 0
    last_study_date: Optional[datetime] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.normalize_timestamps()

    def normalize_timestamps(self) -> None:
        self.last_study_date = optional_utc(self.last_study_date)

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data.update({
            "totalWordsStudied": self.total_words_studied,
            "totalReviews": self.total_reviews,
            "currentStreak": self.current_streak,
            "lastStudyDate": to_iso(self.last_study_date),
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionStats":
        if not isinstance(data, dict):
            raise PersistenceError(f"Session stats must be an object, got {type(data).__name__}")
        counters = {STATS_FIELDS[key]: _read_int(data, key) for key in _STATS_COUNTERS}
        return cls(
            last_study_date=_read_timestamp(data, "lastStudyDate"),
            extra={key: value for key, value in data.items() if key not in STATS_FIELDS},
            **counters,
        )
