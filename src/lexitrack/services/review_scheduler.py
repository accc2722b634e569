"""Review interval scheduling.

Intervals are whole calendar days added to the review time, so the time of
day of the review is carried over to the next due date. Each difficulty has
its own table; once a word has been reviewed more times than the table has
entries, the last entry repeats.
"""
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List

from lexitrack.clock import ensure_utc
from lexitrack.errors import ValidationError
from lexitrack.models.progress_models import DifficultyRating

# Review intervals in days based on difficulty
INTERVALS: Dict[DifficultyRating, List[int]] = {
    DifficultyRating.HARD: [1, 1, 3, 7, 14],  # struggling words, frequent reviews
    DifficultyRating.MEDIUM: [1, 3, 7, 14, 30],
    DifficultyRating.EASY: [3, 7, 14, 30, 60, 90],
}


@dataclass(frozen=True)
class ReviewCountdown:
    """Time remaining until a word is due."""
    days: int
    hours: int
    is_past: bool
    description: str


def interval_days(review_count: int, difficulty: DifficultyRating) -> int:
    """Interval for a review, given how many reviews preceded it."""
    if review_count < 0:
        raise ValidationError(f"Review count cannot be negative: {review_count}")
    table = INTERVALS[DifficultyRating.parse(difficulty)]
    return table[min(review_count, len(table) - 1)]


def next_review_date(review_count: int, difficulty: DifficultyRating, now: datetime) -> datetime:
    """Calculate the next review date based on prior review count and difficulty."""
    return ensure_utc(now) + timedelta(days=interval_days(review_count, difficulty))


def interval_description(days: int) -> str:
    """Human-readable interval."""
    if days == 0:
        return "today"
    if days == 1:
        return "tomorrow"
    if days < 7:
        return f"in {days} days"
    if days < 30:
        weeks = days // 7
        return "in 1 week" if weeks == 1 else f"in {weeks} weeks"
    months = days // 30
    return "in 1 month" if months == 1 else f"in {months} months"


def time_until_review(next_review: datetime, now: datetime) -> ReviewCountdown:
    """Describe how long until ``next_review``, rounding partial units up."""
    diff = ensure_utc(next_review) - ensure_utc(now)
    seconds = abs(diff.total_seconds())
    is_past = diff.total_seconds() <= 0  # due at exactly next_review

    days = math.ceil(seconds / 86400)
    hours = math.ceil(seconds / 3600)

    if is_past:
        description = "study now"
    elif hours < 24:
        description = "in 1 hour" if hours == 1 else f"in {hours} hours"
    else:
        description = interval_description(days)

    return ReviewCountdown(days=days, hours=hours, is_past=is_past, description=description)
