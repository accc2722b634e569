"""Recognition score, confidence level and status derivation."""
import math
from dataclasses import dataclass

from lexitrack.models.progress_models import DifficultyRating, WordProgress, WordStatus

# Smoothing: 70% old score, 30% new score
PREVIOUS_SCORE_WEIGHT = 0.7
NEW_SCORE_WEIGHT = 0.3

EASY_BONUS = 5
EASY_BONUS_MIN_ACCURACY = 70
HARD_PENALTY = -10

MASTERED_SCORE = 95
MASTERED_MIN_REVIEWS = 5
REVIEWING_SCORE = 80

# (minimum score, confidence level), highest first
CONFIDENCE_THRESHOLDS = [(95, 5), (85, 4), (70, 3), (50, 2)]


@dataclass(frozen=True)
class MasteryResult:
    """Derived fields of a word after one review."""
    review_count: int
    correct_count: int
    incorrect_count: int
    recognition_score: int
    status: WordStatus
    confidence_level: int


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values."""
    return math.floor(value + 0.5)


def determine_status(review_count: int, recognition_score: int) -> WordStatus:
    """Determine word status based on performance."""
    if review_count == 0:
        return WordStatus.NEW
    if recognition_score >= MASTERED_SCORE and review_count >= MASTERED_MIN_REVIEWS:
        return WordStatus.MASTERED
    if recognition_score >= REVIEWING_SCORE:
        return WordStatus.REVIEWING
    return WordStatus.LEARNING


def confidence_level(recognition_score: int, review_count: int) -> int:
    """Map score to a 0-5 scale, capped low until enough reviews exist."""
    if review_count < 2:
        return 0
    if review_count < 4 and recognition_score < 50:
        return 1
    for threshold, level in CONFIDENCE_THRESHOLDS:
        if recognition_score >= threshold:
            return level
    return 1


def recognition_score(
    previous_score: int,
    correct_count: int,
    review_count: int,
    difficulty: DifficultyRating,
) -> int:
    """Smoothed score from post-review counters and the current rating."""
    accuracy = 100 * correct_count / max(review_count, 1)

    adjustment = 0
    if difficulty is DifficultyRating.EASY and accuracy > EASY_BONUS_MIN_ACCURACY:
        adjustment = EASY_BONUS
    elif difficulty is DifficultyRating.HARD:
        adjustment = HARD_PENALTY

    raw_score = min(100, max(0, accuracy + adjustment))
    smoothed = previous_score * PREVIOUS_SCORE_WEIGHT + raw_score * NEW_SCORE_WEIGHT
    return min(100, max(0, round_half_up(smoothed)))


def evaluate(progress: WordProgress, difficulty: DifficultyRating) -> MasteryResult:
    """Compute the post-review counters and derived fields.

    ``progress`` is the state before the review and is not modified. Only
    ``hard`` counts as incorrect; ``medium`` and ``easy`` both count as
    correct.
    """
    difficulty = DifficultyRating.parse(difficulty)

    review_count = progress.review_count + 1
    correct_count = progress.correct_count
    incorrect_count = progress.incorrect_count
    if difficulty is DifficultyRating.HARD:
        incorrect_count += 1
    else:
        correct_count += 1

    score = recognition_score(progress.recognition_score, correct_count, review_count, difficulty)

    return MasteryResult(
        review_count=review_count,
        correct_count=correct_count,
        incorrect_count=incorrect_count,
        recognition_score=score,
        status=determine_status(review_count, score),
        confidence_level=confidence_level(score, review_count),
    )
