"""Exceptions raised by the progress engine."""


class LexitrackError(Exception):
    """Base class for all lexitrack errors."""


class PersistenceError(LexitrackError):
    """Reading or writing the progress store failed.

    Raised for I/O failures, serialization problems and corrupted or
    unversioned stored data. Callers decide whether to retry.
    """


class NotFoundError(LexitrackError):
    """No progress record exists for the requested word."""

    def __init__(self, word_id: str):
        super().__init__(f"No progress recorded for word {word_id!r}")
        self.word_id = word_id


class ValidationError(LexitrackError, ValueError):
    """Malformed input rejected before any computation or I/O."""
