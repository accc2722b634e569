"""Time sources for the progress engine."""
from abc import ABC, abstractmethod
from datetime import UTC, date, datetime, timedelta
from typing import Optional


def ensure_utc(moment: datetime) -> datetime:
    """Return an aware UTC datetime. Naive values are taken to be UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


def optional_utc(moment: Optional[datetime]) -> Optional[datetime]:
    """``ensure_utc`` that lets ``None`` through."""
    return ensure_utc(moment) if moment is not None else None


def utc_day(moment: datetime) -> date:
    """UTC calendar day of a timestamp."""
    return ensure_utc(moment).date()


def to_iso(moment: Optional[datetime]) -> Optional[str]:
    """Serialize a timestamp as an ISO-8601 UTC string."""
    if moment is None:
        return None
    return ensure_utc(moment).isoformat()


def from_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 string, accepting the trailing ``Z`` browsers emit."""
    if value is None:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(value))


class Clock(ABC):
    """Source of the current time."""

    @abstractmethod
    def now(self) -> datetime:
        """Current time as an aware UTC datetime."""
        pass


class SystemClock(Clock):
    """Wall clock."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class FixedClock(Clock):
    """Clock that only moves when told to."""

    def __init__(self, moment: datetime):
        self.moment = ensure_utc(moment)

    def now(self) -> datetime:
        return self.moment

    def set(self, moment: datetime) -> None:
        self.moment = ensure_utc(moment)

    def advance(self, **kwargs) -> datetime:
        """Move forward by a ``timedelta(**kwargs)`` and return the new time."""
        self.moment = self.moment + timedelta(**kwargs)
        return self.moment
