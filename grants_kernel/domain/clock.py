"""
Injectable time source.

Services never call ``datetime.now()`` themselves.  Proposal timestamps,
disbursement times and event ``occurred_at`` values all come from the
Clock the registry was built with, so tests can pin them and reproduce
event hashes exactly.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

DEFAULT_START = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def _require_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        raise ValueError("DeterministicClock requires a timezone-aware time")
    return value


class Clock(ABC):
    """Source of aware datetimes; ``now_utc`` is what gets persisted."""

    @abstractmethod
    def now(self) -> datetime:
        ...

    @abstractmethod
    def now_utc(self) -> datetime:
        ...


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def now_utc(self) -> datetime:
        return self.now()


class DeterministicClock(Clock):
    """
    Frozen clock for tests.

    Time only moves through ``advance``, ``tick`` or ``set_time``; repeated
    ``now()`` calls return the same instant.  Starts at 2024-01-01 12:00 UTC
    unless a start time is given.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._start = DEFAULT_START if fixed_time is None else _require_aware(fixed_time)
        self._offset = timedelta()

    def now(self) -> datetime:
        return self._start + self._offset

    def now_utc(self) -> datetime:
        return self.now().astimezone(timezone.utc)

    def set_time(self, time: datetime) -> None:
        self._start = _require_aware(time)
        self._offset = timedelta()

    def advance(self, seconds: int = 1) -> None:
        self._offset += timedelta(seconds=seconds)

    def tick(self) -> datetime:
        """Move one second forward and return the new time."""
        self.advance(1)
        return self.now()
