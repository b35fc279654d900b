from abc import ABC, abstractmethod
from datetime import datetime


class Clock(ABC):
    """Source of "now" for callers of the engine. Engine operations take `now` explicitly."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):
    """Local wall-clock time."""

    def now(self) -> datetime:
        return datetime.now()


class FixedClock(Clock):
    def __init__(self, current: datetime):
        self._current = current

    def now(self) -> datetime:
        return self._current

    def set(self, current: datetime) -> None:
        self._current = current
