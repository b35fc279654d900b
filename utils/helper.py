import threading
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Iterable, List, Optional

from models.errors import StoreUnavailable
from models.schema import Employee, Punch


class PunchStore(ABC):
    """Storage contract the engine consumes. Adapters raise StoreUnavailable on failure."""

    @abstractmethod
    def list_punches(self, employee_id: Optional[int] = None, since: Optional[date] = None) -> List[Punch]:
        """Punches ordered by start time, optionally for one employee and starting on/after `since`."""
        ...

    @abstractmethod
    def insert_punch(self, punch: Punch) -> Punch:
        """Persist a new punch and return it with its id assigned."""
        ...

    @abstractmethod
    def close_punch(self, punch_id: int, end_time: Optional[datetime]) -> None:
        """Set a punch's end time. None reopens it (rollback compensation only)."""
        ...

    @abstractmethod
    def list_employees(self) -> List[Employee]:
        ...

    def get_employee_by_badge(self, badge_id: int) -> Optional[Employee]:
        for emp in self.list_employees():
            if emp.badge_id == badge_id:
                return emp
        return None


class InMemoryPunchStore(PunchStore):
    """Process-local adapter. Reads return copies taken under the lock."""

    def __init__(self, employees: Iterable[Employee] = (), punches: Iterable[Punch] = ()):
        self._lock = threading.Lock()
        self._employees = [e.model_copy() for e in employees]
        self._punches: List[Punch] = []
        self._next_id = 1
        for punch in punches:
            self.insert_punch(punch)

    def list_employees(self) -> List[Employee]:
        with self._lock:
            return [e.model_copy() for e in self._employees]

    def list_punches(self, employee_id: Optional[int] = None, since: Optional[date] = None) -> List[Punch]:
        with self._lock:
            punches = [
                p.model_copy() for p in self._punches
                if (employee_id is None or p.employee_id == employee_id)
                and (since is None or p.start_time.date() >= since)
            ]
        return sorted(punches, key=lambda x: (x.start_time, x.id))

    def insert_punch(self, punch: Punch) -> Punch:
        with self._lock:
            stored = punch.model_copy(update={"id": self._next_id})
            self._next_id += 1
            self._punches.append(stored)
            return stored.model_copy()

    def close_punch(self, punch_id: int, end_time: Optional[datetime]) -> None:
        with self._lock:
            for index, p in enumerate(self._punches):
                if p.id == punch_id:
                    self._punches[index] = p.model_copy(update={"end_time": end_time})
                    return
        raise StoreUnavailable(f"Punch {punch_id} not found")
