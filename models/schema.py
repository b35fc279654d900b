from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, model_validator


class PunchKind(str, Enum):
    WORK = "work"
    MEAL = "meal"
    REST = "rest"

    @property
    def is_break(self) -> bool:
        return self is not PunchKind.WORK

    @property
    def label(self) -> str:
        if self is PunchKind.WORK:
            return "Work"
        return f"{self.value.capitalize()} Break"


class PunchStatus(str, Enum):
    CLOCKED_OUT = "clocked_out"
    WORKING = "working"
    ON_MEAL_BREAK = "on_meal_break"
    ON_REST_BREAK = "on_rest_break"

    @property
    def label(self) -> str:
        return STATUS_LABELS[self]

    @classmethod
    def for_kind(cls, kind: PunchKind) -> "PunchStatus":
        return KIND_STATUS[kind]


STATUS_LABELS = {
    PunchStatus.CLOCKED_OUT: "Clocked Out",
    PunchStatus.WORKING: "Working",
    PunchStatus.ON_MEAL_BREAK: "Meal Break",
    PunchStatus.ON_REST_BREAK: "Rest Break",
}

KIND_STATUS = {
    PunchKind.WORK: PunchStatus.WORKING,
    PunchKind.MEAL: PunchStatus.ON_MEAL_BREAK,
    PunchKind.REST: PunchStatus.ON_REST_BREAK,
}


class Employee(BaseModel):
    id: int
    name: str
    badge_id: int
    hourly_rate: float = Field(ge=0)
    is_active: bool = True


class Punch(BaseModel):
    id: Optional[int] = None
    employee_id: int
    start_time: datetime
    end_time: Optional[datetime] = None
    kind: PunchKind = PunchKind.WORK

    @property
    def is_open(self) -> bool:
        return self.end_time is None

    @property
    def is_break(self) -> bool:
        return self.kind.is_break

    @property
    def duration_hours(self) -> Optional[float]:
        """Elapsed hours for a closed punch, None while it is still open."""
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds() / 3600.0


class Window(BaseModel):
    """Half-open interval [start, end)."""
    start: datetime
    end: datetime

    @model_validator(mode="after")
    def check_order(self) -> "Window":
        if self.end < self.start:
            raise ValueError(f"window end {self.end} precedes start {self.start}")
        return self

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end


class WarningKind(str, Enum):
    MULTIPLE_OPEN_PUNCHES = "MultipleOpenPunches"
    OUT_OF_ORDER_PUNCH = "OutOfOrderPunch"


class ConsistencyWarning(BaseModel):
    kind: WarningKind
    employee_id: int
    punch_ids: List[Optional[int]] = []
    message: str


class TransitionOutcome(str, Enum):
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    INCONSISTENT = "inconsistent"


class StatusSnapshot(BaseModel):
    employee_id: int
    status: PunchStatus
    open_punch: Optional[Punch] = None
    warnings: List[ConsistencyWarning] = []


class TransitionResult(BaseModel):
    outcome: TransitionOutcome = TransitionOutcome.COMMITTED
    employee_id: int
    status: PunchStatus
    closed: Optional[Punch] = None
    opened: Optional[Punch] = None
    warnings: List[ConsistencyWarning] = []


class DayTotals(BaseModel):
    employee_id: int
    window: Window
    work_hours: float
    break_hours: float
    break_hours_by_kind: Dict[PunchKind, float] = {}
    in_progress: bool = False
    warnings: List[ConsistencyWarning] = []


class WeekTotals(DayTotals):
    days: List[DayTotals] = []


class PayPeriodReport(BaseModel):
    employee_id: int
    name: str
    total_hours: float
    regular_hours: float
    overtime_hours: float
    regular_pay: float
    overtime_pay: float
    gross_pay: float


class ScheduleProgress(BaseModel):
    employee_id: int
    actual_today: float
    expected_today: float
    delta_today: float
    actual_week: float
    expected_week: float
    delta_week: float

    @property
    def ahead_of_schedule(self) -> bool:
        return self.delta_week > 0
