import logging
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Dict, Iterable, List, Optional, Union

from models.schema import (
    ConsistencyWarning,
    DayTotals,
    Punch,
    PunchKind,
    WarningKind,
    WeekTotals,
    Window,
)
from utils.helper import PunchStore

BREAK_KINDS = (PunchKind.MEAL, PunchKind.REST)


def punch_hours(punch: Punch, window: Optional[Window] = None, now: Optional[datetime] = None) -> float:
    # an open punch runs until `now`; without `now` it contributes nothing
    end = punch.end_time if punch.end_time is not None else now
    if end is None:
        return 0.0
    start = punch.start_time
    if window is not None:
        start = max(start, window.start)
        end = min(end, window.end)
    if end <= start:
        return 0.0
    return (end - start).total_seconds() / 3600.0


def work_hours(punches: Iterable[Punch], window: Window, now: datetime) -> float:
    return sum(punch_hours(p, window, now) for p in punches if p.kind is PunchKind.WORK)


def break_hours(
    punches: Iterable[Punch], window: Window, now: datetime, split: bool = False
) -> Union[float, Dict[PunchKind, float]]:
    by_kind = {kind: 0.0 for kind in BREAK_KINDS}
    for p in punches:
        if p.is_break:
            by_kind[p.kind] += punch_hours(p, window, now)
    if split:
        return by_kind
    return sum(by_kind.values())


def includes_open_work(punches: Iterable[Punch], window: Window, now: datetime) -> bool:
    return any(
        p.is_open and p.kind is PunchKind.WORK and max(p.start_time, window.start) < min(now, window.end)
        for p in punches
    )


def day_window(day: date, tz: Optional[tzinfo] = None) -> Window:
    start = datetime.combine(day, time.min, tzinfo=tz)
    return Window(start=start, end=start + timedelta(days=1))


def week_start(reference: Union[date, datetime]) -> datetime:
    tz = reference.tzinfo if isinstance(reference, datetime) else None
    day = reference.date() if isinstance(reference, datetime) else reference
    sunday = day - timedelta(days=(day.weekday() + 1) % 7)
    return datetime.combine(sunday, time.min, tzinfo=tz)


def week_window(reference: Union[date, datetime]) -> Window:
    start = week_start(reference)
    return Window(start=start, end=start + timedelta(days=7))


def find_out_of_order(punches: Iterable[Punch]) -> List[ConsistencyWarning]:
    found = []
    by_employee: Dict[int, List[Punch]] = {}
    for p in punches:
        by_employee.setdefault(p.employee_id, []).append(p)
    for employee_id, items in by_employee.items():
        items.sort(key=lambda x: (x.start_time, x.id or 0))
        for previous, current in zip(items, items[1:]):
            if previous.end_time is not None and current.start_time < previous.end_time:
                found.append(ConsistencyWarning(
                    kind=WarningKind.OUT_OF_ORDER_PUNCH,
                    employee_id=employee_id,
                    punch_ids=[previous.id, current.id],
                    message=(
                        f"Punch {current.id} starts at {current.start_time} before punch "
                        f"{previous.id} ended at {previous.end_time}"
                    ),
                ))
    return found


def format_duration(punch: Punch) -> str:
    if punch.is_open:
        return "In Progress"
    return f"{punch.duration_hours:.2f} hrs"


class HoursAggregator:
    def __init__(self, store: PunchStore):
        self.store = store

    def _punches(self, employee_id: int) -> List[Punch]:
        # No `since` filter: a punch that began before the window may still overlap it.
        return self.store.list_punches(employee_id=employee_id)

    def work_hours(self, employee_id: int, window: Window, now: datetime) -> float:
        return work_hours(self._punches(employee_id), window, now)

    def break_hours(self, employee_id: int, window: Window, now: datetime, split: bool = False):
        return break_hours(self._punches(employee_id), window, now, split=split)

    def _totals(self, employee_id: int, punches: List[Punch], window: Window, now: datetime,
                model=DayTotals, **extra):
        by_kind = break_hours(punches, window, now, split=True)
        return model(
            employee_id=employee_id,
            window=window,
            work_hours=work_hours(punches, window, now),
            break_hours=sum(by_kind.values()),
            break_hours_by_kind=by_kind,
            in_progress=includes_open_work(punches, window, now),
            **extra,
        )

    def _warnings(self, punches: List[Punch]) -> List[ConsistencyWarning]:
        warnings = find_out_of_order(punches)
        for warning in warnings:
            logging.warning(f"{warning.kind.value}: {warning.message}")
        return warnings

    def day_totals(self, employee_id: int, day: date, now: datetime) -> DayTotals:
        punches = self._punches(employee_id)
        window = day_window(day, now.tzinfo)
        return self._totals(employee_id, punches, window, now, warnings=self._warnings(punches))

    def week_totals(self, employee_id: int, reference: Union[date, datetime], now: datetime) -> WeekTotals:
        punches = self._punches(employee_id)
        window = week_window(reference)
        days = [
            self._totals(employee_id, punches, day_window(window.start.date() + timedelta(days=offset), window.start.tzinfo), now)
            for offset in range(7)
        ]
        return self._totals(employee_id, punches, window, now, WeekTotals, days=days, warnings=self._warnings(punches))

    def today_punches(self, employee_id: int, day: date) -> List[Punch]:
        # newest first
        punches = self.store.list_punches(employee_id=employee_id, since=day)
        return sorted(
            (p for p in punches if p.start_time.date() == day),
            key=lambda x: x.start_time,
            reverse=True,
        )
