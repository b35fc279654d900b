import csv
import io
import logging
from datetime import date, datetime, tzinfo
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from models.schema import Employee, Punch, PunchKind

CSV_HEADER = [
    "Employee Number",
    "Employee Name",
    "Date",
    "Clock In",
    "Clock Out",
    "Type",
    "Duration (Hours)",
]

IIF_HEADER = (
    "!TIMERHDR\tVER\tREL\tCOMPANYNAME\tIMPORTEDBEFORE\n"
    "!TIMERHDR\t8\t0\t\tN\n"
    "!TIMEACT\tDATE\tJOB\tEMP\tITEM\tPITEM\tDURATION\tNOTE\n"
)
IIF_NOTE = "Imported from TimeClock"

EXPORT_FILENAMES = {
    "csv": "timeclock_export_{start}_to_{end}.csv",
    "iif": "quickbooks_time_{start}_to_{end}.iif",
}


def _local(instant: datetime, tz: Optional[tzinfo]) -> datetime:
    return instant.astimezone(tz) if tz is not None else instant


def _in_range(
    punches: Iterable[Punch], start_date: date, end_date: date, tz: Optional[tzinfo]
) -> List[Punch]:
    selected = [
        p for p in punches
        if not p.is_open and start_date <= _local(p.start_time, tz).date() <= end_date
    ]
    return sorted(selected, key=lambda p: (p.start_time, p.id or 0))


def _us_date(day: date) -> str:
    return f"{day.month}/{day.day}/{day.year}"


def _clock_time(instant: datetime) -> str:
    return instant.strftime("%I:%M %p")


def detailed_csv(
    punches: Iterable[Punch],
    employees: Iterable[Employee],
    start_date: date,
    end_date: date,
    tz: Optional[tzinfo] = None,
) -> str:
    by_id = {emp.id: emp for emp in employees}
    out = io.StringIO()
    csv.writer(out, lineterminator="\n").writerow(CSV_HEADER)
    rows = csv.writer(out, lineterminator="\n", quoting=csv.QUOTE_NONNUMERIC)

    for punch in _in_range(punches, start_date, end_date, tz):
        employee = by_id.get(punch.employee_id)
        if employee is None:
            logging.warning(f"Skipping punch {punch.id}: unknown employee_id {punch.employee_id}")
            continue
        start = _local(punch.start_time, tz)
        end = _local(punch.end_time, tz)
        rows.writerow([
            employee.badge_id,
            employee.name,
            _us_date(start.date()),
            _clock_time(start),
            _clock_time(end),
            punch.kind.label,
            Decimal(f"{punch.duration_hours:.2f}"),
        ])
    return out.getvalue()


def payroll_batch_iif(
    punches: Iterable[Punch],
    employees: Iterable[Employee],
    start_date: date,
    end_date: date,
    tz: Optional[tzinfo] = None,
) -> str:
    by_id = {emp.id: emp for emp in employees}
    grouped: Dict[Tuple[int, date], float] = {}

    for punch in _in_range(punches, start_date, end_date, tz):
        if punch.kind is not PunchKind.WORK:
            continue
        if punch.employee_id not in by_id:
            logging.warning(f"Skipping punch {punch.id}: unknown employee_id {punch.employee_id}")
            continue
        key = (punch.employee_id, _local(punch.start_time, tz).date())
        grouped[key] = grouped.get(key, 0.0) + punch.duration_hours

    lines = [IIF_HEADER]
    for (employee_id, day), hours in grouped.items():
        fields = ["TIMEACT", day.strftime("%m/%d/%Y"), "", by_id[employee_id].name, "", "", f"{hours:.2f}", IIF_NOTE]
        lines.append("\t".join(fields) + "\n")
    return "".join(lines)


def export_filename(kind: str, start_date: date, end_date: date) -> str:
    if kind not in EXPORT_FILENAMES:
        raise ValueError(f"Unknown export kind: {kind}")
    return EXPORT_FILENAMES[kind].format(start=start_date.isoformat(), end=end_date.isoformat())
