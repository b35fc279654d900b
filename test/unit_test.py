import pytest
from datetime import datetime, time, date

from main import PunchStateMachine, process_punch, check_for_missing_punch_out, status_board
from models.errors import InvalidTransition, NoOpenPunch, UnknownEmployee
from models.schema import Employee, PunchKind, PunchStatus
from services.export import detailed_csv
from services.hours import HoursAggregator, day_window
from utils.helper import InMemoryPunchStore

WORKDAY = date(2026, 1, 5)
BADGE = 123456

store = None
machine = None


def at(hour, minute=0):
    return datetime.combine(WORKDAY, time(hour, minute))


def setup_function():
    global store, machine
    store = InMemoryPunchStore(employees=[
        Employee(id=1, name="Dana Ortiz", badge_id=BADGE, hourly_rate=20.0),
        Employee(id=2, name="Lee Park", badge_id=654321, hourly_rate=18.0, is_active=False),
    ])
    machine = PunchStateMachine(store)


def test_regular_in_and_out():
    punch_in = process_punch(machine, BADGE, "clock_in", at(7))
    punch_out = process_punch(machine, BADGE, "clock_out", at(16))

    assert punch_in.status is PunchStatus.WORKING
    assert punch_in.opened.kind is PunchKind.WORK
    assert punch_out.status is PunchStatus.CLOCKED_OUT
    assert punch_out.closed.end_time == at(16)

    hours = HoursAggregator(store).work_hours(1, day_window(WORKDAY), at(17))
    assert hours == 9.0


def test_full_day_with_meal_break():
    process_punch(machine, BADGE, "clock_in", at(7))
    process_punch(machine, BADGE, "start_break", at(12), break_kind="meal")
    assert machine.status(1) is PunchStatus.ON_MEAL_BREAK
    process_punch(machine, BADGE, "end_break", at(13))
    assert machine.status(1) is PunchStatus.WORKING
    process_punch(machine, BADGE, "clock_out", at(16))

    totals = HoursAggregator(store).day_totals(1, WORKDAY, at(18))
    assert totals.work_hours == pytest.approx(8.0)
    assert totals.break_hours == pytest.approx(1.0)
    assert totals.in_progress is False

    csv_text = detailed_csv(store.list_punches(), store.list_employees(), WORKDAY, WORKDAY)
    rows = csv_text.strip().split("\n")[1:]
    assert len(rows) == 3
    assert [row.split(",")[5] for row in rows] == ['"Work"', '"Meal Break"', '"Work"']
    assert sum(float(row.split(",")[6]) for row in rows) == pytest.approx(9.0)


def test_duplicate_in():
    process_punch(machine, BADGE, "clock_in", at(7))

    with pytest.raises(InvalidTransition):
        process_punch(machine, BADGE, "clock_in", at(7, 5))

    assert machine.status(1) is PunchStatus.WORKING
    assert len(store.list_punches(employee_id=1)) == 1


def test_clock_out_without_clock_in():
    with pytest.raises(NoOpenPunch):
        process_punch(machine, BADGE, "clock_out", at(16))


def test_unknown_and_inactive_badge():
    with pytest.raises(UnknownEmployee):
        process_punch(machine, 999, "clock_in", at(7))
    with pytest.raises(UnknownEmployee):
        process_punch(machine, 654321, "clock_in", at(7))


def test_unknown_action():
    with pytest.raises(ValueError):
        process_punch(machine, BADGE, "lunch", at(12))


def test_status_board_lists_active_employees():
    process_punch(machine, BADGE, "clock_in", at(7))

    board = status_board(machine)

    assert [(emp.name, snap.status) for emp, snap in board] == [("Dana Ortiz", PunchStatus.WORKING)]


def test_missing_punch_out_is_reported_not_closed():
    process_punch(machine, BADGE, "clock_in", at(7))
    process_punch(machine, BADGE, "start_break", at(12), break_kind="rest")

    still_open = check_for_missing_punch_out(machine, at(23, 59))

    assert [s.status for s in still_open] == [PunchStatus.ON_REST_BREAK]
    assert machine.status(1) is PunchStatus.ON_REST_BREAK
