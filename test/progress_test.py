from datetime import datetime, time, date

import pytest

from models.schema import Punch
from services.hours import HoursAggregator
from services.progress import ScheduleProgressEstimator
from utils.config_loader import ScheduleSettings
from utils.helper import InMemoryPunchStore

WEDNESDAY = date(2026, 1, 7)


def at(hour, minute=0, day=WEDNESDAY):
    return datetime.combine(day, time(hour, minute))


def test_expected_hours_today_ramp():
    estimator = ScheduleProgressEstimator()

    assert estimator.expected_hours_today(at(6, 30)) == 0.0
    assert estimator.expected_hours_today(at(7)) == 0.0
    assert estimator.expected_hours_today(at(9, 30)) == 2.5
    assert estimator.expected_hours_today(at(12)) == 5.0
    assert estimator.expected_hours_today(at(12, 45)) == 5.0
    assert estimator.expected_hours_today(at(14)) == 6.0
    assert estimator.expected_hours_today(at(16)) == 8.0
    assert estimator.expected_hours_today(at(21)) == 8.0


def test_weekend_expects_nothing():
    estimator = ScheduleProgressEstimator()

    assert estimator.expected_hours_today(at(10, day=date(2026, 1, 10))) == 0.0
    assert estimator.expected_hours_today(at(10, day=date(2026, 1, 11))) == 0.0


def test_expected_hours_this_week():
    estimator = ScheduleProgressEstimator()

    # Monday and Tuesday complete, Wednesday half way through the morning
    assert estimator.expected_hours_this_week(at(9, 30)) == pytest.approx(18.5)
    assert estimator.expected_hours_this_week(at(10, day=date(2026, 1, 4))) == 0.0
    assert estimator.expected_hours_this_week(at(10, day=date(2026, 1, 10))) == pytest.approx(40.0)


def test_custom_schedule():
    estimator = ScheduleProgressEstimator(
        ScheduleSettings(workdays=[0, 1, 2, 3], start_hour=8, end_hour=18, lunch_start=12, lunch_end=12.5)
    )

    assert estimator.settings.daily_hours == 9.5
    assert estimator.expected_hours_today(at(13)) == pytest.approx(4.5)
    assert estimator.expected_hours_this_week(at(13)) == pytest.approx(23.5)


def test_progress_delta():
    monday, tuesday = date(2026, 1, 5), date(2026, 1, 6)
    store = InMemoryPunchStore(punches=[
        Punch(employee_id=1, start_time=at(7, day=monday), end_time=at(17, day=monday)),
        Punch(employee_id=1, start_time=at(7, day=tuesday), end_time=at(15, day=tuesday)),
        Punch(employee_id=1, start_time=at(8)),
    ])

    progress = ScheduleProgressEstimator().progress(HoursAggregator(store), 1, at(11))

    assert progress.actual_today == pytest.approx(3.0)
    assert progress.expected_today == pytest.approx(4.0)
    assert progress.delta_today == pytest.approx(-1.0)
    assert progress.actual_week == pytest.approx(21.0)
    assert progress.expected_week == pytest.approx(20.0)
    assert progress.delta_week == pytest.approx(1.0)
    assert progress.ahead_of_schedule
