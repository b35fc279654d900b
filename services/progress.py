from datetime import datetime, timedelta
from typing import Optional

from models.schema import ScheduleProgress
from services.hours import HoursAggregator, day_window, week_window
from utils.config_loader import ScheduleSettings


class ScheduleProgressEstimator:
    """Expected hours against a fixed weekly schedule. Advisory only, never affects pay."""

    def __init__(self, settings: Optional[ScheduleSettings] = None):
        self.settings = settings or ScheduleSettings()

    def expected_hours_today(self, now: datetime) -> float:
        s = self.settings
        if now.weekday() not in s.workdays:
            return 0.0
        hour = now.hour + now.minute / 60.0 + now.second / 3600.0 + now.microsecond / 3.6e9
        if hour < s.start_hour:
            return 0.0
        if hour < s.lunch_start:
            return hour - s.start_hour
        if hour < s.lunch_end:
            return s.morning_hours
        if hour < s.end_hour:
            return s.morning_hours + (hour - s.lunch_end)
        return s.daily_hours

    def expected_hours_this_week(self, now: datetime) -> float:
        s = self.settings
        start = week_window(now).start.date()
        full_days = sum(
            1 for offset in range((now.date() - start).days)
            if (start + timedelta(days=offset)).weekday() in s.workdays
        )
        # today contributes its elapsed fraction of a full day
        return full_days * s.daily_hours + self.expected_hours_today(now)

    def progress(self, aggregator: HoursAggregator, employee_id: int, now: datetime) -> ScheduleProgress:
        actual_today = aggregator.work_hours(employee_id, day_window(now.date(), now.tzinfo), now)
        actual_week = aggregator.work_hours(employee_id, week_window(now), now)
        expected_today = self.expected_hours_today(now)
        expected_week = self.expected_hours_this_week(now)
        return ScheduleProgress(
            employee_id=employee_id,
            actual_today=actual_today,
            expected_today=expected_today,
            delta_today=actual_today - expected_today,
            actual_week=actual_week,
            expected_week=expected_week,
            delta_week=actual_week - expected_week,
        )
