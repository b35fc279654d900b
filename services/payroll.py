from datetime import date, datetime
from typing import Iterable, List, Optional, Union

from models.schema import Employee, PayPeriodReport
from services.hours import HoursAggregator, week_window
from utils.config_loader import OvertimeSettings


class PayrollCalculator:
    """Weekly overtime only: hours above the threshold are paid at rate * multiplier.

    No daily overtime rule is applied.
    """

    def __init__(self, settings: Optional[OvertimeSettings] = None):
        self.settings = settings or OvertimeSettings()

    def weekly_pay(self, employee: Employee, week_work_hours: float) -> PayPeriodReport:
        if week_work_hours < 0:
            raise ValueError(f"week_work_hours must not be negative, got {week_work_hours}")
        threshold = self.settings.threshold_hours
        regular_hours = min(week_work_hours, threshold)
        overtime_hours = max(week_work_hours - threshold, 0.0)
        regular_pay = regular_hours * employee.hourly_rate
        overtime_pay = overtime_hours * employee.hourly_rate * self.settings.multiplier
        return PayPeriodReport(
            employee_id=employee.id,
            name=employee.name,
            total_hours=week_work_hours,
            regular_hours=regular_hours,
            overtime_hours=overtime_hours,
            regular_pay=regular_pay,
            overtime_pay=overtime_pay,
            gross_pay=regular_pay + overtime_pay,
        )

    def weekly_report(
        self,
        aggregator: HoursAggregator,
        employees: Iterable[Employee],
        reference: Union[date, datetime],
        now: datetime,
    ) -> List[PayPeriodReport]:
        """Pay for every active employee over the Sunday-start week containing `reference`."""
        window = week_window(reference)
        return [
            self.weekly_pay(emp, aggregator.work_hours(emp.id, window, now))
            for emp in sorted(employees, key=lambda e: e.name)
            if emp.is_active
        ]
