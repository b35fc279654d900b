from typing import Optional

from models.schema import TransitionOutcome


class TimeclockError(Exception):
    """Base class for every failure the engine reports to its callers."""


class InvalidTransition(TimeclockError):
    def __init__(self, employee_id: int, action: str, status: Optional[str] = None, reason: str = ""):
        self.employee_id = employee_id
        self.action = action
        self.status = status
        message = f"Cannot {action} for employee_id {employee_id}"
        if status:
            message += f" while {status}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class NoOpenPunch(TimeclockError):
    def __init__(self, employee_id: int):
        self.employee_id = employee_id
        super().__init__(f"No open time entry for employee_id {employee_id}")


class UnknownEmployee(TimeclockError):
    def __init__(self, badge_id):
        self.badge_id = badge_id
        super().__init__(f"Unknown or inactive badge ID: {badge_id}")


class StoreUnavailable(TimeclockError):
    """Raised by store adapters; the engine never retries."""


class TransitionRolledBack(StoreUnavailable):
    outcome = TransitionOutcome.ROLLED_BACK

    def __init__(self, employee_id: int, action: str):
        self.employee_id = employee_id
        self.action = action
        super().__init__(f"{action} for employee_id {employee_id} failed and was rolled back")


class InconsistentTransition(StoreUnavailable):
    outcome = TransitionOutcome.INCONSISTENT

    def __init__(self, employee_id: int, action: str, punch_id: Optional[int]):
        self.employee_id = employee_id
        self.action = action
        self.punch_id = punch_id
        super().__init__(
            f"{action} for employee_id {employee_id} failed and punch {punch_id} could not be reopened; "
            "employee has no open punch"
        )
