import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple, Union

from models.errors import (
    InconsistentTransition,
    InvalidTransition,
    NoOpenPunch,
    TransitionRolledBack,
    UnknownEmployee,
)
from models.schema import (
    ConsistencyWarning,
    Employee,
    Punch,
    PunchKind,
    PunchStatus,
    StatusSnapshot,
    TransitionResult,
    WarningKind,
)
from utils.config_loader import EngineSettings
from utils.helper import PunchStore

PUNCH_ACTIONS = ("clock_in", "start_break", "end_break", "clock_out")


def select_open_punch(punches: Iterable[Punch], employee_id: int) -> Tuple[Optional[Punch], List[ConsistencyWarning]]:
    open_punches = sorted(
        (p for p in punches if p.employee_id == employee_id and p.is_open),
        key=lambda p: (p.start_time, p.id or 0),
    )
    if not open_punches:
        return None, []
    chosen = open_punches[-1]
    if len(open_punches) == 1:
        return chosen, []
    warning = ConsistencyWarning(
        kind=WarningKind.MULTIPLE_OPEN_PUNCHES,
        employee_id=employee_id,
        punch_ids=[p.id for p in open_punches],
        message=(
            f"{len(open_punches)} open punches for employee_id {employee_id}; "
            f"using punch {chosen.id} started at {chosen.start_time}"
        ),
    )
    logging.warning(f"{warning.kind.value}: {warning.message}")
    return chosen, [warning]


def derive_status(punches: Iterable[Punch], employee_id: int) -> StatusSnapshot:
    open_punch, warnings = select_open_punch(punches, employee_id)
    if open_punch is None:
        status = PunchStatus.CLOCKED_OUT
    else:
        status = PunchStatus.for_kind(open_punch.kind)
    return StatusSnapshot(employee_id=employee_id, status=status, open_punch=open_punch, warnings=warnings)


class PunchStateMachine:
    # status is derived from the open punch on every call; transitions hold a per-employee lock

    def __init__(self, store: PunchStore, settings: Optional[EngineSettings] = None):
        self.store = store
        self.settings = settings or EngineSettings()
        self._locks: Dict[int, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _employee_lock(self, employee_id: int):
        with self._locks_guard:
            lock = self._locks.setdefault(employee_id, threading.Lock())
        with lock:
            yield

    def snapshot(self, employee_id: int) -> StatusSnapshot:
        return derive_status(self.store.list_punches(employee_id=employee_id), employee_id)

    def status(self, employee_id: int) -> PunchStatus:
        return self.snapshot(employee_id).status

    def _reject(self, employee_id: int, action: str, snapshot: StatusSnapshot, reason: str = ""):
        logging.warning(f"Rejected {action} for employee_id {employee_id} while {snapshot.status.label}")
        raise InvalidTransition(employee_id, action, snapshot.status.label, reason)

    def _ordering_warnings(self, punches: List[Punch], employee_id: int, start_time: datetime) -> List[ConsistencyWarning]:
        closed = [p for p in punches if p.end_time is not None]
        if not closed:
            return []
        latest = max(closed, key=lambda p: p.end_time)
        if start_time >= latest.end_time:
            return []
        warning = ConsistencyWarning(
            kind=WarningKind.OUT_OF_ORDER_PUNCH,
            employee_id=employee_id,
            punch_ids=[latest.id],
            message=f"New punch at {start_time} starts before punch {latest.id} ended at {latest.end_time}",
        )
        logging.warning(f"{warning.kind.value}: {warning.message}")
        return [warning]

    def _close(self, punch: Punch, now: datetime, action: str) -> Punch:
        if now < punch.start_time:
            raise InvalidTransition(
                punch.employee_id, action, reason=f"{now} is before punch {punch.id} started at {punch.start_time}"
            )
        self.store.close_punch(punch.id, now)
        return punch.model_copy(update={"end_time": now})

    def _open(self, employee_id: int, kind: PunchKind, now: datetime) -> Punch:
        return self.store.insert_punch(Punch(employee_id=employee_id, start_time=now, kind=kind))

    def _switch(self, current: Punch, kind: PunchKind, now: datetime, action: str) -> Tuple[Punch, Punch]:
        closed = self._close(current, now, action)
        try:
            opened = self._open(current.employee_id, kind, now)
        except Exception as exc:
            logging.error(f"{action} failed for employee_id {current.employee_id} after closing punch {current.id}: {exc}")
            try:
                self.store.close_punch(current.id, None)
            except Exception as rollback_exc:
                logging.error(f"Could not reopen punch {current.id} for employee_id {current.employee_id}: {rollback_exc}")
                raise InconsistentTransition(current.employee_id, action, current.id) from rollback_exc
            raise TransitionRolledBack(current.employee_id, action) from exc
        return closed, opened

    def _committed(self, employee_id: int, action: str, status: PunchStatus, **kwargs) -> TransitionResult:
        logging.info(f"{action} committed for employee_id {employee_id}: now {status.label}")
        return TransitionResult(employee_id=employee_id, status=status, **kwargs)

    def clock_in(self, employee_id: int, now: datetime) -> TransitionResult:
        with self._employee_lock(employee_id):
            punches = self.store.list_punches(employee_id=employee_id)
            snapshot = derive_status(punches, employee_id)
            if snapshot.status is not PunchStatus.CLOCKED_OUT:
                self._reject(employee_id, "clock in", snapshot)
            warnings = self._ordering_warnings(punches, employee_id, now)
            opened = self._open(employee_id, PunchKind.WORK, now)
            return self._committed(employee_id, "clock in", PunchStatus.WORKING, opened=opened, warnings=warnings)

    def start_break(self, employee_id: int, break_kind: Union[PunchKind, str], now: datetime) -> TransitionResult:
        with self._employee_lock(employee_id):
            snapshot = self.snapshot(employee_id)
            try:
                kind = PunchKind(break_kind)
            except ValueError:
                kind = None
            if kind not in self.settings.break_kinds:
                self._reject(employee_id, "start break", snapshot, f"{break_kind!r} is not a configured break kind")
            if snapshot.status is not PunchStatus.WORKING:
                self._reject(employee_id, f"start {kind.value} break", snapshot)
            closed, opened = self._switch(snapshot.open_punch, kind, now, "start break")
            return self._committed(
                employee_id, f"{kind.value} break", PunchStatus.for_kind(kind),
                closed=closed, opened=opened, warnings=snapshot.warnings,
            )

    def end_break(self, employee_id: int, now: datetime) -> TransitionResult:
        with self._employee_lock(employee_id):
            snapshot = self.snapshot(employee_id)
            if snapshot.status not in (PunchStatus.ON_MEAL_BREAK, PunchStatus.ON_REST_BREAK):
                self._reject(employee_id, "end break", snapshot)
            closed, opened = self._switch(snapshot.open_punch, PunchKind.WORK, now, "end break")
            return self._committed(
                employee_id, "end break", PunchStatus.WORKING,
                closed=closed, opened=opened, warnings=snapshot.warnings,
            )

    def clock_out(self, employee_id: int, now: datetime) -> TransitionResult:
        # From a break this only closes the break punch; no resume is recorded.
        with self._employee_lock(employee_id):
            snapshot = self.snapshot(employee_id)
            if snapshot.status is PunchStatus.CLOCKED_OUT:
                logging.warning(f"No open time entry for employee_id {employee_id}")
                raise NoOpenPunch(employee_id)
            closed = self._close(snapshot.open_punch, now, "clock out")
            status = PunchStatus.CLOCKED_OUT
            if snapshot.warnings:
                status = self.status(employee_id)
            return self._committed(employee_id, "clock out", status, closed=closed, warnings=snapshot.warnings)


def process_punch(
    machine: PunchStateMachine,
    badge_id: int,
    action: str,
    timestamp: datetime,
    break_kind: Optional[Union[PunchKind, str]] = None,
) -> TransitionResult:
    employee = machine.store.get_employee_by_badge(badge_id)
    if not employee or not employee.is_active:
        logging.error(f"Unknown or inactive badge ID: {badge_id}")
        raise UnknownEmployee(badge_id)

    if action == "clock_in":
        return machine.clock_in(employee.id, timestamp)
    if action == "start_break":
        return machine.start_break(employee.id, break_kind, timestamp)
    if action == "end_break":
        return machine.end_break(employee.id, timestamp)
    if action == "clock_out":
        return machine.clock_out(employee.id, timestamp)
    raise ValueError(f"Unknown punch action: {action}")


def status_board(machine: PunchStateMachine) -> List[Tuple[Employee, StatusSnapshot]]:
    punches = machine.store.list_punches()
    employees = sorted((e for e in machine.store.list_employees() if e.is_active), key=lambda e: e.name)
    return [(emp, derive_status(punches, emp.id)) for emp in employees]


def check_for_missing_punch_out(machine: PunchStateMachine, now: datetime) -> List[StatusSnapshot]:
    # reports only, nothing is closed
    logging.info(f"Running open punch check at {now}")
    still_open = []
    for emp, snapshot in status_board(machine):
        if snapshot.status is not PunchStatus.CLOCKED_OUT:
            logging.warning(
                f"Missing punch out for employee_id {emp.id}: {snapshot.status.label} since {snapshot.open_punch.start_time}"
            )
            still_open.append(snapshot)
    return still_open
