import logging
from datetime import date, datetime
from typing import Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from main import PUNCH_ACTIONS, PunchStateMachine, check_for_missing_punch_out, process_punch, status_board
from models.errors import InvalidTransition, NoOpenPunch, StoreUnavailable, UnknownEmployee
from models.schema import PunchKind
from services.export import detailed_csv, export_filename, payroll_batch_iif
from services.hours import HoursAggregator
from services.payroll import PayrollCalculator
from services.progress import ScheduleProgressEstimator
from utils.clock import Clock, SystemClock
from utils.config_loader import EngineSettings, load_config
from utils.helper import InMemoryPunchStore, PunchStore


class PunchRequest(BaseModel):
    badge_id: int
    action: str
    timestamp: Optional[datetime] = None
    break_kind: Optional[PunchKind] = None


def create_app(
    store: Optional[PunchStore] = None,
    settings: Optional[EngineSettings] = None,
    clock: Optional[Clock] = None,
) -> FastAPI:
    store = store if store is not None else InMemoryPunchStore()
    settings = settings or load_config()
    clock = clock or SystemClock()

    machine = PunchStateMachine(store, settings)
    aggregator = HoursAggregator(store)
    payroll = PayrollCalculator(settings.overtime)
    estimator = ScheduleProgressEstimator(settings.schedule)

    app = FastAPI(title="Timeclock Engine")
    app.state.machine = machine

    def employee_for(badge_id: int):
        employee = store.get_employee_by_badge(badge_id)
        if not employee or not employee.is_active:
            raise HTTPException(status_code=404, detail=f"Unknown or inactive badge ID: {badge_id}")
        return employee

    @app.post("/punch")
    def receive_punch(request: PunchRequest):
        if request.action not in PUNCH_ACTIONS:
            raise HTTPException(status_code=422, detail=f"Unknown punch action: {request.action}")
        timestamp = request.timestamp or clock.now()
        try:
            return process_punch(machine, request.badge_id, request.action, timestamp, request.break_kind)
        except UnknownEmployee as e:
            raise HTTPException(status_code=404, detail=str(e))
        except (InvalidTransition, NoOpenPunch) as e:
            raise HTTPException(status_code=409, detail=str(e))
        except StoreUnavailable as e:
            raise HTTPException(status_code=503, detail=str(e))

    @app.get("/status/{badge_id}")
    def get_status(badge_id: int):
        employee = employee_for(badge_id)
        snapshot = machine.snapshot(employee.id)
        return {"name": employee.name, "status": snapshot.status.label, "snapshot": snapshot}

    @app.get("/board")
    def get_board():
        return [
            {"name": emp.name, "badge_id": emp.badge_id, "hourly_rate": emp.hourly_rate, "status": snap.status.label}
            for emp, snap in status_board(machine)
        ]

    @app.get("/hours/{badge_id}/week")
    def get_week_hours(badge_id: int, reference: Optional[date] = None):
        employee = employee_for(badge_id)
        now = clock.now()
        return aggregator.week_totals(employee.id, reference or now, now)

    @app.get("/payroll")
    def get_payroll(reference: Optional[date] = None):
        now = clock.now()
        return payroll.weekly_report(aggregator, store.list_employees(), reference or now, now)

    @app.get("/progress/{badge_id}")
    def get_progress(badge_id: int):
        employee = employee_for(badge_id)
        return estimator.progress(aggregator, employee.id, clock.now())

    def export_response(kind: str, body: str, start_date: date, end_date: date) -> PlainTextResponse:
        filename = export_filename(kind, start_date, end_date)
        logging.info(f"Exported {filename}")
        return PlainTextResponse(
            body,
            media_type="text/csv" if kind == "csv" else "text/plain",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    @app.get("/export/csv")
    def get_csv_export(start_date: date = Query(...), end_date: date = Query(...)):
        body = detailed_csv(store.list_punches(since=start_date), store.list_employees(), start_date, end_date)
        return export_response("csv", body, start_date, end_date)

    @app.get("/export/iif")
    def get_iif_export(start_date: date = Query(...), end_date: date = Query(...)):
        body = payroll_batch_iif(store.list_punches(since=start_date), store.list_employees(), start_date, end_date)
        return export_response("iif", body, start_date, end_date)

    return app


def run_end_of_day_check(machine: PunchStateMachine, clock: Optional[Clock] = None):
    now = (clock or SystemClock()).now()
    logging.info("Running end-of-day open punch check for all employees")
    still_open = check_for_missing_punch_out(machine, now)
    logging.info(f"End-of-day check completed: {len(still_open)} employee(s) still clocked in.")
    return still_open


app = create_app()
