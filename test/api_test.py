from datetime import datetime

from fastapi.testclient import TestClient

from Background.task import create_app, run_end_of_day_check
from models.errors import StoreUnavailable
from models.schema import Employee
from utils.clock import FixedClock
from utils.config_loader import EngineSettings
from utils.helper import InMemoryPunchStore

EMPLOYEES = [
    Employee(id=1, name="Dana Ortiz", badge_id=1001, hourly_rate=20.0),
    Employee(id=2, name="Ari Blake", badge_id=1002, hourly_rate=15.0),
]


def make_client(store=None):
    store = store or InMemoryPunchStore(employees=EMPLOYEES)
    clock = FixedClock(datetime(2026, 1, 5, 7, 0))
    app = create_app(store, EngineSettings(), clock)
    return TestClient(app), clock, app


def punch(client, action, badge_id=1001, **extra):
    return client.post("/punch", json={"badge_id": badge_id, "action": action, **extra})


def test_punch_day_and_status():
    client, clock, _ = make_client()

    response = punch(client, "clock_in")
    assert response.status_code == 200
    assert response.json()["status"] == "working"

    clock.set(datetime(2026, 1, 5, 12, 0))
    assert punch(client, "start_break", break_kind="meal").status_code == 200
    assert client.get("/status/1001").json()["status"] == "Meal Break"

    clock.set(datetime(2026, 1, 5, 13, 0))
    punch(client, "end_break")
    clock.set(datetime(2026, 1, 5, 16, 0))
    punch(client, "clock_out")

    week = client.get("/hours/1001/week").json()
    assert week["work_hours"] == 8.0
    assert week["in_progress"] is False

    board = client.get("/board").json()
    assert [(row["name"], row["status"]) for row in board] == [("Ari Blake", "Clocked Out"), ("Dana Ortiz", "Clocked Out")]


def test_punch_with_explicit_timestamp():
    client, _, _ = make_client()

    response = punch(client, "clock_in", timestamp="2026-01-05T06:45:00")

    assert response.json()["opened"]["start_time"] == "2026-01-05T06:45:00"


def test_rejected_transitions_map_to_status_codes():
    client, _, _ = make_client()

    assert punch(client, "clock_out").status_code == 409
    punch(client, "clock_in")
    assert punch(client, "clock_in").status_code == 409
    assert punch(client, "clock_in", badge_id=4242).status_code == 404
    assert punch(client, "nap").status_code == 422
    assert client.get("/status/4242").status_code == 404


def test_store_failure_maps_to_503():
    class BrokenStore(InMemoryPunchStore):
        def insert_punch(self, punch):
            raise StoreUnavailable("database offline")

    client, _, _ = make_client(BrokenStore(employees=EMPLOYEES))

    assert punch(client, "clock_in").status_code == 503


def test_payroll_and_progress():
    client, clock, _ = make_client()
    punch(client, "clock_in")
    clock.set(datetime(2026, 1, 5, 11, 0))

    payroll = client.get("/payroll", params={"reference": "2026-01-05"}).json()
    assert [row["name"] for row in payroll] == ["Ari Blake", "Dana Ortiz"]
    assert payroll[1]["total_hours"] == 4.0
    assert payroll[1]["gross_pay"] == 80.0

    progress = client.get("/progress/1001").json()
    assert progress["actual_today"] == 4.0
    assert progress["expected_today"] == 4.0
    assert progress["delta_today"] == 0.0


def test_exports_with_filenames():
    client, clock, _ = make_client()
    punch(client, "clock_in")
    clock.set(datetime(2026, 1, 5, 15, 30))
    punch(client, "clock_out")

    csv_response = client.get("/export/csv", params={"start_date": "2026-01-05", "end_date": "2026-01-05"})
    assert csv_response.status_code == 200
    assert 'filename="timeclock_export_2026-01-05_to_2026-01-05.csv"' in csv_response.headers["content-disposition"]
    assert '1001,"Dana Ortiz","1/5/2026","07:00 AM","03:30 PM","Work",8.50' in csv_response.text

    iif_response = client.get("/export/iif", params={"start_date": "2026-01-05", "end_date": "2026-01-05"})
    assert 'filename="quickbooks_time_2026-01-05_to_2026-01-05.iif"' in iif_response.headers["content-disposition"]
    assert "TIMEACT\t01/05/2026\t\tDana Ortiz\t\t\t8.50\tImported from TimeClock" in iif_response.text


def test_end_of_day_check():
    client, clock, app = make_client()
    punch(client, "clock_in")

    still_open = run_end_of_day_check(app.state.machine, clock)

    assert [s.employee_id for s in still_open] == [1]
