from __future__ import annotations

from concurrent.futures import Executor, Future
from datetime import datetime, timedelta, timezone

import pytest

from eldflow.ledger import DutyStatus
from eldflow_desktop.api_client import ApiError, NetworkError, UnauthorizedError
from eldflow_desktop.log_panel import (
    SUCCESS_MESSAGE,
    TRANSITION_HISTORY,
    EldLogPanel,
    LogForm,
    PersistenceErrorKind,
    SubmissionState,
    classify_persistence_error,
)
from eldflow_desktop.models import TripSummary


class ManualExecutor(Executor):
    """Queues submitted work until the test runs it."""

    def __init__(self) -> None:
        self.tasks = []

    def submit(self, fn, *args, **kwargs):
        future = Future()
        self.tasks.append((future, fn, args, kwargs))
        return future

    def run_all(self) -> None:
        while self.tasks:
            future, fn, args, kwargs = self.tasks.pop(0)
            try:
                future.set_result(fn(*args, **kwargs))
            except Exception as exc:
                future.set_exception(exc)


class FakeBackend:
    def __init__(self) -> None:
        self.trips = [
            TripSummary(trip_id=1, current_location="Dallas, TX", pickup_location="Fort Worth, TX", dropoff_location="Tulsa, OK"),
            TripSummary(trip_id=2, current_location="Memphis, TN", pickup_location="Memphis, TN", dropoff_location="Nashville, TN"),
        ]
        self.logs = {
            1: [
                {"start_hour": 0, "end_hour": 8, "status": "OffDuty", "location": "Dallas, TX", "note": "home"},
                {"start_hour": 8, "end_hour": 9, "status": "Unknown", "location": "Dallas, TX", "note": "legacy"},
            ],
            2: [],
        }
        self.stored = []
        self.error = None

    def list_trips(self, query=None):
        return self.trips

    def get_logs(self, trip_id):
        return self.logs[trip_id]

    def store(self, trip_id, entry):
        self.stored.append((trip_id, entry))
        if self.error is not None:
            raise self.error
        return len(self.stored)


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture()
def backend():
    return FakeBackend()


@pytest.fixture()
def executor():
    return ManualExecutor()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def panel(backend, executor, clock):
    changes = []
    panel = EldLogPanel(backend, backend, executor, on_change=lambda: changes.append(1), clock=clock)
    panel.changes = changes
    panel.load_trips()
    executor.run_all()
    return panel


def _fill(panel, start="8", end="10", status=DutyStatus.DRIVING, location="I-35", note="northbound"):
    panel.form.start_hour = start
    panel.form.end_hour = end
    panel.form.status = status
    panel.form.location = location
    panel.form.note = note


def test_load_trips_selects_first_trip(panel):
    assert [trip.trip_id for trip in panel.trips] == [1, 2]
    assert panel.trip_id == 1
    assert panel.loading is False
    assert len(panel.segments) == 1
    assert panel.totals().off_duty == 8
    assert panel.changes


def test_submit_appends_optimistically(panel, backend, executor):
    _fill(panel)
    future = panel.submit()
    assert future is not None
    assert panel.state is SubmissionState.SUBMITTING
    assert [s.status for s in panel.segments] == [DutyStatus.OFF_DUTY, DutyStatus.DRIVING]
    assert panel.form.start_hour == ""
    assert panel.form.status is DutyStatus.OFF_DUTY
    assert backend.stored == []

    executor.run_all()
    assert future.result() == 1
    assert panel.state is SubmissionState.IDLE
    assert list(panel.transitions)[-4:] == [
        SubmissionState.VALIDATING,
        SubmissionState.SUBMITTING,
        SubmissionState.SUCCESS,
        SubmissionState.IDLE,
    ]
    assert panel.notifications()[-1].message == SUCCESS_MESSAGE
    assert len(panel.segments) == 2


def test_stored_entry_carries_aggregate_snapshot(panel, backend, executor):
    _fill(panel, start="8", end="10.5")
    panel.submit()
    executor.run_all()
    trip_id, entry = backend.stored[0]
    assert trip_id == 1
    assert entry == {
        "start_hour": 8.0,
        "end_hour": 10.5,
        "status": "Driving",
        "location": "I-35",
        "note": "northbound",
        "driving_hours": 2.5,
        "on_duty_hours": 0.0,
        "off_duty_hours": 8.0,
        "sleeper_berth_hours": 0.0,
    }


def test_invalid_range_leaves_ledger_unchanged(panel, backend, executor):
    _fill(panel, start="10", end="9")
    assert panel.submit() is None
    assert len(panel.segments) == 1
    assert executor.tasks == []
    assert backend.stored == []
    assert panel.state is SubmissionState.IDLE
    assert list(panel.transitions)[-3:] == [SubmissionState.VALIDATING, SubmissionState.FAILED, SubmissionState.IDLE]
    assert panel.notifications()[-1].message == "Invalid time range!"
    assert panel.form.start_hour == "10"


def test_missing_location_is_reported(panel):
    _fill(panel, start="5", end="6", location="", note="x")
    assert panel.submit() is None
    assert panel.notifications()[-1].message == "Location is required."


def test_failed_store_rolls_back(panel, backend, executor):
    backend.error = NetworkError("offline")
    _fill(panel)
    future = panel.submit()
    assert len(panel.segments) == 2
    executor.run_all()
    assert future.result() is None
    assert len(panel.segments) == 1
    assert panel.state is SubmissionState.IDLE
    assert SubmissionState.FAILED in panel.transitions
    notification = panel.notifications()[-1]
    assert notification.kind == "error"
    assert notification.message.startswith("Network failure")


def test_failed_store_hands_entry_back_to_form(panel, backend, executor):
    backend.error = NetworkError("down")
    _fill(panel)
    panel.submit()
    assert panel.form.is_blank()
    revision = panel.form_revision
    executor.run_all()
    assert [(s.start_hour, s.end_hour, s.status.value) for s in panel.segments] == [(0.0, 8.0, "OffDuty")]
    assert panel.form == LogForm(start_hour="8", end_hour="10", status=DutyStatus.DRIVING, location="I-35", note="northbound")
    assert panel.form_revision == revision + 1

    backend.error = None
    panel.submit()
    executor.run_all()
    assert backend.stored[-1][1]["location"] == "I-35"
    assert len(panel.segments) == 2
    assert panel.form.is_blank()


def test_failed_store_keeps_the_next_entry_being_typed(panel, backend, executor):
    backend.error = NetworkError("down")
    _fill(panel)
    panel.submit()
    panel.update_form(start_hour="10", end_hour="11", location="Ardmore, OK", note="fuel")
    executor.run_all()
    assert panel.form.start_hour == "10"
    assert panel.form.location == "Ardmore, OK"
    assert panel.notifications()[-1].message.startswith("Network failure")


def test_unauthorized_store_message(panel, backend, executor):
    backend.error = UnauthorizedError("expired")
    _fill(panel)
    panel.submit()
    executor.run_all()
    assert panel.notifications()[-1].message == "Unauthorized: please sign in again."


def test_unexpected_error_rolls_back_and_propagates(panel, backend, executor):
    backend.error = KeyError("id")
    _fill(panel)
    future = panel.submit()
    executor.run_all()
    with pytest.raises(KeyError):
        future.result()
    assert len(panel.segments) == 1
    assert panel.state is SubmissionState.IDLE


def test_late_success_after_switch_is_ignored(panel, backend, executor):
    _fill(panel)
    panel.submit()
    panel.select_trip(2)
    executor.run_all()
    assert panel.trip_id == 2
    assert panel.segments == []
    assert panel.state is SubmissionState.IDLE
    assert all(n.message != SUCCESS_MESSAGE for n in panel.notifications())
    assert len(backend.stored) == 1


def test_late_failure_after_switch_does_not_touch_new_ledger(panel, backend, executor):
    backend.logs[2] = [{"start_hour": 8, "end_hour": 10, "status": "Driving", "location": "I-35", "note": "northbound"}]
    backend.error = ApiError("boom")
    _fill(panel)
    panel.submit()
    panel.select_trip(2)
    executor.run_all()
    assert panel.trip_id == 2
    assert len(panel.segments) == 1
    assert panel.notifications() == []


def test_stale_log_load_is_discarded(panel, backend, executor):
    panel.select_trip(2)
    panel.select_trip(1)
    executor.run_all()
    assert panel.trip_id == 1
    assert len(panel.segments) == 1


def test_submit_needs_a_loaded_trip(backend, executor, clock):
    panel = EldLogPanel(backend, backend, executor, clock=clock)
    _fill(panel)
    assert panel.submit() is None
    assert panel.notifications()[-1].message == "Select a trip first."

    panel.select_trip(1)
    assert panel.submit() is None
    assert panel.notifications()[-1].message == "Logs are still loading."


def test_load_failure_is_notified(backend, executor, clock):
    def broken(query=None):
        raise NetworkError("offline")

    backend.list_trips = broken
    panel = EldLogPanel(backend, backend, executor, clock=clock)
    panel.load_trips()
    executor.run_all()
    assert panel.trips == []
    assert panel.loading is False
    assert panel.notifications()[-1].kind == "error"


def test_summary_rows(panel, executor):
    _fill(panel, start="9", end="9.25", status=DutyStatus.ON_DUTY)
    panel.submit()
    _fill(panel, start="9.25", end="10", status=DutyStatus.YARD_MOVE)
    panel.submit()
    executor.run_all()
    assert panel.summary_rows() == [
        ("Off Duty", "8.00 hrs"),
        ("Sleeper Berth", "0.00 hrs"),
        ("Driving", "0.00 hrs"),
        ("On Duty", "0.25 hrs"),
    ]


def test_notifications_expire(panel, clock):
    _fill(panel, start="x")
    panel.submit()
    assert len(panel.notifications()) == 1
    clock.now += timedelta(seconds=5)
    assert panel.notifications() == []


def test_classify_persistence_error():
    assert classify_persistence_error(UnauthorizedError("x")) is PersistenceErrorKind.UNAUTHORIZED
    assert classify_persistence_error(NetworkError("x")) is PersistenceErrorKind.NETWORK_FAILURE
    assert classify_persistence_error(ApiError("x")) is PersistenceErrorKind.UNKNOWN


def test_transition_history_is_bounded(panel):
    _fill(panel, start="10", end="9")
    for _ in range(TRANSITION_HISTORY):
        panel.submit()
    assert len(panel.transitions) == TRANSITION_HISTORY
    assert panel.transitions[-1] is SubmissionState.IDLE


def test_reload_trips_keeps_selection_and_pending_save(panel, backend, executor):
    panel.select_trip(2)
    executor.run_all()
    _fill(panel)
    panel.submit()
    backend.trips.append(
        TripSummary(trip_id=3, current_location="Austin, TX", pickup_location="Austin, TX", dropoff_location="Waco, TX")
    )
    panel.reload_trips()
    executor.run_all()
    assert [trip.trip_id for trip in panel.trips] == [1, 2, 3]
    assert panel.trip_id == 2
    assert len(panel.segments) == 1
    assert panel.notifications()[-1].message == SUCCESS_MESSAGE


def test_reload_trips_moves_off_a_deleted_trip(panel, backend, executor):
    panel.select_trip(2)
    executor.run_all()
    backend.trips = [trip for trip in backend.trips if trip.trip_id != 2]
    panel.reload_trips()
    executor.run_all()
    assert panel.trip_id == 1
    assert panel.loading is False
    assert len(panel.segments) == 1

    backend.trips = []
    panel.reload_trips()
    executor.run_all()
    assert panel.trips == []
    assert panel.trip_id is None
    assert panel.segments == []
