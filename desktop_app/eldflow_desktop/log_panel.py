"""View state of the ELD log screen, independent of any widget toolkit.

The panel owns the ledger of the selected trip. Submitting runs the
validator, appends the segment optimistically and persists it on the
executor. Completion callbacks from a trip the driver already left are
ignored: every trip switch bumps a generation counter and late results
carrying an older generation are dropped.
"""

from __future__ import annotations

import enum
import logging
import threading
from collections import deque
from concurrent.futures import Executor, Future
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

from eldflow.ledger import (
    BILLABLE_STATUSES,
    AggregateHours,
    DutyStatus,
    Ledger,
    Segment,
    SegmentValidationError,
    format_hours,
    validate_segment,
)

from .api_client import ApiError, NetworkError, UnauthorizedError
from .models import Notification, TripSummary

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Log added successfully!"
TRANSITION_HISTORY = 32


class TripDataProvider(Protocol):
    def list_trips(self, query: Optional[str] = None) -> List[TripSummary]: ...

    def get_logs(self, trip_id: int) -> Sequence[Mapping[str, Any]]: ...


class LogSubmissionService(Protocol):
    def store(self, trip_id: int, entry: Mapping[str, Any]) -> int: ...


class SubmissionState(str, enum.Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    SUBMITTING = "submitting"
    SUCCESS = "success"
    FAILED = "failed"


class PersistenceErrorKind(str, enum.Enum):
    UNAUTHORIZED = "unauthorized"
    NETWORK_FAILURE = "network_failure"
    UNKNOWN = "unknown"


def classify_persistence_error(exc: BaseException) -> PersistenceErrorKind:
    if isinstance(exc, UnauthorizedError):
        return PersistenceErrorKind.UNAUTHORIZED
    if isinstance(exc, NetworkError):
        return PersistenceErrorKind.NETWORK_FAILURE
    return PersistenceErrorKind.UNKNOWN


@dataclass
class LogForm:
    start_hour: str = ""
    end_hour: str = ""
    status: DutyStatus = DutyStatus.OFF_DUTY
    location: str = ""
    note: str = ""

    def reset(self) -> None:
        self.start_hour = ""
        self.end_hour = ""
        self.status = DutyStatus.OFF_DUTY
        self.location = ""
        self.note = ""

    def is_blank(self) -> bool:
        return self == LogForm()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EldLogPanel:
    def __init__(
        self,
        provider: TripDataProvider,
        submitter: LogSubmissionService,
        executor: Executor,
        on_change: Optional[Callable[[], None]] = None,
        *,
        notification_seconds: int = 4,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._provider = provider
        self._submitter = submitter
        self._executor = executor
        self._on_change = on_change
        self._notification_ttl = timedelta(seconds=notification_seconds)
        self._clock = clock
        self._lock = threading.RLock()
        self._generation = 0
        self._ledger = Ledger()
        self._notifications: List[Notification] = []
        self._pending = 0
        self.form = LogForm()
        # bumped whenever the panel itself rewrites the form
        self.form_revision = 0
        self.trips: List[TripSummary] = []
        self.loading = False
        self.state = SubmissionState.IDLE
        self.transitions: Deque[SubmissionState] = deque(maxlen=TRANSITION_HISTORY)

    # ------------------------------------------------------------------
    # read side
    # ------------------------------------------------------------------
    @property
    def trip_id(self) -> Optional[int]:
        return self._ledger.trip_id

    @property
    def segments(self) -> List[Segment]:
        with self._lock:
            return self._ledger.segments

    def totals(self) -> AggregateHours:
        with self._lock:
            return self._ledger.totals()

    def summary_rows(self) -> List[Tuple[str, str]]:
        totals = self.totals()
        return [(status.label, format_hours(totals.for_status(status))) for status in BILLABLE_STATUSES]

    def notifications(self) -> List[Notification]:
        now = self._clock()
        with self._lock:
            self._notifications = [n for n in self._notifications if not n.is_expired(now)]
            return list(self._notifications)

    # ------------------------------------------------------------------
    # loading
    # ------------------------------------------------------------------
    def load_trips(self) -> Future:
        with self._lock:
            generation = self._generation
            self.loading = True
        self._changed()
        return self._executor.submit(self._load_trips, generation)

    def reload_trips(self) -> Future:
        """Refresh the trip list, keeping the selected trip while it still exists."""
        with self._lock:
            generation = self._generation
        return self._executor.submit(self._reload_trips, generation)

    def select_trip(self, trip_id: int) -> Future:
        with self._lock:
            generation = self._begin_trip(trip_id)
        self._changed()
        return self._executor.submit(self._load_logs, generation, trip_id)

    def _begin_trip(self, trip_id: int) -> int:
        self._generation += 1
        self._ledger = self._ledger.switch_trip(trip_id)
        self._pending = 0
        self.loading = True
        self.state = SubmissionState.IDLE
        return self._generation

    def _load_trips(self, generation: int) -> List[TripSummary]:
        try:
            trips = self._provider.list_trips()
        except ApiError as exc:
            self._load_failed(generation, exc)
            return []
        with self._lock:
            if generation != self._generation:
                return trips
            self.trips = list(trips)
            if not trips:
                self.loading = False
                first_generation = None
            else:
                first_generation = self._begin_trip(trips[0].trip_id)
        self._changed()
        if first_generation is not None:
            self._load_logs(first_generation, trips[0].trip_id)
        return trips

    def _reload_trips(self, generation: int) -> List[TripSummary]:
        try:
            trips = self._provider.list_trips()
        except ApiError as exc:
            logger.warning("Reloading trips failed: %s", exc)
            with self._lock:
                if generation == self._generation:
                    self._notify("Error", str(exc), "error")
            self._changed()
            return []
        next_generation = None
        with self._lock:
            if generation != self._generation:
                return trips
            self.trips = list(trips)
            if self._ledger.trip_id not in [trip.trip_id for trip in trips]:
                if trips:
                    next_generation = self._begin_trip(trips[0].trip_id)
                else:
                    self._generation += 1
                    self._ledger = Ledger()
                    self._pending = 0
                    self.loading = False
                    self.state = SubmissionState.IDLE
        self._changed()
        if next_generation is not None:
            self._load_logs(next_generation, trips[0].trip_id)
        return trips

    def _load_logs(self, generation: int, trip_id: int) -> Optional[Ledger]:
        try:
            entries = self._provider.get_logs(trip_id)
        except ApiError as exc:
            self._load_failed(generation, exc)
            return None
        ledger = Ledger.from_entries(trip_id, entries)
        with self._lock:
            if generation != self._generation:
                logger.debug("Discarding logs of trip %s loaded for a stale view", trip_id)
                return ledger
            self._ledger = ledger
            self.loading = False
        self._changed()
        return ledger

    def _load_failed(self, generation: int, exc: ApiError) -> None:
        logger.warning("Loading ELD data failed: %s", exc)
        with self._lock:
            if generation != self._generation:
                return
            self.loading = False
            self._notify("Error", str(exc), "error")
        self._changed()

    # ------------------------------------------------------------------
    # submitting
    # ------------------------------------------------------------------
    def submit(self) -> Optional[Future]:
        """Validate the form and persist it; returns the persistence future.

        ``None`` is returned when nothing was sent: no trip selected, the
        trip is still loading or the form did not validate.
        """
        with self._lock:
            trip_id = self._ledger.trip_id
            if trip_id is None or self.loading:
                self._notify("Error", "Select a trip first." if trip_id is None else "Logs are still loading.", "error")
                rejected = True
            else:
                rejected = False
                self._set_state(SubmissionState.VALIDATING)
                try:
                    segment = validate_segment(
                        self.form.start_hour,
                        self.form.end_hour,
                        self.form.status,
                        self.form.location,
                        self.form.note,
                    )
                except SegmentValidationError as exc:
                    self._set_state(SubmissionState.FAILED)
                    self._notify("Error", exc.message, "error")
                    self._set_state(SubmissionState.IDLE if not self._pending else SubmissionState.SUBMITTING)
                    rejected = True
                else:
                    self._ledger.append(segment)
                    entry = self._entry_with_snapshot(segment, self._ledger.totals())
                    submitted = replace(self.form)
                    self.form.reset()
                    self.form_revision += 1
                    self._pending += 1
                    self._set_state(SubmissionState.SUBMITTING)
                    generation = self._generation
        self._changed()
        if rejected:
            return None
        return self._executor.submit(self._persist, generation, trip_id, segment, entry, submitted)

    def update_form(self, **fields: Any) -> None:
        """Mirror what the driver typed; ``submit`` and rollbacks read this copy."""
        with self._lock:
            for name, value in fields.items():
                setattr(self.form, name, value)

    @staticmethod
    def _entry_with_snapshot(segment: Segment, totals: AggregateHours) -> Dict[str, Any]:
        entry = segment.to_entry()
        entry.update(
            driving_hours=totals.driving,
            on_duty_hours=totals.on_duty,
            off_duty_hours=totals.off_duty,
            sleeper_berth_hours=totals.sleeper,
        )
        return entry

    def _persist(
        self, generation: int, trip_id: int, segment: Segment, entry: Dict[str, Any], submitted: LogForm
    ) -> Optional[int]:
        try:
            log_id = self._submitter.store(trip_id, entry)
        except ApiError as exc:
            logger.warning("Storing ELD log for trip %s failed: %s", trip_id, exc)
            self._rollback(generation, segment, submitted, self._failure_message(exc))
            return None
        except Exception:
            logger.exception("Unexpected error while storing ELD log for trip %s", trip_id)
            self._rollback(generation, segment, submitted, "Unexpected error while saving the log.")
            raise
        with self._lock:
            if generation != self._generation:
                logger.debug("Ignoring stored log %s for a stale view", log_id)
                return log_id
            self._pending -= 1
            self._set_state(SubmissionState.SUCCESS)
            self._notify("Success", SUCCESS_MESSAGE, "success")
            self._settle()
        self._changed()
        return log_id

    def _rollback(self, generation: int, segment: Segment, submitted: LogForm, message: str) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._ledger.remove(segment)
            # hand the entry back unless the driver already started the next one
            if self.form.is_blank():
                self.form = submitted
                self.form_revision += 1
            self._pending -= 1
            self._set_state(SubmissionState.FAILED)
            self._notify("Error", message, "error")
            self._settle()
        self._changed()

    @staticmethod
    def _failure_message(exc: ApiError) -> str:
        kind = classify_persistence_error(exc)
        if kind is PersistenceErrorKind.UNAUTHORIZED:
            return "Unauthorized: please sign in again."
        if kind is PersistenceErrorKind.NETWORK_FAILURE:
            return "Network failure: the log was not saved."
        return f"Failed to add log: {exc}"

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------
    def _settle(self) -> None:
        self._set_state(SubmissionState.SUBMITTING if self._pending else SubmissionState.IDLE)

    def _set_state(self, state: SubmissionState) -> None:
        self.state = state
        self.transitions.append(state)

    def _notify(self, title: str, message: str, kind: str) -> None:
        self._notifications.append(
            Notification(title=title, message=message, kind=kind, expires_at=self._clock() + self._notification_ttl)
        )

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()


__all__ = [
    "EldLogPanel",
    "LogForm",
    "LogSubmissionService",
    "PersistenceErrorKind",
    "SubmissionState",
    "TripDataProvider",
    "classify_persistence_error",
]
