"""Duty-status segments, the per-trip ledger and hour aggregation."""

from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Union

logger = logging.getLogger(__name__)


HOURS_PER_DAY = 24.0


class DutyStatus(str, enum.Enum):
    OFF_DUTY = "OffDuty"
    SLEEPER = "Sleeper"
    DRIVING = "Driving"
    ON_DUTY = "OnDuty"
    PERSONAL_CONVEYANCE = "PersonalConveyance"
    YARD_MOVE = "YardMove"

    @property
    def label(self) -> str:
        return STATUS_LABELS[self]


STATUS_LABELS: Dict[DutyStatus, str] = {
    DutyStatus.OFF_DUTY: "Off Duty",
    DutyStatus.SLEEPER: "Sleeper Berth",
    DutyStatus.DRIVING: "Driving",
    DutyStatus.ON_DUTY: "On Duty",
    DutyStatus.PERSONAL_CONVEYANCE: "Personal Conveyance",
    DutyStatus.YARD_MOVE: "Yard Move",
}

BILLABLE_STATUSES = (
    DutyStatus.OFF_DUTY,
    DutyStatus.SLEEPER,
    DutyStatus.DRIVING,
    DutyStatus.ON_DUTY,
)

# Tags a persisted log record may carry and still be rebuilt into a segment.
RECOGNIZED_TAGS: Dict[str, DutyStatus] = {status.value: status for status in BILLABLE_STATUSES}


class ValidationErrorKind(str, enum.Enum):
    INVALID_RANGE = "invalid_range"
    NON_NUMERIC = "non_numeric"
    MISSING_FIELD = "missing_field"


class SegmentValidationError(ValueError):
    kind: ValidationErrorKind

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidRange(SegmentValidationError):
    kind = ValidationErrorKind.INVALID_RANGE

    def __init__(self, message: str = "Invalid time range!") -> None:
        super().__init__(message)


class NonNumeric(SegmentValidationError):
    kind = ValidationErrorKind.NON_NUMERIC

    def __init__(self, message: str = "Invalid numeric values.") -> None:
        super().__init__(message)


class MissingField(SegmentValidationError):
    kind = ValidationErrorKind.MISSING_FIELD

    def __init__(self, field: str) -> None:
        super().__init__(f"{field.capitalize()} is required.")
        self.field = field


@dataclass(frozen=True)
class Segment:
    """One contiguous duty-status interval within a 24 hour log day."""

    start_hour: float
    end_hour: float
    status: DutyStatus
    location: str
    note: str

    @property
    def duration(self) -> float:
        return self.end_hour - self.start_hour

    @property
    def is_billable(self) -> bool:
        return self.status in BILLABLE_STATUSES

    def to_entry(self) -> Dict[str, Any]:
        return {
            "start_hour": self.start_hour,
            "end_hour": self.end_hour,
            "status": self.status.value,
            "location": self.location,
            "note": self.note,
        }


@dataclass(frozen=True)
class AggregateHours:
    off_duty: float = 0.0
    sleeper: float = 0.0
    driving: float = 0.0
    on_duty: float = 0.0

    def __add__(self, other: "AggregateHours") -> "AggregateHours":
        if not isinstance(other, AggregateHours):
            return NotImplemented
        return AggregateHours(
            off_duty=self.off_duty + other.off_duty,
            sleeper=self.sleeper + other.sleeper,
            driving=self.driving + other.driving,
            on_duty=self.on_duty + other.on_duty,
        )

    def for_status(self, status: DutyStatus) -> float:
        attribute = _BUCKETS.get(status)
        if attribute is None:
            return 0.0
        return getattr(self, attribute)

    def rounded(self, places: int = 2) -> "AggregateHours":
        return AggregateHours(
            off_duty=round(self.off_duty, places),
            sleeper=round(self.sleeper, places),
            driving=round(self.driving, places),
            on_duty=round(self.on_duty, places),
        )

    def as_dict(self) -> Dict[str, float]:
        return {
            "off_duty": self.off_duty,
            "sleeper": self.sleeper,
            "driving": self.driving,
            "on_duty": self.on_duty,
        }


_BUCKETS: Dict[DutyStatus, str] = {
    DutyStatus.OFF_DUTY: "off_duty",
    DutyStatus.SLEEPER: "sleeper",
    DutyStatus.DRIVING: "driving",
    DutyStatus.ON_DUTY: "on_duty",
}


def _parse_hour(value: Union[str, float, int, None]) -> float:
    if isinstance(value, bool) or value is None:
        raise NonNumeric()
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if not text:
            raise NonNumeric()
        try:
            number = float(text)
        except ValueError as exc:
            raise NonNumeric() from exc
    if not math.isfinite(number):
        raise NonNumeric()
    return number


def coerce_status(value: Union[DutyStatus, str]) -> DutyStatus:
    if isinstance(value, DutyStatus):
        return value
    try:
        return DutyStatus(value)
    except ValueError as exc:
        raise ValueError(f"Unknown duty status: {value!r}") from exc


def validate_segment(
    start_hour: Union[str, float, int, None],
    end_hour: Union[str, float, int, None],
    status: Union[DutyStatus, str],
    location: Optional[str],
    note: Optional[str],
) -> Segment:
    """Turn raw form input into a ``Segment`` or raise a ``SegmentValidationError``.

    Hours are parsed first, then range checked, then the free text fields
    are checked for content. ``status`` is trusted to come from a fixed set
    of choices, an unknown tag is a programming error and raises ``ValueError``.
    """
    start = _parse_hour(start_hour)
    end = _parse_hour(end_hour)
    if start >= end or start < 0 or end > HOURS_PER_DAY:
        raise InvalidRange()
    cleaned_location = (location or "").strip()
    if not cleaned_location:
        raise MissingField("location")
    cleaned_note = (note or "").strip()
    if not cleaned_note:
        raise MissingField("note")
    return Segment(
        start_hour=start,
        end_hour=end,
        status=coerce_status(status),
        location=cleaned_location,
        note=cleaned_note,
    )


def decode_status(tag: Any) -> Optional[DutyStatus]:
    """Map a persisted status tag to a billable status, ``None`` when unrecognized."""
    if isinstance(tag, DutyStatus):
        tag = tag.value
    if not isinstance(tag, str):
        return None
    return RECOGNIZED_TAGS.get(tag)


def aggregate(segments: Iterable[Segment]) -> AggregateHours:
    totals = {bucket: 0.0 for bucket in _BUCKETS.values()}
    for segment in segments:
        bucket = _BUCKETS.get(segment.status)
        if bucket is None:
            continue
        totals[bucket] += segment.duration
    return AggregateHours(**totals)


def format_hours(value: float) -> str:
    return f"{value:.2f} hrs"


def _field(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


class Ledger:
    """Ordered duty-status segments of one trip.

    Order only matters for display; aggregation is order independent.
    Overlapping time ranges are accepted.
    """

    def __init__(self, trip_id: Any = None, segments: Optional[Iterable[Segment]] = None) -> None:
        self.trip_id = trip_id
        self._segments: List[Segment] = list(segments or [])

    @classmethod
    def from_entries(cls, trip_id: Any, entries: Iterable[Any]) -> "Ledger":
        segments: List[Segment] = []
        for entry in entries:
            tag = _field(entry, "status")
            status = decode_status(tag)
            if status is None:
                logger.debug("Dropping log entry with unrecognized status %r for trip %s", tag, trip_id)
                continue
            segments.append(
                Segment(
                    start_hour=float(_field(entry, "start_hour")),
                    end_hour=float(_field(entry, "end_hour")),
                    status=status,
                    location=_field(entry, "location") or "",
                    note=_field(entry, "note") or "",
                )
            )
        return cls(trip_id, segments)

    def __iter__(self) -> Iterator[Segment]:
        return iter(self._segments)

    def __len__(self) -> int:
        return len(self._segments)

    def __getitem__(self, index: int) -> Segment:
        return self._segments[index]

    def __repr__(self) -> str:
        return f"Ledger(trip_id={self.trip_id!r}, segments={len(self._segments)})"

    @property
    def segments(self) -> List[Segment]:
        return list(self._segments)

    def append(self, segment: Segment) -> Segment:
        self._segments.append(segment)
        return segment

    def remove(self, segment: Segment) -> bool:
        for index in range(len(self._segments) - 1, -1, -1):
            if self._segments[index] == segment:
                del self._segments[index]
                return True
        return False

    def switch_trip(self, new_trip_id: Any) -> "Ledger":
        return Ledger(new_trip_id)

    def to_entries(self) -> List[Dict[str, Any]]:
        return [segment.to_entry() for segment in self._segments]

    def totals(self) -> AggregateHours:
        return aggregate(self._segments)


__all__ = [
    "AggregateHours",
    "BILLABLE_STATUSES",
    "DutyStatus",
    "InvalidRange",
    "Ledger",
    "MissingField",
    "NonNumeric",
    "Segment",
    "SegmentValidationError",
    "ValidationErrorKind",
    "aggregate",
    "coerce_status",
    "decode_status",
    "format_hours",
    "validate_segment",
]
