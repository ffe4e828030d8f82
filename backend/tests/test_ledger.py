from __future__ import annotations

import itertools
import random

import pytest

from eldflow.ledger import (
    AggregateHours,
    DutyStatus,
    InvalidRange,
    Ledger,
    MissingField,
    NonNumeric,
    Segment,
    SegmentValidationError,
    ValidationErrorKind,
    aggregate,
    decode_status,
    format_hours,
    validate_segment,
)


def _segment(start: float, end: float, status: DutyStatus, location: str = "Dallas, TX", note: str = "ok") -> Segment:
    return Segment(start_hour=start, end_hour=end, status=status, location=location, note=note)


FULL_DAY = [
    _segment(0, 8, DutyStatus.OFF_DUTY),
    _segment(8, 8.5, DutyStatus.ON_DUTY),
    _segment(8.5, 16.5, DutyStatus.DRIVING),
    _segment(16.5, 24, DutyStatus.SLEEPER),
]


def test_full_day_scenario_totals() -> None:
    totals = aggregate(FULL_DAY)
    assert totals == AggregateHours(off_duty=8, sleeper=7.5, driving=8, on_duty=0.5)


def test_aggregate_is_order_independent() -> None:
    expected = aggregate(FULL_DAY)
    for permutation in itertools.permutations(FULL_DAY):
        assert aggregate(permutation) == expected


def test_aggregate_is_additive() -> None:
    rng = random.Random(7)
    statuses = list(DutyStatus)
    for _ in range(50):
        segments = []
        for _ in range(rng.randint(0, 8)):
            start = rng.choice([0, 0.5, 3, 6.25, 12])
            end = start + rng.choice([0.25, 1, 2.5, 4])
            segments.append(_segment(start, end, rng.choice(statuses)))
        split = rng.randint(0, len(segments))
        left, right = segments[:split], segments[split:]
        combined = aggregate(left + right)
        summed = aggregate(left) + aggregate(right)
        for status in (DutyStatus.OFF_DUTY, DutyStatus.SLEEPER, DutyStatus.DRIVING, DutyStatus.ON_DUTY):
            assert combined.for_status(status) == pytest.approx(summed.for_status(status))


@pytest.mark.parametrize("status", [DutyStatus.PERSONAL_CONVEYANCE, DutyStatus.YARD_MOVE])
def test_non_billable_segments_never_count(status: DutyStatus) -> None:
    with_extra = FULL_DAY + [_segment(2, 5, status), _segment(20, 23.5, status)]
    assert aggregate(with_extra) == aggregate(FULL_DAY)
    assert aggregate([_segment(0, 24, status)]) == AggregateHours()


def test_aggregate_does_not_round_internally() -> None:
    segments = [_segment(0, 1 / 3, DutyStatus.DRIVING) for _ in range(3)]
    totals = aggregate(segments)
    assert totals.driving == pytest.approx(1.0)
    assert totals.rounded().driving == 1.0
    assert format_hours(totals.driving) == "1.00 hrs"


def test_validate_accepts_text_input() -> None:
    segment = validate_segment(" 6 ", "7.5", "Driving", "  Amarillo, TX ", " fuel ")
    assert segment == _segment(6.0, 7.5, DutyStatus.DRIVING, "Amarillo, TX", "fuel")
    assert segment.duration == 1.5


@pytest.mark.parametrize(
    "start,end",
    [(10, 9), (5, 5), (-1, 3), (0, 24.5), (23, 25)],
)
def test_validate_rejects_bad_ranges(start: float, end: float) -> None:
    with pytest.raises(InvalidRange) as excinfo:
        validate_segment(start, end, DutyStatus.OFF_DUTY, "Dallas", "x")
    assert excinfo.value.kind is ValidationErrorKind.INVALID_RANGE
    assert str(excinfo.value) == "Invalid time range!"


@pytest.mark.parametrize("start,end", [("abc", "5"), ("", "5"), ("1", None), ("nan", "3"), ("1", "inf")])
def test_validate_rejects_non_numeric(start, end) -> None:
    with pytest.raises(NonNumeric):
        validate_segment(start, end, DutyStatus.OFF_DUTY, "Dallas", "x")


def test_validate_checks_numbers_before_fields() -> None:
    with pytest.raises(NonNumeric):
        validate_segment("x", "5", DutyStatus.OFF_DUTY, "", "")


def test_missing_location_is_reported() -> None:
    with pytest.raises(MissingField) as excinfo:
        validate_segment(5, 6, DutyStatus.ON_DUTY, "", "x")
    assert excinfo.value.field == "location"
    assert excinfo.value.kind is ValidationErrorKind.MISSING_FIELD


def test_blank_note_is_reported() -> None:
    with pytest.raises(MissingField) as excinfo:
        validate_segment(5, 6, DutyStatus.ON_DUTY, "Tulsa", "   ")
    assert excinfo.value.field == "note"


def test_validate_fails_iff_rule_broken() -> None:
    hours = [-0.5, 0, 0.5, 12, 23.5, 24, 24.5]
    for start, end in itertools.product(hours, hours):
        should_fail = start >= end or start < 0 or end > 24
        try:
            validate_segment(start, end, DutyStatus.DRIVING, "Dallas", "x")
        except SegmentValidationError:
            assert should_fail, (start, end)
        else:
            assert not should_fail, (start, end)


def test_unknown_status_string_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        validate_segment(1, 2, "Napping", "Dallas", "x")


def test_decode_status_recognizes_only_billable_tags() -> None:
    assert decode_status("OffDuty") is DutyStatus.OFF_DUTY
    assert decode_status("Sleeper") is DutyStatus.SLEEPER
    assert decode_status("Driving") is DutyStatus.DRIVING
    assert decode_status("OnDuty") is DutyStatus.ON_DUTY
    assert decode_status("Unknown") is None
    assert decode_status("PersonalConveyance") is None
    assert decode_status(None) is None


def test_from_entries_drops_unrecognized_tags() -> None:
    entries = [
        {"start_hour": 0, "end_hour": 8, "status": "OffDuty", "location": "A", "note": "n"},
        {"start_hour": 8, "end_hour": 9, "status": "Unknown", "location": "B", "note": "n"},
        {"start_hour": 9, "end_hour": 10, "status": "Driving", "location": "C", "note": "n"},
    ]
    ledger = Ledger.from_entries(42, entries)
    assert ledger.trip_id == 42
    assert len(ledger) == 2
    assert [segment.location for segment in ledger] == ["A", "C"]


def test_from_entries_reads_attribute_objects() -> None:
    class Record:
        start_hour = 1.0
        end_hour = 2.0
        status = "Sleeper"
        location = "Rest area"
        note = "nap"

    ledger = Ledger.from_entries("trip", [Record()])
    assert ledger[0] == _segment(1.0, 2.0, DutyStatus.SLEEPER, "Rest area", "nap")


def test_round_trip_through_entries() -> None:
    ledger = Ledger("trip-1", FULL_DAY)
    rebuilt = Ledger.from_entries("trip-1", ledger.to_entries())
    assert rebuilt.segments == ledger.segments


def test_append_keeps_order_and_remove_takes_last_match() -> None:
    ledger = Ledger(1)
    first = ledger.append(_segment(0, 1, DutyStatus.DRIVING))
    ledger.append(_segment(1, 2, DutyStatus.ON_DUTY))
    ledger.append(_segment(0, 1, DutyStatus.DRIVING))
    assert [s.status for s in ledger] == [DutyStatus.DRIVING, DutyStatus.ON_DUTY, DutyStatus.DRIVING]
    assert ledger.remove(first) is True
    assert [s.status for s in ledger] == [DutyStatus.DRIVING, DutyStatus.ON_DUTY]
    assert ledger.remove(_segment(5, 6, DutyStatus.SLEEPER)) is False


def test_overlapping_segments_are_accepted() -> None:
    ledger = Ledger(1)
    ledger.append(_segment(0, 5, DutyStatus.DRIVING))
    ledger.append(_segment(2, 6, DutyStatus.DRIVING))
    assert ledger.totals().driving == 9


def test_switch_trip_starts_empty() -> None:
    ledger = Ledger(1, FULL_DAY)
    switched = ledger.switch_trip(2)
    assert switched.trip_id == 2
    assert len(switched) == 0
    assert len(ledger) == 4
