"""Geometry of the classic four row ELD grid."""

from __future__ import annotations

from typing import Dict, Iterable, List, Tuple

from eldflow.ledger import DutyStatus, Segment

Point = Tuple[float, int]

# Top to bottom as printed on a paper log.
STATUS_ROWS: Dict[DutyStatus, int] = {
    DutyStatus.OFF_DUTY: 0,
    DutyStatus.SLEEPER: 1,
    DutyStatus.DRIVING: 2,
    DutyStatus.ON_DUTY: 3,
}

ROW_LABELS = [status.label for status in STATUS_ROWS]

# Personal conveyance is drawn as off duty and yard moves as on duty.
_SPECIAL_ROWS = {
    DutyStatus.PERSONAL_CONVEYANCE: STATUS_ROWS[DutyStatus.OFF_DUTY],
    DutyStatus.YARD_MOVE: STATUS_ROWS[DutyStatus.ON_DUTY],
}


def row_for_status(status: DutyStatus) -> int:
    if status in STATUS_ROWS:
        return STATUS_ROWS[status]
    return _SPECIAL_ROWS[status]


def chart_points(segments: Iterable[Segment]) -> List[List[Point]]:
    """Return the step polylines for ``segments``, one per contiguous run.

    Segments are ordered by start hour. A segment starting exactly where the
    previous one ended continues the same polyline with a vertical step,
    anything else starts a new polyline.
    """
    lines: List[List[Point]] = []
    last_end = None
    for segment in sorted(segments, key=lambda s: (s.start_hour, s.end_hour)):
        row = row_for_status(segment.status)
        if lines and last_end == segment.start_hour:
            lines[-1].append((segment.start_hour, row))
        else:
            lines.append([(segment.start_hour, row)])
        lines[-1].append((segment.end_hour, row))
        last_end = segment.end_hour
    return lines


__all__ = ["ROW_LABELS", "STATUS_ROWS", "chart_points", "row_for_status"]
