from __future__ import annotations

from datetime import date, datetime
from typing import Literal
from zoneinfo import ZoneInfo

from hrdesk.utils import ensure_aware


AttendanceStatus = Literal[
    "absent",
    "present",
    "late",
    "half-day",
    "on-leave",
]


_ALLOWED_TRANSITIONS = {
    "absent": {"present", "late", "on-leave"},
    "present": {"half-day", "on-leave"},
    "late": {"half-day", "on-leave"},
    "half-day": {"on-leave"},
    # An approved leave placeholder can still be checked into, and a short
    # day on top of it is downgraded like any other
    "on-leave": {"present", "late", "half-day"},
}


class AttendanceStateTransitionError(ValueError):
    """Raised when an invalid attendance status transition is requested."""

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Invalid attendance status transition: {current} -> {target}")
        self.current = current
        self.target = target


def validate_transition(current: str, target: str) -> None:
    if current == target:
        return
    allowed = _ALLOWED_TRANSITIONS.get(current, set())
    if target not in allowed:
        raise AttendanceStateTransitionError(current=current, target=target)


def to_local(dt: datetime, tz_name: str) -> datetime:
    return ensure_aware(dt).astimezone(ZoneInfo(tz_name))


def local_day(dt: datetime, tz_name: str) -> date:
    """Calendar day an instant falls on in the office timezone."""
    return to_local(dt, tz_name).date()


def is_late(check_in_local: datetime, cutoff_hour: int) -> bool:
    return check_in_local.hour >= cutoff_hour


def late_by_minutes(check_in_local: datetime, cutoff_hour: int) -> int:
    if not is_late(check_in_local, cutoff_hour):
        return 0
    return (check_in_local.hour - cutoff_hour) * 60 + check_in_local.minute


def working_hours(check_in: datetime, check_out: datetime) -> float:
    diff = ensure_aware(check_out) - ensure_aware(check_in)
    return round(diff.total_seconds() / 3600, 2)


def status_on_check_in(check_in_local: datetime, cutoff_hour: int) -> AttendanceStatus:
    return "late" if is_late(check_in_local, cutoff_hour) else "present"


def status_on_check_out(current: str, hours: float, min_full_day_hours: float) -> str:
    """Short days are downgraded whatever the check-in status was."""
    if hours < min_full_day_hours:
        validate_transition(current, "half-day")
        return "half-day"
    return current
