from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any, Literal, Mapping

from hrdesk.utils import iter_days


LeaveStatus = Literal["pending", "approved", "rejected"]


_ALLOWED_TRANSITIONS = {
    "pending": {"approved", "rejected"},
    "approved": set(),
    "rejected": set(),
}


class LeaveType(str, Enum):
    CASUAL = "Casual Leave"
    ON_DUTY = "On Duty Leave"
    WITHOUT_PAY = "Leave Without Pay"


# LeaveType -> counter on user.leave_balance
BALANCE_FIELDS = {
    LeaveType.CASUAL: "casual_leave",
    LeaveType.ON_DUTY: "on_duty_leave",
    LeaveType.WITHOUT_PAY: "leave_without_pay",
}

# Without-pay is a counter of days taken, not an allowance
BOUNDED_TYPES = frozenset({LeaveType.CASUAL, LeaveType.ON_DUTY})

DEFAULT_LEAVE_BALANCE = {
    "casual_leave": 12,
    "on_duty_leave": 6,
    "leave_without_pay": 0,
}


class LeaveStateTransitionError(ValueError):
    """Raised when a leave is moved out of a terminal status."""

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Invalid leave status transition: {current} -> {target}")
        self.current = current
        self.target = target


class InsufficientLeaveBalanceError(ValueError):
    def __init__(self, leave_type: LeaveType, available: float, requested: float) -> None:
        label = "casual" if leave_type == LeaveType.CASUAL else "on duty"
        super().__init__(f"Insufficient {label} leave balance")
        self.leave_type = leave_type
        self.available = available
        self.requested = requested


def validate_transition(current: str, target: str) -> None:
    allowed = _ALLOWED_TRANSITIONS.get(current, set())
    if target not in allowed:
        raise LeaveStateTransitionError(current=current, target=target)


def balance_snapshot(balance: Mapping[str, Any] | None) -> dict[str, float]:
    src = balance or {}
    return {field: src.get(field, DEFAULT_LEAVE_BALANCE[field]) for field in DEFAULT_LEAVE_BALANCE}


def balance_delta(leave_type: LeaveType, days: float) -> dict[str, float]:
    """The `$inc` document that approving this leave applies."""
    field = BALANCE_FIELDS[leave_type]
    if leave_type in BOUNDED_TYPES:
        return {field: -days}
    return {field: days}


def apply_balance(balance: Mapping[str, Any] | None, leave_type: LeaveType, days: float) -> dict[str, float]:
    """Return the balance after approval, or raise when it would go negative."""
    snap = balance_snapshot(balance)
    field = BALANCE_FIELDS[leave_type]
    if leave_type in BOUNDED_TYPES and snap[field] < days:
        raise InsufficientLeaveBalanceError(leave_type, snap[field], days)
    for key, delta in balance_delta(leave_type, days).items():
        snap[key] = snap[key] + delta
    return snap


def leave_days(start: date, end: date) -> list[date]:
    """Every calendar day of the leave, both ends included."""
    return list(iter_days(start, end))
