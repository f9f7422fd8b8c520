from __future__ import annotations

from datetime import date

import pytest

from hrdesk.domain.leave_state_machine import (
    InsufficientLeaveBalanceError,
    LeaveStateTransitionError,
    LeaveType,
    apply_balance,
    balance_delta,
    balance_snapshot,
    leave_days,
    validate_transition,
)


def test_pending_can_be_approved_or_rejected() -> None:
    validate_transition("pending", "approved")
    validate_transition("pending", "rejected")


@pytest.mark.parametrize("terminal", ["approved", "rejected"])
def test_terminal_statuses_do_not_move(terminal: str) -> None:
    with pytest.raises(LeaveStateTransitionError):
        validate_transition(terminal, "approved")


def test_casual_leave_decrements_balance() -> None:
    after = apply_balance({"casual_leave": 12, "on_duty_leave": 6, "leave_without_pay": 0}, LeaveType.CASUAL, 3)
    assert after == {"casual_leave": 9, "on_duty_leave": 6, "leave_without_pay": 0}


def test_insufficient_casual_balance_is_rejected() -> None:
    with pytest.raises(InsufficientLeaveBalanceError) as exc:
        apply_balance({"casual_leave": 2}, LeaveType.CASUAL, 5)
    assert str(exc.value) == "Insufficient casual leave balance"
    assert exc.value.available == 2


def test_insufficient_on_duty_message() -> None:
    with pytest.raises(InsufficientLeaveBalanceError, match="on duty"):
        apply_balance({"on_duty_leave": 0}, LeaveType.ON_DUTY, 1)


def test_without_pay_is_unbounded_counter() -> None:
    after = apply_balance({"leave_without_pay": 40}, LeaveType.WITHOUT_PAY, 10)
    assert after["leave_without_pay"] == 50
    assert balance_delta(LeaveType.WITHOUT_PAY, 10) == {"leave_without_pay": 10}


def test_balance_snapshot_fills_defaults() -> None:
    assert balance_snapshot(None) == {"casual_leave": 12, "on_duty_leave": 6, "leave_without_pay": 0}
    assert balance_snapshot({"casual_leave": 1})["on_duty_leave"] == 6


def test_leave_days_inclusive_across_month_end() -> None:
    days = leave_days(date(2025, 1, 30), date(2025, 2, 2))
    assert [d.isoformat() for d in days] == ["2025-01-30", "2025-01-31", "2025-02-01", "2025-02-02"]
