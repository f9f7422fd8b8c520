"""Leave workflow: apply -> approve | reject.

Approval is the only place leave balances move. The pending -> approved
flip is a conditional update, so of two concurrent approvals exactly one
wins and the other sees `leave_already_processed`. The winner then applies
a guarded `$inc` to the balance; if the balance was drained in between, the
claim is rolled back to pending and the call fails with
`insufficient_balance`.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from bson import ObjectId
from fastapi import Request

from hrdesk.constants.roles import LEAVE_ADMIN_ROLES
from hrdesk.domain.leave_state_machine import (
    BALANCE_FIELDS,
    BOUNDED_TYPES,
    InsufficientLeaveBalanceError,
    LeaveType,
    apply_balance,
    balance_delta,
    balance_snapshot,
    leave_days,
    validate_transition,
)
from hrdesk.errors import AppError
from hrdesk.repositories.attendance_repository import AttendanceRepository
from hrdesk.repositories.leave_repository import LeaveRepository
from hrdesk.repositories.user_repository import UserRepository
from hrdesk.services.audit import write_audit_log
from hrdesk.utils import now_utc, parse_day, to_object_id

logger = logging.getLogger(__name__)

_POPULATE_LIST = {"user_id": "user", "reviewed_by": "reviewer"}
_POPULATE_PENDING = {"user_id": "user", "reporting_to": "approver"}
_POPULATE_DETAIL = {"user_id": "user", "reviewed_by": "reviewer", "reporting_to": "approver"}


def _leave_type(raw: Any) -> LeaveType:
    try:
        return LeaveType(raw)
    except ValueError:
        allowed = ", ".join(t.value for t in LeaveType)
        raise AppError(400, "invalid_leave_type", f"Leave type must be one of: {allowed}")


def _parse_date(raw: Any, field: str) -> date:
    try:
        return parse_day(raw)
    except (TypeError, ValueError):
        raise AppError(400, "invalid_date", f"{field} must be a date (YYYY-MM-DD)")


def is_leave_admin(user: Dict[str, Any]) -> bool:
    return user.get("role") in LEAVE_ADMIN_ROLES


class LeaveService:
    def __init__(self, db) -> None:
        self.db = db
        self.repo = LeaveRepository(db)
        self.users = UserRepository(db)
        self.attendance = AttendanceRepository(db)

    async def apply(self, user: Dict[str, Any], payload: Dict[str, Any]) -> Dict[str, Any]:
        approver_raw = payload.get("reporting_to_id")
        if not approver_raw:
            raise AppError(400, "reporting_to_required", "Reporting to is required")
        if not payload.get("person_in_charge"):
            raise AppError(400, "person_in_charge_required", "Person in-charge in absence is required")

        leave_type = _leave_type(payload.get("leave_type"))
        start = _parse_date(payload.get("start_date"), "start_date")
        end = _parse_date(payload.get("end_date"), "end_date")
        if end < start:
            raise AppError(400, "invalid_date_range", "End date cannot be before start date")

        span = len(leave_days(start, end))
        number_of_days = payload.get("number_of_days")
        if number_of_days is None:
            number_of_days = span
        if number_of_days <= 0:
            raise AppError(400, "invalid_number_of_days", "Number of days must be positive")
        # at most one half day inside the range
        if not span - 0.5 <= number_of_days <= span:
            raise AppError(
                400,
                "invalid_number_of_days",
                f"Number of days must match the date range ({span} days, or {span - 0.5} with a half day)",
            )

        approver = None
        if ObjectId.is_valid(str(approver_raw)):
            approver = await self.users.get_by_id(ObjectId(str(approver_raw)), {"username": 1, "profile": 1})
        if not approver:
            raise AppError(400, "approver_not_found", "Selected approver not found")

        requester = await self.users.get_by_id(user["_id"]) or user

        doc = {
            "user_id": user["_id"],
            "leave_type": leave_type.value,
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "number_of_days": number_of_days,
            "reason": payload.get("reason") or "",
            "contact_no": payload.get("contact_no") or "",
            "person_in_charge": payload["person_in_charge"],
            "reporting_to": approver["_id"],
            "status": "pending",
            "applied_on": now_utc(),
            "leave_balance_before": balance_snapshot(requester.get("leave_balance")),
        }
        leave = await self.repo.insert(doc)
        logger.info("leave_applied leave=%s user=%s type=%s days=%s", leave["_id"], user["_id"], leave_type.value, number_of_days)
        return leave

    async def list_mine(self, user: Dict[str, Any], status: Optional[str], year: Optional[int]) -> Dict[str, Any]:
        q: Dict[str, Any] = {"user_id": user["_id"]}
        if status:
            q["status"] = status
        if year:
            q["start_date"] = {"$gte": f"{year:04d}-01-01", "$lte": f"{year:04d}-12-31"}
        leaves = await self.repo.populate(await self.repo.find(q), {"reviewed_by": "reviewer"})
        fresh = await self.users.get_by_id(user["_id"], {"leave_balance": 1}) or {}
        return {"leaves": leaves, "leave_balance": balance_snapshot(fresh.get("leave_balance"))}

    async def list_all(self, status: Optional[str]) -> List[Dict[str, Any]]:
        q: Dict[str, Any] = {}
        if status:
            q["status"] = status
        return await self.repo.populate(await self.repo.find(q), _POPULATE_LIST)

    async def list_pending(self, user: Dict[str, Any]) -> List[Dict[str, Any]]:
        q: Dict[str, Any] = {"status": "pending"}
        if not is_leave_admin(user):
            q["reporting_to"] = user["_id"]
        return await self.repo.populate(await self.repo.find(q), _POPULATE_PENDING)

    async def get(self, leave_id: str) -> Dict[str, Any]:
        leave = await self._load(leave_id)
        return (await self.repo.populate([leave], _POPULATE_DETAIL))[0]

    async def _load(self, leave_id: str) -> Dict[str, Any]:
        oid = to_object_id(leave_id, code="leave_not_found", message="Leave application not found")
        leave = await self.repo.get_by_id(oid)
        if not leave:
            raise AppError(404, "leave_not_found", "Leave application not found")
        return leave

    def _guard_reviewable(self, leave: Dict[str, Any], reviewer: Dict[str, Any], verb: str) -> None:
        if leave.get("status") != "pending":
            raise AppError(400, "leave_already_processed", "Leave application already processed")
        is_assigned = leave.get("reporting_to") is not None and leave.get("reporting_to") == reviewer["_id"]
        if not is_leave_admin(reviewer) and not is_assigned:
            raise AppError(403, "not_assigned_approver", f"Access denied. Only assigned approver can {verb} this leave.")

    async def approve(
        self,
        leave_id: str,
        reviewer: Dict[str, Any],
        remarks: Optional[str] = None,
        request: Optional[Request] = None,
    ) -> Dict[str, Any]:
        leave = await self._load(leave_id)
        self._guard_reviewable(leave, reviewer, "approve")

        leave_type = _leave_type(leave.get("leave_type"))
        days = leave["number_of_days"]
        requester = await self.users.get_by_id(leave["user_id"])
        if not requester:
            raise AppError(404, "user_not_found", "Leave applicant not found")

        try:
            apply_balance(requester.get("leave_balance"), leave_type, days)
        except InsufficientLeaveBalanceError as exc:
            raise AppError(400, "insufficient_balance", str(exc))

        validate_transition(leave["status"], "approved")
        now = now_utc()
        claimed = await self.repo.transition(
            leave["_id"],
            "pending",
            {
                "status": "approved",
                "reviewed_by": reviewer["_id"],
                "reviewed_on": now,
                "review_remarks": remarks,
            },
        )
        if claimed is None:
            raise AppError(400, "leave_already_processed", "Leave application already processed")

        await self._ensure_balance_fields(requester)
        guard = None
        if leave_type in BOUNDED_TYPES:
            guard = {f"leave_balance.{BALANCE_FIELDS[leave_type]}": {"$gte": days}}
        updated_user = await self.users.adjust_leave_balance(requester["_id"], balance_delta(leave_type, days), guard)
        if updated_user is None:
            await self.repo.set_fields(
                leave["_id"],
                {"status": "pending", "reviewed_by": None, "reviewed_on": None, "review_remarks": None},
            )
            logger.warning("leave_approve_rolled_back leave=%s reason=balance_changed", leave["_id"])
            raise AppError(400, "insufficient_balance", str(InsufficientLeaveBalanceError(leave_type, 0, days)))

        after = await self.repo.set_fields(
            leave["_id"],
            {"leave_balance_after": balance_snapshot(updated_user.get("leave_balance"))},
        )

        remark = f"{leave['leave_type']} - {leave.get('reason') or ''}".rstrip(" -")
        covered = leave_days(parse_day(leave["start_date"]), parse_day(leave["end_date"]))
        for day in covered:
            await self.attendance.mark_on_leave(leave["user_id"], day, remark)

        logger.info(
            "leave_approved leave=%s user=%s by=%s days=%s attendance_rows=%s",
            leave["_id"],
            leave["user_id"],
            reviewer["_id"],
            days,
            len(covered),
        )
        await write_audit_log(
            self.db,
            actor=reviewer,
            request=request,
            action="leave.approved",
            target_type="leave",
            target_id=str(leave["_id"]),
            before=leave,
            after=after,
            meta={"leave_type": leave_type.value, "days": days},
        )
        return after or claimed

    async def reject(
        self,
        leave_id: str,
        reviewer: Dict[str, Any],
        remarks: Optional[str] = None,
        request: Optional[Request] = None,
    ) -> Dict[str, Any]:
        leave = await self._load(leave_id)
        self._guard_reviewable(leave, reviewer, "reject")
        validate_transition(leave["status"], "rejected")

        rejected = await self.repo.transition(
            leave["_id"],
            "pending",
            {
                "status": "rejected",
                "reviewed_by": reviewer["_id"],
                "reviewed_on": now_utc(),
                "review_remarks": remarks or "Leave request rejected",
            },
        )
        if rejected is None:
            raise AppError(400, "leave_already_processed", "Leave application already processed")

        logger.info("leave_rejected leave=%s by=%s", leave["_id"], reviewer["_id"])
        await write_audit_log(
            self.db,
            actor=reviewer,
            request=request,
            action="leave.rejected",
            target_type="leave",
            target_id=str(leave["_id"]),
            before=leave,
            after=rejected,
        )
        return rejected

    async def _ensure_balance_fields(self, user: Dict[str, Any]) -> None:
        """Materialise default counters so the guarded `$inc` has something to compare."""
        current = user.get("leave_balance") or {}
        missing = {k: v for k, v in balance_snapshot(current).items() if k not in current}
        if missing:
            await self.users.set_missing_leave_balance(user["_id"], missing)
