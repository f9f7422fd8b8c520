from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from hrdesk.config import app_timezone, half_day_min_hours, late_cutoff_hour
from hrdesk.domain.attendance_state_machine import (
    late_by_minutes,
    local_day,
    status_on_check_in,
    status_on_check_out,
    to_local,
    validate_transition,
    working_hours,
)
from hrdesk.errors import AppError
from hrdesk.repositories.attendance_repository import AttendanceRepository
from hrdesk.repositories.user_repository import UserRepository
from hrdesk.utils import display_name, month_bounds, now_utc

logger = logging.getLogger(__name__)


def _month_range(month: Optional[int], year: Optional[int], today: date) -> tuple[date, date]:
    if month and year:
        if not 1 <= month <= 12:
            raise AppError(400, "invalid_month", "Month must be between 1 and 12")
        return month_bounds(year, month)
    return month_bounds(today.year, today.month)


def personal_stats(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    def _count(status: str) -> int:
        return sum(1 for r in rows if r.get("status") == status)

    return {
        "present": _count("present"),
        "late": _count("late"),
        "absent": _count("absent"),
        "half_day": _count("half-day"),
        "on_leave": _count("on-leave"),
        "total_working_hours": round(sum(r.get("working_hours") or 0 for r in rows), 2),
    }


class AttendanceService:
    """Check-in/check-out and the attendance read views."""

    def __init__(self, db, *, tz_name: Optional[str] = None, cutoff_hour: Optional[int] = None) -> None:
        self.db = db
        self.repo = AttendanceRepository(db)
        self.users = UserRepository(db)
        self.tz_name = tz_name or app_timezone()
        self.cutoff_hour = late_cutoff_hour() if cutoff_hour is None else cutoff_hour

    def today(self, now: Optional[datetime] = None) -> date:
        return local_day(now or now_utc(), self.tz_name)

    async def check_in(
        self,
        user: Dict[str, Any],
        *,
        ip: str = "",
        location: Optional[Dict[str, float]] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        now = now or now_utc()
        day = local_day(now, self.tz_name)
        existing = await self.repo.get_for_day(user["_id"], day)

        if existing and (existing.get("check_in") or {}).get("time"):
            raise AppError(400, "already_checked_in", "Already checked in today")

        local_now = to_local(now, self.tz_name)
        status = status_on_check_in(local_now, self.cutoff_hour)
        fields: Dict[str, Any] = {
            "check_in": {"time": now, "ip": ip, "location": location},
            "status": status,
            "is_late": status == "late",
            "late_by": late_by_minutes(local_now, self.cutoff_hour),
            "user_name": display_name(user),
        }

        if existing:
            validate_transition(existing.get("status") or "absent", status)
            attendance = await self.repo.update(
                existing["_id"],
                fields,
                guard={"check_in.time": {"$exists": False}},
            )
            if attendance is None:
                raise AppError(400, "already_checked_in", "Already checked in today")
        else:
            try:
                attendance = await self.repo.insert({"user_id": user["_id"], "date": day.isoformat(), "working_hours": 0, **fields})
            except DuplicateKeyError:
                # unique (user_id, date) index: a concurrent check-in won
                raise AppError(400, "already_checked_in", "Already checked in today")

        logger.info("attendance_check_in user=%s date=%s status=%s", user["_id"], day, status)
        return attendance

    async def check_out(
        self,
        user: Dict[str, Any],
        *,
        ip: str = "",
        location: Optional[Dict[str, float]] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        now = now or now_utc()
        day = local_day(now, self.tz_name)
        attendance = await self.repo.get_for_day(user["_id"], day)

        if not attendance or not (attendance.get("check_in") or {}).get("time"):
            raise AppError(400, "no_check_in", "No check-in found for today")
        if (attendance.get("check_out") or {}).get("time"):
            raise AppError(400, "already_checked_out", "Already checked out today")

        hours = working_hours(attendance["check_in"]["time"], now)
        status = status_on_check_out(attendance.get("status") or "present", hours, half_day_min_hours())

        updated = await self.repo.update(
            attendance["_id"],
            {
                "check_out": {"time": now, "ip": ip, "location": location},
                "working_hours": hours,
                "status": status,
            },
            guard={"check_out.time": {"$exists": False}},
        )
        if updated is None:
            raise AppError(400, "already_checked_out", "Already checked out today")

        logger.info("attendance_check_out user=%s date=%s hours=%s status=%s", user["_id"], day, hours, status)
        return updated

    async def my_month(self, user_id: ObjectId, month: Optional[int], year: Optional[int]) -> Dict[str, Any]:
        start, end = _month_range(month, year, self.today())
        rows = await self.repo.list_with_user(
            {"user_id": user_id, "date": {"$gte": start.isoformat(), "$lte": end.isoformat()}},
            {"date": -1},
        )
        return {"attendance": rows, "stats": personal_stats(rows)}

    async def today_for(self, user_id: ObjectId) -> Optional[Dict[str, Any]]:
        rows = await self.repo.list_with_user(
            {"user_id": user_id, "date": self.today().isoformat()},
            {"date": -1},
            preserve_missing_user=True,
        )
        return rows[0] if rows else None

    async def all_for_day(self, day: Optional[date] = None) -> Dict[str, Any]:
        """Recorded rows for the day plus synthesized absentees."""
        target = day or self.today()
        rows = await self.repo.list_with_user({"date": target.isoformat()}, {"check_in.time": 1})

        active_users = await self.users.list_active()
        recorded = {r["user_id"] for r in rows}
        absent_users = [
            {
                "user_id": u["_id"],
                "user_name": display_name(u),
                "username": u.get("username"),
                "designation": (u.get("employment") or {}).get("designation"),
                "role": u.get("role"),
                "date": target.isoformat(),
                "status": "absent",
            }
            for u in active_users
            if u["_id"] not in recorded
        ]

        return {
            "date": target.isoformat(),
            "attendance": rows,
            "absent_users": absent_users,
            "stats": {
                "total": len(active_users),
                "present": sum(1 for r in rows if r.get("status") in ("present", "late")),
                "absent": len(absent_users),
                "late": sum(1 for r in rows if r.get("is_late")),
                "on_leave": sum(1 for r in rows if r.get("status") == "on-leave"),
            },
        }

    async def user_month(self, user_id: ObjectId, month: Optional[int], year: Optional[int]) -> List[Dict[str, Any]]:
        start, end = _month_range(month, year, self.today())
        return await self.repo.list_with_user(
            {"user_id": user_id, "date": {"$gte": start.isoformat(), "$lte": end.isoformat()}},
            {"date": -1},
        )
