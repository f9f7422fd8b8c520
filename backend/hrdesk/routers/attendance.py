from __future__ import annotations

from datetime import date as date_type
from typing import Any, Optional

from fastapi import APIRouter, Depends, Request

from hrdesk.auth import get_current_user
from hrdesk.constants.roles import LEAVE_ADMIN_ROLES
from hrdesk.db import get_db
from hrdesk.errors import AppError
from hrdesk.schemas import CheckInOut
from hrdesk.services.attendance_service import AttendanceService
from hrdesk.services.audit import client_ip
from hrdesk.services.roles import RoleResolver
from hrdesk.utils import parse_day, serialize_doc, to_object_id

router = APIRouter(prefix="/api/attendance", tags=["attendance"])


async def require_attendance_reports(db=Depends(get_db), user=Depends(get_current_user)) -> dict[str, Any]:
    if user.get("role") in LEAVE_ADMIN_ROLES:
        return user
    if await RoleResolver(db).has_feature(user.get("role"), "attendance.viewReports"):
        return user
    raise AppError(403, "attendance_reports_forbidden", "You do not have permission to view attendance reports")


def _location(payload: Optional[CheckInOut]) -> Optional[dict[str, float]]:
    if payload is None or payload.location is None:
        return None
    return payload.location.model_dump()


@router.post("/check-in")
async def check_in(request: Request, payload: Optional[CheckInOut] = None, db=Depends(get_db), user=Depends(get_current_user)):
    attendance = await AttendanceService(db).check_in(user, ip=client_ip(request), location=_location(payload))
    message = "Checked in (Late)" if attendance.get("is_late") else "Checked in successfully"
    return {"success": True, "message": message, "attendance": serialize_doc(attendance)}


@router.post("/check-out")
async def check_out(request: Request, payload: Optional[CheckInOut] = None, db=Depends(get_db), user=Depends(get_current_user)):
    attendance = await AttendanceService(db).check_out(user, ip=client_ip(request), location=_location(payload))
    return {"success": True, "message": "Checked out successfully", "attendance": serialize_doc(attendance)}


@router.get("/my")
async def my_attendance(
    month: Optional[int] = None,
    year: Optional[int] = None,
    db=Depends(get_db),
    user=Depends(get_current_user),
):
    result = await AttendanceService(db).my_month(user["_id"], month, year)
    return {"success": True, **serialize_doc(result)}


@router.get("/today")
async def today(db=Depends(get_db), user=Depends(get_current_user)):
    attendance = await AttendanceService(db).today_for(user["_id"])
    return {"success": True, "attendance": serialize_doc(attendance)}


@router.get("/all")
async def all_attendance(
    date: Optional[str] = None,
    db=Depends(get_db),
    user=Depends(require_attendance_reports),
):
    day: Optional[date_type] = None
    if date:
        try:
            day = parse_day(date)
        except ValueError:
            raise AppError(400, "invalid_date", "date must be YYYY-MM-DD")
    result = await AttendanceService(db).all_for_day(day)
    return {"success": True, **serialize_doc(result)}


@router.get("/user/{user_id}")
async def user_attendance(
    user_id: str,
    month: Optional[int] = None,
    year: Optional[int] = None,
    db=Depends(get_db),
    user=Depends(get_current_user),
):
    oid = to_object_id(user_id, code="user_not_found", message="User not found")
    if oid != user["_id"]:
        await require_attendance_reports(db, user)
    rows = await AttendanceService(db).user_month(oid, month, year)
    return {"success": True, "attendance": serialize_doc(rows)}
