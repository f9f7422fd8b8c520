"""Monthly payroll sheet.

The attendance summary is computed from attendance rows, the configured
holiday calendar and each employee's joining date. Saved rows are what
the salary view reads back.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId
from fastapi import Request

from hrdesk.config import app_timezone
from hrdesk.constants.roles import PAYROLL_EXCLUDED_ROLES
from hrdesk.domain.attendance_state_machine import local_day
from hrdesk.domain.holidays import load_holiday_calendar
from hrdesk.domain.remuneration import summarize_employee_month
from hrdesk.errors import AppError
from hrdesk.repositories.attendance_repository import AttendanceRepository
from hrdesk.repositories.remuneration_repository import RemunerationRepository
from hrdesk.repositories.user_repository import UserRepository
from hrdesk.services.audit import write_audit_log
from hrdesk.services.roles import RoleResolver
from hrdesk.utils import display_name, month_bounds, now_utc, safe_float, to_object_id

logger = logging.getLogger(__name__)

PAYROLL_FIELDS = (
    "gross_remuneration",
    "days_worked",
    "casual_leave",
    "weekly_off",
    "holidays",
    "lwp_days",
    "total_days",
    "payable_days",
    "fixed_remuneration",
    "variable_remuneration",
    "total_remuneration",
    "tds",
    "other_deduction",
    "net_payable",
)

_SUMMARY_PROJECTION = {"username": 1, "profile": 1, "employment": 1, "role": 1}


def require_month_year(month: Optional[int], year: Optional[int]) -> tuple[int, int]:
    if not month or not year:
        raise AppError(400, "month_year_required", "Month and year are required")
    if not 1 <= month <= 12:
        raise AppError(400, "invalid_month", "Month must be between 1 and 12")
    return month, year


def _pan(user: Dict[str, Any]) -> str:
    pan = (user.get("documents") or {}).get("pan")
    if isinstance(pan, dict):
        return pan.get("number") or "N/A"
    return pan or "N/A"


def _bank_account(user: Dict[str, Any]) -> str:
    return (user.get("bank_details") or {}).get("account_number") or "N/A"


def payroll_row(record: Dict[str, Any]) -> Dict[str, Any]:
    employee = record["employee"]
    employment = employee.get("employment") or {}
    out: Dict[str, Any] = {
        "id": str(employee["_id"]),
        "employee_code": record.get("employee_code"),
        "name": display_name(employee),
        "designation": employment.get("designation") or employee.get("role"),
        "date_of_joining": employment.get("date_of_joining"),
        "pan": _pan(employee),
        "bank_account": _bank_account(employee),
        "pan_bank_details": record.get("pan_bank_details") or "",
    }
    for field in PAYROLL_FIELDS:
        out[field] = record.get(field, 0)
    return out


class RemunerationService:
    def __init__(self, db, *, tz_name: Optional[str] = None) -> None:
        self.db = db
        self.repo = RemunerationRepository(db)
        self.users = UserRepository(db)
        self.attendance = AttendanceRepository(db)
        self.tz_name = tz_name or app_timezone()

    async def attendance_summary(
        self,
        month: Optional[int],
        year: Optional[int],
        *,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        month, year = require_month_year(month, year)
        today = local_day(now or now_utc(), self.tz_name)
        if (year, month) == (today.year, today.month):
            return {
                "is_current_month": True,
                "message": "Current month data not available yet",
                "employees": [],
            }

        users = await self.users.list_active(exclude_roles=list(PAYROLL_EXCLUDED_ROLES), projection=_SUMMARY_PROJECTION)
        first, last = month_bounds(year, month)
        by_user: Dict[ObjectId, List[Dict[str, Any]]] = defaultdict(list)
        for row in await self.attendance.list_for_range(first, last):
            by_user[row["user_id"]].append(row)

        calendar = load_holiday_calendar()
        employees = []
        for user in users:
            employment = user.get("employment") or {}
            summary = summarize_employee_month(year, month, user, by_user.get(user["_id"], []), calendar)
            employees.append(
                {
                    "employee_id": str(user["_id"]),
                    "name": display_name(user),
                    "designation": employment.get("designation") or user.get("role"),
                    "date_of_joining": employment.get("date_of_joining"),
                    "gross_remuneration": employment.get("gross_remuneration") or 0,
                    **summary,
                }
            )

        return {
            "month": month,
            "year": year,
            "days_in_month": last.day,
            "employees": employees,
        }

    async def save(
        self,
        actor: Dict[str, Any],
        month: Optional[int],
        year: Optional[int],
        rows: Optional[List[Dict[str, Any]]],
        request: Optional[Request] = None,
    ) -> int:
        if not rows or not month or not year:
            raise AppError(400, "remuneration_fields_required", "Remuneration data, month, and year are required")
        month, year = require_month_year(month, year)

        saved = 0
        for row in rows:
            employee_id = to_object_id(row.get("employee_id"), code="employee_not_found", message="Employee not found")
            fields: Dict[str, Any] = {f: safe_float(row.get(f)) for f in PAYROLL_FIELDS}
            fields["employee_code"] = row.get("employee_code") or str(employee_id)
            fields["pan_bank_details"] = row.get("pan_bank_details") or ""
            await self.repo.upsert(employee_id, month, year, fields)
            saved += 1

        logger.info("remuneration_saved month=%s year=%s rows=%s by=%s", month, year, saved, actor.get("_id"))
        await write_audit_log(
            self.db,
            actor=actor,
            request=request,
            action="remuneration.saved",
            target_type="remuneration",
            target_id=f"{year:04d}-{month:02d}",
            meta={"rows": saved},
        )
        return saved

    async def get(self, month: Optional[int], year: Optional[int]) -> Dict[str, Any]:
        month, year = require_month_year(month, year)
        rows = [payroll_row(r) for r in await self.repo.for_month(month, year)]
        return {"remuneration_map": {r["id"]: r for r in rows}, "records": rows}

    async def salary(self, user: Dict[str, Any], month: Optional[int], year: Optional[int]) -> Dict[str, Any]:
        month, year = require_month_year(month, year)

        resolver = RoleResolver(self.db)
        can_view_all = await resolver.has_feature(user.get("role"), "salary.viewAll")
        can_view_own = await resolver.has_feature(user.get("role"), "salary.viewOwn")
        if not can_view_all and not can_view_own:
            raise AppError(403, "salary_forbidden", "You do not have permission to view salary data")

        records = await self.repo.for_month(month, year, None if can_view_all else user["_id"])
        employees = []
        for record in records:
            if record["employee"].get("role") in PAYROLL_EXCLUDED_ROLES:
                continue
            row = payroll_row(record)
            employees.append(
                {
                    "id": row["id"],
                    "employee_code": row["employee_code"],
                    "name": row["name"],
                    "designation": row["designation"] or "N/A",
                    "pan": row["pan"],
                    "bank_account": row["bank_account"],
                    "fixed_pay": row["fixed_remuneration"],
                    "variable_pay": row["variable_remuneration"],
                    "tds": row["tds"],
                    "other_deductions": row["other_deduction"],
                    "gross_remuneration": row["gross_remuneration"],
                    "net_payable": row["net_payable"],
                }
            )
        return {"employees": employees, "can_view_all": can_view_all, "can_view_own": can_view_own}
