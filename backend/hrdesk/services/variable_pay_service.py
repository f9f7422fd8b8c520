from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import Request

from hrdesk.constants.roles import ADMIN
from hrdesk.domain.remuneration import (
    RATING_FIELDS,
    payout_percentage,
    validate_rating,
    variable_amount,
    variable_score,
)
from hrdesk.errors import AppError
from hrdesk.repositories.remuneration_repository import PeerRatingRepository, VariableRemunerationRepository
from hrdesk.repositories.user_repository import UserRepository
from hrdesk.services.audit import write_audit_log
from hrdesk.services.remuneration_service import require_month_year
from hrdesk.services.roles import RoleResolver
from hrdesk.utils import display_name, safe_float, to_object_id

logger = logging.getLogger(__name__)

DEFAULT_MAX_REMUNERATION = 10000.0


async def can_manage_variable_pay(db, user: Dict[str, Any]) -> bool:
    if user.get("role") == ADMIN:
        return True
    return await RoleResolver(db).has_feature(user.get("role"), "remuneration.variable")


class PeerRatingService:
    def __init__(self, db) -> None:
        self.db = db
        self.repo = PeerRatingRepository(db)
        self.users = UserRepository(db)

    async def submit(
        self,
        rater: Dict[str, Any],
        ratee_id: Optional[str],
        month: Optional[int],
        year: Optional[int],
        rating: Any,
    ) -> Dict[str, Any]:
        month, year = require_month_year(month, year)
        if not ratee_id:
            raise AppError(400, "ratee_required", "Employee to rate is required")
        if rating is None or rating == "":
            raise AppError(400, "rating_required", "Rating is required")
        try:
            value = validate_rating(rating, "rating")
        except ValueError as exc:
            raise AppError(400, "invalid_rating", str(exc))

        oid = to_object_id(ratee_id, code="employee_not_found", message="Employee not found")
        if oid == rater["_id"]:
            raise AppError(400, "self_rating", "You cannot rate yourself")
        if not await self.users.get_by_id(oid, {"_id": 1}):
            raise AppError(404, "employee_not_found", "Employee not found")

        doc = await self.repo.upsert(rater["_id"], oid, month, year, value)
        logger.info("peer_rating_submitted rater=%s ratee=%s month=%s year=%s", rater["_id"], oid, month, year)
        return doc

    async def averages(self, month: Optional[int], year: Optional[int]) -> Dict[str, float]:
        month, year = require_month_year(month, year)
        return {str(k): v["average"] for k, v in (await self.repo.averages(month, year)).items()}


class VariablePayService:
    def __init__(self, db) -> None:
        self.db = db
        self.repo = VariableRemunerationRepository(db)
        self.ratings = PeerRatingRepository(db)

    async def save(
        self,
        actor: Dict[str, Any],
        month: Optional[int],
        year: Optional[int],
        rows: Optional[List[Dict[str, Any]]],
        request: Optional[Request] = None,
    ) -> List[Dict[str, Any]]:
        if not await can_manage_variable_pay(self.db, actor):
            raise AppError(403, "variable_pay_forbidden", "You do not have permission to manage variable remuneration")
        if not rows:
            raise AppError(400, "variable_pay_fields_required", "Variable remuneration data, month, and year are required")
        month, year = require_month_year(month, year)

        averages = await self.ratings.averages(month, year)
        saved = []
        for row in rows:
            employee_id = to_object_id(row.get("employee_id"), code="employee_not_found", message="Employee not found")
            peer = averages.get(employee_id, {}).get("average", row.get("peer_rating"))
            try:
                ratings = {f: validate_rating(row.get(f), f) for f in RATING_FIELDS}
                peer_rating = validate_rating(peer, "peer_rating")
            except ValueError as exc:
                raise AppError(400, "invalid_rating", str(exc))

            score = variable_score(ratings, peer_rating)
            pct = payout_percentage(score)
            max_remuneration = safe_float(row.get("max_remuneration"), DEFAULT_MAX_REMUNERATION)
            saved.append(
                await self.repo.upsert(
                    employee_id,
                    month,
                    year,
                    {
                        **ratings,
                        "peer_rating": peer_rating,
                        "total_score": score,
                        "percentage": pct,
                        "max_remuneration": max_remuneration,
                        "amount": variable_amount(max_remuneration, pct),
                    },
                )
            )

        logger.info("variable_pay_saved month=%s year=%s rows=%s", month, year, len(saved))
        await write_audit_log(
            self.db,
            actor=actor,
            request=request,
            action="variable_remuneration.saved",
            target_type="variable_remuneration",
            target_id=f"{year:04d}-{month:02d}",
            meta={"rows": len(saved)},
        )
        return saved

    async def get(self, actor: Dict[str, Any], month: Optional[int], year: Optional[int]) -> List[Dict[str, Any]]:
        if not await can_manage_variable_pay(self.db, actor):
            raise AppError(403, "variable_pay_forbidden", "You do not have permission to manage variable remuneration")
        month, year = require_month_year(month, year)
        out = []
        for record in await self.repo.for_month(month, year):
            employee = record.pop("employee")
            record["employee_name"] = display_name(employee)
            record["designation"] = (employee.get("employment") or {}).get("designation")
            out.append(record)
        return out
