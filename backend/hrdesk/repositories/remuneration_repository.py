from __future__ import annotations

from typing import Any, Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from hrdesk.repositories.base_repository import get_collection
from hrdesk.utils import now_utc

# Populated onto payroll rows; PAN and bank details feed the salary sheet
PAYROLL_USER_PROJECTION: Dict[str, Any] = {
    "username": 1,
    "profile": 1,
    "role": 1,
    "employment": 1,
    "documents": 1,
    "bank_details": 1,
}


class _MonthlyRepository:
    """One row per (employee_id, month, year), written by upsert."""

    collection_name = ""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db
        self._col = get_collection(db, self.collection_name)

    async def upsert(self, employee_id: ObjectId, month: int, year: int, fields: Dict[str, Any]) -> Dict[str, Any]:
        now = now_utc()
        return await self._col.find_one_and_update(
            {"employee_id": employee_id, "month": month, "year": year},
            {"$set": {**fields, "updated_at": now}, "$setOnInsert": {"created_at": now}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )

    async def for_month(self, month: int, year: int, employee_id: Optional[ObjectId] = None) -> List[Dict[str, Any]]:
        q: Dict[str, Any] = {"month": month, "year": year}
        if employee_id is not None:
            q["employee_id"] = employee_id
        pipeline: List[Dict[str, Any]] = [
            {"$match": q},
            {
                "$lookup": {
                    "from": "users",
                    "localField": "employee_id",
                    "foreignField": "_id",
                    "pipeline": [{"$project": PAYROLL_USER_PROJECTION}],
                    "as": "employee",
                }
            },
            {"$unwind": "$employee"},
            {"$sort": {"employee.username": 1}},
        ]
        return await self._col.aggregate(pipeline).to_list(length=None)


class RemunerationRepository(_MonthlyRepository):
    collection_name = "remunerations"


class VariableRemunerationRepository(_MonthlyRepository):
    collection_name = "variable_remunerations"


class PeerRatingRepository:
    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db
        self._col = get_collection(db, "peer_ratings")

    async def upsert(self, rater_id: ObjectId, ratee_id: ObjectId, month: int, year: int, rating: float) -> Dict[str, Any]:
        now = now_utc()
        return await self._col.find_one_and_update(
            {"rater_id": rater_id, "ratee_id": ratee_id, "month": month, "year": year},
            {"$set": {"rating": rating, "updated_at": now}, "$setOnInsert": {"created_at": now}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )

    async def averages(self, month: int, year: int) -> Dict[ObjectId, Dict[str, Any]]:
        pipeline = [
            {"$match": {"month": month, "year": year}},
            {"$group": {"_id": "$ratee_id", "average": {"$avg": "$rating"}, "count": {"$sum": 1}}},
        ]
        rows = await self._col.aggregate(pipeline).to_list(length=None)
        return {r["_id"]: {"average": round(r["average"], 2), "count": r["count"]} for r in rows}
