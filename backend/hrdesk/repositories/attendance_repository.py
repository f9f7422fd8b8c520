from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from hrdesk.repositories.base_repository import get_collection, user_lookup_stages
from hrdesk.utils import now_utc


class AttendanceRepository:
    """One document per (user_id, date); `date` is a local YYYY-MM-DD string."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db
        self._col = get_collection(db, "attendance")

    async def get_for_day(self, user_id: ObjectId, day: date) -> Optional[Dict[str, Any]]:
        return await self._col.find_one({"user_id": user_id, "date": day.isoformat()})

    async def insert(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        now = now_utc()
        doc = {**doc, "created_at": now, "updated_at": now}
        res = await self._col.insert_one(doc)
        doc["_id"] = res.inserted_id
        return doc

    async def update(
        self,
        attendance_id: ObjectId,
        fields: Dict[str, Any],
        guard: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        q: Dict[str, Any] = {"_id": attendance_id}
        if guard:
            q.update(guard)
        return await self._col.find_one_and_update(
            q,
            {"$set": {**fields, "updated_at": now_utc()}},
            return_document=ReturnDocument.AFTER,
        )

    async def mark_on_leave(self, user_id: ObjectId, day: date, remarks: str) -> None:
        """Overwrite whatever is recorded for the day with an on-leave row."""
        now = now_utc()
        await self._col.update_one(
            {"user_id": user_id, "date": day.isoformat()},
            {
                "$set": {
                    "user_id": user_id,
                    "date": day.isoformat(),
                    "status": "on-leave",
                    "remarks": remarks,
                    "updated_at": now,
                },
                "$setOnInsert": {
                    "working_hours": 0,
                    "is_late": False,
                    "late_by": 0,
                    "created_at": now,
                },
            },
            upsert=True,
        )

    async def list_with_user(
        self,
        match: Dict[str, Any],
        sort: Dict[str, int],
        *,
        preserve_missing_user: bool = False,
    ) -> List[Dict[str, Any]]:
        pipeline: List[Dict[str, Any]] = [{"$match": match}]
        pipeline.extend(user_lookup_stages("user_id", preserve_missing=preserve_missing_user))
        pipeline.append({"$sort": sort})
        cursor = self._col.aggregate(pipeline)
        return await cursor.to_list(length=None)

    async def list_for_range(self, start: date, end: date) -> List[Dict[str, Any]]:
        cursor = self._col.find(
            {"date": {"$gte": start.isoformat(), "$lte": end.isoformat()}},
            {"user_id": 1, "date": 1, "status": 1},
        )
        return await cursor.to_list(length=None)
