from __future__ import annotations

from typing import Any, Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from hrdesk.repositories.base_repository import get_collection
from hrdesk.utils import now_utc

_USER_FIELDS = {"username": 1, "profile": 1, "employment.designation": 1, "leave_balance": 1, "role": 1}


class LeaveRepository:
    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db
        self._col = get_collection(db, "leaves")

    async def insert(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        now = now_utc()
        doc = {**doc, "created_at": now, "updated_at": now}
        res = await self._col.insert_one(doc)
        doc["_id"] = res.inserted_id
        return doc

    async def get_by_id(self, leave_id: ObjectId) -> Optional[Dict[str, Any]]:
        return await self._col.find_one({"_id": leave_id})

    async def find(self, query: Dict[str, Any]) -> List[Dict[str, Any]]:
        cursor = self._col.find(query).sort("applied_on", -1)
        return await cursor.to_list(length=None)

    async def transition(
        self,
        leave_id: ObjectId,
        from_status: str,
        fields: Dict[str, Any],
    ) -> Optional[Dict[str, Any]]:
        """Conditionally move a leave out of `from_status`.

        Returns None when another request already moved it.
        """

        return await self._col.find_one_and_update(
            {"_id": leave_id, "status": from_status},
            {"$set": {**fields, "updated_at": now_utc()}},
            return_document=ReturnDocument.AFTER,
        )

    async def set_fields(self, leave_id: ObjectId, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return await self._col.find_one_and_update(
            {"_id": leave_id},
            {"$set": {**fields, "updated_at": now_utc()}},
            return_document=ReturnDocument.AFTER,
        )

    async def populate(self, leaves: List[Dict[str, Any]], fields: Dict[str, str]) -> List[Dict[str, Any]]:
        """Attach a small user projection for each id field under `fields[field]`."""
        ids = {leave[f] for leave in leaves for f in fields if isinstance(leave.get(f), ObjectId)}
        users = await self._db.users.find({"_id": {"$in": list(ids)}}, _USER_FIELDS).to_list(length=None)
        by_id = {u["_id"]: u for u in users}
        out: List[Dict[str, Any]] = []
        for leave in leaves:
            item = dict(leave)
            for f, key in fields.items():
                ref = leave.get(f)
                item[key] = by_id.get(ref) if isinstance(ref, ObjectId) else None
            out.append(item)
        return out
