from __future__ import annotations

from typing import Any, Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from hrdesk.repositories.base_repository import USER_PUBLIC_PROJECTION, get_collection
from hrdesk.utils import now_utc


class UserRepository:
    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db
        self._col = get_collection(db, "users")

    async def get_by_id(self, user_id: ObjectId, projection: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        return await self._col.find_one({"_id": user_id}, projection)

    async def get_by_login(self, login: str) -> Optional[Dict[str, Any]]:
        return await self._col.find_one({"$or": [{"username": login}, {"email": login}]})

    async def list_active(
        self,
        *,
        exclude_roles: Optional[List[str]] = None,
        projection: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        q: Dict[str, Any] = {"is_active": True}
        if exclude_roles:
            q["role"] = {"$nin": list(exclude_roles)}
        cursor = self._col.find(q, projection or USER_PUBLIC_PROJECTION).sort("username", 1)
        return await cursor.to_list(length=None)

    async def insert(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        now = now_utc()
        doc = {**doc, "created_at": now, "updated_at": now}
        res = await self._col.insert_one(doc)
        doc["_id"] = res.inserted_id
        return doc

    async def update(self, user_id: ObjectId, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return await self._col.find_one_and_update(
            {"_id": user_id},
            {"$set": {**fields, "updated_at": now_utc()}},
            return_document=ReturnDocument.AFTER,
        )

    async def adjust_leave_balance(
        self,
        user_id: ObjectId,
        delta: Dict[str, float],
        guard: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        """Apply a `$inc` to leave_balance, optionally guarded by a filter.

        Returns the updated user or None when the guard did not match.
        """

        q: Dict[str, Any] = {"_id": user_id}
        if guard:
            q.update(guard)
        inc = {f"leave_balance.{k}": v for k, v in delta.items()}
        return await self._col.find_one_and_update(
            q,
            {"$inc": inc, "$set": {"updated_at": now_utc()}},
            return_document=ReturnDocument.AFTER,
        )

    async def set_missing_leave_balance(self, user_id: ObjectId, defaults: Dict[str, float]) -> None:
        """Set each counter only where the user document has none yet."""
        for field, value in defaults.items():
            path = f"leave_balance.{field}"
            await self._col.update_one({"_id": user_id, path: {"$exists": False}}, {"$set": {path: value}})
