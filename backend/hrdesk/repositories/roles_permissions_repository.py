from __future__ import annotations

from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from hrdesk.repositories.base_repository import get_collection
from hrdesk.utils import now_utc


class RolesPermissionsRepository:
    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db
        self._col = get_collection(db, "roles_permissions")

    async def get_by_role(self, role_id: str) -> Optional[Dict[str, Any]]:
        return await self._col.find_one({"role_id": role_id.upper()})

    async def list_active_role_ids(self) -> List[str]:
        cursor = self._col.find({"is_active": True}, {"role_id": 1})
        docs = await cursor.to_list(length=None)
        return [d["role_id"] for d in docs if d.get("role_id")]

    async def list_roles(self, include_inactive: bool = False) -> List[Dict[str, Any]]:
        q: Dict[str, Any] = {} if include_inactive else {"is_active": True}
        cursor = self._col.find(q).sort([("hierarchy_level", 1), ("role_id", 1)])
        return await cursor.to_list(length=None)

    async def insert_role(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        now = now_utc()
        doc = {**doc, "role_id": doc["role_id"].upper(), "created_at": now, "updated_at": now}
        res = await self._col.insert_one(doc)
        doc["_id"] = res.inserted_id
        return doc

    async def ensure_role(self, definition: Dict[str, Any]) -> bool:
        """Insert the definition when the role is missing. Returns True if inserted."""
        now = now_utc()
        role_id = definition["role_id"].upper()
        res = await self._col.update_one(
            {"role_id": role_id},
            {"$setOnInsert": {**definition, "role_id": role_id, "created_at": now, "updated_at": now}},
            upsert=True,
        )
        return res.upserted_id is not None

    async def update_role(self, role_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return await self._col.find_one_and_update(
            {"role_id": role_id.upper()},
            {"$set": {**fields, "updated_at": now_utc()}},
            return_document=ReturnDocument.AFTER,
        )

    async def delete_role(self, role_id: str) -> bool:
        res = await self._col.delete_one({"role_id": role_id.upper(), "is_system_role": {"$ne": True}})
        return res.deleted_count == 1
