from __future__ import annotations

from typing import Any, Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from hrdesk.repositories.base_repository import get_collection
from hrdesk.utils import now_utc

_PARTY_FIELDS = {"username": 1, "profile": 1, "employment.designation": 1, "role": 1}


class FileTransferRepository:
    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db
        self._col = get_collection(db, "file_transfers")

    async def insert(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        doc = {**doc}
        doc.setdefault("_id", ObjectId())
        doc.setdefault("created_at", now_utc())
        doc["updated_at"] = doc["created_at"]
        await self._col.insert_one(doc)
        return doc

    async def get_by_id(self, transfer_id: ObjectId, extra: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        q: Dict[str, Any] = {"_id": transfer_id}
        if extra:
            q.update(extra)
        return await self._col.find_one(q)

    async def page(self, query: Dict[str, Any], skip: int, limit: int) -> List[Dict[str, Any]]:
        cursor = self._col.find(query).sort("created_at", -1).skip(skip).limit(limit)
        return await cursor.to_list(length=limit)

    async def count(self, query: Dict[str, Any]) -> int:
        return await self._col.count_documents(query)

    async def thread(self, thread_id: ObjectId) -> List[Dict[str, Any]]:
        cursor = self._col.find({"$or": [{"thread_id": thread_id}, {"_id": thread_id}]}).sort(
            [("created_at", 1), ("_id", 1)]
        )
        return await cursor.to_list(length=None)

    async def mark_read(self, transfer_id: ObjectId) -> Optional[Dict[str, Any]]:
        """Flip is_read once; returns None when it was already read."""
        now = now_utc()
        return await self._col.find_one_and_update(
            {"_id": transfer_id, "is_read": False},
            {"$set": {"is_read": True, "status": "read", "read_at": now, "updated_at": now}},
            return_document=ReturnDocument.AFTER,
        )

    async def delete(self, transfer_id: ObjectId) -> bool:
        res = await self._col.delete_one({"_id": transfer_id})
        return res.deleted_count == 1

    async def count_references(self, file_path: str) -> int:
        return await self._col.count_documents({"file_path": file_path})

    async def populate(self, transfers: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        ids = set()
        for t in transfers:
            for f in ("sender_id", "recipient_id"):
                if isinstance(t.get(f), ObjectId):
                    ids.add(t[f])
        users = await self._db.users.find({"_id": {"$in": list(ids)}}, _PARTY_FIELDS).to_list(length=None)
        by_id = {u["_id"]: u for u in users}
        out: List[Dict[str, Any]] = []
        for t in transfers:
            item = dict(t)
            item["sender"] = by_id.get(t.get("sender_id"))
            item["recipient"] = by_id.get(t.get("recipient_id"))
            out.append(item)
        return out
