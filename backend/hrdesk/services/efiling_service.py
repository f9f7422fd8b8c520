from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from bson import ObjectId
from fastapi import Request, UploadFile

from hrdesk.config import efiling_delete_window_hours
from hrdesk.constants.roles import ADMIN
from hrdesk.errors import AppError
from hrdesk.repositories.file_transfer_repository import FileTransferRepository
from hrdesk.repositories.user_repository import UserRepository
from hrdesk.services.audit import write_audit_log
from hrdesk.services.file_store import LocalFileStore
from hrdesk.utils import ensure_aware, now_utc, paginate, pagination_meta, to_object_id

logger = logging.getLogger(__name__)

_NOT_FOUND = ("transfer_not_found", "File not found")


def _participant_query(user_id: ObjectId) -> Dict[str, Any]:
    return {"$or": [{"sender_id": user_id}, {"recipient_id": user_id}]}


def is_participant(transfer: Dict[str, Any], user_id: ObjectId) -> bool:
    return transfer.get("sender_id") == user_id or transfer.get("recipient_id") == user_id


class EFilingService:
    """Directed file sends, forwards and the thread that links them."""

    def __init__(self, db, store: Optional[LocalFileStore] = None) -> None:
        self.db = db
        self.repo = FileTransferRepository(db)
        self.users = UserRepository(db)
        self.store = store or LocalFileStore()

    async def _recipient(self, recipient_id: Optional[str], sender: Dict[str, Any]) -> Dict[str, Any]:
        if not recipient_id:
            raise AppError(400, "recipient_required", "Recipient is required")
        oid = to_object_id(recipient_id, code="recipient_not_found", message="Recipient not found")
        recipient = await self.users.get_by_id(oid, {"username": 1, "is_active": 1})
        if not recipient:
            raise AppError(404, "recipient_not_found", "Recipient not found")
        if oid == sender["_id"]:
            raise AppError(400, "self_send", "Cannot send file to yourself")
        return recipient

    async def send(
        self,
        sender: Dict[str, Any],
        upload: Optional[UploadFile],
        recipient_id: Optional[str],
        note: Optional[str] = None,
    ) -> Dict[str, Any]:
        if upload is None or not upload.filename:
            raise AppError(400, "file_required", "No file uploaded")

        stored = await self.store.save(upload)
        try:
            recipient = await self._recipient(recipient_id, sender)
            transfer_id = ObjectId()
            transfer = await self.repo.insert(
                {
                    "_id": transfer_id,
                    "sender_id": sender["_id"],
                    "recipient_id": recipient["_id"],
                    "file_name": stored.file_name,
                    "original_name": stored.original_name,
                    "file_type": stored.content_type,
                    "file_size": stored.size,
                    "file_path": stored.path,
                    "note": note or "",
                    "is_forwarded": False,
                    "parent_transfer_id": None,
                    # a new send starts its own thread
                    "thread_id": transfer_id,
                    "is_read": False,
                    "read_at": None,
                    "status": "sent",
                }
            )
        except Exception:
            self.store.delete(stored.path)
            raise

        logger.info("efiling_sent transfer=%s from=%s to=%s size=%s", transfer_id, sender["_id"], recipient["_id"], stored.size)
        return (await self.repo.populate([transfer]))[0]

    async def forward(
        self,
        user: Dict[str, Any],
        original_transfer_id: Optional[str],
        recipient_id: Optional[str],
        note: Optional[str] = None,
    ) -> Dict[str, Any]:
        if not original_transfer_id or not recipient_id:
            raise AppError(400, "forward_fields_required", "Original file and recipient are required")

        oid = to_object_id(original_transfer_id, code="transfer_not_found", message="Original file not found")
        original = await self.repo.get_by_id(oid)
        if not original:
            raise AppError(404, "transfer_not_found", "Original file not found")
        if not is_participant(original, user["_id"]):
            raise AppError(403, "forward_forbidden", "Unauthorized to forward this file")

        recipient = await self._recipient(recipient_id, user)
        transfer = await self.repo.insert(
            {
                "sender_id": user["_id"],
                "recipient_id": recipient["_id"],
                "file_name": original["file_name"],
                "original_name": original["original_name"],
                "file_type": original["file_type"],
                "file_size": original["file_size"],
                "file_path": original["file_path"],
                "note": note or "",
                "is_forwarded": True,
                "parent_transfer_id": original["_id"],
                "thread_id": original.get("thread_id") or original["_id"],
                "is_read": False,
                "read_at": None,
                "status": "sent",
            }
        )
        logger.info("efiling_forwarded transfer=%s parent=%s thread=%s", transfer["_id"], original["_id"], transfer["thread_id"])
        return (await self.repo.populate([transfer]))[0]

    async def _page(self, query: Dict[str, Any], page: Optional[int], limit: Optional[int]) -> Dict[str, Any]:
        p, lim, skip = paginate(page, limit)
        transfers = await self.repo.populate(await self.repo.page(query, skip, lim))
        total = await self.repo.count(query)
        return {"transfers": transfers, "pagination": pagination_meta(p, lim, total)}

    async def inbox(self, user: Dict[str, Any], page: Optional[int], limit: Optional[int]) -> Dict[str, Any]:
        out = await self._page({"recipient_id": user["_id"]}, page, limit)
        out["unread_count"] = await self.unread_count(user)
        return out

    async def sent(self, user: Dict[str, Any], page: Optional[int], limit: Optional[int]) -> Dict[str, Any]:
        return await self._page(_participant_query(user["_id"]), page, limit)

    async def history(
        self,
        user: Dict[str, Any],
        page: Optional[int],
        limit: Optional[int],
        direction: Optional[str] = None,
    ) -> Dict[str, Any]:
        if direction == "sent":
            query: Dict[str, Any] = {"sender_id": user["_id"]}
        elif direction == "received":
            query = {"recipient_id": user["_id"]}
        else:
            query = _participant_query(user["_id"])
        return await self._page(query, page, limit)

    async def track(self, user: Dict[str, Any], transfer_id: str) -> List[Dict[str, Any]]:
        oid = to_object_id(transfer_id, code=_NOT_FOUND[0], message=_NOT_FOUND[1])
        transfer = await self.repo.get_by_id(oid)
        if not transfer:
            raise AppError(404, *_NOT_FOUND)

        thread = await self.repo.thread(transfer.get("thread_id") or transfer["_id"])
        if not any(is_participant(t, user["_id"]) for t in thread) and user.get("role") != ADMIN:
            raise AppError(403, "track_forbidden", "Unauthorized to view tracking")
        return await self.repo.populate(thread)

    async def unread_count(self, user: Dict[str, Any]) -> int:
        return await self.repo.count({"recipient_id": user["_id"], "is_read": False})

    async def mark_read(self, user: Dict[str, Any], transfer_id: str) -> Dict[str, Any]:
        oid = to_object_id(transfer_id, code=_NOT_FOUND[0], message=_NOT_FOUND[1])
        transfer = await self.repo.get_by_id(oid, {"recipient_id": user["_id"]})
        if not transfer:
            raise AppError(404, *_NOT_FOUND)
        if not transfer.get("is_read"):
            transfer = await self.repo.mark_read(oid) or await self.repo.get_by_id(oid)
        return transfer

    async def open_for_download(self, user: Dict[str, Any], transfer_id: str) -> Dict[str, Any]:
        oid = to_object_id(transfer_id, code=_NOT_FOUND[0], message=_NOT_FOUND[1])
        transfer = await self.repo.get_by_id(oid, _participant_query(user["_id"]))
        if not transfer:
            raise AppError(404, *_NOT_FOUND)

        if transfer.get("recipient_id") == user["_id"] and not transfer.get("is_read"):
            transfer = await self.repo.mark_read(oid) or transfer

        if not self.store.exists(transfer.get("file_path")):
            raise AppError(404, "blob_missing", "File not found on server")
        return transfer

    async def delete(
        self,
        user: Dict[str, Any],
        transfer_id: str,
        *,
        now: Optional[datetime] = None,
        request: Optional[Request] = None,
    ) -> None:
        oid = to_object_id(transfer_id, code="transfer_not_found", message="File not found or unauthorized")
        transfer = await self.repo.get_by_id(oid, {"sender_id": user["_id"]})
        if not transfer:
            raise AppError(404, "transfer_not_found", "File not found or unauthorized")

        window = timedelta(hours=efiling_delete_window_hours())
        age = (now or now_utc()) - ensure_aware(transfer["created_at"])
        if age > window:
            raise AppError(
                400,
                "delete_window_elapsed",
                f"Cannot delete files older than {efiling_delete_window_hours()} hours",
            )

        if not await self.repo.delete(oid):
            raise AppError(404, "transfer_not_found", "File not found or unauthorized")

        # forwards point at the same blob
        if await self.repo.count_references(transfer["file_path"]) == 0:
            self.store.delete(transfer["file_path"])

        logger.info("efiling_deleted transfer=%s by=%s", oid, user["_id"])
        await write_audit_log(
            self.db,
            actor=user,
            request=request,
            action="efiling.deleted",
            target_type="file_transfer",
            target_id=str(oid),
            before=transfer,
            after=None,
            meta={"original_name": transfer.get("original_name")},
        )
