from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from fastapi.responses import FileResponse

from hrdesk.auth import get_current_user
from hrdesk.db import get_db
from hrdesk.schemas import ForwardIn
from hrdesk.services.efiling_service import EFilingService
from hrdesk.utils import serialize_doc

router = APIRouter(prefix="/api/efiling", tags=["efiling"])


@router.post("/send", status_code=201)
async def send_file(
    file: Optional[UploadFile] = File(None),
    recipient_id: Optional[str] = Form(None),
    note: Optional[str] = Form(None),
    db=Depends(get_db),
    user=Depends(get_current_user),
):
    transfer = await EFilingService(db).send(user, file, recipient_id, note)
    return {"success": True, "message": "File sent successfully", "transfer": serialize_doc(transfer)}


@router.post("/forward", status_code=201)
async def forward_file(payload: ForwardIn, db=Depends(get_db), user=Depends(get_current_user)):
    transfer = await EFilingService(db).forward(user, payload.original_transfer_id, payload.recipient_id, payload.note)
    return {"success": True, "message": "File forwarded successfully", "transfer": serialize_doc(transfer)}


@router.get("/inbox")
async def inbox(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    db=Depends(get_db),
    user=Depends(get_current_user),
):
    result = await EFilingService(db).inbox(user, page, limit)
    return {"success": True, **serialize_doc(result)}


@router.get("/sent")
async def sent(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    db=Depends(get_db),
    user=Depends(get_current_user),
):
    result = await EFilingService(db).sent(user, page, limit)
    return {"success": True, **serialize_doc(result)}


@router.get("/history")
async def history(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    filter: Optional[Literal["all", "sent", "received"]] = None,
    db=Depends(get_db),
    user=Depends(get_current_user),
):
    result = await EFilingService(db).history(user, page, limit, filter)
    return {"success": True, **serialize_doc(result)}


@router.get("/track/{transfer_id}")
async def track(transfer_id: str, db=Depends(get_db), user=Depends(get_current_user)):
    thread = await EFilingService(db).track(user, transfer_id)
    return {"success": True, "tracking": serialize_doc(thread)}


@router.get("/unread-count")
async def unread_count(db=Depends(get_db), user=Depends(get_current_user)):
    return {"success": True, "count": await EFilingService(db).unread_count(user)}


@router.get("/download/{transfer_id}")
async def download(transfer_id: str, db=Depends(get_db), user=Depends(get_current_user)):
    transfer = await EFilingService(db).open_for_download(user, transfer_id)
    return FileResponse(
        transfer["file_path"],
        media_type=transfer.get("file_type") or "application/octet-stream",
        filename=transfer.get("original_name") or transfer.get("file_name"),
    )


@router.patch("/{transfer_id}/read")
async def mark_read(transfer_id: str, db=Depends(get_db), user=Depends(get_current_user)):
    transfer = await EFilingService(db).mark_read(user, transfer_id)
    return {"success": True, "message": "Marked as read", "transfer": serialize_doc(transfer)}


@router.delete("/{transfer_id}")
async def delete_transfer(transfer_id: str, request: Request, db=Depends(get_db), user=Depends(get_current_user)):
    await EFilingService(db).delete(user, transfer_id, request=request)
    return {"success": True, "message": "File deleted successfully"}
