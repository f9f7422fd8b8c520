from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request

from hrdesk.auth import get_current_user, require_roles
from hrdesk.constants.roles import LEAVE_ADMIN_ROLES
from hrdesk.db import get_db
from hrdesk.schemas import LeaveApplyIn, LeaveReviewIn
from hrdesk.services.leave_service import LeaveService
from hrdesk.utils import serialize_doc

router = APIRouter(prefix="/api/leave", tags=["leave"])


@router.post("/apply", status_code=201)
async def apply_leave(payload: LeaveApplyIn, db=Depends(get_db), user=Depends(get_current_user)):
    leave = await LeaveService(db).apply(user, payload.model_dump())
    return {"success": True, "message": "Leave application submitted successfully", "leave": serialize_doc(leave)}


@router.get("/my")
async def my_leaves(
    status: Optional[str] = None,
    year: Optional[int] = None,
    db=Depends(get_db),
    user=Depends(get_current_user),
):
    result = await LeaveService(db).list_mine(user, status, year)
    return {"success": True, **serialize_doc(result)}


@router.get("/all", dependencies=[Depends(require_roles(LEAVE_ADMIN_ROLES))])
async def all_leaves(status: Optional[str] = None, db=Depends(get_db)):
    leaves = await LeaveService(db).list_all(status)
    return {"success": True, "leaves": serialize_doc(leaves)}


@router.get("/pending")
async def pending_leaves(db=Depends(get_db), user=Depends(get_current_user)):
    leaves = await LeaveService(db).list_pending(user)
    return {"success": True, "leaves": serialize_doc(leaves)}


@router.put("/{leave_id}/approve")
async def approve_leave(
    leave_id: str,
    request: Request,
    payload: Optional[LeaveReviewIn] = None,
    db=Depends(get_db),
    user=Depends(get_current_user),
):
    remarks = payload.remarks if payload else None
    leave = await LeaveService(db).approve(leave_id, user, remarks, request)
    return {"success": True, "message": "Leave approved successfully", "leave": serialize_doc(leave)}


@router.put("/{leave_id}/reject")
async def reject_leave(
    leave_id: str,
    request: Request,
    payload: Optional[LeaveReviewIn] = None,
    db=Depends(get_db),
    user=Depends(get_current_user),
):
    remarks = payload.remarks if payload else None
    leave = await LeaveService(db).reject(leave_id, user, remarks, request)
    return {"success": True, "message": "Leave rejected", "leave": serialize_doc(leave)}


@router.get("/{leave_id}")
async def get_leave(leave_id: str, db=Depends(get_db), user=Depends(get_current_user)):
    leave = await LeaveService(db).get(leave_id)
    return {"success": True, "leave": serialize_doc(leave)}
