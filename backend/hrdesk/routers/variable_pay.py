from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request

from hrdesk.auth import get_current_user
from hrdesk.db import get_db
from hrdesk.schemas import PeerRatingIn, VariableSaveIn
from hrdesk.services.variable_pay_service import PeerRatingService, VariablePayService
from hrdesk.utils import serialize_doc

variable_router = APIRouter(prefix="/api/variable-remuneration", tags=["variable-remuneration"])
peer_router = APIRouter(prefix="/api/peer-rating", tags=["peer-rating"])


@variable_router.post("/save")
async def save_variable(payload: VariableSaveIn, request: Request, db=Depends(get_db), user=Depends(get_current_user)):
    rows = [r.model_dump() for r in payload.remuneration_data]
    saved = await VariablePayService(db).save(user, payload.month, payload.year, rows, request)
    return {"success": True, "message": "Variable remuneration saved successfully", "records": serialize_doc(saved)}


@variable_router.get("/get")
async def get_variable(
    month: Optional[int] = None,
    year: Optional[int] = None,
    db=Depends(get_db),
    user=Depends(get_current_user),
):
    records = await VariablePayService(db).get(user, month, year)
    return {"success": True, "records": serialize_doc(records)}


@peer_router.post("/submit")
async def submit_rating(payload: PeerRatingIn, db=Depends(get_db), user=Depends(get_current_user)):
    doc = await PeerRatingService(db).submit(user, payload.ratee_id, payload.month, payload.year, payload.rating)
    return {"success": True, "message": "Rating submitted successfully", "rating": serialize_doc(doc)}


@peer_router.get("/averages")
async def averages(
    month: Optional[int] = None,
    year: Optional[int] = None,
    db=Depends(get_db),
    user=Depends(get_current_user),
):
    return {"success": True, "averages": await PeerRatingService(db).averages(month, year)}
