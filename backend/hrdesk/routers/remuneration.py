from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request

from hrdesk.auth import get_current_user, require_roles
from hrdesk.constants.roles import MANAGEMENT_ROLES
from hrdesk.db import get_db
from hrdesk.schemas import RemunerationSaveIn
from hrdesk.services.remuneration_service import RemunerationService
from hrdesk.utils import serialize_doc

router = APIRouter(prefix="/api/remuneration", tags=["remuneration"])

ManagementDep = Depends(require_roles(MANAGEMENT_ROLES))


@router.get("/attendance-summary", dependencies=[ManagementDep])
async def attendance_summary(month: Optional[int] = None, year: Optional[int] = None, db=Depends(get_db)):
    result = await RemunerationService(db).attendance_summary(month, year)
    return {"success": True, **serialize_doc(result)}


@router.post("/save")
async def save_remuneration(payload: RemunerationSaveIn, request: Request, db=Depends(get_db), user=ManagementDep):
    rows = [r.model_dump() for r in payload.remuneration_data]
    saved = await RemunerationService(db).save(user, payload.month, payload.year, rows, request)
    return {"success": True, "message": "Remuneration data saved successfully", "saved": saved}


@router.get("/get", dependencies=[ManagementDep])
async def get_remuneration(month: Optional[int] = None, year: Optional[int] = None, db=Depends(get_db)):
    result = await RemunerationService(db).get(month, year)
    return {"success": True, **serialize_doc(result)}


@router.get("/salary")
async def salary(
    month: Optional[int] = None,
    year: Optional[int] = None,
    db=Depends(get_db),
    user=Depends(get_current_user),
):
    result = await RemunerationService(db).salary(user, month, year)
    return {"success": True, **serialize_doc(result)}
