from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from pymongo.errors import DuplicateKeyError

from hrdesk.auth import get_current_user, hash_password, require_roles
from hrdesk.constants.roles import ADMIN, CEO
from hrdesk.db import get_db
from hrdesk.domain.leave_state_machine import DEFAULT_LEAVE_BALANCE
from hrdesk.errors import AppError
from hrdesk.repositories.user_repository import UserRepository
from hrdesk.schemas import UserCreateIn, UserUpdateIn
from hrdesk.services.audit import write_audit_log
from hrdesk.services.roles import normalize_role, validate_role_field
from hrdesk.utils import serialize_doc, to_object_id

router = APIRouter(prefix="/api/users", tags=["users"])

UserAdminDep = Depends(require_roles([ADMIN, CEO]))


@router.get("")
async def list_users(db=Depends(get_db), user=Depends(get_current_user)):
    """Active users for approver and recipient pickers."""
    users = await UserRepository(db).list_active()
    return {"success": True, "users": serialize_doc(users)}


@router.get("/me")
async def my_profile(user=Depends(get_current_user)):
    return {"success": True, "user": serialize_doc(user)}


@router.post("", status_code=201, dependencies=[Depends(validate_role_field)])
async def create_user(payload: UserCreateIn, request: Request, db=Depends(get_db), actor=UserAdminDep):
    doc: dict[str, Any] = {
        "username": payload.username.strip(),
        "password_hash": hash_password(payload.password),
        "role": normalize_role(payload.role),
        "is_active": True,
        "profile": payload.profile.model_dump(exclude_none=True),
        "employment": payload.employment.model_dump(exclude_none=True),
        "documents": payload.documents,
        "bank_details": payload.bank_details,
        "leave_balance": dict(DEFAULT_LEAVE_BALANCE),
    }
    if payload.email:
        doc["email"] = payload.email.strip().lower()

    try:
        created = await UserRepository(db).insert(doc)
    except DuplicateKeyError:
        raise AppError(400, "user_exists", "A user with this username or email already exists")

    await write_audit_log(
        db,
        actor=actor,
        request=request,
        action="user.created",
        target_type="user",
        target_id=str(created["_id"]),
        after=created,
    )
    return {"success": True, "user": serialize_doc(created)}


@router.put("/{user_id}", dependencies=[Depends(validate_role_field)])
async def update_user(user_id: str, payload: UserUpdateIn, request: Request, db=Depends(get_db), actor=UserAdminDep):
    oid = to_object_id(user_id, code="user_not_found", message="User not found")
    repo = UserRepository(db)
    before = await repo.get_by_id(oid)
    if not before:
        raise AppError(404, "user_not_found", "User not found")

    fields: dict[str, Any] = {}
    for key in ("email", "role", "is_active", "documents", "bank_details"):
        value = getattr(payload, key)
        if value is not None:
            fields[key] = value
    if "role" in fields:
        fields["role"] = normalize_role(fields["role"])
    # nested models are merged field by field
    if payload.profile is not None:
        for k, v in payload.profile.model_dump(exclude_none=True).items():
            fields[f"profile.{k}"] = v
    if payload.employment is not None:
        for k, v in payload.employment.model_dump(exclude_none=True).items():
            fields[f"employment.{k}"] = v
    if payload.leave_balance is not None:
        for k, v in payload.leave_balance.items():
            if k not in DEFAULT_LEAVE_BALANCE:
                raise AppError(400, "invalid_leave_balance", f"Unknown leave balance field: {k}")
            fields[f"leave_balance.{k}"] = v

    if not fields:
        raise HTTPException(status_code=400, detail="No fields to update")

    try:
        updated = await repo.update(oid, fields)
    except DuplicateKeyError:
        raise AppError(400, "user_exists", "A user with this username or email already exists")

    await write_audit_log(
        db,
        actor=actor,
        request=request,
        action="user.updated",
        target_type="user",
        target_id=user_id,
        before=before,
        after=updated,
    )
    return {"success": True, "user": serialize_doc(updated)}
