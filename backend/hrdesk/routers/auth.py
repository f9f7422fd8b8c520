from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from hrdesk.auth import create_access_token, get_current_user, verify_password
from hrdesk.db import get_db
from hrdesk.repositories.user_repository import UserRepository
from hrdesk.schemas import AuthUser, LoginRequest, LoginResponse
from hrdesk.utils import display_name, serialize_doc

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=LoginResponse)
async def login(payload: LoginRequest, db=Depends(get_db)):
    user = await UserRepository(db).get_by_login(payload.login.strip())
    if not user or not user.get("is_active", True):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    if not verify_password(payload.password, user.get("password_hash") or ""):
        logger.warning("login_failed login=%s", payload.login)
        raise HTTPException(status_code=401, detail="Invalid credentials")

    token = create_access_token(user_id=str(user["_id"]), role=user.get("role") or "")
    return LoginResponse(
        access_token=token,
        user=AuthUser(
            id=str(user["_id"]),
            username=user["username"],
            email=user.get("email"),
            name=display_name(user),
            role=user.get("role") or "",
        ),
    )


@router.get("/me")
async def me(user=Depends(get_current_user)):
    return {"success": True, "user": serialize_doc(user)}
