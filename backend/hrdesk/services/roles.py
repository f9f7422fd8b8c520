"""Two-tier role lookup.

Valid roles = static SYSTEM_ROLES ∪ active roles in `roles_permissions`.
The dynamic tier is re-queried on every call because custom roles can be
added at runtime. Every read degrades to the static tier when the store
fails; nothing in here raises on a database error.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import Depends, Request

from hrdesk.constants.roles import SYSTEM_ROLES, build_role_definition
from hrdesk.db import get_db
from hrdesk.errors import AppError
from hrdesk.repositories.roles_permissions_repository import RolesPermissionsRepository

logger = logging.getLogger(__name__)


def normalize_role(role: Optional[str]) -> str:
    """Role ids are stored upper-case."""
    return (role or "").strip().upper()


def is_system_role(role: Any) -> bool:
    """Synchronous data-entry check; custom roles are not considered."""
    return isinstance(role, str) and role in SYSTEM_ROLES


def _empty_permissions(role_id: str) -> Dict[str, Any]:
    return {"role_id": role_id, "component_access": [], "feature_access": [], "source": "default"}


def _fallback_permissions(role_id: str) -> Dict[str, Any]:
    if role_id in SYSTEM_ROLES:
        definition = build_role_definition(role_id)
        return {
            "role_id": role_id,
            "component_access": definition["component_access"],
            "feature_access": definition["feature_access"],
            "source": "fallback",
        }
    return _empty_permissions(role_id)


class RoleResolver:
    def __init__(self, db) -> None:
        self.repo = RolesPermissionsRepository(db)

    async def get_all_valid_roles(self) -> List[str]:
        try:
            custom = await self.repo.list_active_role_ids()
        except Exception as exc:
            logger.warning("role_store_unavailable using system roles only err=%s", exc)
            return list(SYSTEM_ROLES)

        out = list(SYSTEM_ROLES)
        for role_id in custom:
            if role_id not in out:
                out.append(role_id)
        return out

    async def is_valid_role(self, role: Any) -> bool:
        if not isinstance(role, str) or not role.strip():
            return False
        return normalize_role(role) in await self.get_all_valid_roles()

    async def get_role_permissions(self, role: Optional[str]) -> Dict[str, Any]:
        role_id = normalize_role(role)
        if not role_id:
            return _empty_permissions(role_id)
        try:
            doc = await self.repo.get_by_role(role_id)
        except Exception as exc:
            logger.warning("role_store_unavailable role=%s err=%s", role_id, exc)
            return _fallback_permissions(role_id)

        if doc is None:
            return _fallback_permissions(role_id)
        if not doc.get("is_active", True):
            return _empty_permissions(role_id)

        return {
            "role_id": role_id,
            "display_name": doc.get("display_name"),
            "hierarchy_level": doc.get("hierarchy_level"),
            "component_access": doc.get("component_access") or [],
            "feature_access": doc.get("feature_access") or [],
            "source": "store",
        }

    async def has_feature(self, role: Optional[str], feature_id: str) -> bool:
        perms = await self.get_role_permissions(role)
        return any(p.get("feature_id") == feature_id and p.get("has_access") for p in perms["feature_access"])

    async def has_component(self, role: Optional[str], component_id: str) -> bool:
        perms = await self.get_role_permissions(role)
        return any(p.get("component_id") == component_id and p.get("has_access") for p in perms["component_access"])


async def validate_role_field(request: Request, db=Depends(get_db)) -> None:
    """Reject unknown roles in a JSON body's `role` field.

    Fails open: an internal error is logged and the request continues.
    """

    try:
        try:
            body = await request.json()
        except ValueError:
            return
        role = body.get("role") if isinstance(body, dict) else None
        if not role:
            return
        valid = await RoleResolver(db).is_valid_role(role)
    except Exception:
        logger.exception("role_validation_error path=%s", request.url.path)
        return

    if not valid:
        raise AppError(
            400,
            "invalid_role",
            f"Invalid role: {role}. Please select a valid role or create it in the Admin Panel first.",
        )
