from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request
from pymongo.errors import DuplicateKeyError

from hrdesk.auth import require_roles
from hrdesk.constants.roles import ADMIN, COMPONENTS, FEATURES
from hrdesk.db import get_db
from hrdesk.errors import AppError
from hrdesk.repositories.roles_permissions_repository import RolesPermissionsRepository
from hrdesk.schemas import AccessEntry, RoleCreateIn, RoleUpdateIn
from hrdesk.services.audit import write_audit_log
from hrdesk.services.roles import RoleResolver, is_system_role
from hrdesk.utils import serialize_doc

router = APIRouter(prefix="/api/roles", tags=["roles"])

AdminDep = Depends(require_roles([ADMIN]))

_COMPONENT_NAMES = dict(COMPONENTS)


def _component_access(entries: list[AccessEntry]) -> list[dict[str, Any]]:
    out = []
    for e in entries:
        if e.id not in _COMPONENT_NAMES:
            raise AppError(400, "invalid_component", f"Unknown component: {e.id}")
        out.append({"component_id": e.id, "component_name": e.name or _COMPONENT_NAMES[e.id], "has_access": e.has_access})
    return out


def _feature_access(entries: list[AccessEntry]) -> list[dict[str, Any]]:
    out = []
    for e in entries:
        if e.id not in FEATURES:
            raise AppError(400, "invalid_feature", f"Unknown feature: {e.id}")
        out.append({"feature_id": e.id, "feature_name": e.name or FEATURES[e.id], "has_access": e.has_access})
    return out


async def _load(repo: RolesPermissionsRepository, role_id: str) -> dict[str, Any]:
    doc = await repo.get_by_role(role_id)
    if not doc:
        raise AppError(404, "role_not_found", f"Role {role_id.upper()} not found")
    return doc


@router.get("", dependencies=[AdminDep])
async def list_roles(include_inactive: bool = False, db=Depends(get_db)):
    roles = await RolesPermissionsRepository(db).list_roles(include_inactive=include_inactive)
    return {"success": True, "roles": serialize_doc(roles)}


@router.get("/{role_id}", dependencies=[AdminDep])
async def get_role(role_id: str, db=Depends(get_db)):
    doc = await _load(RolesPermissionsRepository(db), role_id)
    return {"success": True, "role": serialize_doc(doc)}


@router.get("/{role_id}/permissions")
async def get_role_permissions(role_id: str, db=Depends(get_db), user=AdminDep):
    perms = await RoleResolver(db).get_role_permissions(role_id)
    return {"success": True, "permissions": perms}


@router.post("", status_code=201)
async def create_role(payload: RoleCreateIn, request: Request, db=Depends(get_db), user=AdminDep):
    role_id = payload.role_id.upper()
    if is_system_role(role_id):
        raise AppError(400, "role_exists", f"{role_id} is a system role")

    doc = {
        "role_id": role_id,
        "display_name": payload.display_name,
        "hierarchy_level": payload.hierarchy_level,
        "description": payload.description,
        "component_access": _component_access(payload.component_access),
        "feature_access": _feature_access(payload.feature_access),
        "is_active": True,
        "is_system_role": False,
    }
    try:
        created = await RolesPermissionsRepository(db).insert_role(doc)
    except DuplicateKeyError:
        raise AppError(400, "role_exists", f"Role {role_id} already exists")

    await write_audit_log(
        db,
        actor=user,
        request=request,
        action="role.created",
        target_type="role",
        target_id=role_id,
        after=created,
    )
    return {"success": True, "role": serialize_doc(created)}


@router.put("/{role_id}")
async def update_role(role_id: str, payload: RoleUpdateIn, request: Request, db=Depends(get_db), user=AdminDep):
    repo = RolesPermissionsRepository(db)
    before = await _load(repo, role_id)

    fields: dict[str, Any] = payload.model_dump(exclude_none=True, exclude={"component_access", "feature_access"})
    if payload.component_access is not None:
        fields["component_access"] = _component_access(payload.component_access)
    if payload.feature_access is not None:
        fields["feature_access"] = _feature_access(payload.feature_access)
    if before.get("is_system_role") and fields.get("is_active") is False:
        raise AppError(400, "system_role_protected", "System roles cannot be deactivated")
    if not fields:
        raise AppError(400, "no_fields", "No fields to update")

    updated = await repo.update_role(role_id, fields)
    await write_audit_log(
        db,
        actor=user,
        request=request,
        action="role.updated",
        target_type="role",
        target_id=role_id.upper(),
        before=before,
        after=updated,
    )
    return {"success": True, "role": serialize_doc(updated)}


@router.delete("/{role_id}")
async def delete_role(role_id: str, request: Request, db=Depends(get_db), user=AdminDep):
    repo = RolesPermissionsRepository(db)
    before = await _load(repo, role_id)
    if before.get("is_system_role") or is_system_role(role_id.upper()):
        raise AppError(403, "system_role_protected", "System roles cannot be deleted")

    if await db.users.count_documents({"role": role_id.upper(), "is_active": True}):
        raise AppError(400, "role_in_use", "Role is assigned to active users")

    if not await repo.delete_role(role_id):
        raise AppError(404, "role_not_found", f"Role {role_id.upper()} not found")

    await write_audit_log(
        db,
        actor=user,
        request=request,
        action="role.deleted",
        target_type="role",
        target_id=role_id.upper(),
        before=before,
    )
    return {"success": True, "message": "Role deleted"}
