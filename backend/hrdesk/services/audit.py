from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Optional

from bson import ObjectId
from fastapi import Request

from hrdesk.utils import now_utc

logger = logging.getLogger(__name__)

MAX_STRING = 2000
MAX_ITEMS = 200

# bookkeeping fields that change on every write
_IGNORED = frozenset({"_id", "created_at", "updated_at"})
# never copied into audit documents
_REDACTED = frozenset({"password_hash", "password"})


def _compact(value: Any) -> Any:
    """Audit-sized copy of a field value: ids as strings, long text truncated."""
    if value is None or isinstance(value, (bool, int, float, datetime)):
        return value
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, str):
        return value if len(value) <= MAX_STRING else value[:MAX_STRING] + "…"
    if isinstance(value, (list, tuple)):
        return [_compact(v) for v in list(value)[:MAX_ITEMS]]
    if isinstance(value, dict):
        return {
            str(k): "***" if k in _REDACTED else _compact(v)
            for k, v in list(value.items())[:MAX_ITEMS]
        }
    return _compact(str(value))


def shallow_diff(before: Optional[dict[str, Any]], after: Optional[dict[str, Any]]) -> dict[str, Any]:
    """Changed top-level fields as {field: {before, after}}."""
    b = before or {}
    a = after or {}
    diff: dict[str, Any] = {}
    for field in sorted(set(b) | set(a)):
        if field in _IGNORED or field in _REDACTED:
            continue
        if b.get(field) != a.get(field):
            diff[field] = {"before": _compact(b.get(field)), "after": _compact(a.get(field))}
    return diff


def client_ip(request: Optional[Request]) -> str:
    if request is None:
        return ""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else ""


def _origin(request: Optional[Request]) -> dict[str, Any]:
    if request is None:
        return {"ip": ""}
    return {
        "ip": client_ip(request),
        "path": request.url.path,
        "method": request.method,
        "user_agent": request.headers.get("user-agent", ""),
        "correlation_id": getattr(request.state, "correlation_id", ""),
    }


async def write_audit_log(
    db,
    *,
    actor: dict[str, Any],
    request: Optional[Request],
    action: str,
    target_type: str,
    target_id: str,
    before: Optional[dict[str, Any]] = None,
    after: Optional[dict[str, Any]] = None,
    meta: Optional[dict[str, Any]] = None,
) -> None:
    """Record who did what to which HR record.

    Best-effort: a failed insert is logged and swallowed so the business
    write that triggered it still succeeds.
    """
    doc = {
        "_id": str(uuid.uuid4()),
        "actor": {
            "user_id": actor.get("_id"),
            "username": actor.get("username"),
            "role": actor.get("role"),
        },
        "origin": _origin(request),
        "action": action,
        "target": {"type": target_type, "id": target_id},
        "diff": shallow_diff(before, after),
        "meta": _compact(meta or {}),
        "created_at": now_utc(),
    }

    try:
        await db.audit_logs.insert_one(doc)
    except Exception:
        logger.exception("audit_write_failed action=%s target=%s:%s", action, target_type, target_id)
