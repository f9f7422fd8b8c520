from __future__ import annotations

import math
from datetime import date, datetime, timedelta, timezone
from typing import Any, Iterator, Optional

from bson import ObjectId
from bson.errors import InvalidId

from hrdesk.errors import AppError


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(dt: datetime) -> datetime:
    """Treat naive datetimes coming back from Mongo as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def serialize_doc(doc: Any) -> Any:
    """Recursively convert MongoDB docs into JSON-serializable structures."""
    if doc is None:
        return None

    if isinstance(doc, ObjectId):
        return str(doc)

    if isinstance(doc, (datetime, date)):
        return doc.isoformat()

    if isinstance(doc, list):
        return [serialize_doc(x) for x in doc]

    if isinstance(doc, dict):
        out: dict[str, Any] = {}
        for k, v in doc.items():
            if k == "_id":
                out["id"] = serialize_doc(v)
            elif k == "password_hash":
                continue
            else:
                out[k] = serialize_doc(v)
        return out

    return doc


def to_object_id(id_str: Any, *, code: str = "not_found", message: str = "Not found") -> ObjectId:
    """Parse an id from the URL/body, mapping malformed ids to a 404."""
    if isinstance(id_str, ObjectId):
        return id_str
    try:
        return ObjectId(str(id_str))
    except (InvalidId, TypeError):
        raise AppError(404, code, message)


def safe_int(v: Any, default: int = 0) -> int:
    try:
        return int(v)
    except Exception:
        return default


def safe_float(v: Any, default: float = 0.0) -> float:
    try:
        return float(v)
    except Exception:
        return default


def parse_day(value: Any) -> date:
    """Accept `YYYY-MM-DD` strings, dates and datetimes."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def iter_days(start: date, end: date) -> Iterator[date]:
    """Inclusive start, inclusive end."""
    cur = start
    while cur <= end:
        yield cur
        cur += timedelta(days=1)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    first = date(year, month, 1)
    if month == 12:
        nxt = date(year + 1, 1, 1)
    else:
        nxt = date(year, month + 1, 1)
    return first, nxt - timedelta(days=1)


def paginate(page: Optional[int], limit: Optional[int], *, default_limit: int = 20, max_limit: int = 200) -> tuple[int, int, int]:
    """Return (page, limit, skip)."""
    p = max(1, safe_int(page, 1))
    lim = min(max(1, safe_int(limit, default_limit)), max_limit)
    return p, lim, (p - 1) * lim


def pagination_meta(page: int, limit: int, total: int) -> dict[str, int]:
    return {"current": page, "pages": math.ceil(total / limit) if limit else 0, "total": total}


def display_name(user: Optional[dict[str, Any]]) -> str:
    if not user:
        return ""
    profile = user.get("profile") or {}
    full = f"{profile.get('first_name') or ''} {profile.get('last_name') or ''}".strip()
    return full or user.get("username") or ""
