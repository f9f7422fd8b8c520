"""Structured JSON access log.

Every request logs one line:
{
  request_id,
  user_id,
  path,
  method,
  status_code,
  latency_ms
}

The request id is echoed back in the X-Request-Id header.
"""
from __future__ import annotations

import base64
import json
import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger("structured_access")


def _extract_user_id(request: Request) -> str:
    """Read `sub` from the bearer token without verifying it (logging only)."""
    auth = request.headers.get("authorization", "")
    if not auth.lower().startswith("bearer "):
        return ""
    parts = auth.split(" ", 1)[1].split(".")
    if len(parts) < 2:
        return ""
    payload = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        data = json.loads(base64.urlsafe_b64decode(payload))
    except (ValueError, TypeError):
        return ""
    return str(data.get("sub", "")) if isinstance(data, dict) else ""


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())[:12]
        start = time.monotonic()
        request.state.request_id = request_id

        entry = {
            "request_id": request_id,
            "user_id": _extract_user_id(request),
            "path": request.url.path,
            "method": request.method,
        }

        try:
            response = await call_next(request)
        except Exception:
            entry.update(status_code=500, latency_ms=round((time.monotonic() - start) * 1000, 2))
            logger.error(json.dumps(entry))
            raise

        entry.update(status_code=response.status_code, latency_ms=round((time.monotonic() - start) * 1000, 2))
        if response.status_code >= 500:
            logger.error(json.dumps(entry))
        elif response.status_code >= 400:
            logger.warning(json.dumps(entry))
        else:
            logger.info(json.dumps(entry))

        response.headers["X-Request-Id"] = request_id
        return response
