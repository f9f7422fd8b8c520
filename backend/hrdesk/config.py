"""Application-level configuration.

Late cutoff hour, holiday calendar and e-filing limits are read from the
environment here; business code never hard-codes them.
"""

from __future__ import annotations

import os
from pathlib import Path


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


PACKAGE_DIR = Path(__file__).resolve().parent

# Application constants
APP_NAME = "HR Desk API"
APP_VERSION = "1.0.0"


def app_timezone() -> str:
    return os.environ.get("APP_TIMEZONE", "Asia/Kolkata")


def late_cutoff_hour() -> int:
    return _env_int("LATE_CUTOFF_HOUR", 11)


def half_day_min_hours() -> int:
    return _env_int("HALF_DAY_MIN_HOURS", 4)


def holidays_file() -> Path:
    raw = os.environ.get("HOLIDAYS_FILE")
    if raw:
        return Path(raw)
    return PACKAGE_DIR / "data" / "holidays.json"


def upload_dir() -> str:
    base = os.environ.get("UPLOAD_DIR") or "./uploads"
    return os.path.join(base, "efiling")


def efiling_max_bytes() -> int:
    return _env_int("EFILING_MAX_BYTES", 25 * 1024 * 1024)


def efiling_delete_window_hours() -> int:
    return _env_int("EFILING_DELETE_WINDOW_HOURS", 24)


def jwt_ttl_minutes() -> int:
    return _env_int("JWT_TTL_MINUTES", 60 * 12)
