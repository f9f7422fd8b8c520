from __future__ import annotations

import logging
import os
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

logger = logging.getLogger(__name__)

_mongo_client: Optional[AsyncIOMotorClient] = None
_db: Optional[AsyncIOMotorDatabase] = None


def _mongo_url() -> str:
    return os.environ["MONGO_URL"]


def _db_name() -> str:
    return os.environ.get("DB_NAME", "hrdesk")


def _server_selection_timeout_ms() -> int:
    return int(os.environ.get("MONGO_SERVER_SELECTION_TIMEOUT_MS", "5000"))


def create_client(url: Optional[str] = None) -> AsyncIOMotorClient:
    """Build a Motor client with timezone-aware datetimes.

    Stored timestamps are always UTC; returning aware datetimes keeps the
    24h e-filing window and lateness math free of naive/aware mixing.
    """

    return AsyncIOMotorClient(
        url or _mongo_url(),
        tz_aware=True,
        serverSelectionTimeoutMS=_server_selection_timeout_ms(),
    )


async def connect_mongo() -> None:
    global _mongo_client, _db

    if _mongo_client is not None and _db is not None:
        return

    _mongo_client = create_client()
    _db = _mongo_client[_db_name()]
    logger.info("mongo_connected db=%s", _db_name())


async def close_mongo() -> None:
    global _mongo_client, _db

    if _mongo_client is not None:
        _mongo_client.close()

    _mongo_client = None
    _db = None


async def get_db() -> AsyncIOMotorDatabase:
    if _db is None:
        await connect_mongo()
    assert _db is not None
    return _db


async def ping(db: AsyncIOMotorDatabase) -> bool:
    try:
        await db.command("ping")
        return True
    except Exception as exc:
        logger.warning("mongo_ping_failed err=%s", exc)
        return False
