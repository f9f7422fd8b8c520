from __future__ import annotations

import logging
import os

from hrdesk.auth import hash_password
from hrdesk.constants.roles import ADMIN, system_role_definitions
from hrdesk.db import get_db
from hrdesk.domain.leave_state_machine import DEFAULT_LEAVE_BALANCE
from hrdesk.indexes.hr_indexes import ensure_hr_indexes
from hrdesk.repositories.roles_permissions_repository import RolesPermissionsRepository
from hrdesk.utils import now_utc

logger = logging.getLogger("hrdesk")

DEFAULT_ADMIN_USERNAME = "admin"
DEFAULT_ADMIN_EMAIL = "admin@hrdesk.test"


async def ensure_system_roles(db) -> int:
    """Insert missing built-in roles. Existing role documents are left as edited."""
    repo = RolesPermissionsRepository(db)
    created = 0
    for definition in system_role_definitions():
        if await repo.ensure_role(definition):
            created += 1
    return created


async def ensure_seed_data(db=None) -> None:
    db = db if db is not None else await get_db()

    await ensure_hr_indexes(db)
    count = await ensure_system_roles(db)
    logger.info("seed_roles_ensured created=%s", count)

    admin = await db.users.find_one({"role": ADMIN})
    if not admin:
        now = now_utc()
        await db.users.insert_one(
            {
                "username": DEFAULT_ADMIN_USERNAME,
                "email": DEFAULT_ADMIN_EMAIL,
                "password_hash": hash_password(os.environ.get("DEFAULT_ADMIN_PASSWORD", "admin123")),
                "profile": {"first_name": "System", "last_name": "Admin"},
                "role": ADMIN,
                "is_active": True,
                "leave_balance": dict(DEFAULT_LEAVE_BALANCE),
                "employment": {},
                "created_at": now,
                "updated_at": now,
            }
        )
        logger.info("seed_admin_created username=%s", DEFAULT_ADMIN_USERNAME)
