from __future__ import annotations

import logging

from pymongo import ASCENDING, DESCENDING

logger = logging.getLogger(__name__)


async def ensure_hr_indexes(db):
    """Ensure indexes for users, attendance, leaves, e-filing and payroll.

    Unique indexes here back the one-row-per-key rules: a single attendance
    row per user and day, a single payroll row per employee and month.
    """

    async def _safe_create(collection, keys, **kwargs):
        name = kwargs.get("name")
        try:
            await collection.create_index(keys, **kwargs)
        except Exception as exc:
            logger.warning("Failed to ensure index %s on %s: %s", name, collection.name, exc)

    # users
    await _safe_create(db.users, [("username", ASCENDING)], name="users_by_username", unique=True)
    await _safe_create(db.users, [("email", ASCENDING)], name="users_by_email", unique=True, sparse=True)
    await _safe_create(db.users, [("is_active", ASCENDING), ("role", ASCENDING)], name="users_by_active_role")

    # roles
    await _safe_create(db.roles_permissions, [("role_id", ASCENDING)], name="roles_by_role_id", unique=True)

    # attendance
    await _safe_create(
        db.attendance,
        [("user_id", ASCENDING), ("date", ASCENDING)],
        name="attendance_by_user_date",
        unique=True,
    )
    await _safe_create(db.attendance, [("date", ASCENDING), ("status", ASCENDING)], name="attendance_by_date_status")

    # leaves
    await _safe_create(db.leaves, [("user_id", ASCENDING), ("applied_on", DESCENDING)], name="leaves_by_user_applied")
    await _safe_create(db.leaves, [("status", ASCENDING), ("reporting_to", ASCENDING)], name="leaves_by_status_approver")

    # e-filing
    await _safe_create(
        db.file_transfers,
        [("recipient_id", ASCENDING), ("is_read", ASCENDING), ("created_at", DESCENDING)],
        name="file_transfers_inbox",
    )
    await _safe_create(db.file_transfers, [("sender_id", ASCENDING), ("created_at", DESCENDING)], name="file_transfers_sent")
    await _safe_create(db.file_transfers, [("thread_id", ASCENDING), ("created_at", ASCENDING)], name="file_transfers_thread")
    await _safe_create(db.file_transfers, [("file_path", ASCENDING)], name="file_transfers_by_path")

    # payroll
    for collection in (db.remunerations, db.variable_remunerations):
        await _safe_create(
            collection,
            [("employee_id", ASCENDING), ("month", ASCENDING), ("year", ASCENDING)],
            name=f"{collection.name}_by_employee_month",
            unique=True,
        )
    await _safe_create(
        db.peer_ratings,
        [("rater_id", ASCENDING), ("ratee_id", ASCENDING), ("month", ASCENDING), ("year", ASCENDING)],
        name="peer_ratings_by_rater_ratee_month",
        unique=True,
    )

    # audit
    await _safe_create(db.audit_logs, [("target.type", ASCENDING), ("target.id", ASCENDING), ("created_at", DESCENDING)], name="audit_by_target")
