from __future__ import annotations

from typing import Any, Dict

from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase


def get_collection(db: AsyncIOMotorDatabase, name: str) -> AsyncIOMotorCollection:
    """Return a Motor collection from the given database.

    This is the only place where repositories should obtain collections.
    """

    return db[name]


# Projection used whenever a user document is joined onto another record
USER_PUBLIC_PROJECTION: Dict[str, Any] = {
    "username": 1,
    "email": 1,
    "profile": 1,
    "role": 1,
    "employment.designation": 1,
    "is_active": 1,
}


def user_lookup_stages(local_field: str, *, preserve_missing: bool = False) -> list[Dict[str, Any]]:
    """Join `users` onto the current pipeline and project display fields.

    The join runs before any derived field is computed so later stages can
    filter on user_name/designation/role.
    """

    unwind: Any = "$user_details"
    if preserve_missing:
        unwind = {"path": "$user_details", "preserveNullAndEmptyArrays": True}

    return [
        {
            "$lookup": {
                "from": "users",
                "localField": local_field,
                "foreignField": "_id",
                "as": "user_details",
            }
        },
        {"$unwind": unwind},
        {
            "$addFields": {
                "user_name": {
                    "$trim": {
                        "input": {
                            "$concat": [
                                {"$ifNull": ["$user_details.profile.first_name", ""]},
                                " ",
                                {"$ifNull": ["$user_details.profile.last_name", ""]},
                            ]
                        }
                    }
                },
                "username": "$user_details.username",
                "designation": "$user_details.employment.designation",
                "role": "$user_details.role",
            }
        },
        {"$project": {"user_details": 0}},
    ]
