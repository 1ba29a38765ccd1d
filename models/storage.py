"""
Storage Models

Versioned envelopes for everything written to the persistent store.
Payloads written before versioning (bare arrays/objects) count as version 0
and are upgraded on read.
"""

from typing import Any, Callable
from datetime import datetime, timezone
from pydantic import BaseModel, Field

from models.user import UserInDB, UserResponse
from models.task import Task


SCHEMA_VERSION = 1


class UserCollection(BaseModel):
    """Stored users collection."""

    schema_version: int = Field(default=SCHEMA_VERSION, ge=0)
    items: list[UserInDB] = Field(default_factory=list)


class TaskCollection(BaseModel):
    """Stored tasks collection (all owners)."""

    schema_version: int = Field(default=SCHEMA_VERSION, ge=0)
    items: list[Task] = Field(default_factory=list)


class CurrentUserSnapshot(BaseModel):
    """Stored copy of the signed-in user."""

    schema_version: int = Field(default=SCHEMA_VERSION, ge=0)
    user: UserResponse


class StoredToken(BaseModel):
    """Stored bearer token of the current session."""

    schema_version: int = Field(default=SCHEMA_VERSION, ge=0)
    token: str


def _from_epoch_ms(value: Any) -> Any:
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    return value


def upgrade_legacy_users(raw: list[dict], hash_password: Callable[[str], str]) -> dict:
    """Upgrade a version 0 users array. Plaintext passwords get hashed."""
    items = []
    for user in raw:
        password_hash = user.get("password_hash")
        if password_hash is None:
            password_hash = hash_password(user.get("password", ""))
        items.append({
            "id": user["id"],
            "name": user.get("name", ""),
            "email": user["email"],
            "password_hash": password_hash,
            "avatar_url": user.get("avatar_url", user.get("avatar", "")),
            "created_at": _from_epoch_ms(user.get("created_at", user.get("createdAt", 0))),
        })
    return {"schema_version": SCHEMA_VERSION, "items": items}


def upgrade_legacy_tasks(raw: list[dict]) -> dict:
    """Upgrade a version 0 tasks array (userId/createdAt in epoch ms)."""
    items = []
    for task in raw:
        items.append({
            "id": task["id"],
            "owner_id": task.get("owner_id", task.get("userId")),
            "title": task.get("title", ""),
            "description": task.get("description", ""),
            "status": task.get("status", "TODO"),
            "priority": task.get("priority", "MEDIUM"),
            "created_at": _from_epoch_ms(task.get("created_at", task.get("createdAt"))),
        })
    return {"schema_version": SCHEMA_VERSION, "items": items}


def upgrade_legacy_current_user(raw: dict) -> dict:
    """Upgrade a version 0 current-user object, dropping any stored password."""
    return {
        "schema_version": SCHEMA_VERSION,
        "user": {
            "id": raw["id"],
            "name": raw.get("name", ""),
            "email": raw["email"],
            "avatar_url": raw.get("avatar_url", raw.get("avatar", "")),
        },
    }
