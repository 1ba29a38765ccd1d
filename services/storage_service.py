"""
Persistent Store

Durable key-value storage for serialized collections (users, tasks and the
current session). Values are plain JSON. The typed accessors at the bottom
of this module are the only code that reads or writes the namespaced keys.
They validate every payload against its versioned envelope.
"""

import asyncio
import copy
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional, TypeVar, Union

from pydantic import BaseModel, ValidationError

from config.settings import settings
from config.logging_utils import log_debug
from models.user import UserInDB, UserResponse
from models.task import Task
from models.storage import (
    SCHEMA_VERSION,
    UserCollection,
    TaskCollection,
    CurrentUserSnapshot,
    StoredToken,
    upgrade_legacy_users,
    upgrade_legacy_tasks,
    upgrade_legacy_current_user,
)
from services.auth_service import hash_password
from services.errors import InvalidInputError, StorageFailure

logger = logging.getLogger(__name__)

STORAGE_KEYS = {
    "users": f"{settings.STORAGE_NAMESPACE}_users",
    "tasks": f"{settings.STORAGE_NAMESPACE}_tasks",
    "current_user": f"{settings.STORAGE_NAMESPACE}_current_user",
    "token": f"{settings.STORAGE_NAMESPACE}_token",
}

EnvelopeT = TypeVar("EnvelopeT", bound=BaseModel)


class PersistentStore:
    """Async key-value store of JSON-serializable values."""

    async def get_item(self, key: str, default: Any = None) -> Any:
        raise NotImplementedError

    async def set_item(self, key: str, value: Any) -> None:
        raise NotImplementedError

    async def clear_item(self, key: str) -> None:
        raise NotImplementedError


class InMemoryStore(PersistentStore):
    """Ephemeral store. Values are JSON round-tripped, just as on disk."""

    def __init__(self, data: Optional[dict[str, Any]] = None):
        self._data: dict[str, str] = {}
        for key, value in (data or {}).items():
            self._data[key] = json.dumps(value)

    async def get_item(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return json.loads(self._data[key])

    async def set_item(self, key: str, value: Any) -> None:
        try:
            self._data[key] = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StorageFailure(f"Value for '{key}' is not JSON serializable: {e}") from e

    async def clear_item(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore(PersistentStore):
    """
    Local durable store backed by a single JSON file.

    File access runs in a worker thread. Writes go to a temporary file that
    is then atomically renamed over the original. There is no locking, so
    concurrent writers race and the last write wins.
    """

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            text = self._path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageFailure(f"Could not read store {self._path}: {e}") from e
        if not text.strip():
            return {}
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise StorageFailure(f"Store {self._path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise StorageFailure(f"Store {self._path} does not contain a JSON object")
        return data

    def _write_all(self, data: dict[str, Any]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=f".{self._path.name}.")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(data, fh, ensure_ascii=False)
                os.replace(tmp_name, self._path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except (OSError, TypeError, ValueError) as e:
            raise StorageFailure(f"Could not write store {self._path}: {e}") from e

    def _set_sync(self, key: str, value: Any) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def _clear_sync(self, key: str) -> None:
        data = self._read_all()
        if key in data:
            del data[key]
            self._write_all(data)

    async def get_item(self, key: str, default: Any = None) -> Any:
        data = await asyncio.to_thread(self._read_all)
        return copy.deepcopy(data.get(key, default))

    async def set_item(self, key: str, value: Any) -> None:
        await asyncio.to_thread(self._set_sync, key, value)

    async def clear_item(self, key: str) -> None:
        await asyncio.to_thread(self._clear_sync, key)


def _validate(envelope_cls: type[EnvelopeT], payload: Any, key: str) -> EnvelopeT:
    try:
        envelope = envelope_cls.model_validate(payload)
    except ValidationError as e:
        logger.error(f"Invalid payload under '{key}': {e}")
        raise StorageFailure(f"Stored data under '{key}' failed validation") from e
    if envelope.schema_version > SCHEMA_VERSION:
        raise StorageFailure(
            f"Stored data under '{key}' has schema version {envelope.schema_version}, "
            f"newer than supported version {SCHEMA_VERSION}"
        )
    return envelope


async def load_users(store: PersistentStore) -> list[UserInDB]:
    """Read the users collection, upgrading legacy payloads."""
    key = STORAGE_KEYS["users"]
    raw = await store.get_item(key)
    if raw is None:
        return []
    if isinstance(raw, list):
        log_debug("Upgrading legacy users collection (%d records)", len(raw), prefix="STORE")
        try:
            raw = await asyncio.to_thread(upgrade_legacy_users, raw, hash_password)
        except (KeyError, TypeError, AttributeError, InvalidInputError) as e:
            raise StorageFailure(f"Legacy data under '{key}' is malformed") from e
        users = _validate(UserCollection, raw, key).items
        # written back so the plaintext passwords are hashed only once
        await save_users(store, users)
        return users
    return _validate(UserCollection, raw, key).items


async def save_users(store: PersistentStore, users: list[UserInDB]) -> None:
    await store.set_item(STORAGE_KEYS["users"], UserCollection(items=users).model_dump(mode="json"))


async def load_tasks(store: PersistentStore) -> list[Task]:
    """Read the tasks collection for every owner, upgrading legacy payloads."""
    key = STORAGE_KEYS["tasks"]
    raw = await store.get_item(key)
    if raw is None:
        return []
    if isinstance(raw, list):
        log_debug("Upgrading legacy tasks collection (%d records)", len(raw), prefix="STORE")
        try:
            raw = upgrade_legacy_tasks(raw)
        except (KeyError, TypeError, AttributeError) as e:
            raise StorageFailure(f"Legacy data under '{key}' is malformed") from e
    return _validate(TaskCollection, raw, key).items


async def save_tasks(store: PersistentStore, tasks: list[Task]) -> None:
    await store.set_item(STORAGE_KEYS["tasks"], TaskCollection(items=tasks).model_dump(mode="json"))


async def load_current_user(store: PersistentStore) -> Optional[UserResponse]:
    key = STORAGE_KEYS["current_user"]
    raw = await store.get_item(key)
    if raw is None:
        return None
    if isinstance(raw, dict) and "schema_version" not in raw:
        try:
            raw = upgrade_legacy_current_user(raw)
        except KeyError as e:
            raise StorageFailure(f"Legacy data under '{key}' is malformed") from e
    return _validate(CurrentUserSnapshot, raw, key).user


async def save_current_user(store: PersistentStore, user: UserResponse) -> None:
    await store.set_item(STORAGE_KEYS["current_user"], CurrentUserSnapshot(user=user).model_dump(mode="json"))


async def load_token(store: PersistentStore) -> Optional[str]:
    key = STORAGE_KEYS["token"]
    raw = await store.get_item(key)
    if raw is None:
        return None
    if isinstance(raw, str):
        raw = {"schema_version": 0, "token": raw}
    return _validate(StoredToken, raw, key).token


async def save_token(store: PersistentStore, token: str) -> None:
    await store.set_item(STORAGE_KEYS["token"], StoredToken(token=token).model_dump(mode="json"))


async def clear_session(store: PersistentStore) -> None:
    """Remove the current-user snapshot and token."""
    await store.clear_item(STORAGE_KEYS["current_user"])
    await store.clear_item(STORAGE_KEYS["token"])
