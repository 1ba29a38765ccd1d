"""User repositories: the local persistent store and MongoDB."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from config.logging_utils import log_debug
from models.user import UserInDB
from services.errors import DuplicateEmailError, UserNotFoundError
from services.storage_service import PersistentStore, load_users, save_users

logger = logging.getLogger(__name__)


class UserRepository:
    """Lookup and persistence of user accounts."""

    async def get_by_email(self, email: str) -> Optional[UserInDB]:
        raise NotImplementedError

    async def get_by_id(self, user_id: str) -> Optional[UserInDB]:
        raise NotImplementedError

    async def insert(self, name: str, email: str, password_hash: str, avatar_url: str) -> UserInDB:
        raise NotImplementedError

    async def update_name(self, user_id: str, name: str) -> UserInDB:
        raise NotImplementedError

    async def count(self) -> int:
        raise NotImplementedError


class LocalUserRepository(UserRepository):
    """Users kept in the persistent store's users collection."""

    def __init__(self, store: PersistentStore):
        self._store = store

    async def get_by_email(self, email: str) -> Optional[UserInDB]:
        users = await load_users(self._store)
        return next((u for u in users if u.email == email), None)

    async def get_by_id(self, user_id: str) -> Optional[UserInDB]:
        users = await load_users(self._store)
        return next((u for u in users if u.id == user_id), None)

    async def insert(self, name: str, email: str, password_hash: str, avatar_url: str) -> UserInDB:
        users = await load_users(self._store)
        if any(u.email == email for u in users):
            raise DuplicateEmailError()
        user = UserInDB(
            id=str(uuid.uuid4()),
            name=name,
            email=email,
            password_hash=password_hash,
            avatar_url=avatar_url,
            created_at=datetime.now(timezone.utc)
        )
        users.append(user)
        await save_users(self._store, users)
        return user

    async def update_name(self, user_id: str, name: str) -> UserInDB:
        users = await load_users(self._store)
        for index, user in enumerate(users):
            if user.id == user_id:
                users[index] = user.model_copy(update={"name": name})
                await save_users(self._store, users)
                return users[index]
        raise UserNotFoundError()

    async def count(self) -> int:
        return len(await load_users(self._store))


def _doc_to_user(doc: dict) -> UserInDB:
    return UserInDB(
        id=str(doc["_id"]),
        name=doc.get("name", ""),
        email=doc["email"],
        password_hash=doc["password_hash"],
        avatar_url=doc.get("avatar_url", ""),
        created_at=doc["created_at"]
    )


class MongoUserRepository(UserRepository):
    """Users kept in the MongoDB "users" collection."""

    def __init__(self, collection):
        self._collection = collection

    async def get_by_email(self, email: str) -> Optional[UserInDB]:
        doc = await self._collection.find_one({"email": email})
        return _doc_to_user(doc) if doc else None

    async def get_by_id(self, user_id: str) -> Optional[UserInDB]:
        try:
            oid = ObjectId(user_id)
        except (InvalidId, TypeError):
            return None
        doc = await self._collection.find_one({"_id": oid})
        return _doc_to_user(doc) if doc else None

    async def insert(self, name: str, email: str, password_hash: str, avatar_url: str) -> UserInDB:
        user_doc = {
            "name": name,
            "email": email,
            "password_hash": password_hash,
            "avatar_url": avatar_url,
            "created_at": datetime.now(timezone.utc)
        }
        try:
            result = await self._collection.insert_one(user_doc)
        except DuplicateKeyError as e:
            raise DuplicateEmailError() from e
        user_doc["_id"] = result.inserted_id
        return _doc_to_user(user_doc)

    async def update_name(self, user_id: str, name: str) -> UserInDB:
        try:
            oid = ObjectId(user_id)
        except (InvalidId, TypeError) as e:
            raise UserNotFoundError() from e
        doc = await self._collection.find_one_and_update(
            {"_id": oid},
            {"$set": {"name": name}},
            return_document=ReturnDocument.AFTER
        )
        if doc is None:
            raise UserNotFoundError()
        return _doc_to_user(doc)

    async def count(self) -> int:
        return await self._collection.count_documents({})

    async def create_indexes(self) -> bool:
        """Create unique index on email field for fast lookups."""
        try:
            await self._collection.create_index("email", unique=True)
            log_debug("Unique email index ready", prefix="AUTH")
            return True
        except Exception as e:
            logger.warning(f"Could not create email index: {e}")
            return False
