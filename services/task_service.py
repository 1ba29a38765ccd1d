"""
Task Repositories

Owner-scoped CRUD over tasks. Every read and write filters by the owner id
that the caller derived from a validated session. A task belonging to
someone else behaves exactly like a missing one.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ReturnDocument

from config.logging_utils import log_debug
from models.task import Task, TaskCreate, TaskUpdate
from services.errors import TaskNotFoundError
from services.storage_service import PersistentStore, load_tasks, save_tasks

logger = logging.getLogger(__name__)


class TaskRepository:
    """CRUD over the tasks of a single owner."""

    async def list_tasks(self, owner_id: str) -> list[Task]:
        """All tasks of the owner, newest first."""
        raise NotImplementedError

    async def create_task(self, owner_id: str, data: TaskCreate) -> Task:
        raise NotImplementedError

    async def update_task(self, owner_id: str, task_id: str, changes: TaskUpdate) -> Task:
        """Merge the supplied fields. Raises TaskNotFoundError."""
        raise NotImplementedError

    async def delete_task(self, owner_id: str, task_id: str) -> None:
        """Remove the task. Missing tasks are ignored."""
        raise NotImplementedError


class LocalTaskRepository(TaskRepository):
    """Tasks kept in the persistent store's tasks collection."""

    def __init__(self, store: PersistentStore):
        self._store = store

    async def list_tasks(self, owner_id: str) -> list[Task]:
        tasks = await load_tasks(self._store)
        owned = [t for t in tasks if t.owner_id == owner_id]
        owned.sort(key=lambda t: t.created_at, reverse=True)
        return owned

    async def create_task(self, owner_id: str, data: TaskCreate) -> Task:
        tasks = await load_tasks(self._store)

        # created_at is strictly increasing so newest-first order is stable
        created_at = datetime.now(timezone.utc)
        if tasks:
            latest = max(t.created_at for t in tasks)
            if created_at <= latest:
                created_at = latest + timedelta(microseconds=1)

        task = Task(
            id=str(uuid.uuid4()),
            owner_id=owner_id,
            created_at=created_at,
            **data.model_dump()
        )
        tasks.append(task)
        await save_tasks(self._store, tasks)
        log_debug(f"Created task id={task.id} owner={owner_id}", prefix="TASKS")
        return task

    async def update_task(self, owner_id: str, task_id: str, changes: TaskUpdate) -> Task:
        tasks = await load_tasks(self._store)
        for index, task in enumerate(tasks):
            if task.id == task_id and task.owner_id == owner_id:
                tasks[index] = task.model_copy(update=changes.changes())
                await save_tasks(self._store, tasks)
                log_debug(f"Updated task id={task_id} fields={sorted(changes.changes())}", prefix="TASKS")
                return tasks[index]
        raise TaskNotFoundError()

    async def delete_task(self, owner_id: str, task_id: str) -> None:
        tasks = await load_tasks(self._store)
        remaining = [t for t in tasks if not (t.id == task_id and t.owner_id == owner_id)]
        if len(remaining) != len(tasks):
            await save_tasks(self._store, remaining)
            log_debug(f"Deleted task id={task_id}", prefix="TASKS")


def _doc_to_task(doc: dict) -> Task:
    return Task(
        id=str(doc["_id"]),
        owner_id=doc["owner_id"],
        title=doc.get("title", ""),
        description=doc.get("description", ""),
        status=doc.get("status", "TODO"),
        priority=doc.get("priority", "MEDIUM"),
        created_at=doc["created_at"]
    )


class MongoTaskRepository(TaskRepository):
    """
    Tasks kept in the MongoDB "tasks" collection.

    Updates use find_one_and_update with $set, so each one is atomic
    per document.
    """

    def __init__(self, collection):
        self._collection = collection

    async def list_tasks(self, owner_id: str) -> list[Task]:
        cursor = self._collection.find({"owner_id": owner_id}).sort([("created_at", -1), ("_id", -1)])
        return [_doc_to_task(doc) async for doc in cursor]

    async def create_task(self, owner_id: str, data: TaskCreate) -> Task:
        task_doc = {
            "owner_id": owner_id,
            **data.model_dump(mode="json"),
            "created_at": datetime.now(timezone.utc)
        }
        result = await self._collection.insert_one(task_doc)
        task_doc["_id"] = result.inserted_id
        log_debug(f"Created task id={result.inserted_id} owner={owner_id}", prefix="TASKS")
        return _doc_to_task(task_doc)

    async def update_task(self, owner_id: str, task_id: str, changes: TaskUpdate) -> Task:
        try:
            oid = ObjectId(task_id)
        except (InvalidId, TypeError) as e:
            raise TaskNotFoundError() from e

        query = {"_id": oid, "owner_id": owner_id}
        fields = changes.changes(mode="json")
        if fields:
            doc = await self._collection.find_one_and_update(
                query,
                {"$set": fields},
                return_document=ReturnDocument.AFTER
            )
        else:
            doc = await self._collection.find_one(query)

        if doc is None:
            raise TaskNotFoundError()
        return _doc_to_task(doc)

    async def delete_task(self, owner_id: str, task_id: str) -> None:
        try:
            oid = ObjectId(task_id)
        except (InvalidId, TypeError):
            return
        result = await self._collection.delete_one({"_id": oid, "owner_id": owner_id})
        if result.deleted_count:
            log_debug(f"Deleted task id={task_id}", prefix="TASKS")

    async def create_indexes(self) -> bool:
        """Create the owner/newest-first index used by list_tasks."""
        try:
            await self._collection.create_index([("owner_id", 1), ("created_at", -1)])
            return True
        except Exception as e:
            logger.warning(f"Could not create task indexes: {e}")
            return False
