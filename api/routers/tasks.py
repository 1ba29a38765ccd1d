"""
Tasks API Router

Owner-scoped CRUD. The owner is always the authenticated user; any owner
field in a request body is ignored.
"""

import logging

from fastapi import APIRouter, HTTPException, Depends, status

from api.dependencies import get_current_user, get_task_repository
from config.logging_utils import log_debug
from models.user import UserResponse
from models.task import Task, TaskCreate, TaskUpdate
from services.errors import TaskNotFoundError
from services.task_service import TaskRepository

logger = logging.getLogger(__name__)


router = APIRouter(prefix="/api/tasks", tags=["Tasks"])


@router.get("", response_model=list[Task])
async def list_tasks(
    current_user: UserResponse = Depends(get_current_user),
    tasks: TaskRepository = Depends(get_task_repository)
):
    """List the current user's tasks, newest first."""
    return await tasks.list_tasks(current_user.id)


@router.post("", response_model=Task, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_data: TaskCreate,
    current_user: UserResponse = Depends(get_current_user),
    tasks: TaskRepository = Depends(get_task_repository)
):
    """Create a task for the current user."""
    task = await tasks.create_task(current_user.id, task_data)
    log_debug(f"user_id={current_user.id} created task_id={task.id}", prefix="TASKS")
    return task


@router.put("/{task_id}", response_model=Task)
async def update_task(
    task_id: str,
    changes: TaskUpdate,
    current_user: UserResponse = Depends(get_current_user),
    tasks: TaskRepository = Depends(get_task_repository)
):
    """Update the supplied fields of a task; omitted fields are kept."""
    try:
        return await tasks.update_task(current_user.id, task_id, changes)
    except TaskNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.delete("/{task_id}")
async def delete_task(
    task_id: str,
    current_user: UserResponse = Depends(get_current_user),
    tasks: TaskRepository = Depends(get_task_repository)
):
    """Delete a task. Deleting a missing task is not an error."""
    await tasks.delete_task(current_user.id, task_id)
    return {"message": "Task deleted successfully"}
