"""
Task Models

Defines schemas for tasks, partial updates and AI task suggestions.
"""

from enum import Enum
from typing import Optional, Literal
from datetime import datetime
from pydantic import BaseModel, Field


class TaskStatus(str, Enum):
    """Workflow state of a task."""

    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class TaskPriority(str, Enum):
    """Priority of a task."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


StatusFilter = Literal["ALL", "TODO", "IN_PROGRESS", "COMPLETED"]


class TaskCreate(BaseModel):
    """Schema for creating a task. The owner always comes from the session."""

    title: str = Field(..., min_length=1, max_length=200, description="Short title of the task")
    description: str = Field(default="", max_length=5000, description="Detailed description")
    status: TaskStatus = Field(default=TaskStatus.TODO, description="Initial status")
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, description="Task priority")


class TaskUpdate(BaseModel):
    """Schema for updating a task (all fields optional, unset fields are preserved)."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None

    def changes(self, mode: str = "python") -> dict:
        """Return only the fields the caller actually supplied."""
        return self.model_dump(mode=mode, exclude_unset=True, exclude_none=True)


class Task(BaseModel):
    """Schema for a stored task."""

    id: str = Field(..., description="Unique task ID")
    owner_id: str = Field(..., description="ID of the user who owns the task")
    title: str
    description: str = ""
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    created_at: datetime


class TaskForm(BaseModel):
    """The editable fields of the task form."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=5000)
    priority: TaskPriority = TaskPriority.MEDIUM


class TaskCounts(BaseModel):
    """Dashboard counters for the active task list."""

    total: int = 0
    in_progress: int = 0
    completed: int = 0


class SubtaskSuggestion(BaseModel):
    """A task proposed by the AI for a high-level goal."""

    title: str = Field(..., min_length=1, max_length=200, description="Short title of the task")
    description: str = Field(default="", max_length=5000, description="Detailed description")
    priority: TaskPriority = Field(..., description="Suggested priority")


class TaskAnalysis(BaseModel):
    """AI suggestion of a priority and a refined description."""

    priority: TaskPriority = TaskPriority.MEDIUM
    refined_description: str


class GoalRequest(BaseModel):
    """Request schema for subtask generation."""

    goal: str = Field(..., min_length=1, max_length=2000)


class AnalyzeRequest(BaseModel):
    """Request schema for task analysis."""

    description: str = Field(..., min_length=1, max_length=5000)
