"""
Application State Controller

Holds the signed-in session and the active task list, and drives every user
action through the session manager, task repository and suggestion gateway.

State changes follow fetch-after-write. A mutation is sent first. The full
task list is then re-fetched and replaces the in-memory list wholesale.
A failed action leaves the state as it was and records a Notification
for the presentation layer instead of crashing.
"""

import logging
from dataclasses import dataclass, field
from typing import Literal, Optional, Protocol

from pydantic import ValidationError

from config.logging_utils import log_debug, log_step, log_progress, log_success, log_error
from models.user import Session, UserResponse
from models.task import (
    Task,
    TaskCreate,
    TaskUpdate,
    TaskForm,
    TaskStatus,
    TaskCounts,
    StatusFilter,
    SubtaskSuggestion,
    TaskAnalysis,
)
from services.errors import TaskFlowError
from services.session_service import SessionManager
from services.task_service import TaskRepository

logger = logging.getLogger(__name__)


class SuggestionGateway(Protocol):
    async def generate_subtasks(self, goal: str) -> list[SubtaskSuggestion]: ...

    async def analyze_task(self, description: str) -> TaskAnalysis: ...


@dataclass
class Notification:
    """A user-visible, non-fatal message (a toast)."""

    message: str
    level: Literal["success", "error", "info"] = "info"


@dataclass
class AppState:
    """In-memory view state. Rebuilt from storage, never persisted itself."""

    session: Optional[Session] = None
    tasks: list[Task] = field(default_factory=list)
    is_loading: bool = True

    @property
    def is_authenticated(self) -> bool:
        return self.session is not None


class ApplicationStateController:
    """Orchestrates session and task actions for the active view."""

    def __init__(
        self,
        sessions: SessionManager,
        tasks: TaskRepository,
        suggestions: SuggestionGateway,
        state: Optional[AppState] = None
    ):
        self._sessions = sessions
        self._tasks = tasks
        self._suggestions = suggestions
        self.state = state or AppState()
        self.notifications: list[Notification] = []

    def _notify(self, message: str, level: Literal["success", "error", "info"] = "info") -> None:
        self.notifications.append(Notification(message=message, level=level))

    def _owner_id(self) -> Optional[str]:
        return self.state.session.user.id if self.state.session else None

    async def init(self) -> None:
        """Restore the stored session and its tasks (loading -> ready)."""
        if not self.state.is_loading:
            return
        try:
            self.state.session = await self._sessions.get_current_session()
        except TaskFlowError as e:
            logger.error(f"Could not restore session: {e}")
            self._notify("Could not restore your session", "error")
            self.state.session = None
        if self.state.session is not None:
            await self.refresh_tasks()
        self.state.is_loading = False
        log_debug(f"Ready, authenticated={self.state.is_authenticated}", prefix="STATE")

    async def refresh_tasks(self) -> bool:
        """Re-fetch the owner's tasks and replace the in-memory list."""
        owner_id = self._owner_id()
        if owner_id is None:
            return False
        try:
            tasks = await self._tasks.list_tasks(owner_id)
        except TaskFlowError as e:
            logger.error(f"Failed to fetch tasks: {e}")
            self._notify("Failed to fetch tasks", "error")
            return False
        self.state.tasks = tasks
        return True

    async def _start_session(self, session: Session) -> None:
        self.state.session = session
        self.state.tasks = []
        await self.refresh_tasks()

    async def login(self, email: str, password: str) -> Session:
        """Sign in. Failures are notified and re-raised."""
        try:
            session = await self._sessions.login(email, password)
        except TaskFlowError as e:
            self._notify(str(e) or "Login failed", "error")
            raise
        await self._start_session(session)
        self._notify("Welcome back!", "success")
        return session

    async def register(self, name: str, email: str, password: str) -> Session:
        """Create an account and sign in. Failures are notified and re-raised."""
        try:
            session = await self._sessions.register(name, email, password)
        except TaskFlowError as e:
            self._notify(str(e) or "Registration failed", "error")
            raise
        await self._start_session(session)
        self._notify("Account created successfully!", "success")
        return session

    async def logout(self) -> None:
        try:
            await self._sessions.logout()
        except TaskFlowError as e:
            self._notify(str(e) or "Logout failed", "error")
            raise
        self.state.session = None
        self.state.tasks = []
        self._notify("Signed out successfully", "info")

    async def update_profile(self, name: str) -> Optional[UserResponse]:
        if self.state.session is None:
            self._notify("Please sign in first.", "error")
            return None
        try:
            user = await self._sessions.update_profile(
                self.state.session.user.model_copy(update={"name": name})
            )
        except TaskFlowError as e:
            logger.error(f"Profile update failed: {e}")
            self._notify("Failed to update profile", "error")
            return None
        self.state.session = self.state.session.model_copy(update={"user": user})
        self._notify("Profile updated successfully", "success")
        return user

    async def save_task(self, form: TaskForm, editing_task: Optional[Task] = None) -> Optional[Task]:
        """Create a task, or update `editing_task` with the form's fields."""
        owner_id = self._owner_id()
        if owner_id is None:
            self._notify("Please sign in first.", "error")
            return None
        try:
            if editing_task is not None:
                task = await self._tasks.update_task(
                    owner_id,
                    editing_task.id,
                    TaskUpdate(title=form.title, description=form.description, priority=form.priority)
                )
                self._notify("Task updated", "success")
            else:
                task = await self._tasks.create_task(
                    owner_id,
                    TaskCreate(
                        title=form.title,
                        description=form.description,
                        status=TaskStatus.TODO,
                        priority=form.priority
                    )
                )
                self._notify("New task created", "success")
        except (TaskFlowError, ValidationError) as e:
            logger.error(f"Failed to save task: {e}")
            self._notify("Failed to save task", "error")
            return None
        await self.refresh_tasks()
        return task

    async def change_status(self, task: Task, status: TaskStatus) -> Optional[Task]:
        owner_id = self._owner_id()
        if owner_id is None:
            self._notify("Please sign in first.", "error")
            return None
        try:
            updated = await self._tasks.update_task(owner_id, task.id, TaskUpdate(status=status))
        except TaskFlowError as e:
            logger.error(f"Failed to update status of task {task.id}: {e}")
            self._notify("Failed to update status", "error")
            return None
        await self.refresh_tasks()
        return updated

    async def delete_task(self, task_id: str) -> bool:
        owner_id = self._owner_id()
        if owner_id is None:
            self._notify("Please sign in first.", "error")
            return False
        try:
            await self._tasks.delete_task(owner_id, task_id)
        except TaskFlowError as e:
            logger.error(f"Failed to delete task {task_id}: {e}")
            self._notify("Failed to delete task", "error")
            return False
        self._notify("Task deleted", "success")
        await self.refresh_tasks()
        return True

    async def generate_from_goal(self, goal: str) -> list[Task]:
        """
        Create one task per AI suggestion for the goal.

        Tasks are created one at a time with no rollback. If a create fails
        partway through, the tasks already created stay committed. The list
        is refreshed so they show up, and the partial count is reported.
        """
        owner_id = self._owner_id()
        if owner_id is None or not goal.strip():
            return []

        log_step("Requesting AI suggestions", 1, 3)
        try:
            suggestions = await self._suggestions.generate_subtasks(goal)
        except TaskFlowError as e:
            log_error(f"Suggestion request failed: {e}", prefix="STATE")
            self._notify("Failed to generate tasks. Check API key.", "error")
            return []

        if not suggestions:
            self._notify("AI couldn't generate tasks. Try a clearer goal.", "error")
            return []

        log_step(f"Creating {len(suggestions)} tasks", 2, 3)
        created: list[Task] = []
        for index, suggestion in enumerate(suggestions, start=1):
            try:
                task = await self._tasks.create_task(
                    owner_id,
                    TaskCreate(
                        title=suggestion.title,
                        description=suggestion.description,
                        status=TaskStatus.TODO,
                        priority=suggestion.priority
                    )
                )
            except (TaskFlowError, ValidationError) as e:
                log_error(f"Batch stopped at task {index}: {e}", prefix="STATE")
                self._notify(
                    f"Created {len(created)} of {len(suggestions)} tasks before an error occurred.",
                    "error"
                )
                await self.refresh_tasks()
                return created
            created.append(task)
            log_progress(index, len(suggestions), suggestion.title, prefix="STATE")

        log_step("Refreshing task list", 3, 3)
        await self.refresh_tasks()
        log_success(f"Generated {len(created)} tasks", prefix="STATE")
        self._notify(f"Generated {len(created)} tasks successfully!", "success")
        return created

    async def optimize_description(self, description: str) -> Optional[TaskAnalysis]:
        """Ask the AI for a priority and a cleaner description (never fails)."""
        if not description.strip():
            self._notify("Please enter a description first.", "info")
            return None
        return await self._suggestions.analyze_task(description)

    def filtered_tasks(self, search_term: str = "", status_filter: StatusFilter = "ALL") -> list[Task]:
        """Tasks whose title or description contains the term, optionally by status."""
        term = search_term.lower()
        return [
            task for task in self.state.tasks
            if (term in task.title.lower() or term in task.description.lower())
            and (status_filter == "ALL" or task.status == status_filter)
        ]

    def task_counts(self) -> TaskCounts:
        return TaskCounts(
            total=len(self.state.tasks),
            in_progress=sum(1 for t in self.state.tasks if t.status == TaskStatus.IN_PROGRESS),
            completed=sum(1 for t in self.state.tasks if t.status == TaskStatus.COMPLETED)
        )
