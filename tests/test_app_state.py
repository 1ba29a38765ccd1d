"""Tests for the application state controller."""

from datetime import timedelta

import pytest

from models.task import SubtaskSuggestion, TaskForm, TaskStatus, TaskPriority, TaskAnalysis
from models.user import UserResponse
from services.app_state import ApplicationStateController
from services.auth_service import AuthService, create_access_token
from services.errors import InvalidCredentialsError, InvalidInputError
from services.session_service import SessionManager
from services.storage_service import save_current_user, save_token
from services.user_service import LocalUserRepository
from services.task_service import LocalTaskRepository
from tests.fakes import FakeSuggestionGateway, FlakyTaskRepository, make_suggestions


def messages(controller):
    return [n.message for n in controller.notifications]


@pytest.mark.asyncio
async def test_alice_session_and_tasks_survive_restart(controller, store):
    await controller.init()
    assert not controller.state.is_loading
    assert not controller.state.is_authenticated

    await controller.register("Alice", "alice@example.com", "secret1")
    assert controller.state.is_authenticated
    assert controller.state.tasks == []

    task = await controller.save_task(TaskForm(title="Buy milk"))
    assert task.status == TaskStatus.TODO
    assert task.priority == TaskPriority.MEDIUM
    assert [t.id for t in controller.state.tasks] == [task.id]

    await controller.change_status(task, TaskStatus.IN_PROGRESS)
    assert controller.state.tasks[0].status == TaskStatus.IN_PROGRESS
    assert controller.task_counts().in_progress == 1

    # a second controller over the same store restores the session and tasks
    restarted = ApplicationStateController(
        SessionManager(AuthService(LocalUserRepository(store)), store),
        LocalTaskRepository(store),
        FakeSuggestionGateway()
    )
    await restarted.init()
    assert restarted.state.session.user.email == "alice@example.com"
    assert [t.title for t in restarted.state.tasks] == ["Buy milk"]

    await controller.logout()
    assert not controller.state.is_authenticated
    assert controller.state.tasks == []

    await controller.login("alice@example.com", "secret1")
    assert [t.status for t in controller.state.tasks] == [TaskStatus.IN_PROGRESS]
    assert messages(controller) == [
        "Account created successfully!",
        "New task created",
        "Signed out successfully",
        "Welcome back!",
    ]


@pytest.mark.asyncio
async def test_init_runs_once(controller, sessions):
    await controller.init()
    await sessions.register("Alice", "alice@example.com", "secret1")

    await controller.init()

    assert not controller.state.is_authenticated


@pytest.mark.asyncio
async def test_init_with_expired_session_is_signed_out(controller, store):
    await save_current_user(store, UserResponse(id="u1", name="Alice", email="alice@example.com"))
    await save_token(store, create_access_token({"sub": "u1"}, expires_delta=timedelta(minutes=-1)))

    await controller.init()

    assert not controller.state.is_authenticated
    assert not controller.state.is_loading


@pytest.mark.asyncio
async def test_login_failure_is_notified_and_raised(controller):
    await controller.init()

    with pytest.raises(InvalidCredentialsError):
        await controller.login("nobody@example.com", "secret1")

    assert not controller.state.is_authenticated
    assert controller.notifications[-1].level == "error"
    assert controller.notifications[-1].message == "Incorrect email or password"


@pytest.mark.asyncio
async def test_edit_task_keeps_status(controller):
    await controller.register("Alice", "alice@example.com", "secret1")
    task = await controller.save_task(TaskForm(title="Draft"))
    await controller.change_status(task, TaskStatus.COMPLETED)

    edited = await controller.save_task(
        TaskForm(title="Final", description="Ship it", priority=TaskPriority.HIGH),
        editing_task=task
    )

    assert edited.title == "Final"
    assert edited.status == TaskStatus.COMPLETED
    assert controller.state.tasks == [edited]
    assert messages(controller)[-1] == "Task updated"


@pytest.mark.asyncio
async def test_save_task_requires_session(controller):
    assert await controller.save_task(TaskForm(title="Orphan")) is None
    assert controller.notifications[-1].level == "error"


@pytest.mark.asyncio
async def test_delete_task_refreshes_list(controller):
    await controller.register("Alice", "alice@example.com", "secret1")
    task = await controller.save_task(TaskForm(title="Temporary"))

    assert await controller.delete_task(task.id)

    assert controller.state.tasks == []
    assert messages(controller)[-1] == "Task deleted"


@pytest.mark.asyncio
async def test_update_profile_renames_session_user(controller):
    await controller.register("Alice", "alice@example.com", "secret1")

    user = await controller.update_profile("Alice Cooper")

    assert user.name == "Alice Cooper"
    assert controller.state.session.user.name == "Alice Cooper"


@pytest.mark.asyncio
async def test_filtered_tasks_and_counts(controller):
    await controller.register("Alice", "alice@example.com", "secret1")
    report = await controller.save_task(TaskForm(title="Write report", description="Q3 numbers"))
    await controller.save_task(TaskForm(title="Buy milk", description="Two litres"))
    gym = await controller.save_task(TaskForm(title="Gym", description="Leg day REPORT"))
    await controller.change_status(report, TaskStatus.COMPLETED)
    await controller.change_status(gym, TaskStatus.IN_PROGRESS)

    assert {t.title for t in controller.filtered_tasks("report")} == {"Write report", "Gym"}
    assert [t.title for t in controller.filtered_tasks("report", "COMPLETED")] == ["Write report"]
    assert [t.title for t in controller.filtered_tasks(status_filter="TODO")] == ["Buy milk"]
    assert len(controller.filtered_tasks()) == 3

    counts = controller.task_counts()
    assert (counts.total, counts.in_progress, counts.completed) == (3, 1, 1)


@pytest.mark.asyncio
async def test_generate_from_goal_creates_tasks(sessions, tasks):
    gateway = FakeSuggestionGateway(make_suggestions("Book venue", "Send invites", "Order cake"))
    controller = ApplicationStateController(sessions, tasks, gateway)
    await controller.register("Alice", "alice@example.com", "secret1")

    created = await controller.generate_from_goal("Plan a team party")

    assert [t.title for t in created] == ["Book venue", "Send invites", "Order cake"]
    assert all(t.status == TaskStatus.TODO and t.priority == TaskPriority.HIGH for t in created)
    assert len(controller.state.tasks) == 3
    assert messages(controller)[-1] == "Generated 3 tasks successfully!"


@pytest.mark.asyncio
async def test_generate_from_goal_keeps_partial_batch(sessions, store):
    gateway = FakeSuggestionGateway(make_suggestions("One", "Two", "Three"))
    controller = ApplicationStateController(sessions, FlakyTaskRepository(store, fail_after=2), gateway)
    await controller.register("Alice", "alice@example.com", "secret1")

    created = await controller.generate_from_goal("Count to three")

    assert [t.title for t in created] == ["One", "Two"]
    assert {t.title for t in controller.state.tasks} == {"One", "Two"}
    assert messages(controller)[-1] == "Created 2 of 3 tasks before an error occurred."


@pytest.mark.asyncio
async def test_generate_from_goal_gateway_failure(sessions, tasks):
    controller = ApplicationStateController(sessions, tasks, FakeSuggestionGateway(fail=True))
    await controller.register("Alice", "alice@example.com", "secret1")

    assert await controller.generate_from_goal("Plan a team party") == []

    assert controller.state.tasks == []
    assert messages(controller)[-1] == "Failed to generate tasks. Check API key."


@pytest.mark.asyncio
async def test_generate_from_goal_no_suggestions(controller):
    await controller.register("Alice", "alice@example.com", "secret1")

    assert await controller.generate_from_goal("???") == []
    assert messages(controller)[-1] == "AI couldn't generate tasks. Try a clearer goal."


@pytest.mark.asyncio
async def test_generate_from_blank_goal_skips_gateway(controller, gateway):
    await controller.register("Alice", "alice@example.com", "secret1")

    assert await controller.generate_from_goal("   ") == []
    assert gateway.goals == []


@pytest.mark.asyncio
async def test_optimize_description(sessions, tasks):
    analysis = TaskAnalysis(priority=TaskPriority.HIGH, refined_description="Fix the login bug.")
    controller = ApplicationStateController(sessions, tasks, FakeSuggestionGateway(analysis=analysis))

    assert await controller.optimize_description("fix login") == analysis
    assert await controller.optimize_description("  ") is None
    assert controller.notifications[-1].message == "Please enter a description first."


@pytest.mark.asyncio
async def test_register_with_overlong_password_is_notified(controller):
    await controller.init()

    with pytest.raises(InvalidInputError):
        await controller.register("Alice", "alice@example.com", "p" * 100)

    assert not controller.state.is_authenticated
    assert controller.notifications[-1].level == "error"
    assert "72 bytes" in controller.notifications[-1].message


@pytest.mark.asyncio
async def test_generate_from_goal_stops_at_oversized_suggestion(sessions, tasks):
    oversized = SubtaskSuggestion.model_construct(title="x" * 250, description="", priority=TaskPriority.LOW)
    gateway = FakeSuggestionGateway(make_suggestions("Book venue") + [oversized])
    controller = ApplicationStateController(sessions, tasks, gateway)
    await controller.register("Alice", "alice@example.com", "secret1")

    created = await controller.generate_from_goal("Plan a team party")

    assert [t.title for t in created] == ["Book venue"]
    assert [t.title for t in controller.state.tasks] == ["Book venue"]
    assert messages(controller)[-1] == "Created 1 of 2 tasks before an error occurred."


async def signed_in_with_task(sessions, store):
    """Alice with one saved task, over a repository whose writes now fail."""
    repo = FlakyTaskRepository(store)
    controller = ApplicationStateController(sessions, repo, FakeSuggestionGateway())
    await controller.register("Alice", "alice@example.com", "secret1")
    task = await controller.save_task(TaskForm(title="Keep me"))
    repo.broken = True
    return controller, task


@pytest.mark.asyncio
async def test_failed_create_leaves_tasks_unchanged(sessions, store):
    controller, task = await signed_in_with_task(sessions, store)

    assert await controller.save_task(TaskForm(title="Lost")) is None

    assert controller.state.tasks == [task]
    assert controller.notifications[-1].level == "error"
    assert messages(controller)[-1] == "Failed to save task"


@pytest.mark.asyncio
async def test_failed_edit_leaves_tasks_unchanged(sessions, store):
    controller, task = await signed_in_with_task(sessions, store)

    assert await controller.save_task(TaskForm(title="Renamed"), editing_task=task) is None

    assert controller.state.tasks == [task]
    assert messages(controller)[-1] == "Failed to save task"


@pytest.mark.asyncio
async def test_failed_status_change_leaves_tasks_unchanged(sessions, store):
    controller, task = await signed_in_with_task(sessions, store)

    assert await controller.change_status(task, TaskStatus.COMPLETED) is None

    assert controller.state.tasks == [task]
    assert controller.state.tasks[0].status == TaskStatus.TODO
    assert controller.notifications[-1].level == "error"
    assert messages(controller)[-1] == "Failed to update status"


@pytest.mark.asyncio
async def test_failed_delete_keeps_task(sessions, store):
    controller, task = await signed_in_with_task(sessions, store)

    assert await controller.delete_task(task.id) is False

    assert controller.state.tasks == [task]
    assert controller.notifications[-1].level == "error"
    assert messages(controller)[-1] == "Failed to delete task"
