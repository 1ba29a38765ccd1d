"""Tests for the remote client, driven against the app through an in-process transport."""

import json

import httpx
import pytest

from app import app
from api.dependencies import get_auth_service, get_task_repository, get_suggestion_gateway
from config.settings import Settings
from models.task import TaskCreate, TaskForm, TaskStatus, TaskUpdate, TaskPriority
from services.api_client import ApiClient, RemoteAuthBackend, RemoteTaskRepository, RemoteSuggestionGateway
from services.auth_service import AuthService
from services.errors import (
    DuplicateEmailError,
    InvalidCredentialsError,
    InvalidInputError,
    StorageFailure,
    SuggestionServiceUnavailable,
    TaskNotFoundError,
    UnauthenticatedError,
)
from services.factory import build_client_controller
from services.gemini_service import GeminiService
from services.session_service import SessionManager
from services.storage_service import InMemoryStore, save_token
from services.task_service import LocalTaskRepository
from services.user_service import LocalUserRepository
from tests.fakes import FakeGenAIClient


SUGGESTIONS = [
    {"title": "Book venue", "description": "Find a room", "priority": "HIGH"},
    {"title": "Send invites", "description": "Email the team", "priority": "LOW"},
]

REMOTE = Settings(CLIENT_MODE="remote", API_BASE_URL="http://testserver", ENFORCE_SESSION_EXPIRY=True)


@pytest.fixture()
def genai_client():
    return FakeGenAIClient(text=json.dumps(SUGGESTIONS))


@pytest.fixture()
def server_store(genai_client):
    """In-memory server backends wired into the app."""
    store = InMemoryStore()
    auth = AuthService(LocalUserRepository(store))
    tasks = LocalTaskRepository(store)
    gateway = GeminiService(api_key="test-key", client=genai_client)

    app.dependency_overrides[get_auth_service] = lambda: auth
    app.dependency_overrides[get_task_repository] = lambda: tasks
    app.dependency_overrides[get_suggestion_gateway] = lambda: gateway
    yield store
    app.dependency_overrides.clear()


@pytest.fixture()
def client_store():
    return InMemoryStore()


@pytest.fixture()
def api_client(server_store, client_store):
    return ApiClient(client_store, base_url="http://testserver", transport=httpx.ASGITransport(app=app))


@pytest.fixture()
def remote_sessions(api_client, client_store):
    return SessionManager(RemoteAuthBackend(api_client), client_store, enforce_expiry=True)


@pytest.mark.asyncio
async def test_remote_controller_round_trip(server_store, client_store):
    controller = build_client_controller(
        REMOTE, store=client_store, transport=httpx.ASGITransport(app=app)
    )
    await controller.init()
    assert not controller.state.is_authenticated

    await controller.register("Alice", "alice@example.com", "secret1")
    task = await controller.save_task(TaskForm(title="Buy milk", priority=TaskPriority.HIGH))
    await controller.change_status(task, TaskStatus.COMPLETED)

    assert [(t.title, t.status) for t in controller.state.tasks] == [("Buy milk", TaskStatus.COMPLETED)]
    assert controller.state.tasks[0].owner_id == controller.state.session.user.id

    created = await controller.generate_from_goal("Plan a team party")
    assert len(created) == 2
    assert controller.task_counts().total == 3

    # the server holds the tasks, the client store only the session
    server_tasks = await LocalTaskRepository(server_store).list_tasks(controller.state.session.user.id)
    assert len(server_tasks) == 3

    await controller.logout()
    await controller.login("alice@example.com", "secret1")
    assert controller.task_counts().total == 3


@pytest.mark.asyncio
async def test_remote_register_duplicate(remote_sessions):
    await remote_sessions.register("Alice", "alice@example.com", "secret1")
    with pytest.raises(DuplicateEmailError):
        await remote_sessions.register("Alice", "alice@example.com", "secret1")


@pytest.mark.asyncio
@pytest.mark.parametrize("email,password", [
    ("not-an-email", "secret1"),
    ("alice@example.com", "p" * 100),
])
async def test_remote_register_invalid_input(remote_sessions, email, password):
    with pytest.raises(InvalidInputError):
        await remote_sessions.register("Alice", email, password)
    assert await remote_sessions.get_current_session() is None


@pytest.mark.asyncio
async def test_remote_login_wrong_password(remote_sessions):
    await remote_sessions.register("Alice", "alice@example.com", "secret1")
    await remote_sessions.logout()

    with pytest.raises(InvalidCredentialsError):
        await remote_sessions.login("alice@example.com", "wrong")

    assert await remote_sessions.get_current_session() is None


@pytest.mark.asyncio
async def test_remote_profile_update(remote_sessions):
    session = await remote_sessions.register("Alice", "alice@example.com", "secret1")

    updated = await remote_sessions.update_profile(session.user.model_copy(update={"name": "Alice Cooper"}))

    assert updated.name == "Alice Cooper"
    assert (await remote_sessions.get_current_session()).user.name == "Alice Cooper"


@pytest.mark.asyncio
async def test_remote_requests_without_session(api_client):
    with pytest.raises(UnauthenticatedError) as exc_info:
        await RemoteTaskRepository(api_client).list_tasks("anyone")
    assert exc_info.value.reason == "missing"


@pytest.mark.asyncio
async def test_remote_update_missing_task(api_client, remote_sessions):
    session = await remote_sessions.register("Alice", "alice@example.com", "secret1")
    tasks = RemoteTaskRepository(api_client)

    with pytest.raises(TaskNotFoundError):
        await tasks.update_task(session.user.id, "missing", TaskUpdate(title="x"))

    await tasks.delete_task(session.user.id, "missing")


@pytest.mark.asyncio
async def test_remote_owner_argument_is_ignored(api_client, remote_sessions):
    session = await remote_sessions.register("Alice", "alice@example.com", "secret1")
    tasks = RemoteTaskRepository(api_client)

    task = await tasks.create_task("someone-else", TaskCreate(title="Mine"))

    assert task.owner_id == session.user.id


@pytest.mark.asyncio
async def test_remote_suggestions(api_client, remote_sessions, genai_client):
    await remote_sessions.register("Alice", "alice@example.com", "secret1")
    gateway = RemoteSuggestionGateway(api_client)

    suggestions = await gateway.generate_subtasks("Plan a team party")
    assert [s.title for s in suggestions] == ["Book venue", "Send invites"]

    genai_client.models.error = RuntimeError("quota exceeded")
    with pytest.raises(SuggestionServiceUnavailable):
        await gateway.generate_subtasks("Plan a team party")

    analysis = await gateway.analyze_task("fix login")
    assert analysis.priority == TaskPriority.MEDIUM
    assert analysis.refined_description == "fix login"


@pytest.mark.asyncio
async def test_unreachable_server_is_a_storage_failure(client_store):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = ApiClient(client_store, base_url="http://testserver", transport=httpx.MockTransport(refuse))

    with pytest.raises(StorageFailure):
        await client.request("POST", "/api/auth/login", json={}, auth=False)
    await client.aclose()


def canned(payload):
    """A transport answering every request with the same JSON body."""
    return httpx.MockTransport(lambda request: httpx.Response(200, json=payload))


@pytest.mark.asyncio
async def test_malformed_task_list_is_a_storage_failure(client_store):
    await save_token(client_store, "t")
    client = ApiClient(client_store, base_url="http://testserver", transport=canned([{"id": 1}]))

    with pytest.raises(StorageFailure):
        await RemoteTaskRepository(client).list_tasks("anyone")
    await client.aclose()


@pytest.mark.asyncio
async def test_malformed_session_is_a_storage_failure(client_store):
    client = ApiClient(client_store, base_url="http://testserver", transport=canned({"token": "t"}))

    with pytest.raises(StorageFailure):
        await RemoteAuthBackend(client).login("alice@example.com", "secret1")
    await client.aclose()


@pytest.mark.asyncio
async def test_malformed_suggestions_are_unavailable(client_store):
    await save_token(client_store, "t")
    client = ApiClient(client_store, base_url="http://testserver", transport=canned([{"title": ""}]))

    with pytest.raises(SuggestionServiceUnavailable):
        await RemoteSuggestionGateway(client).generate_subtasks("Plan a team party")
    await client.aclose()
