"""
Remote API Client

The networked counterparts of the local auth backend, task repository and
suggestion gateway. They talk to the TaskFlow HTTP API and keep the same
contracts (and the same domain exceptions) as the local implementations.

The bearer token is read from the client's persistent store on every
request, just as a browser app reads it from local storage. Owner ids
passed by callers are never sent. The server derives the owner from the
token.
"""

import logging
from typing import Any, Callable, Optional
from urllib.parse import quote

import httpx
from pydantic import TypeAdapter, ValidationError

from config.settings import settings
from config.logging_utils import log_debug
from models.user import Session, UserResponse
from models.task import Task, TaskCreate, TaskUpdate, SubtaskSuggestion, TaskAnalysis, TaskPriority
from services.errors import (
    TaskFlowError,
    DuplicateEmailError,
    InvalidCredentialsError,
    InvalidInputError,
    UserNotFoundError,
    TaskNotFoundError,
    UnauthenticatedError,
    SuggestionServiceUnavailable,
    StorageFailure,
)
from services.storage_service import PersistentStore, load_token
from services.task_service import TaskRepository

logger = logging.getLogger(__name__)


def _error_detail(response: httpx.Response) -> str:
    try:
        detail = response.json().get("detail")
    except (ValueError, AttributeError):
        detail = None
    if detail is None:
        return response.text or response.reason_phrase
    return detail if isinstance(detail, str) else str(detail)


class ApiClient:
    """Thin async HTTP client for the TaskFlow API."""

    def __init__(
        self,
        store: PersistentStore,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self._store = store
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.API_BASE_URL,
            timeout=timeout or settings.API_TIMEOUT_SECONDS,
            transport=transport
        )

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        auth: bool = True,
        errors: Optional[dict[int, Callable[[str], TaskFlowError]]] = None
    ) -> Any:
        """
        Send a request and return the decoded JSON body.

        Args:
            method: HTTP method
            path: Path relative to the API base URL
            json: Optional JSON body
            auth: Attach the stored bearer token
            errors: Status codes mapped to the domain exception (or a
                factory of one, given the error detail) to raise

        Raises:
            UnauthenticatedError: no stored token, or a 401/403 response
            StorageFailure: transport failure or an unmapped error status
        """
        headers = {}
        if auth:
            token = await load_token(self._store)
            if token is None:
                raise UnauthenticatedError("Not signed in", reason="missing")
            headers["Authorization"] = f"Bearer {token}"

        log_debug(f"{method} {path}", prefix="API")
        try:
            response = await self._client.request(method, path, json=json, headers=headers)
        except httpx.RequestError as e:
            logger.warning(f"API request {method} {path} failed: {e}")
            raise StorageFailure(f"Could not reach the TaskFlow API: {e}") from e

        if response.is_success:
            if not response.content:
                return None
            try:
                return response.json()
            except ValueError as e:
                raise StorageFailure(f"{method} {path} returned a non-JSON body") from e

        detail = _error_detail(response)
        if errors and response.status_code in errors:
            raise errors[response.status_code](detail)
        if response.status_code == 401:
            raise UnauthenticatedError(detail, reason="missing")
        if response.status_code == 403:
            raise UnauthenticatedError(detail, reason="invalid")
        raise StorageFailure(f"{method} {path} returned {response.status_code}: {detail}")

    async def aclose(self) -> None:
        await self._client.aclose()


_session_adapter = TypeAdapter(Session)
_user_adapter = TypeAdapter(UserResponse)
_task_adapter = TypeAdapter(Task)
_tasks_adapter = TypeAdapter(list[Task])
_suggestions_adapter = TypeAdapter(list[SubtaskSuggestion])


def _parse(adapter: TypeAdapter, data: Any, what: str) -> Any:
    """Validate a server payload. A malformed payload is a StorageFailure."""
    try:
        return adapter.validate_python(data)
    except ValidationError as e:
        logger.error(f"Malformed {what} payload from the API: {e}")
        raise StorageFailure(f"The TaskFlow API returned a malformed {what}") from e


def _registration_error(detail: str) -> TaskFlowError:
    # the server answers 400 both for a taken email and for rejected input
    if detail == str(DuplicateEmailError()):
        return DuplicateEmailError(detail)
    return InvalidInputError(detail)


class RemoteAuthBackend:
    """Auth backend for the SessionManager that calls /api/auth."""

    def __init__(self, client: ApiClient):
        self._client = client

    async def register(self, name: str, email: str, password: str) -> Session:
        data = await self._client.request(
            "POST", "/api/auth/register",
            json={"name": name, "email": email, "password": password},
            auth=False,
            errors={400: _registration_error, 422: InvalidInputError}
        )
        return _parse(_session_adapter, data, "session")

    async def login(self, email: str, password: str) -> Session:
        data = await self._client.request(
            "POST", "/api/auth/login",
            json={"email": email, "password": password},
            auth=False,
            errors={401: InvalidCredentialsError, 422: InvalidCredentialsError}
        )
        return _parse(_session_adapter, data, "session")

    async def update_profile(self, user_id: str, name: str) -> UserResponse:
        # The server renames the token's user; user_id is implied by the token.
        data = await self._client.request(
            "PUT", "/api/auth/me",
            json={"name": name},
            errors={404: UserNotFoundError}
        )
        return _parse(_user_adapter, data, "user")


class RemoteTaskRepository(TaskRepository):
    """Task repository backed by /api/tasks."""

    def __init__(self, client: ApiClient):
        self._client = client

    async def list_tasks(self, owner_id: str) -> list[Task]:
        data = await self._client.request("GET", "/api/tasks")
        return _parse(_tasks_adapter, data, "task list")

    async def create_task(self, owner_id: str, data: TaskCreate) -> Task:
        body = await self._client.request("POST", "/api/tasks", json=data.model_dump(mode="json"))
        return _parse(_task_adapter, body, "task")

    async def update_task(self, owner_id: str, task_id: str, changes: TaskUpdate) -> Task:
        body = await self._client.request(
            "PUT", f"/api/tasks/{quote(task_id, safe='')}",
            json=changes.changes(mode="json"),
            errors={404: TaskNotFoundError}
        )
        return _parse(_task_adapter, body, "task")

    async def delete_task(self, owner_id: str, task_id: str) -> None:
        await self._client.request("DELETE", f"/api/tasks/{quote(task_id, safe='')}")


class RemoteSuggestionGateway:
    """Suggestion gateway that keeps the Gemini key on the server (/api/ai)."""

    def __init__(self, client: ApiClient):
        self._client = client

    async def generate_subtasks(self, goal: str) -> list[SubtaskSuggestion]:
        try:
            data = await self._client.request(
                "POST", "/api/ai/subtasks",
                json={"goal": goal},
                errors={503: SuggestionServiceUnavailable}
            )
            return _parse(_suggestions_adapter, data, "suggestion list")
        except StorageFailure as e:
            raise SuggestionServiceUnavailable(str(e)) from e

    async def analyze_task(self, description: str) -> TaskAnalysis:
        try:
            data = await self._client.request("POST", "/api/ai/analyze", json={"description": description})
            return TaskAnalysis.model_validate(data)
        except Exception as e:
            logger.error(f"Remote analysis failed, using fallback: {e}")
            return TaskAnalysis(priority=TaskPriority.MEDIUM, refined_description=description)
