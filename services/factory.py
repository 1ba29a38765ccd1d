"""
Backend wiring for the configured deployment modes.

- Server side (STORAGE_MODE): where the API keeps users and tasks. The
  choices are the local JSON store, memory, or MongoDB.
- Client side (CLIENT_MODE): whether the state controller works directly
  on the local store or goes through the HTTP API.
"""

import logging
from typing import Optional

import httpx

from config.settings import Settings, settings
from config.database import database
from config.logging_utils import log_success
from services.storage_service import PersistentStore, JsonFileStore, InMemoryStore
from services.auth_service import AuthService
from services.user_service import LocalUserRepository, MongoUserRepository
from services.task_service import TaskRepository, LocalTaskRepository, MongoTaskRepository
from services.session_service import SessionManager
from services.gemini_service import GeminiService, gemini_service
from services.api_client import ApiClient, RemoteAuthBackend, RemoteTaskRepository, RemoteSuggestionGateway
from services.app_state import ApplicationStateController

logger = logging.getLogger(__name__)


def build_store(config: Settings = settings) -> PersistentStore:
    """The persistent store for the configured mode."""
    if config.STORAGE_MODE == "memory":
        return InMemoryStore()
    return JsonFileStore(config.LOCAL_STORE_PATH)


class ServerBackends:
    """Repositories and services shared by the API routers."""

    def __init__(self):
        self.auth: Optional[AuthService] = None
        self.tasks: Optional[TaskRepository] = None
        self.suggestions: GeminiService = gemini_service
        self._mode: Optional[str] = None

    async def start(self, config: Settings = settings, store: Optional[PersistentStore] = None) -> None:
        """Build the repositories, connecting MongoDB in mongo mode."""
        self._mode = config.STORAGE_MODE
        if config.STORAGE_MODE == "mongo":
            await database.connect()
            users = MongoUserRepository(database.get_collection("users"))
            tasks = MongoTaskRepository(database.get_collection("tasks"))
            await users.create_indexes()
            await tasks.create_indexes()
            log_success(f"Connected to MongoDB: {config.DATABASE_NAME}", prefix="STORE")
        else:
            store = store or build_store(config)
            users = LocalUserRepository(store)
            tasks = LocalTaskRepository(store)
            log_success(f"Using {config.STORAGE_MODE} store", prefix="STORE")

        self.auth = AuthService(users)
        self.tasks = tasks

    async def stop(self) -> None:
        self.suggestions.close()
        if self._mode == "mongo":
            await database.disconnect()
            logger.info("Disconnected from MongoDB")


backends = ServerBackends()


def build_client_controller(
    config: Settings = settings,
    store: Optional[PersistentStore] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> ApplicationStateController:
    """
    Build the state controller for the configured client mode.

    Args:
        config: Settings to read the modes from
        store: Client-side store for the session (and, in local mode, for
            users and tasks); defaults to the configured store
        transport: Optional httpx transport for remote mode
    """
    store = store or build_store(config)

    if config.CLIENT_MODE == "remote":
        client = ApiClient(
            store,
            base_url=config.API_BASE_URL,
            timeout=config.API_TIMEOUT_SECONDS,
            transport=transport
        )
        backend = RemoteAuthBackend(client)
        tasks = RemoteTaskRepository(client)
        suggestions = RemoteSuggestionGateway(client)
    else:
        backend = AuthService(LocalUserRepository(store))
        tasks = LocalTaskRepository(store)
        suggestions = GeminiService(api_key=config.GEMINI_API_KEY, model_name=config.GEMINI_MODEL_NAME)

    sessions = SessionManager(backend, store, enforce_expiry=config.ENFORCE_SESSION_EXPIRY)
    return ApplicationStateController(sessions, tasks, suggestions)
