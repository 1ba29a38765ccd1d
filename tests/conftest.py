"""Shared test fixtures.

Everything runs against in-memory or tmp_path stores. bcrypt is turned down
to its minimum cost so registration and login stay fast.
"""

import pytest

from config.settings import settings
from services.storage_service import InMemoryStore, JsonFileStore
from services.auth_service import AuthService
from services.user_service import LocalUserRepository
from services.task_service import LocalTaskRepository
from services.session_service import SessionManager
from services.app_state import ApplicationStateController
from tests.fakes import FakeSuggestionGateway


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    monkeypatch.setattr(settings, "BCRYPT_ROUNDS", 4)


@pytest.fixture()
def store():
    return InMemoryStore()


@pytest.fixture()
def file_store(tmp_path):
    return JsonFileStore(tmp_path / "taskflow_store.json")


@pytest.fixture()
def users(store):
    return LocalUserRepository(store)


@pytest.fixture()
def auth(users):
    return AuthService(users)


@pytest.fixture()
def tasks(store):
    return LocalTaskRepository(store)


@pytest.fixture()
def sessions(auth, store):
    return SessionManager(auth, store, enforce_expiry=True)


@pytest.fixture()
def gateway():
    return FakeSuggestionGateway()


@pytest.fixture()
def controller(sessions, tasks, gateway):
    return ApplicationStateController(sessions, tasks, gateway)
