"""
Session Manager

Owns the client-side login state. Identity checks are delegated to an auth
backend: the local AuthService, or the RemoteAuthBackend that talks to the
HTTP API. The resulting session (user snapshot plus bearer token) is kept
in the persistent store.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Protocol

from jose import JWTError, jwt

from config.settings import settings
from config.logging_utils import log_debug, log_success
from models.user import Session, UserResponse
from services.storage_service import (
    PersistentStore,
    load_current_user,
    save_current_user,
    load_token,
    save_token,
    clear_session,
)

logger = logging.getLogger(__name__)


class AuthBackend(Protocol):
    """Where accounts live and tokens get signed."""

    async def register(self, name: str, email: str, password: str) -> Session: ...

    async def login(self, email: str, password: str) -> Session: ...

    async def update_profile(self, user_id: str, name: str) -> UserResponse: ...


def token_expired(token: str, now: Optional[datetime] = None) -> bool:
    """
    Check a token's expiry claim without verifying its signature.

    The client may not hold the signing secret (remote mode). A token with
    no readable expiry counts as expired.
    """
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError:
        return True
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        return True
    now = now or datetime.now(timezone.utc)
    return exp <= now.timestamp()


class SessionManager:
    """
    Login, registration, logout and current-session retrieval.

    Lifecycle: get_current_session() restores a stored session on start,
    register()/login() establish a new one, and logout() tears it down.
    """

    def __init__(
        self,
        backend: AuthBackend,
        store: PersistentStore,
        enforce_expiry: Optional[bool] = None
    ):
        self._backend = backend
        self._store = store
        self._enforce_expiry = settings.ENFORCE_SESSION_EXPIRY if enforce_expiry is None else enforce_expiry

    async def _establish(self, session: Session) -> Session:
        await save_current_user(self._store, session.user)
        await save_token(self._store, session.token)
        return session

    async def register(self, name: str, email: str, password: str) -> Session:
        """Create an account and make it the current session."""
        session = await self._backend.register(name, email, password)
        log_success(f"Session established for new user id={session.user.id}", prefix="AUTH")
        return await self._establish(session)

    async def login(self, email: str, password: str) -> Session:
        """Sign in and make the result the current session."""
        session = await self._backend.login(email, password)
        log_success(f"Session established for user id={session.user.id}", prefix="AUTH")
        return await self._establish(session)

    async def logout(self) -> None:
        """Forget the current session. Safe to call when signed out."""
        await clear_session(self._store)
        log_debug("Session cleared", prefix="AUTH")

    async def get_current_session(self) -> Optional[Session]:
        """
        Read the stored session.

        With expiry enforcement on, a session whose token has expired (or
        cannot be read) is reported as absent. The stored pointer itself
        is left untouched.
        """
        user = await load_current_user(self._store)
        token = await load_token(self._store)
        if user is None or token is None:
            return None
        if self._enforce_expiry and token_expired(token):
            logger.info(f"Stored session for user id={user.id} has expired")
            return None
        return Session(user=user, token=token)

    async def update_profile(self, user: UserResponse) -> UserResponse:
        """Merge the user's name into the stored account and session snapshot."""
        updated = await self._backend.update_profile(user.id, user.name)
        current = await load_current_user(self._store)
        if current is not None and current.id == updated.id:
            await save_current_user(self._store, updated)
        return updated
