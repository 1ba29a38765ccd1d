"""Authentication service for password hashing, JWT token management and account operations."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Optional
from urllib.parse import quote

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import ValidationError

from config.settings import settings
from config.logging_utils import log_debug, log_success, log_error
from models.user import MAX_PASSWORD_BYTES, UserCreate, UserInDB, UserResponse, Session, TokenData
from services.errors import (
    DuplicateEmailError,
    InvalidCredentialsError,
    InvalidInputError,
    UnauthenticatedError,
    describe_validation_errors,
)

if TYPE_CHECKING:
    from services.user_service import UserRepository


def password_too_long(password: str) -> bool:
    return len(password.encode("utf-8")) > MAX_PASSWORD_BYTES


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    """Hash a password using bcrypt. Raises InvalidInputError past 72 bytes."""
    if password_too_long(password):
        raise InvalidInputError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    password_bytes = password.encode('utf-8')
    salt = bcrypt.gensalt(rounds=rounds or settings.BCRYPT_ROUNDS)
    hashed = bcrypt.hashpw(password_bytes, salt)
    return hashed.decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash. A malformed hash never verifies."""
    if password_too_long(plain_password):
        return False
    password_bytes = plain_password.encode('utf-8')
    hashed_bytes = hashed_password.encode('utf-8')
    try:
        return bcrypt.checkpw(password_bytes, hashed_bytes)
    except ValueError:
        return False


def normalize_email(email: str) -> str:
    """Emails are unique case-insensitively."""
    return email.strip().lower()


def avatar_url_for(name: str) -> str:
    """Derive a deterministic avatar URL from the user's name."""
    return f"https://ui-avatars.com/api/?name={quote(name.strip(), safe='')}&background=random"


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": datetime.now(timezone.utc) + expires_delta})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> TokenData:
    """
    Decode and validate a JWT token.

    Raises:
        UnauthenticatedError: token expired (reason "expired") or has a bad
            signature or payload (reason "invalid")
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError as e:
        raise UnauthenticatedError("Token has expired", reason="expired") from e
    except JWTError as e:
        raise UnauthenticatedError("Invalid token", reason="invalid") from e

    user_id = payload.get("sub")
    if not user_id:
        raise UnauthenticatedError("Token has no subject", reason="invalid")
    exp = payload.get("exp")
    return TokenData(
        user_id=user_id,
        email=payload.get("email"),
        expires_at=datetime.fromtimestamp(exp, tz=timezone.utc) if exp else None
    )


class AuthService:
    """
    Account operations over a user repository.

    Serves both the local client (through the SessionManager) and the HTTP
    API. bcrypt work runs in a worker thread so the event loop stays free.
    """

    def __init__(self, users: "UserRepository"):
        self._users = users

    def issue_session(self, user: UserInDB) -> Session:
        """Sign a fresh token for the user."""
        token = create_access_token({"sub": user.id, "email": user.email})
        return Session(user=user.to_response(), token=token)

    async def register(self, name: str, email: str, password: str) -> Session:
        """
        Create an account and sign it in.

        Raises:
            InvalidInputError: malformed email, blank name or a password
                bcrypt cannot hash
            DuplicateEmailError: if the email is already registered
        """
        try:
            user_data = UserCreate(name=name.strip(), email=email.strip(), password=password)
        except ValidationError as e:
            raise InvalidInputError(describe_validation_errors(e.errors())) from e

        email = normalize_email(user_data.email)
        if await self._users.get_by_email(email) is not None:
            log_error(f"Registration rejected, email taken: {email}", prefix="AUTH")
            raise DuplicateEmailError()

        password_hash = await asyncio.to_thread(hash_password, user_data.password)
        user = await self._users.insert(
            name=user_data.name,
            email=email,
            password_hash=password_hash,
            avatar_url=avatar_url_for(user_data.name)
        )
        log_success(f"Registered user id={user.id}", prefix="AUTH")
        return self.issue_session(user)

    async def login(self, email: str, password: str) -> Session:
        """
        Verify credentials and issue a fresh token.

        Raises:
            InvalidCredentialsError: unknown email or wrong password
        """
        if password_too_long(password):
            raise InvalidCredentialsError()
        user = await self._users.get_by_email(normalize_email(email))
        if user is None:
            raise InvalidCredentialsError()
        if not await asyncio.to_thread(verify_password, password, user.password_hash):
            log_debug(f"Password mismatch for user id={user.id}", prefix="AUTH")
            raise InvalidCredentialsError()
        log_success(f"Login for user id={user.id}", prefix="AUTH")
        return self.issue_session(user)

    async def update_profile(self, user_id: str, name: str) -> UserResponse:
        """Rename a user. Raises UserNotFoundError for an unknown id."""
        user = await self._users.update_name(user_id, name.strip())
        log_debug(f"Profile updated for user id={user_id}", prefix="AUTH")
        return user.to_response()

    async def get_user(self, user_id: str) -> Optional[UserResponse]:
        user = await self._users.get_by_id(user_id)
        return user.to_response() if user else None
