"""API dependencies for authentication, authorization and backend access."""

from fastapi import Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer
from typing import Optional

from models.user import UserResponse
from services.auth_service import AuthService, decode_token
from services.errors import UnauthenticatedError
from services.factory import backends
from services.gemini_service import GeminiService
from services.task_service import TaskRepository


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login/form", auto_error=False)


def get_auth_service() -> AuthService:
    """Dependency to get the account service."""
    if backends.auth is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Service is starting")
    return backends.auth


def get_task_repository() -> TaskRepository:
    """Dependency to get the task repository."""
    if backends.tasks is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Service is starting")
    return backends.tasks


def get_suggestion_gateway() -> GeminiService:
    """Dependency to get the Gemini suggestion gateway."""
    return backends.suggestions


async def get_token_from_request(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme)
) -> Optional[str]:
    """Extract token from Authorization header or cookie."""
    if token:
        return token

    token_from_cookie = request.cookies.get("access_token")
    if token_from_cookie:
        if token_from_cookie.startswith("Bearer "):
            return token_from_cookie[7:]
        return token_from_cookie

    return None


async def get_current_user(
    token: Optional[str] = Depends(get_token_from_request),
    auth: AuthService = Depends(get_auth_service)
) -> UserResponse:
    """
    Get the current authenticated user from the JWT token.

    No token gives 401. An expired token or a bad signature gives 403. A
    valid token whose user no longer exists gives 401.
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        token_data = decode_token(token)
    except UnauthenticatedError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))

    user = await auth.get_user(token_data.user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user
