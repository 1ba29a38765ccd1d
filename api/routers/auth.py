"""Authentication router for user registration, login, profile and session management."""

from fastapi import APIRouter, HTTPException, status, Depends, Response
from fastapi.security import OAuth2PasswordRequestForm

from models.user import UserCreate, UserLogin, UserResponse, ProfileUpdate, Session, Token
from services.auth_service import AuthService, decode_token
from services.errors import (
    DuplicateEmailError,
    InvalidCredentialsError,
    InvalidInputError,
    UserNotFoundError,
    UnauthenticatedError,
)
from api.dependencies import get_auth_service, get_current_user, get_token_from_request
from config.settings import settings


router = APIRouter(prefix="/api/auth", tags=["Authentication"])


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key="access_token",
        value=f"Bearer {token}",
        httponly=True,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        samesite="lax"
    )


def _bad_credentials(e: InvalidCredentialsError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=str(e),
        headers={"WWW-Authenticate": "Bearer"},
    )


@router.post("/register", response_model=Session, status_code=status.HTTP_201_CREATED)
async def register(
    response: Response,
    user_data: UserCreate,
    auth: AuthService = Depends(get_auth_service)
):
    """Register a new user account and sign it in."""
    try:
        session = await auth.register(user_data.name, user_data.email, user_data.password)
    except (DuplicateEmailError, InvalidInputError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    _set_session_cookie(response, session.token)
    return session


@router.post("/login", response_model=Session)
async def login(
    response: Response,
    user_data: UserLogin,
    auth: AuthService = Depends(get_auth_service)
):
    """Authenticate user and return the user with a fresh JWT token."""
    try:
        session = await auth.login(user_data.email, user_data.password)
    except InvalidCredentialsError as e:
        raise _bad_credentials(e)

    _set_session_cookie(response, session.token)
    return session


@router.post("/login/form", response_model=Token)
async def login_form(
    response: Response,
    form_data: OAuth2PasswordRequestForm = Depends(),
    auth: AuthService = Depends(get_auth_service)
):
    """Authenticate user via OAuth2 form and return JWT token (for Swagger UI)."""
    try:
        session = await auth.login(form_data.username, form_data.password)
    except InvalidCredentialsError as e:
        raise _bad_credentials(e)

    _set_session_cookie(response, session.token)
    return Token(access_token=session.token)


@router.post("/logout")
async def logout(response: Response):
    """Logout user by clearing the session cookie. Tokens are stateless and simply expire."""
    response.delete_cookie(key="access_token")
    return {"message": "Successfully logged out"}


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: UserResponse = Depends(get_current_user)):
    """Get current authenticated user information."""
    return current_user


@router.put("/me", response_model=UserResponse)
async def update_me(
    profile: ProfileUpdate,
    current_user: UserResponse = Depends(get_current_user),
    auth: AuthService = Depends(get_auth_service)
):
    """Rename the current user. The email cannot be changed."""
    try:
        return await auth.update_profile(current_user.id, profile.name)
    except UserNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/verify")
async def verify_token(token: str = Depends(get_token_from_request)):
    """Verify if the current token is valid."""
    if not token:
        return {"valid": False, "message": "No token provided"}

    try:
        token_data = decode_token(token)
    except UnauthenticatedError as e:
        return {"valid": False, "message": str(e)}

    return {
        "valid": True,
        "user_id": token_data.user_id,
        "email": token_data.email,
        "expires_at": token_data.expires_at
    }
