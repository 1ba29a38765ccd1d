"""User models for authentication, sessions and database storage."""

from pydantic import BaseModel, EmailStr, Field, ConfigDict, field_validator
from typing import Optional
from datetime import datetime


# bcrypt rejects passwords longer than 72 bytes
MAX_PASSWORD_BYTES = 72


class UserCreate(BaseModel):
    """Schema for user registration."""
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("password")
    @classmethod
    def validate_password_bytes(cls, v: str) -> str:
        if len(v.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
        return v


class UserLogin(BaseModel):
    """Schema for user login."""
    email: EmailStr
    password: str


class ProfileUpdate(BaseModel):
    """Schema for profile updates. Email is immutable, so only the name can change."""
    name: str = Field(..., min_length=1, max_length=100)


class UserInDB(BaseModel):
    """Schema for user stored in the local store or database."""
    id: str
    name: str
    email: str
    password_hash: str
    avatar_url: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    def to_response(self) -> "UserResponse":
        return UserResponse(
            id=self.id,
            name=self.name,
            email=self.email,
            avatar_url=self.avatar_url
        )


class UserResponse(BaseModel):
    """Schema for user response (without sensitive data)."""
    id: str
    name: str
    email: str
    avatar_url: str = ""


class Session(BaseModel):
    """A signed-in user paired with the bearer token proving it."""
    user: UserResponse
    token: str


class Token(BaseModel):
    """Schema for the OAuth2 form login response."""
    access_token: str
    token_type: str = "bearer"


class TokenData(BaseModel):
    """Schema for decoded token data."""
    user_id: str
    email: Optional[str] = None
    expires_at: Optional[datetime] = None
