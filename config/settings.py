"""Settings configuration using pydantic-settings for environment variable management."""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from dotenv import load_dotenv

load_dotenv(override=True)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    MONGODB_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "taskflow"

    GEMINI_API_KEY: str = ""
    GEMINI_MODEL_NAME: str = "gemini-2.5-flash"

    JWT_SECRET: str = "your-secret-key-change-in-production"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    BCRYPT_ROUNDS: int = 12

    STORAGE_MODE: Literal["local", "memory", "mongo"] = "local"
    LOCAL_STORE_PATH: str = "taskflow_store.json"
    STORAGE_NAMESPACE: str = "taskflow"

    CLIENT_MODE: Literal["local", "remote"] = "local"
    API_BASE_URL: str = "http://localhost:8000"
    API_TIMEOUT_SECONDS: float = 15.0
    ENFORCE_SESSION_EXPIRY: bool = True

    APP_NAME: str = "TaskFlow AI"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    @field_validator("GEMINI_API_KEY", "STORAGE_NAMESPACE", mode="before")
    @classmethod
    def strip_value(cls, v):
        """Strip surrounding whitespace from string settings."""
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("API_BASE_URL", mode="before")
    @classmethod
    def validate_base_url(cls, v):
        """Normalize the API base URL (no trailing slash)."""
        if isinstance(v, str):
            return v.strip().rstrip("/")
        return v


settings = Settings()
