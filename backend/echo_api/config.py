"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Template value shipped in .env.example; treated the same as an unset key
PLACEHOLDER_API_KEY = "your_openai_api_key_here"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "Echo"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    log_level: str = "INFO"
    api_prefix: str = "/api"

    # Database
    # When unset, or unreachable at startup, the in-memory store is used instead
    database_url: str | None = None
    database_connect_timeout: float = 5.0
    database_auto_create: bool = False

    @computed_field
    @property
    def database_url_async(self) -> str | None:
        """Get async database URL, rewriting postgres schemes for the asyncpg driver."""
        url = self.database_url
        if not url:
            return None
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        elif url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql+asyncpg://", 1)
        # asyncpg doesn't accept libpq query params via URL
        if url.startswith("postgresql+asyncpg://") and "?" in url:
            url = url.split("?")[0]
        return url

    @computed_field
    @property
    def database_url_sync(self) -> str | None:
        """Get sync database URL (for Alembic)."""
        url = self.database_url
        if not url:
            return None
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql://", 1)
        elif url.startswith("postgresql+asyncpg://"):
            url = url.replace("postgresql+asyncpg://", "postgresql://", 1)
        elif url.startswith("sqlite+aiosqlite://"):
            url = url.replace("sqlite+aiosqlite://", "sqlite://", 1)
        return url

    # Auth
    # Exactly one strategy per deployment
    auth_provider: Literal["jwt", "firebase"] = "jwt"
    jwt_secret_key: str | None = None  # Privileged routes refuse all requests when unset
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60 * 24 * 30  # 30 days
    firebase_project_id: str | None = None

    # CORS
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:5174"]
    frontend_url: str = "http://localhost:5173"

    # LLM provider (OpenAI-compatible)
    openai_api_key: str | None = None
    openai_base_url: str | None = None
    llm_model: str | None = None  # Defaults depend on the provider, see ModelGateway
    llm_max_tokens: int = 1000
    llm_timeout_seconds: float = 60.0
    llm_max_retries: int = 3  # Retries after the first attempt, on transient errors only
    title_max_tokens: int = 20

    # History sent to the model; None means no limit
    history_max_messages: int | None = None
    history_max_chars: int | None = None

    # Rate limiting (per client address)
    rate_limit_enabled: bool = True
    rate_limit_requests: int = 100
    rate_limit_window_seconds: int = 15 * 60

    # Share links
    share_slug_max_attempts: int = 10
    share_list_limit: int = 50

    @computed_field
    @property
    def ai_configured(self) -> bool:
        """Whether a usable provider credential is present."""
        key = (self.openai_api_key or "").strip()
        return bool(key) and key != PLACEHOLDER_API_KEY


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def sanitize_error(error: Exception, *, generic_message: str = "An internal error occurred.") -> str:
    """
    Return a user-safe error message.

    In development, returns the full exception string for debugging.
    In staging/production, returns a generic message to avoid leaking internals.
    """
    settings = get_settings()
    if settings.environment == "development":
        return str(error)
    return generic_message
