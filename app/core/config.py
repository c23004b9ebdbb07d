# python
# app/core/config.py
"""Configuration settings for the LLM Chat API.

Uses Pydantic BaseSettings for environment variable management.
"""
import secrets
from enum import Enum

from pydantic import AnyHttpUrl, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EnvironmentEnum(str, Enum):
    development = "development"
    testing = "testing"
    staging = "staging"
    production = "production"


class LogLevelEnum(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormatEnum(str, Enum):
    simple = "simple"
    json = "json"


class Settings(BaseSettings):
    # Pydantic v2 settings configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ===== Application Settings =====
    app_name: str = Field(default="LLM Chat API", description="Application name")
    environment: EnvironmentEnum = Field(
        default=EnvironmentEnum.development, description="Environment type"
    )
    debug: bool = Field(default=False, description="Debug mode")
    version: str = Field(default="1.0.0", description="Application version")

    # ===== Security Settings =====
    secret_key: str = Field(
        default_factory=lambda: secrets.token_urlsafe(32),
        description="Secret key for signing anonymous session tokens",
    )
    algorithm: str = Field(default="HS256", description="JWT algorithm")
    anonymous_token_expire_days: int = Field(
        default=30, description="Lifetime of an anonymous session token"
    )

    # ===== Database Settings =====
    database_url: str | None = Field(default=None, description="Database connection URL")
    db_pool_size: int = Field(default=20, description="Database connection pool size")
    db_max_overflow: int = Field(default=0, description="Database max overflow connections")

    # Test database URL
    test_database_url: str | None = Field(default=None, description="Test database URL")

    # ===== Authentication (Clerk) =====
    clerk_secret_key: str | None = Field(default=None, description="Clerk secret key")
    clerk_api_url: AnyHttpUrl = Field(default="https://api.clerk.com", description="Clerk API URL")

    # ===== Model API (OpenRouter) =====
    openrouter_api_key: str | None = Field(default=None, description="OpenRouter API key")
    openrouter_base_url: str = Field(
        default="https://openrouter.ai/api/v1", description="OpenRouter API base URL"
    )
    default_model: str = Field(
        default="google/gemini-2.0-flash-lite-001", description="Model used when none is requested"
    )
    title_model: str = Field(
        default="google/gemini-2.0-flash-lite-001", description="Model used for chat titles"
    )
    ai_max_tokens: int = Field(default=4000, description="Maximum output tokens per completion")
    ai_temperature: float = Field(default=0.7, description="Sampling temperature for chat")
    ai_request_timeout: int = Field(default=120, description="AI request timeout in seconds")
    ai_max_tool_iterations: int = Field(default=5, description="Maximum request/tool-call rounds")
    ai_context_messages: int = Field(default=10, description="Messages sent as context")

    # ===== Tools =====
    serper_api_key: str | None = Field(default=None, description="Serper search API key")
    serper_url: str = Field(default="https://google.serper.dev/search", description="Serper search URL")
    tool_request_timeout: int = Field(default=20, description="Tool request timeout in seconds")
    extract_max_chars: int = Field(default=10000, description="Extracted page content limit")

    # ===== Redis / Background Tasks (Celery) =====
    celery_broker_url: str = Field(
        default="redis://localhost:6379/1", description="Celery broker URL"
    )
    celery_result_backend: str = Field(
        default="redis://localhost:6379/2", description="Celery result backend"
    )
    generation_timeout_seconds: int = Field(
        default=300, description="Age after which a generating message is considered stuck"
    )
    sweep_interval_seconds: int = Field(default=60, description="Stale generation sweep period")

    # ===== Application Limits =====
    max_attachment_size: int = Field(default=10 * 1024 * 1024, description="Maximum attachment size (10MB)")
    max_attachments_per_message: int = Field(default=10, description="Maximum attachments per message")
    max_message_length: int = Field(default=32000, description="Maximum message length")

    # ===== CORS Settings =====
    allowed_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000",
        description="Allowed CORS origins (comma-separated)",
    )

    @property
    def allowed_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        if isinstance(self.allowed_origins, str):
            return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]
        return self.allowed_origins if isinstance(self.allowed_origins, list) else []

    # ===== Monitoring & Logging =====
    log_level: LogLevelEnum = Field(default=LogLevelEnum.INFO, description="Logging level")
    log_format: LogFormatEnum = Field(default=LogFormatEnum.json, description="Log format")

    # ===== Server Settings =====
    host: str = Field(default="127.0.0.1", description="Host to bind the server")
    port: int = Field(default=8000, description="Port to bind the server")

    # ===== Computed Properties =====
    @property
    def is_development(self) -> bool:
        return self.environment == EnvironmentEnum.development

    @property
    def is_production(self) -> bool:
        return self.environment == EnvironmentEnum.production

    @property
    def database_url_sync(self) -> str:
        if not self.database_url:
            return ""
        return self.database_url.replace("postgresql+asyncpg://", "postgresql://")

    @property
    def has_ai_enabled(self) -> bool:
        return bool(self.openrouter_api_key)

    @property
    def has_search_enabled(self) -> bool:
        return bool(self.serper_api_key)

    # ===== Validation Methods =====
    @field_validator("environment", mode="before")
    @classmethod
    def validate_environment(cls, v):
        if v and isinstance(v, str):
            lv = v.lower()
            if lv in ["dev", "develop"]:
                return "development"
            if lv in ["prod"]:
                return "production"
            return lv
        return v

    @field_validator("max_attachment_size")
    @classmethod
    def validate_attachment_size(cls, v):
        if v > 10 * 1024 * 1024:
            raise ValueError("Maximum attachment size cannot exceed 10MB")
        return v

    @field_validator("ai_max_tool_iterations")
    @classmethod
    def validate_tool_iterations(cls, v):
        if v < 1:
            raise ValueError("At least one model request per turn is required")
        return v

    @model_validator(mode="after")
    def set_computed_fields(self):
        if not self.test_database_url and self.database_url and "neondb" in self.database_url:
            self.test_database_url = self.database_url.replace("neondb", "neondb_test")
        return self


settings = Settings()


class ConfigValidator:
    @staticmethod
    def validate_required_settings():
        errors = []
        if not settings.database_url:
            errors.append("DATABASE_URL is required")
        if not settings.clerk_secret_key:
            errors.append("CLERK_SECRET_KEY is required")
        if settings.is_production and not settings.openrouter_api_key:
            errors.append("OPENROUTER_API_KEY is required in production")
        if errors:
            raise ValueError(f"Configuration errors: {', '.join(errors)}")

    @staticmethod
    def get_feature_status() -> dict:
        return {
            "ai_enabled": settings.has_ai_enabled,
            "search_enabled": settings.has_search_enabled,
            "environment": settings.environment,
        }


def get_config_summary() -> dict:
    return {
        "app_name": settings.app_name,
        "version": settings.version,
        "environment": settings.environment,
        "debug": settings.debug,
        "features": ConfigValidator.get_feature_status(),
        "database_configured": bool(settings.database_url),
        "auth_configured": bool(settings.clerk_secret_key),
    }


__all__ = [
    "settings",
    "Settings",
    "ConfigValidator",
    "get_config_summary",
    "EnvironmentEnum",
    "LogLevelEnum",
    "LogFormatEnum",
]
