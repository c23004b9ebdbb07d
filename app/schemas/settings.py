"""User Settings Pydantic schemas for request/response validation."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import Field, field_validator

from app.core.config import settings

from .base import BaseModelSchema, BaseSchema


ThemeType = Literal["light", "dark", "system"]
FontSizeType = Literal["small", "medium", "large"]


class UserPreferences(BaseSchema):
    """Preference bag stored as one JSON document per user."""

    default_model: str = Field(default=settings.default_model, description="Model used for new chats")
    theme: ThemeType = Field(default="system", description="UI theme preference")
    font_size: FontSizeType = Field(default="medium")
    show_thinking_by_default: bool = Field(default=False, description="Expand reasoning traces")
    auto_save_chats: bool = Field(default=True)
    enable_notifications: bool = Field(default=True)
    language: str = Field(default="en", max_length=10, description="Language code (e.g., 'en', 'es')")
    max_tokens: int = Field(default=settings.ai_max_tokens, ge=1, le=32000)
    temperature: float = Field(default=settings.ai_temperature, ge=0.0, le=2.0)

    @field_validator("language")
    @classmethod
    def validate_language(cls, v: str) -> str:
        """Validate language code format."""
        if not v.strip():
            raise ValueError("Language code cannot be empty")
        if not all(c.isalpha() or c == "-" for c in v):
            raise ValueError("Language code must contain only letters and hyphens")
        return v


class UserSettingsResponse(BaseModelSchema):
    """Schema for user settings response data."""

    user_id: UUID
    preferences: UserPreferences


class UserSettingsUpdate(BaseSchema):
    """Schema for saving the whole preference bag."""

    preferences: UserPreferences


class UserDataExport(BaseSchema):
    """Everything stored for one user."""

    user: dict[str, Any]
    preferences: dict[str, Any]
    chat_sessions: list[dict[str, Any]]
    exported_at: datetime


class DeleteUserDataResponse(BaseSchema):
    """Result of deleting all user data."""

    deleted_sessions: int
    deleted_messages: int
    deleted_settings: int
