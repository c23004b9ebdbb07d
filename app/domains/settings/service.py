# app/domains/settings/service.py
"""Settings service for managing user preferences and user data."""

import logging
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.domains.ai.registry import get_model
from app.domains.user.service import UserService
from app.exceptions.base import NotFoundError, ValidationError
from app.schemas.settings import UserPreferences
from models import ChatMessage, ChatSession, UserSettings

logger = logging.getLogger(__name__)


class SettingsService:
    """Service for managing user settings and preferences."""

    def __init__(self, db: AsyncSession):
        """Initialize service with a database session."""
        self.db = db

    async def _find(self, user_id: UUID) -> UserSettings | None:
        result = await self.db.execute(select(UserSettings).where(UserSettings.user_id == user_id))
        return result.scalar_one_or_none()

    async def get_user_settings(self, user_id: UUID) -> UserSettings:
        """
        Get user settings, creating with defaults if they don't exist.

        Args:
            user_id: The user's unique identifier

        Returns:
            UserSettings: The user's settings object

        Raises:
            SQLAlchemyError: If database operation fails
        """
        settings = await self._find(user_id)

        if not settings:
            # Create default settings for user
            settings = await self.create_default_settings(user_id)

        return settings

    async def create_default_settings(self, user_id: UUID) -> UserSettings:
        """
        Create default settings for a user.

        Args:
            user_id: The user's unique identifier

        Returns:
            UserSettings: Newly created settings with defaults

        Raises:
            SQLAlchemyError: If database operation fails
        """
        settings = UserSettings(user_id=user_id, preferences=UserPreferences().model_dump())

        try:
            self.db.add(settings)
            await self.db.commit()
            await self.db.refresh(settings)
            return settings
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def update_user_settings(self, user_id: UUID, preferences: UserPreferences) -> UserSettings:
        """
        Save the whole preference bag, creating the row if needed.

        Args:
            user_id: The user's unique identifier
            preferences: Complete preference document

        Returns:
            UserSettings: Updated settings object

        Raises:
            ValidationError: If the default model is not in the registry
            SQLAlchemyError: If database operation fails
        """
        if get_model(preferences.default_model) is None:
            raise ValidationError(
                f"Unknown model: {preferences.default_model}",
                details={"default_model": preferences.default_model},
            )

        settings = await self._find(user_id)

        try:
            if settings is None:
                settings = UserSettings(user_id=user_id, preferences=preferences.model_dump())
                self.db.add(settings)
            else:
                # Assign a new dict so the JSON column is flagged dirty
                settings.preferences = preferences.model_dump()

            await self.db.commit()
            await self.db.refresh(settings)
            return settings
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def reset_user_settings(self, user_id: UUID) -> UserSettings:
        """
        Reset user settings to defaults.

        Args:
            user_id: The user's unique identifier

        Returns:
            UserSettings: Settings reset to defaults
        """
        return await self.update_user_settings(user_id, UserPreferences())

    async def export_user_data(self, user_id: UUID) -> dict[str, Any]:
        """
        Collect everything stored for a user.

        Returns:
            dict with ``user``, ``preferences``, ``chat_sessions`` (each with
            its messages) and ``exported_at``

        Raises:
            NotFoundError: If the user does not exist
        """
        profile = await UserService(self.db).get_user_profile(user_id)
        if profile is None:
            raise NotFoundError("User not found")

        settings = await self.get_user_settings(user_id)

        sessions_result = await self.db.execute(
            select(ChatSession).where(ChatSession.user_id == user_id).order_by(ChatSession.created_at)
        )
        sessions = sessions_result.scalars().all()

        chat_sessions = []
        for session in sessions:
            messages_result = await self.db.execute(
                select(ChatMessage)
                .where(ChatMessage.chat_session_id == session.id)
                .order_by(ChatMessage.position)
            )
            chat_sessions.append(
                {
                    "id": str(session.id),
                    "title": session.title,
                    "created_at": session.created_at.isoformat(),
                    "updated_at": session.updated_at.isoformat(),
                    "messages": [
                        {
                            "id": str(message.id),
                            "role": message.role.value,
                            "content": message.content,
                            "thinking": message.thinking,
                            "timestamp": message.timestamp.isoformat(),
                            "attachments": message.attachments,
                        }
                        for message in messages_result.scalars().all()
                    ],
                }
            )

        return {
            "user": profile,
            "preferences": settings.preferences,
            "chat_sessions": chat_sessions,
            "exported_at": datetime.now(UTC),
        }

    async def delete_all_user_data(self, user_id: UUID) -> dict[str, int]:
        """
        Delete a user's sessions, messages and settings. The user row stays.

        Returns:
            dict with ``deleted_sessions``, ``deleted_messages`` and ``deleted_settings`` counts
        """
        session_ids = select(ChatSession.id).where(ChatSession.user_id == user_id)

        try:
            messages = await self.db.execute(
                delete(ChatMessage)
                .where(ChatMessage.chat_session_id.in_(session_ids))
                .execution_options(synchronize_session=False)
            )
            sessions = await self.db.execute(delete(ChatSession).where(ChatSession.user_id == user_id))
            settings = await self.db.execute(delete(UserSettings).where(UserSettings.user_id == user_id))
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise

        counts = {
            "deleted_sessions": sessions.rowcount,
            "deleted_messages": messages.rowcount,
            "deleted_settings": settings.rowcount,
        }
        logger.info(f"Deleted all data for user {user_id}: {counts}")
        return counts
