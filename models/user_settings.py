"""
User Settings model for storing user preferences.

This module defines the UserSettings model which keeps a user's chat
preferences (default model, theme, font size, generation defaults and
behavioural toggles) as a single JSON document.
"""

from sqlalchemy import Column, ForeignKey

from sqlalchemy.orm import relationship

from .base import UUID, BaseModel, JSONType


class UserSettings(BaseModel):
    """
    Represents user settings and preferences.

    Each user has at most one settings record (one-to-one relationship);
    saving replaces the whole preference document.

    :ivar user_id: Foreign key reference to the user.
    :type user_id: UUID
    :ivar preferences: Preference document, see ``app.schemas.settings.UserPreferences``.
    :type preferences: dict
    """

    __tablename__ = "user_settings"

    # Foreign key to user
    user_id = Column(UUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)

    preferences = Column(JSONType, nullable=False, default=dict)

    # Relationship
    user = relationship("User", back_populates="settings")
