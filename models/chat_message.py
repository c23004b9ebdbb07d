"""
Chat message model for user prompts and assistant responses.
"""

import enum

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import UUID, BaseModel, JSONType, utcnow


class MessageRole(str, enum.Enum):
    """Message role enumeration."""

    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(BaseModel):
    """
    Represents a chat message entity in the application.

    ``position`` is the insertion order inside the session, unique per session, and is the only
    ordering used for context building and edit-from deletes; ``timestamp``
    is refreshed on every patch and may repeat across messages.
    """

    __tablename__ = "chat_messages"
    __table_args__ = (
        UniqueConstraint("chat_session_id", "position", name="uq_chat_messages_session_position"),
        Index("idx_chat_messages_generating", "is_generating", "timestamp"),
        Index("idx_chat_messages_token", "anonymous_token"),
    )

    chat_session_id = Column(
        UUID(), ForeignKey("chat_sessions.id", ondelete="CASCADE"), nullable=False
    )
    position = Column(Integer, nullable=False)
    role = Column(
        Enum(MessageRole, name="message_role", values_callable=lambda roles: [r.value for r in roles]),
        nullable=False,
    )
    content = Column(Text, nullable=False, default="")

    # Reasoning trace emitted by reasoning-capable models
    thinking = Column(Text, nullable=True)
    is_generating = Column(Boolean, nullable=False, default=False)
    timestamp = Column(DateTime, nullable=False, default=utcnow)

    # List of attachment dicts, see app.schemas.chat.Attachment
    attachments = Column(JSONType, nullable=True)

    # Mirror of the session owner at insert time
    user_id = Column(UUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    anonymous_token = Column(String(64), nullable=True)

    # Relationships
    chat_session = relationship("ChatSession", back_populates="messages")
