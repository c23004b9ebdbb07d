"""
Chat session model for persisted conversation threads.
"""

from sqlalchemy import Column, ForeignKey, Index, String
from sqlalchemy.orm import relationship

from .base import UUID, BaseModel


class ChatSession(BaseModel):
    """
    Represents a chat session owned by a user or by an anonymous token.

    Exactly one of ``user_id`` and ``anonymous_token`` is set; migrating an
    anonymous session to a user sets the former and clears the latter.
    """

    __tablename__ = "chat_sessions"
    __table_args__ = (
        Index("idx_chat_sessions_user_updated", "user_id", "updated_at"),
        Index("idx_chat_sessions_token_updated", "anonymous_token", "updated_at"),
    )

    user_id = Column(UUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    anonymous_token = Column(String(64), nullable=True)
    title = Column(String(255), nullable=False, default="New Chat")

    # Relationships
    user = relationship("User", back_populates="chat_sessions")
    messages = relationship(
        "ChatMessage",
        back_populates="chat_session",
        order_by="ChatMessage.position",
        passive_deletes=True,
    )
