"""
Models package initialization.
"""

from .base import Base, BaseModel
from .chat_message import ChatMessage, MessageRole
from .chat_session import ChatSession
from .user import User
from .user_settings import UserSettings

__all__ = [
    "Base",
    "BaseModel",
    "User",
    "UserSettings",
    # Chat models
    "ChatSession",
    "ChatMessage",
    "MessageRole",
]
