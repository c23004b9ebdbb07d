"""Chat schemas for request/response serialization."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import Field, model_validator

from app.core.config import settings
from models.chat_message import MessageRole

from .base import BaseModelSchema, BaseSchema

DOCUMENT_MIME_TYPE = "application/pdf"


class Caller(BaseSchema):
    """Identity of the party making a request.

    ``anonymous_token`` is the verified ``sid`` of an anonymous session token,
    never the raw header value.
    """

    user_id: UUID | None = None
    anonymous_token: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def is_anonymous(self) -> bool:
        return self.user_id is None and bool(self.anonymous_token)


class AttachmentKind(str, Enum):
    """Attachment kind enumeration."""

    IMAGE = "image"
    DOCUMENT = "document"


class Attachment(BaseSchema):
    """Attachment value object stored inside a message."""

    kind: AttachmentKind
    size: int = Field(..., ge=0, le=settings.max_attachment_size, description="Size in bytes")
    mime_type: str = Field(..., max_length=100)
    filename: str = Field(..., min_length=1, max_length=255)
    storage_id: str = Field(..., min_length=1, max_length=255, description="Durable storage reference")
    url: str | None = None
    data: str | None = Field(None, description="Inline data URL for model consumption")

    @model_validator(mode="after")
    def validate_mime_type(self) -> Attachment:
        """Images must carry an image/* type, documents the single document type."""
        if self.kind == AttachmentKind.IMAGE and not self.mime_type.startswith("image/"):
            raise ValueError("Image attachments must have an image/* MIME type")
        if self.kind == AttachmentKind.DOCUMENT and self.mime_type != DOCUMENT_MIME_TYPE:
            raise ValueError(f"Document attachments must be {DOCUMENT_MIME_TYPE}")
        return self


class ChatMessageResponse(BaseModelSchema):
    """Schema for chat message response."""

    chat_session_id: UUID
    position: int
    role: MessageRole
    content: str
    thinking: str | None = None
    is_generating: bool
    timestamp: datetime
    attachments: list[Attachment] | None = None


class ChatSessionCreate(BaseSchema):
    """Schema for creating a new chat session from its first message."""

    message: str = Field(..., min_length=1, max_length=settings.max_message_length)
    model: str | None = Field(None, description="Model id, defaults to the configured default model")
    attachments: list[Attachment] | None = Field(None, max_length=settings.max_attachments_per_message)


class ChatSessionUpdate(BaseSchema):
    """Schema for renaming a chat session."""

    title: str = Field(..., min_length=1, max_length=255)


class ChatSessionResponse(BaseModelSchema):
    """Schema for chat session response."""

    user_id: UUID | None = None
    title: str


class ChatSessionDetailResponse(ChatSessionResponse):
    """Schema for a chat session with its messages."""

    messages: list[ChatMessageResponse] = Field(default=[])


class SendMessageRequest(BaseSchema):
    """Schema for sending, editing or regenerating a message in a session."""

    content: str | None = Field(None, min_length=1, max_length=settings.max_message_length)
    model: str | None = None
    attachments: list[Attachment] | None = Field(None, max_length=settings.max_attachments_per_message)
    edit_message_id: UUID | None = Field(None, description="Delete this message and all later ones first")
    regenerate: bool = Field(default=False, description="Replace the last assistant message")

    @model_validator(mode="after")
    def validate_content(self) -> SendMessageRequest:
        """Content is required unless regenerating."""
        if not self.regenerate and not self.content:
            raise ValueError("content is required unless regenerate is set")
        return self


class SendMessageResponse(BaseSchema):
    """Immediate acknowledgement of a send; the placeholder fills in later."""

    chat_session_id: UUID
    message_id: UUID
    user_message_id: UUID | None = None


class CreateSessionResponse(SendMessageResponse):
    """Acknowledgement of a session created from its first message."""

    title: str


class MessageUpdate(BaseSchema):
    """Schema for editing the body of a stored message."""

    content: str = Field(..., min_length=1, max_length=settings.max_message_length)


class AnonymousTokenResponse(BaseSchema):
    """Schema for a newly issued anonymous session token."""

    token: str
    expires_at: datetime


class MigrateSessionsRequest(BaseSchema):
    """Schema for moving anonymous sessions to the signed-in user."""

    anonymous_token: str = Field(..., min_length=1)


class MigrateSessionsResponse(BaseSchema):
    """Result of an ownership migration."""

    migrated_messages: int
