"""Chat service layer: sessions, ordered messages and ownership."""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.core.config import settings
from app.domains.ai.registry import get_model
from app.exceptions.base import AuthenticationError, ValidationError
from app.exceptions.chat import (
    AccessDeniedError,
    ChatPermissionError,
    ChatSessionNotFoundError,
    MessageNotFoundError,
)
from app.schemas.chat import Attachment, Caller
from app.tasks.dispatch import enqueue_response_generation, enqueue_title_generation
from models.base import utcnow
from models.chat_message import ChatMessage, MessageRole
from models.chat_session import ChatSession


logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 30
TITLE_CUT_LENGTH = 27


def truncate_title(text: str) -> str:
    """Trimmed copy of ``text``, cut to 27 chars plus an ellipsis when longer."""
    text = text.strip()
    if len(text) > TITLE_CUT_LENGTH:
        return text[:TITLE_CUT_LENGTH] + "..."
    return text


def _owns(row: ChatSession | ChatMessage, caller: Caller) -> bool:
    """An authenticated caller must match the owner exactly; an anonymous
    caller only matches rows that have no user and carry its token."""
    if caller.user_id is not None:
        return row.user_id == caller.user_id
    if caller.anonymous_token:
        return row.user_id is None and row.anonymous_token == caller.anonymous_token
    return False


class ChatService:
    """Conversation store for chat sessions and their ordered messages."""

    def __init__(self, db: AsyncSession):
        """Initialize chat service with database session.

        Args:
            db: Async database session for data operations.
        """
        self.db = db

    # Sessions

    async def list_sessions(self, caller: Caller) -> list[ChatSession]:
        """Sessions of the caller, most recently updated first."""
        if caller.user_id is not None:
            condition = ChatSession.user_id == caller.user_id
        elif caller.anonymous_token:
            condition = ChatSession.anonymous_token == caller.anonymous_token
        else:
            return []

        result = await self.db.execute(
            select(ChatSession).where(condition).order_by(ChatSession.updated_at.desc())
        )
        return list(result.scalars().all())

    async def get_session(self, session_id: UUID) -> ChatSession | None:
        result = await self.db.execute(select(ChatSession).where(ChatSession.id == session_id))
        return result.scalar_one_or_none()

    async def validate_access(self, session_id: UUID, caller: Caller) -> bool:
        """Whether the caller may read and write a session. Missing sessions are never accessible."""
        session = await self.get_session(session_id)
        if not session:
            return False
        return _owns(session, caller)

    async def require_session(self, session_id: UUID, caller: Caller) -> ChatSession:
        """Load a session the caller owns.

        Raises:
            ChatSessionNotFoundError: If the session does not exist
            AccessDeniedError: If the caller does not own it
        """
        session = await self.get_session(session_id)
        if not session:
            raise ChatSessionNotFoundError()
        if not _owns(session, caller):
            raise AccessDeniedError("You don't have access to this chat")
        return session

    async def create_session(self, title: str, caller: Caller) -> UUID:
        """Create a session titled with a truncated copy of ``title`` and
        schedule generation of a proper title.

        Returns:
            ID of the new session
        """
        if caller.user_id is None and not caller.anonymous_token:
            raise AuthenticationError("Sign in or request an anonymous session token first")

        session = ChatSession(
            title=truncate_title(title) or "New Chat",
            user_id=caller.user_id,
            anonymous_token=None if caller.user_id is not None else caller.anonymous_token,
        )
        try:
            self.db.add(session)
            await self.db.commit()
            await self.db.refresh(session)
        except SQLAlchemyError:
            await self.db.rollback()
            raise

        logger.info(f"Created chat session {session.id}")
        enqueue_title_generation(session.id, title)
        return session.id

    async def update_session_title(self, session_id: UUID, title: str) -> ChatSession:
        """Replace a session title.

        Raises:
            ChatSessionNotFoundError: If the session does not exist
        """
        session = await self.get_session(session_id)
        if not session:
            raise ChatSessionNotFoundError()

        session.title = title[:255]
        session.updated_at = utcnow()
        await self.db.commit()
        await self.db.refresh(session)
        return session

    async def delete_session(self, session_id: UUID, caller: Caller) -> None:
        """Delete every message of a session one by one, then the session.

        Raises:
            ChatSessionNotFoundError: If the session does not exist
            ChatPermissionError: If the caller does not own it
        """
        session = await self.get_session(session_id)
        if not session:
            raise ChatSessionNotFoundError()
        if not _owns(session, caller):
            raise ChatPermissionError("You don't have permission to delete this chat")

        for message in await self.get_messages(session_id):
            await self.db.delete(message)
        await self.db.delete(session)
        await self.db.commit()
        logger.info(f"Deleted chat session {session_id}")

    # Messages

    async def get_messages(self, session_id: UUID) -> list[ChatMessage]:
        """Messages of a session in insertion order."""
        result = await self.db.execute(
            select(ChatMessage)
            .where(ChatMessage.chat_session_id == session_id)
            .order_by(ChatMessage.position)
        )
        return list(result.scalars().all())

    async def get_message(self, message_id: UUID) -> ChatMessage | None:
        result = await self.db.execute(select(ChatMessage).where(ChatMessage.id == message_id))
        return result.scalar_one_or_none()

    async def _next_position(self, session_id: UUID) -> int:
        result = await self.db.execute(
            select(func.max(ChatMessage.position)).where(ChatMessage.chat_session_id == session_id)
        )
        current = result.scalar()
        return 0 if current is None else current + 1

    async def _append(
        self,
        session: ChatSession,
        role: MessageRole,
        content: str,
        is_generating: bool = False,
        attachments: list[Attachment] | None = None,
    ) -> ChatMessage:
        now = utcnow()
        message = ChatMessage(
            chat_session_id=session.id,
            position=await self._next_position(session.id),
            role=role,
            content=content,
            is_generating=is_generating,
            timestamp=now,
            attachments=[a.model_dump(mode="json") for a in attachments] if attachments else None,
            user_id=session.user_id,
            anonymous_token=session.anonymous_token,
        )
        self.db.add(message)
        session.updated_at = now
        try:
            await self.db.commit()
            await self.db.refresh(message)
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        return message

    async def append_user_message(
        self,
        session_id: UUID,
        content: str,
        attachments: list[Attachment] | None = None,
    ) -> ChatMessage:
        """Append a user message at the end of the session."""
        session = await self.get_session(session_id)
        if not session:
            raise ChatSessionNotFoundError()
        return await self._append(session, MessageRole.USER, content, attachments=attachments)

    async def append_placeholder_assistant_message(self, session_id: UUID) -> ChatMessage:
        """Append an empty assistant message marked as generating."""
        session = await self.get_session(session_id)
        if not session:
            raise ChatSessionNotFoundError()
        return await self._append(session, MessageRole.ASSISTANT, "", is_generating=True)

    async def edit_from(self, message_id: UUID, caller: Caller, session_id: UUID | None = None) -> int:
        """Delete a message and every later message of its session.

        With ``session_id`` the message must belong to that session.

        Returns:
            Number of deleted messages

        Raises:
            MessageNotFoundError: If the message does not exist or is in another session
            ChatPermissionError: If the caller does not own the message
        """
        target = await self.get_message(message_id)
        if not target or (session_id is not None and target.chat_session_id != session_id):
            raise MessageNotFoundError()
        if not _owns(target, caller):
            raise ChatPermissionError("Not authorized to edit this message")

        result = await self.db.execute(
            delete(ChatMessage).where(
                ChatMessage.chat_session_id == target.chat_session_id,
                ChatMessage.position >= target.position,
            )
        )
        await self.db.commit()
        logger.info(f"Edit from message {message_id} removed {result.rowcount} messages")
        return result.rowcount

    async def delete_last_assistant_message(self, session_id: UUID) -> UUID | None:
        """Delete the most recent assistant message of a session.

        Returns:
            ID of the deleted message, or None when there is none
        """
        for message in reversed(await self.get_messages(session_id)):
            if message.role == MessageRole.ASSISTANT:
                deleted_id = message.id
                await self.db.delete(message)
                await self.db.commit()
                return deleted_id
        return None

    async def patch_assistant_message(
        self,
        message_id: UUID,
        content: str | None = None,
        thinking: str | None = None,
        is_generating: bool | None = None,
    ) -> ChatMessage:
        """Overwrite only the supplied fields; the timestamp is always refreshed.

        Raises:
            MessageNotFoundError: If the message does not exist
        """
        message = await self.get_message(message_id)
        if not message:
            raise MessageNotFoundError()

        if content is not None:
            message.content = content
        if thinking is not None:
            message.thinking = thinking
        if is_generating is not None:
            message.is_generating = is_generating
        message.timestamp = utcnow()

        await self.db.commit()
        return message

    async def update_message(self, message_id: UUID, content: str, caller: Caller) -> ChatMessage:
        """Replace the body of a stored message.

        Raises:
            MessageNotFoundError: If the message does not exist
            ChatPermissionError: If the caller does not own the message
        """
        message = await self.get_message(message_id)
        if not message:
            raise MessageNotFoundError()
        if not _owns(message, caller):
            raise ChatPermissionError("Not authorized to edit this message")

        message.content = content
        message.timestamp = utcnow()
        await self.db.commit()
        await self.db.refresh(message)
        return message

    async def migrate_ownership(self, anonymous_token: str, user_id: UUID) -> int:
        """Move every session and message carrying ``anonymous_token`` to ``user_id``.

        Returns:
            Number of migrated messages; 0 when nothing carries the token
        """
        await self.db.execute(
            update(ChatSession)
            .where(ChatSession.anonymous_token == anonymous_token)
            .values(user_id=user_id, anonymous_token=None)
        )
        result = await self.db.execute(
            update(ChatMessage)
            .where(ChatMessage.anonymous_token == anonymous_token)
            .values(user_id=user_id, anonymous_token=None)
        )
        await self.db.commit()

        migrated = result.rowcount or 0
        if migrated:
            logger.info(f"Migrated {migrated} anonymous messages to user {user_id}")
        return migrated

    # Composite flows

    def _require_known_model(self, model: str | None) -> str:
        model = model or settings.default_model
        if get_model(model) is None:
            raise ValidationError(f"Unknown model: {model}", details={"model": model})
        return model

    async def send_message(
        self,
        session_id: UUID,
        caller: Caller,
        content: str | None,
        model: str | None = None,
        attachments: list[Attachment] | None = None,
        edit_message_id: UUID | None = None,
        regenerate: bool = False,
    ) -> tuple[ChatMessage, ChatMessage | None]:
        """Record a turn and schedule the assistant response.

        Checks access, optionally deletes from an edited message, then either
        drops the last assistant message (regenerate) or appends the user
        message, appends the placeholder and enqueues the streaming run.

        Returns:
            ``(placeholder, user_message)``; ``user_message`` is None when regenerating
        """
        await self.require_session(session_id, caller)

        model = self._require_known_model(model)

        if edit_message_id:
            await self.edit_from(edit_message_id, caller, session_id=session_id)

        user_message = None
        if regenerate:
            await self.delete_last_assistant_message(session_id)
        else:
            if not content:
                raise ValidationError("Message content is required")
            user_message = await self.append_user_message(session_id, content, attachments)

        placeholder = await self.append_placeholder_assistant_message(session_id)

        enqueue_response_generation(
            chat_session_id=session_id,
            message_id=placeholder.id,
            model=model,
            user_id=caller.user_id,
            anonymous_token=caller.anonymous_token if caller.user_id is None else None,
        )
        return placeholder, user_message

    async def start_chat(
        self,
        content: str,
        caller: Caller,
        model: str | None = None,
        attachments: list[Attachment] | None = None,
    ) -> tuple[UUID, ChatMessage, ChatMessage | None]:
        """Create a session from its first message and send that message."""
        self._require_known_model(model)
        session_id = await self.create_session(content, caller)
        placeholder, user_message = await self.send_message(
            session_id, caller, content, model=model, attachments=attachments
        )
        return session_id, placeholder, user_message

    async def fail_stale_generations(self, older_than: datetime, content: str) -> int:
        """Force-finish placeholders still generating since before ``older_than``.

        Returns:
            Number of messages marked as finished
        """
        result = await self.db.execute(
            select(ChatMessage).where(
                ChatMessage.is_generating.is_(True),
                ChatMessage.timestamp < older_than,
            )
        )
        stale = list(result.scalars().all())
        for message in stale:
            message.content = content
            message.is_generating = False
            message.timestamp = utcnow()
        await self.db.commit()

        if stale:
            logger.warning(f"Marked {len(stale)} stuck generations as timed out")
        return len(stale)
