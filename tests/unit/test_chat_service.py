"""Unit tests for Chat Service."""

import uuid
from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.domains.chat.service import ChatService, truncate_title
from app.exceptions.base import AuthenticationError, ValidationError
from app.exceptions.chat import (
    AccessDeniedError,
    ChatPermissionError,
    ChatSessionNotFoundError,
    MessageNotFoundError,
)
from app.schemas.chat import Attachment, Caller, ChatMessageResponse
from models.base import utcnow
from models.chat_message import MessageRole
from models.chat_session import ChatSession
from tests.factories import attachment_payload
from tests.helpers import add_messages


@pytest.fixture
def owner(test_user):
    return Caller(user_id=test_user.id)


@pytest.fixture
def stranger(test_user_2):
    return Caller(user_id=test_user_2.id)


class TestTruncateTitle:
    """Test cases for the title fallback."""

    def test_short_text_is_kept(self):
        assert truncate_title("  Hello there  ") == "Hello there"

    def test_long_text_is_cut_to_27_plus_ellipsis(self):
        title = truncate_title("x" * 40)
        assert title == "x" * 27 + "..."
        assert len(title) == 30


@pytest.mark.asyncio
class TestChatSessions:
    """Test cases for session operations."""

    async def test_create_session_for_user(self, test_db: AsyncSession, owner, mock_dispatch):
        service = ChatService(test_db)
        long_message = "Tell me everything about the history of the Roman Empire"

        session_id = await service.create_session(long_message, owner)

        session = await service.get_session(session_id)
        assert session.user_id == owner.user_id
        assert session.anonymous_token is None
        assert session.title == long_message[:27] + "..."
        mock_dispatch["title"].assert_called_once_with(session_id, long_message)

    async def test_create_session_for_anonymous_caller(self, test_db: AsyncSession, anonymous_identity):
        service = ChatService(test_db)
        caller = Caller(anonymous_token=anonymous_identity["sid"])

        session_id = await service.create_session("Hi", caller)

        session = await service.get_session(session_id)
        assert session.user_id is None
        assert session.anonymous_token == anonymous_identity["sid"]
        assert session.title == "Hi"

    async def test_create_session_without_identity(self, test_db: AsyncSession, mock_dispatch):
        with pytest.raises(AuthenticationError):
            await ChatService(test_db).create_session("Hi", Caller())
        mock_dispatch["title"].assert_not_called()

    async def test_list_sessions_most_recent_first(self, test_db: AsyncSession, test_user, test_user_2, owner):
        now = utcnow()
        older = ChatSession(user_id=test_user.id, title="Older", updated_at=now - timedelta(hours=2))
        newer = ChatSession(user_id=test_user.id, title="Newer", updated_at=now)
        foreign = ChatSession(user_id=test_user_2.id, title="Not mine", updated_at=now)
        test_db.add_all([older, newer, foreign])
        await test_db.commit()

        sessions = await ChatService(test_db).list_sessions(owner)

        assert [s.title for s in sessions] == ["Newer", "Older"]

    async def test_list_sessions_for_anonymous_caller(
        self, test_db: AsyncSession, anonymous_chat_session, anonymous_identity, chat_session
    ):
        sessions = await ChatService(test_db).list_sessions(Caller(anonymous_token=anonymous_identity["sid"]))

        assert [s.id for s in sessions] == [anonymous_chat_session.id]

    async def test_list_sessions_without_identity(self, test_db: AsyncSession, chat_session):
        assert await ChatService(test_db).list_sessions(Caller()) == []

    async def test_validate_access(self, test_db: AsyncSession, chat_session, owner, stranger):
        service = ChatService(test_db)

        assert await service.validate_access(chat_session.id, owner) is True
        assert await service.validate_access(chat_session.id, stranger) is False
        assert await service.validate_access(uuid.uuid4(), owner) is False

    async def test_anonymous_caller_cannot_reach_user_session(
        self, test_db: AsyncSession, chat_session, anonymous_identity
    ):
        caller = Caller(anonymous_token=anonymous_identity["sid"])
        assert await ChatService(test_db).validate_access(chat_session.id, caller) is False

    async def test_require_session_errors(self, test_db: AsyncSession, chat_session, stranger):
        service = ChatService(test_db)

        with pytest.raises(ChatSessionNotFoundError):
            await service.require_session(uuid.uuid4(), stranger)
        with pytest.raises(AccessDeniedError):
            await service.require_session(chat_session.id, stranger)

    async def test_update_session_title(self, test_db: AsyncSession, chat_session):
        session = await ChatService(test_db).update_session_title(chat_session.id, "Renamed")
        assert session.title == "Renamed"

    async def test_update_missing_session_title(self, test_db: AsyncSession):
        with pytest.raises(ChatSessionNotFoundError):
            await ChatService(test_db).update_session_title(uuid.uuid4(), "Renamed")

    async def test_delete_session_removes_messages(self, test_db: AsyncSession, chat_session, owner):
        await add_messages(test_db, chat_session, ["user", "assistant"])
        service = ChatService(test_db)

        await service.delete_session(chat_session.id, owner)

        assert await service.get_session(chat_session.id) is None
        assert await service.get_messages(chat_session.id) == []

    async def test_delete_session_by_non_owner(self, test_db: AsyncSession, chat_session, stranger):
        with pytest.raises(ChatPermissionError):
            await ChatService(test_db).delete_session(chat_session.id, stranger)


@pytest.mark.asyncio
class TestChatMessages:
    """Test cases for message operations."""

    async def test_append_assigns_increasing_positions(self, test_db: AsyncSession, chat_session):
        service = ChatService(test_db)

        user_message = await service.append_user_message(chat_session.id, "Hello")
        placeholder = await service.append_placeholder_assistant_message(chat_session.id)

        assert (user_message.position, placeholder.position) == (0, 1)
        assert user_message.role == MessageRole.USER
        assert placeholder.role == MessageRole.ASSISTANT
        assert placeholder.content == ""
        assert placeholder.is_generating is True
        assert placeholder.user_id == chat_session.user_id

    async def test_message_response_uses_stored_role(self, test_db: AsyncSession, chat_session):
        message = await ChatService(test_db).append_placeholder_assistant_message(chat_session.id)

        response = ChatMessageResponse.model_validate(message)

        assert response.role is MessageRole.ASSISTANT
        assert response.model_dump(mode="json")["role"] == "assistant"

    async def test_append_stores_attachments(self, test_db: AsyncSession, chat_session):
        attachment = Attachment(**attachment_payload("image"))

        message = await ChatService(test_db).append_user_message(chat_session.id, "Look", [attachment])

        assert message.attachments[0]["kind"] == "image"
        assert message.attachments[0]["filename"] == "photo.png"

    async def test_position_is_unique_within_a_session(self, test_db: AsyncSession, chat_session):
        await add_messages(test_db, chat_session, ["user"])

        with pytest.raises(IntegrityError):
            await add_messages(test_db, chat_session, ["assistant"], start=0)
        await test_db.rollback()

    async def test_same_position_in_different_sessions(self, test_db: AsyncSession, chat_session, test_user):
        other = ChatSession(user_id=test_user.id, title="Other chat")
        test_db.add(other)
        await test_db.commit()

        await add_messages(test_db, chat_session, ["user"])
        (message,) = await add_messages(test_db, other, ["user"])

        assert message.position == 0

    async def test_append_to_missing_session(self, test_db: AsyncSession):
        with pytest.raises(ChatSessionNotFoundError):
            await ChatService(test_db).append_user_message(uuid.uuid4(), "Hello")

    async def test_edit_from_removes_target_and_later_messages(
        self, test_db: AsyncSession, chat_session, owner
    ):
        m1, m2, m3, m4 = await add_messages(test_db, chat_session, ["user", "assistant", "user", "assistant"])
        service = ChatService(test_db)

        deleted = await service.edit_from(m3.id, owner)

        assert deleted == 2
        assert [m.id for m in await service.get_messages(chat_session.id)] == [m1.id, m2.id]

    async def test_edit_from_first_message_empties_session(self, test_db: AsyncSession, chat_session, owner):
        m1, _m2 = await add_messages(test_db, chat_session, ["user", "assistant"])
        service = ChatService(test_db)

        await service.edit_from(m1.id, owner)

        assert await service.get_messages(chat_session.id) == []

    async def test_edit_from_missing_message(self, test_db: AsyncSession, owner):
        with pytest.raises(MessageNotFoundError):
            await ChatService(test_db).edit_from(uuid.uuid4(), owner)

    async def test_edit_from_by_non_owner(self, test_db: AsyncSession, chat_session, stranger):
        (m1,) = await add_messages(test_db, chat_session, ["user"])
        service = ChatService(test_db)

        with pytest.raises(ChatPermissionError):
            await service.edit_from(m1.id, stranger)
        assert len(await service.get_messages(chat_session.id)) == 1

    async def test_edit_from_by_other_anonymous_token(
        self, test_db: AsyncSession, anonymous_chat_session
    ):
        (m1,) = await add_messages(test_db, anonymous_chat_session, ["user"])

        with pytest.raises(ChatPermissionError):
            await ChatService(test_db).edit_from(m1.id, Caller(anonymous_token="someone-else"))

    async def test_delete_last_assistant_message(self, test_db: AsyncSession, chat_session):
        m1, m2, m3, m4 = await add_messages(test_db, chat_session, ["user", "assistant", "user", "assistant"])
        service = ChatService(test_db)

        deleted_id = await service.delete_last_assistant_message(chat_session.id)

        assert deleted_id == m4.id
        assert [m.id for m in await service.get_messages(chat_session.id)] == [m1.id, m2.id, m3.id]

    async def test_delete_last_assistant_message_without_assistant(self, test_db: AsyncSession, chat_session):
        await add_messages(test_db, chat_session, ["user"])

        assert await ChatService(test_db).delete_last_assistant_message(chat_session.id) is None

    async def test_patch_only_overwrites_supplied_fields(self, test_db: AsyncSession, placeholder_turn):
        _user_message, placeholder = placeholder_turn
        service = ChatService(test_db)
        before = placeholder.timestamp

        await service.patch_assistant_message(placeholder.id, content="Partial", thinking="Hmm")
        message = await service.patch_assistant_message(placeholder.id, is_generating=False)

        assert message.content == "Partial"
        assert message.thinking == "Hmm"
        assert message.is_generating is False
        assert message.timestamp >= before

    async def test_patch_missing_message(self, test_db: AsyncSession):
        with pytest.raises(MessageNotFoundError):
            await ChatService(test_db).patch_assistant_message(uuid.uuid4(), content="x")

    async def test_update_message(self, test_db: AsyncSession, chat_session, owner, stranger):
        (m1,) = await add_messages(test_db, chat_session, ["user"])
        service = ChatService(test_db)

        with pytest.raises(ChatPermissionError):
            await service.update_message(m1.id, "Changed", stranger)

        message = await service.update_message(m1.id, "Changed", owner)
        assert message.content == "Changed"

    async def test_migrate_ownership_is_idempotent(
        self, test_db: AsyncSession, anonymous_chat_session, anonymous_identity, test_user
    ):
        await add_messages(test_db, anonymous_chat_session, ["user", "assistant", "user"])
        service = ChatService(test_db)

        first = await service.migrate_ownership(anonymous_identity["sid"], test_user.id)
        second = await service.migrate_ownership(anonymous_identity["sid"], test_user.id)

        assert first == 3
        assert second == 0

        sessions = await service.list_sessions(Caller(user_id=test_user.id))
        assert [s.id for s in sessions] == [anonymous_chat_session.id]
        assert sessions[0].anonymous_token is None
        for message in await service.get_messages(anonymous_chat_session.id):
            assert message.user_id == test_user.id
            assert message.anonymous_token is None

    async def test_migrate_unknown_token(self, test_db: AsyncSession, test_user):
        assert await ChatService(test_db).migrate_ownership("never-issued", test_user.id) == 0


@pytest.mark.asyncio
class TestSendMessage:
    """Test cases for the composite send flows."""

    async def test_send_message_appends_turn_and_enqueues(
        self, test_db: AsyncSession, chat_session, owner, mock_dispatch
    ):
        service = ChatService(test_db)

        placeholder, user_message = await service.send_message(
            chat_session.id, owner, "What's new?", model="google/gemma-3-27b-it"
        )

        messages = await service.get_messages(chat_session.id)
        assert [m.id for m in messages] == [user_message.id, placeholder.id]
        assert placeholder.is_generating is True
        mock_dispatch["response"].assert_called_once_with(
            chat_session_id=chat_session.id,
            message_id=placeholder.id,
            model="google/gemma-3-27b-it",
            user_id=owner.user_id,
            anonymous_token=None,
        )

    async def test_send_message_uses_default_model(
        self, test_db: AsyncSession, chat_session, owner, mock_dispatch
    ):
        from app.core.config import settings

        await ChatService(test_db).send_message(chat_session.id, owner, "Hi")

        assert mock_dispatch["response"].call_args.kwargs["model"] == settings.default_model

    async def test_send_message_as_anonymous_caller(
        self, test_db: AsyncSession, anonymous_chat_session, anonymous_identity, mock_dispatch
    ):
        caller = Caller(anonymous_token=anonymous_identity["sid"])

        placeholder, _ = await ChatService(test_db).send_message(anonymous_chat_session.id, caller, "Hi")

        assert placeholder.anonymous_token == anonymous_identity["sid"]
        kwargs = mock_dispatch["response"].call_args.kwargs
        assert kwargs["user_id"] is None
        assert kwargs["anonymous_token"] == anonymous_identity["sid"]

    async def test_send_message_with_edit(self, test_db: AsyncSession, chat_session, owner):
        m1, m2, m3, m4 = await add_messages(test_db, chat_session, ["user", "assistant", "user", "assistant"])
        service = ChatService(test_db)

        placeholder, user_message = await service.send_message(
            chat_session.id, owner, "Edited question", edit_message_id=m3.id
        )

        messages = await service.get_messages(chat_session.id)
        assert [m.id for m in messages] == [m1.id, m2.id, user_message.id, placeholder.id]
        assert user_message.content == "Edited question"

    async def test_edit_target_must_belong_to_the_session(
        self, test_db: AsyncSession, chat_session, owner, test_user, mock_dispatch
    ):
        other = ChatSession(user_id=test_user.id, title="Other chat")
        test_db.add(other)
        await test_db.commit()
        other_first, _ = await add_messages(test_db, other, ["user", "assistant"])
        await add_messages(test_db, chat_session, ["user", "assistant"])
        service = ChatService(test_db)

        with pytest.raises(MessageNotFoundError):
            await service.send_message(chat_session.id, owner, "Hi", edit_message_id=other_first.id)

        assert len(await service.get_messages(other.id)) == 2
        assert len(await service.get_messages(chat_session.id)) == 2
        mock_dispatch["response"].assert_not_called()

    async def test_regenerate_replaces_last_assistant(self, test_db: AsyncSession, chat_session, owner):
        m1, m2 = await add_messages(test_db, chat_session, ["user", "assistant"])
        service = ChatService(test_db)

        placeholder, user_message = await service.send_message(chat_session.id, owner, None, regenerate=True)

        assert user_message is None
        assert [m.id for m in await service.get_messages(chat_session.id)] == [m1.id, placeholder.id]

    async def test_unknown_model_is_rejected(self, test_db: AsyncSession, chat_session, owner, mock_dispatch):
        service = ChatService(test_db)

        with pytest.raises(ValidationError):
            await service.send_message(chat_session.id, owner, "Hi", model="nope/model")

        assert await service.get_messages(chat_session.id) == []
        mock_dispatch["response"].assert_not_called()

    async def test_missing_content_is_rejected(self, test_db: AsyncSession, chat_session, owner):
        with pytest.raises(ValidationError):
            await ChatService(test_db).send_message(chat_session.id, owner, "")

    async def test_send_to_foreign_session(self, test_db: AsyncSession, chat_session, stranger):
        with pytest.raises(AccessDeniedError):
            await ChatService(test_db).send_message(chat_session.id, stranger, "Hi")

    async def test_start_chat(self, test_db: AsyncSession, owner, mock_dispatch):
        service = ChatService(test_db)

        session_id, placeholder, user_message = await service.start_chat("First question", owner)

        assert user_message.content == "First question"
        assert placeholder.chat_session_id == session_id
        mock_dispatch["title"].assert_called_once_with(session_id, "First question")
        mock_dispatch["response"].assert_called_once()


@pytest.mark.asyncio
class TestStaleGenerations:
    """Test cases for fail_stale_generations."""

    async def test_only_old_generating_messages_are_failed(self, test_db: AsyncSession, chat_session):
        stale, fresh, done = await add_messages(test_db, chat_session, ["assistant", "assistant", "assistant"])
        stale.is_generating = True
        stale.timestamp = utcnow() - timedelta(minutes=10)
        fresh.is_generating = True
        done.timestamp = utcnow() - timedelta(minutes=10)
        await test_db.commit()

        swept = await ChatService(test_db).fail_stale_generations(
            utcnow() - timedelta(minutes=5), "Timed out"
        )

        assert swept == 1
        await test_db.refresh(stale)
        await test_db.refresh(fresh)
        assert stale.is_generating is False
        assert stale.content == "Timed out"
        assert fresh.is_generating is True
