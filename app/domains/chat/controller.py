"""Chat API controller with FastAPI endpoints."""

import logging
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Path
from jwt import InvalidTokenError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import anonymous_tokens, get_caller, get_current_user, get_db
from app.domains.chat.service import ChatService
from app.exceptions.base import AuthenticationError
from app.schemas.base import ResponseSchema
from app.schemas.chat import (
    AnonymousTokenResponse,
    Caller,
    ChatMessageResponse,
    ChatSessionCreate,
    ChatSessionDetailResponse,
    ChatSessionResponse,
    ChatSessionUpdate,
    CreateSessionResponse,
    MessageUpdate,
    MigrateSessionsRequest,
    MigrateSessionsResponse,
    SendMessageRequest,
    SendMessageResponse,
)
from models.user import User


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])


@router.post("/anonymous-token", response_model=ResponseSchema, status_code=201)
async def issue_anonymous_token():
    """Issue a signed token identifying an anonymous caller's chats.

    Send it back in the ``X-Anonymous-Token`` header.
    """
    token, _sid, expires_at = anonymous_tokens.issue()
    return ResponseSchema(
        status="success",
        message="Anonymous session token issued",
        data=AnonymousTokenResponse(token=token, expires_at=expires_at).model_dump(),
    )


@router.get("/sessions", response_model=ResponseSchema)
async def list_sessions(
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """List the caller's chat sessions, most recently updated first."""
    sessions = await ChatService(db).list_sessions(caller)
    return ResponseSchema(
        status="success",
        message="Chat sessions retrieved successfully",
        data={"sessions": [ChatSessionResponse.model_validate(s).model_dump(mode="json") for s in sessions]},
    )


@router.post("/sessions", response_model=ResponseSchema, status_code=201)
async def create_session(
    session_data: ChatSessionCreate = Body(...),
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Start a chat from its first message.

    Returns immediately with the placeholder message id; the response is
    generated in the background and can be polled through the messages
    endpoint.
    """
    service = ChatService(db)
    session_id, placeholder, user_message = await service.start_chat(
        session_data.message, caller, model=session_data.model, attachments=session_data.attachments
    )
    session = await service.get_session(session_id)

    return ResponseSchema(
        status="success",
        message="Chat session created successfully",
        data=CreateSessionResponse(
            chat_session_id=session_id,
            message_id=placeholder.id,
            user_message_id=user_message.id if user_message else None,
            title=session.title,
        ).model_dump(mode="json"),
    )


@router.get("/sessions/{session_id}", response_model=ResponseSchema)
async def get_session(
    session_id: UUID = Path(..., description="Chat session ID"),
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Get a chat session with all of its messages."""
    service = ChatService(db)
    session = await service.require_session(session_id, caller)
    messages = await service.get_messages(session_id)

    detail = ChatSessionDetailResponse(
        **ChatSessionResponse.model_validate(session).model_dump(),
        messages=[ChatMessageResponse.model_validate(m) for m in messages],
    )
    return ResponseSchema(
        status="success",
        message="Chat session retrieved successfully",
        data=detail.model_dump(mode="json"),
    )


@router.patch("/sessions/{session_id}", response_model=ResponseSchema)
async def rename_session(
    session_id: UUID = Path(..., description="Chat session ID"),
    update_data: ChatSessionUpdate = Body(...),
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Rename a chat session."""
    service = ChatService(db)
    await service.require_session(session_id, caller)
    session = await service.update_session_title(session_id, update_data.title)
    return ResponseSchema(
        status="success",
        message="Chat session updated successfully",
        data=ChatSessionResponse.model_validate(session).model_dump(mode="json"),
    )


@router.delete("/sessions/{session_id}", response_model=ResponseSchema)
async def delete_session(
    session_id: UUID = Path(..., description="Chat session ID"),
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Delete a chat session and all of its messages."""
    await ChatService(db).delete_session(session_id, caller)
    return ResponseSchema(status="success", message="Chat session deleted successfully", data=None)


@router.get("/sessions/{session_id}/messages", response_model=ResponseSchema)
async def get_messages(
    session_id: UUID = Path(..., description="Chat session ID"),
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """List a session's messages in order. Poll this while a response is generating."""
    service = ChatService(db)
    await service.require_session(session_id, caller)
    messages = await service.get_messages(session_id)
    return ResponseSchema(
        status="success",
        message="Messages retrieved successfully",
        data={"messages": [ChatMessageResponse.model_validate(m).model_dump(mode="json") for m in messages]},
    )


@router.post("/sessions/{session_id}/messages", response_model=ResponseSchema, status_code=202)
async def send_message(
    session_id: UUID = Path(..., description="Chat session ID"),
    message_data: SendMessageRequest = Body(...),
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Send, edit or regenerate a message.

    With ``edit_message_id`` every message from that one onwards is replaced;
    with ``regenerate`` the last assistant message is replaced.
    """
    placeholder, user_message = await ChatService(db).send_message(
        session_id,
        caller,
        message_data.content,
        model=message_data.model,
        attachments=message_data.attachments,
        edit_message_id=message_data.edit_message_id,
        regenerate=message_data.regenerate,
    )
    return ResponseSchema(
        status="success",
        message="Message accepted",
        data=SendMessageResponse(
            chat_session_id=session_id,
            message_id=placeholder.id,
            user_message_id=user_message.id if user_message else None,
        ).model_dump(mode="json"),
    )


@router.patch("/messages/{message_id}", response_model=ResponseSchema)
async def update_message(
    message_id: UUID = Path(..., description="Message ID"),
    update_data: MessageUpdate = Body(...),
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    """Edit the text of a stored message without regenerating."""
    message = await ChatService(db).update_message(message_id, update_data.content, caller)
    return ResponseSchema(
        status="success",
        message="Message updated successfully",
        data=ChatMessageResponse.model_validate(message).model_dump(mode="json"),
    )


@router.post("/migrate", response_model=ResponseSchema)
async def migrate_sessions(
    migrate_data: MigrateSessionsRequest = Body(...),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Move the chats of an anonymous session token to the signed-in user."""
    try:
        sid = anonymous_tokens.verify(migrate_data.anonymous_token)
    except InvalidTokenError as e:
        raise AuthenticationError("Invalid anonymous session token") from e

    migrated = await ChatService(db).migrate_ownership(sid, current_user.id)
    return ResponseSchema(
        status="success",
        message="Chat sessions migrated successfully",
        data=MigrateSessionsResponse(migrated_messages=migrated).model_dump(),
    )
