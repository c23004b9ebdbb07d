"""Test helpers: stored chat history and fake upstream streaming responses."""

import json

from models import ChatMessage, MessageRole
from models.base import utcnow


async def add_messages(db, chat_session, entries, start=0):
    """Append messages to a session.

    ``entries`` is a list of roles or ``(role, content)`` pairs.
    """
    messages = []
    for offset, entry in enumerate(entries):
        position = start + offset
        role, content = entry if isinstance(entry, tuple) else (entry, f"{entry} message {position}")
        message = ChatMessage(
            chat_session_id=chat_session.id,
            position=position,
            role=MessageRole(role),
            content=content,
            is_generating=False,
            timestamp=utcnow(),
            user_id=chat_session.user_id,
            anonymous_token=chat_session.anonymous_token,
        )
        db.add(message)
        messages.append(message)
    await db.commit()
    for message in messages:
        await db.refresh(message)
    return messages


def sse_body(frames, done=True):
    """Render frames as a ``text/event-stream`` body; strings are sent verbatim."""
    lines = []
    for frame in frames:
        payload = frame if isinstance(frame, str) else json.dumps(frame)
        lines.append(f"data: {payload}\n\n")
    if done:
        lines.append("data: [DONE]\n\n")
    return "".join(lines)


def content_frame(text):
    return {"choices": [{"delta": {"content": text}}]}


def reasoning_frame(text):
    return {"choices": [{"delta": {"reasoning": text}}]}


def tool_call_frame(index, name=None, arguments=None, call_id=None):
    function = {}
    if name is not None:
        function["name"] = name
    if arguments is not None:
        function["arguments"] = arguments
    fragment = {"index": index, "function": function}
    if call_id:
        fragment["id"] = call_id
        fragment["type"] = "function"
    return {"choices": [{"delta": {"tool_calls": [fragment]}}]}
