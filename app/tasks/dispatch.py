"""Enqueue background chat work by task name.

Request handlers use these helpers instead of importing the task module, so
the web process never loads worker code.
"""

import logging
from uuid import UUID

from app.celery_app import celery_app

logger = logging.getLogger(__name__)

GENERATE_RESPONSE_TASK = "app.tasks.chat_tasks.generate_response_task"
GENERATE_TITLE_TASK = "app.tasks.chat_tasks.generate_title_task"


def enqueue_response_generation(
    chat_session_id: UUID,
    message_id: UUID,
    model: str,
    user_id: UUID | None = None,
    anonymous_token: str | None = None,
) -> None:
    """Schedule the streaming run that fills an assistant placeholder."""
    celery_app.send_task(
        GENERATE_RESPONSE_TASK,
        kwargs={
            "chat_session_id": str(chat_session_id),
            "message_id": str(message_id),
            "model": model,
            "user_id": str(user_id) if user_id else None,
            "anonymous_token": anonymous_token,
        },
    )
    logger.info(f"Queued response generation for message {message_id} with model {model}")


def enqueue_title_generation(chat_session_id: UUID, user_message: str) -> None:
    """Schedule title generation for a new chat session."""
    celery_app.send_task(
        GENERATE_TITLE_TASK,
        kwargs={"chat_session_id": str(chat_session_id), "user_message": user_message},
    )
    logger.info(f"Queued title generation for chat session {chat_session_id}")
