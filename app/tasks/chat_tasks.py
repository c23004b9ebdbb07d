"""Celery tasks for chat response generation, titles and stale-run recovery."""

import asyncio
import logging
from datetime import timedelta
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Import all models to ensure they're registered before creating session
import models  # noqa: F401

from app.celery_app import celery_app
from app.core.config import settings
from app.database import DB_URL
from app.domains.ai.orchestrator import StreamingOrchestrator
from app.domains.ai.titles import TitleGenerator
from app.domains.chat.service import ChatService
from models.base import utcnow

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Sorry, the response timed out. Please try again."


def get_session_factory():
    """Create an engine and session factory bound to the current event loop.

    Each task runs in its own ``asyncio.run`` loop, so engines are never
    shared between tasks.
    """
    engine = create_async_engine(DB_URL, pool_pre_ping=True)
    return engine, async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@celery_app.task(name="app.tasks.chat_tasks.generate_response_task", bind=True)
def generate_response_task(
    self,
    chat_session_id: str,
    message_id: str,
    model: str,
    user_id: str | None = None,
    anonymous_token: str | None = None,
) -> dict[str, Any]:
    """Fill an assistant placeholder by running the streaming orchestrator.

    The orchestrator writes a terminal state itself, so this task is never
    retried.
    """
    logger.info(f"🚀 Starting response generation (Task ID: {self.request.id})")
    state = asyncio.run(
        _generate_response_async(
            UUID(chat_session_id),
            UUID(message_id),
            model,
            UUID(user_id) if user_id else None,
            anonymous_token,
        )
    )
    return {"message_id": message_id, "state": state}


async def _generate_response_async(
    chat_session_id: UUID,
    message_id: UUID,
    model: str,
    user_id: UUID | None,
    anonymous_token: str | None,
) -> str:
    engine, session_factory = get_session_factory()
    try:
        async with session_factory() as session:
            orchestrator = StreamingOrchestrator(session)
            state = await orchestrator.run(
                chat_session_id, message_id, model, user_id=user_id, anonymous_token=anonymous_token
            )
            return state.value
    finally:
        await engine.dispose()


@celery_app.task(name="app.tasks.chat_tasks.generate_title_task", bind=True)
def generate_title_task(self, chat_session_id: str, user_message: str) -> dict[str, Any]:
    """Generate and store a title for a new chat session."""
    logger.info(f"Starting title generation (Task ID: {self.request.id})")
    title = asyncio.run(_generate_title_async(UUID(chat_session_id), user_message))
    return {"chat_session_id": chat_session_id, "title": title}


async def _generate_title_async(chat_session_id: UUID, user_message: str) -> str | None:
    engine, session_factory = get_session_factory()
    try:
        async with session_factory() as session:
            return await TitleGenerator(session).run(chat_session_id, user_message)
    finally:
        await engine.dispose()


@celery_app.task(name="app.tasks.chat_tasks.sweep_stale_generations_task", bind=True)
def sweep_stale_generations_task(self) -> dict[str, Any]:
    """Mark placeholders stuck generating past the timeout as failed.

    This is the scheduled task that runs periodically via Celery Beat.
    """
    try:
        swept = asyncio.run(_sweep_stale_generations_async())
    except Exception as e:
        logger.error(f"❌ Stale generation sweep failed: {str(e)}")
        raise self.retry(exc=e, countdown=settings.sweep_interval_seconds, max_retries=3)

    if swept:
        logger.info(f"✅ Sweep finished (Task ID: {self.request.id}): {swept} message(s) timed out")
    return {"swept": swept}


async def _sweep_stale_generations_async() -> int:
    engine, session_factory = get_session_factory()
    try:
        async with session_factory() as session:
            cutoff = utcnow() - timedelta(seconds=settings.generation_timeout_seconds)
            return await ChatService(session).fail_stale_generations(cutoff, TIMEOUT_MESSAGE)
    finally:
        await engine.dispose()
