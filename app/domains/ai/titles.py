"""Chat title generation."""

import logging
import re
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.domains.chat.service import TITLE_CUT_LENGTH, TITLE_MAX_LENGTH, ChatService, truncate_title
from app.services.llm_client import LLMClient

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New Chat"
TITLE_INSTRUCTION = (
    "Generate a summary title for this user request, ensuring it is below 30 characters, "
    "is entirely in plain text and uses no markdown and summarises the request in ~2-5 words: "
)

_MARKDOWN_RE = re.compile(r"[*_`#\[\]]")


def clean_title(raw: str) -> str:
    """Strip markdown punctuation and cut titles longer than 30 characters."""
    title = _MARKDOWN_RE.sub("", raw.strip()).strip()
    if not title:
        return DEFAULT_TITLE
    if len(title) > TITLE_MAX_LENGTH:
        return title[:TITLE_CUT_LENGTH] + "..."
    return title


class TitleGenerator:
    """Asks the model for a short title and stores it on the session.

    Every run writes the title exactly once: the generated title on success,
    a truncated copy of the user message otherwise.
    """

    def __init__(self, db: AsyncSession, llm_client: LLMClient | None = None):
        self.db = db
        self.chat_service = ChatService(db)
        self.llm_client = llm_client or LLMClient()

    def _build_payload(self, user_message: str) -> dict:
        return {
            "model": settings.title_model,
            "messages": [{"role": "system", "content": TITLE_INSTRUCTION + user_message}],
            "max_tokens": 50,
            "temperature": 0.3,
        }

    async def generate(self, user_message: str) -> str:
        """Generated title for a message; raises on upstream failure."""
        answer = await self.llm_client.complete(self._build_payload(user_message))
        return clean_title(answer)

    async def run(self, chat_session_id: UUID, user_message: str) -> str | None:
        """Generate and store a title. Never raises.

        Returns:
            The stored title, or None if the session could not be updated
        """
        try:
            title = await self.generate(user_message)
        except Exception as e:
            logger.warning(f"Title generation failed for chat session {chat_session_id}: {str(e)}")
            title = truncate_title(user_message) or DEFAULT_TITLE

        try:
            await self.chat_service.update_session_title(chat_session_id, title)
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Could not store title for chat session {chat_session_id}: {str(e)}")
            return None

        logger.info(f"Chat session {chat_session_id} titled '{title}'")
        return title
