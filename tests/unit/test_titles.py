"""Unit tests for chat title generation."""

import json
import uuid
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.domains.ai.titles import DEFAULT_TITLE, TITLE_INSTRUCTION, TitleGenerator, clean_title


def completion(text):
    return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": text}}]})


class TestCleanTitle:
    """Test cases for clean_title."""

    def test_markdown_is_stripped(self):
        assert clean_title("**Paris _Weather_**") == "Paris Weather"
        assert clean_title("# `Roman` [History]") == "Roman History"

    def test_long_title_is_truncated(self):
        title = clean_title("A" * 40)
        assert title == "A" * 27 + "..."
        assert len(title) == 30

    def test_thirty_characters_are_kept(self):
        assert clean_title("B" * 30) == "B" * 30

    def test_empty_title_falls_back(self):
        assert clean_title("  ** ") == DEFAULT_TITLE


@pytest.mark.asyncio
class TestTitleGenerator:
    """Test cases for TitleGenerator."""

    async def test_generated_title_is_stored(self, test_db: AsyncSession, chat_session, make_llm_client):
        requests = []

        def handler(request):
            requests.append(json.loads(request.content))
            return completion("**Paris Weather**")

        generator = TitleGenerator(test_db, llm_client=make_llm_client(handler))

        title = await generator.run(chat_session.id, "What's the weather in Paris?")

        await test_db.refresh(chat_session)
        assert title == "Paris Weather"
        assert chat_session.title == "Paris Weather"
        payload = requests[0]
        assert payload["max_tokens"] == 50
        assert payload["temperature"] == 0.3
        assert payload["messages"][0]["content"] == TITLE_INSTRUCTION + "What's the weather in Paris?"

    async def test_upstream_failure_falls_back_to_message(
        self, test_db: AsyncSession, chat_session, make_llm_client
    ):
        generator = TitleGenerator(test_db, llm_client=make_llm_client(lambda request: httpx.Response(503)))
        message = "Explain the difference between TCP and UDP in detail"

        title = await generator.run(chat_session.id, message)

        await test_db.refresh(chat_session)
        assert title == message[:27] + "..."
        assert chat_session.title == title

    async def test_title_is_written_once(self, test_db: AsyncSession, chat_session, make_llm_client):
        generator = TitleGenerator(test_db, llm_client=make_llm_client(lambda request: completion("Short")))

        with patch.object(
            generator.chat_service, "update_session_title", AsyncMock(return_value=chat_session)
        ) as update_mock:
            await generator.run(chat_session.id, "Hello")

        update_mock.assert_awaited_once_with(chat_session.id, "Short")

    async def test_missing_session_never_raises(self, test_db: AsyncSession, make_llm_client):
        generator = TitleGenerator(test_db, llm_client=make_llm_client(lambda request: completion("Short")))

        assert await generator.run(uuid.uuid4(), "Hello") is None
