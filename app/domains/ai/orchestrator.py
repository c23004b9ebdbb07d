"""Streaming tool-calling loop that fills an assistant placeholder message."""

import json
import logging
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.domains.ai.registry import is_model_usable, is_reasoning_model, supports_vision
from app.domains.ai.streaming import StreamAccumulator
from app.domains.chat.service import ChatService
from app.exceptions.chat import AccessDeniedError
from app.services.llm_client import LLMClient
from app.services.web_tools import DEFAULT_RESULTS, WebTools
from models.chat_message import ChatMessage, MessageRole

logger = logging.getLogger(__name__)

ACCESS_DENIED_MESSAGE = "You don't have access to this model. Please sign in or select a different model."
EMPTY_RESPONSE_MESSAGE = "Sorry, I couldn't generate a response."
ERROR_MESSAGE = "Sorry, I encountered an error while processing your request. Please try again."
TOOLS_EXECUTED_SUFFIX = "\n\n🔍 Tools executed, generating response..."

AVAILABLE_TOOLS: list[dict[str, Any]] = [
    {
        "type": "function",
        "function": {
            "name": "web_search",
            "description": (
                "Search the web for current information on any topic. Use this when you need "
                "up-to-date information or when the user asks about recent events, news, or specific facts."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": "The search query to find relevant information",
                    },
                    "numResults": {
                        "type": "number",
                        "description": "Number of search results to return (default: 10, max: 20)",
                    },
                },
                "required": ["query"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "extract_content",
            "description": (
                "Extract the main content from a specific webpage URL. Use this after web search "
                "to get detailed information from a specific source."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "url": {
                        "type": "string",
                        "description": "The URL of the webpage to extract content from",
                    },
                },
                "required": ["url"],
            },
        },
    },
]


class OrchestratorState(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    STREAMING = "streaming"
    TOOL_EXECUTING = "tool_executing"
    COMPLETED = "completed"
    FAILED = "failed"


def format_prompt_date(now: datetime | None = None) -> str:
    """Date in the form ``Mon, 19 Oct 2026``."""
    return (now or datetime.now(UTC)).strftime("%a, %d %b %Y")


def build_system_prompt(now: datetime | None = None) -> str:
    return (
        f"You are a helpful AI assistant for a platform called '{settings.app_name}' with access to "
        "web search and content extraction tools. Use these tools when you need current information, "
        "recent news, or specific details from websites. Do not ask for confirmation to use tools, "
        "just use them. Always provide accurate, helpful, and well-sourced responses. If you did not "
        "find the information you wanted with the first search, feel free to search again. When "
        "reading Wikipedia articles, append '&action=raw' to the index.php URL to get plain wikitext "
        "without the surrounding HTML. "
        f"The date is {format_prompt_date(now)}."
    )


def build_context(
    messages: list[ChatMessage], placeholder_id: UUID, model: str, limit: int | None = None
) -> list[dict[str, Any]]:
    """Turn stored messages into model messages.

    The placeholder is dropped and only the last ``limit`` messages are kept.
    Attachments become image parts for vision models and text markers for
    every other model.
    """
    limit = limit or settings.ai_context_messages
    vision = supports_vision(model)
    recent = [m for m in messages if m.id != placeholder_id][-limit:]

    context = []
    for message in recent:
        role = message.role.value if isinstance(message.role, MessageRole) else str(message.role)
        attachments = message.attachments or []

        if role != MessageRole.USER.value or not attachments:
            context.append({"role": role, "content": message.content})
            continue

        if vision:
            parts: list[dict[str, Any]] = [{"type": "text", "text": message.content}]
            for attachment in attachments:
                if attachment.get("kind") == "image" and attachment.get("data"):
                    parts.append({"type": "image_url", "image_url": {"url": attachment["data"]}})
            context.append({"role": role, "content": parts})
        else:
            text = message.content
            for attachment in attachments:
                text += f"\n[Attached {attachment.get('kind')}: {attachment.get('filename')}]"
            context.append({"role": role, "content": text})

    return context


class StreamingOrchestrator:
    """Runs one assistant turn: request, stream, execute tools, repeat.

    The run is bounded by ``settings.ai_max_tool_iterations`` model requests.
    Every outcome ends with the placeholder marked as not generating; failures
    are written into the placeholder and never raised.
    """

    def __init__(
        self,
        db: AsyncSession,
        llm_client: LLMClient | None = None,
        web_tools: WebTools | None = None,
    ):
        self.db = db
        self.chat_service = ChatService(db)
        self.llm_client = llm_client or LLMClient()
        self.web_tools = web_tools or WebTools()
        self.max_iterations = settings.ai_max_tool_iterations
        self.state = OrchestratorState.IDLE
        self.iterations = 0

    def build_payload(self, model: str, messages: list[dict[str, Any]]) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "max_tokens": settings.ai_max_tokens,
            "temperature": settings.ai_temperature,
            "stream": True,
            "tools": AVAILABLE_TOOLS,
        }
        if is_reasoning_model(model):
            payload["reasoning_effort"] = "medium"
        return payload

    async def execute_tool_call(self, name: str, arguments: str) -> str:
        """Run one tool call; any failure becomes the returned result text."""
        try:
            args = json.loads(arguments) if arguments else {}
            if name == "web_search":
                result = await self.web_tools.web_search(args["query"], args.get("numResults") or DEFAULT_RESULTS)
            elif name == "extract_content":
                result = await self.web_tools.extract_content(args["url"])
            else:
                raise ValueError(f"Unknown tool: {name}")
            return json.dumps(result, ensure_ascii=False)
        except Exception as e:
            logger.warning(f"Tool {name} failed: {str(e)}")
            return f"Error executing tool: {str(e)}"

    async def _patch(self, message_id: UUID, content: str, thinking: str, is_generating: bool) -> None:
        await self.chat_service.patch_assistant_message(
            message_id, content=content, thinking=thinking or None, is_generating=is_generating
        )

    async def run(
        self,
        chat_session_id: UUID,
        message_id: UUID,
        model: str,
        user_id: UUID | None = None,
        anonymous_token: str | None = None,
    ) -> OrchestratorState:
        """Generate the assistant response for ``message_id``.

        Returns:
            The terminal state, ``COMPLETED`` or ``FAILED``
        """
        self.state = OrchestratorState.IDLE
        self.iterations = 0
        owner = f"user {user_id}" if user_id else f"anonymous session {anonymous_token}"
        logger.info(f"🚀 Generating response for message {message_id} ({model}, {owner})")

        try:
            messages = await self.chat_service.get_messages(chat_session_id)
            context = build_context(messages, message_id, model)

            if not is_model_usable(model, user_id):
                raise AccessDeniedError(ACCESS_DENIED_MESSAGE)

            conversation: list[dict[str, Any]] = [
                {"role": "system", "content": build_system_prompt()},
                *context,
            ]
            accumulator = StreamAccumulator(is_reasoning=is_reasoning_model(model))

            while self.iterations < self.max_iterations:
                self.iterations += 1
                self.state = OrchestratorState.REQUESTING
                accumulator.start_iteration()
                payload = self.build_payload(model, conversation)

                self.state = OrchestratorState.STREAMING
                async for frame in self.llm_client.stream_chat(payload):
                    if accumulator.feed(frame):
                        await self._patch(message_id, accumulator.display_content(), accumulator.thinking, True)

                tool_calls = accumulator.named_tool_calls()
                if not tool_calls:
                    break

                self.state = OrchestratorState.TOOL_EXECUTING
                conversation.append(
                    {
                        "role": "assistant",
                        "content": accumulator.iteration_content or None,
                        "tool_calls": tool_calls,
                    }
                )
                for call in tool_calls:
                    name = call["function"]["name"]
                    result = await self.execute_tool_call(name, call["function"]["arguments"])
                    conversation.append(
                        {"role": "tool", "tool_call_id": call["id"], "name": name, "content": result}
                    )

                await self._patch(
                    message_id, accumulator.content + TOOLS_EXECUTED_SUFFIX, accumulator.thinking, True
                )
            else:
                logger.warning(f"Message {message_id} hit the {self.max_iterations} iteration cap")

            await self._patch(
                message_id, accumulator.content or EMPTY_RESPONSE_MESSAGE, accumulator.thinking, False
            )
            self.state = OrchestratorState.COMPLETED
            logger.info(f"✅ Message {message_id} completed after {self.iterations} iteration(s)")

        except AccessDeniedError as e:
            logger.info(f"Model {model} denied for message {message_id}")
            await self._fail(message_id, e.message)
        except Exception as e:
            logger.error(f"❌ Error generating response for message {message_id}: {str(e)}", exc_info=True)
            await self._fail(message_id, ERROR_MESSAGE)

        return self.state

    async def _fail(self, message_id: UUID, content: str) -> None:
        self.state = OrchestratorState.FAILED
        try:
            await self.db.rollback()
            await self.chat_service.patch_assistant_message(message_id, content=content, is_generating=False)
        except Exception as e:
            logger.error(f"Could not write failure state for message {message_id}: {str(e)}")
