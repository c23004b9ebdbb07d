"""HTTP client for the OpenAI-compatible chat completions API (OpenRouter)."""

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from app.core.config import settings
from app.exceptions.ai import AIConfigurationError, MalformedFrameError, UpstreamError

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_MARKER = "[DONE]"
PROVIDER = "openrouter"


def parse_sse_line(line: str) -> str | None:
    """Return the payload of a ``data: `` line, None for any other line."""
    if not line.startswith(DATA_PREFIX):
        return None
    return line[len(DATA_PREFIX):].strip()


def parse_frame(data: str) -> dict[str, Any]:
    """Decode one streaming frame.

    Raises:
        MalformedFrameError: If the payload is not a JSON object
    """
    try:
        frame = json.loads(data)
    except json.JSONDecodeError as e:
        raise MalformedFrameError(f"Failed to parse frame: {e.msg}", frame=data) from e
    if not isinstance(frame, dict):
        raise MalformedFrameError("Frame is not a JSON object", frame=data)
    return frame


def first_delta(frame: dict[str, Any]) -> dict[str, Any]:
    """``choices[0].delta`` of a frame, or an empty dict."""
    choices = frame.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return {}
    delta = choices[0].get("delta")
    return delta if isinstance(delta, dict) else {}


class LLMClient:
    """Streaming and one-shot chat completion calls.

    A new ``httpx.AsyncClient`` is opened per call so the client can be used
    from request handlers and Celery tasks alike. ``transport`` lets tests
    substitute an ``httpx.MockTransport``.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.openrouter_api_key
        self.base_url = (base_url or settings.openrouter_base_url).rstrip("/")
        self.timeout = timeout or settings.ai_request_timeout
        self.transport = transport

    @property
    def completions_url(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _headers(self) -> dict[str, str]:
        if not self.api_key:
            raise AIConfigurationError("OpenRouter API key not configured")
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def stream_chat(self, payload: dict[str, Any]) -> AsyncIterator[dict[str, Any]]:
        """Yield decoded frames of a streaming completion until ``[DONE]``.

        Malformed frames are logged and skipped.

        Raises:
            AIConfigurationError: If no API key is configured
            UpstreamError: On non-2xx responses or transport failures
        """
        headers = self._headers()
        try:
            async with self._client() as client:
                async with client.stream(
                    "POST", self.completions_url, json=payload, headers=headers
                ) as response:
                    if not response.is_success:
                        await response.aread()
                        raise UpstreamError(
                            f"OpenRouter API error: {response.status_code}",
                            provider=PROVIDER,
                            status_code=response.status_code,
                        )

                    async for line in response.aiter_lines():
                        data = parse_sse_line(line)
                        if data is None:
                            continue
                        if data == DONE_MARKER:
                            return
                        try:
                            yield parse_frame(data)
                        except MalformedFrameError as e:
                            logger.warning(f"Skipping malformed stream frame: {e.details.get('frame')}")
                            continue
        except httpx.HTTPError as e:
            logger.error(f"OpenRouter transport error: {str(e)}")
            raise UpstreamError(f"OpenRouter request failed: {str(e)}", provider=PROVIDER) from e

    async def complete(self, payload: dict[str, Any]) -> str:
        """Run a non-streaming completion and return the first choice's text.

        Raises:
            AIConfigurationError: If no API key is configured
            UpstreamError: On non-2xx responses, transport failures or unreadable bodies
        """
        headers = self._headers()
        try:
            async with self._client() as client:
                response = await client.post(self.completions_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"OpenRouter transport error: {str(e)}")
            raise UpstreamError(f"OpenRouter request failed: {str(e)}", provider=PROVIDER) from e

        if not response.is_success:
            raise UpstreamError(
                f"OpenRouter API error: {response.status_code}",
                provider=PROVIDER,
                status_code=response.status_code,
            )

        try:
            data = response.json()
            choices = data.get("choices") or [{}]
            message = choices[0].get("message") or {}
        except (ValueError, AttributeError) as e:
            raise UpstreamError(
                "OpenRouter returned an unreadable response", provider=PROVIDER, status_code=response.status_code
            ) from e

        return message.get("content") or ""
