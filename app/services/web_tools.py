"""Web search and page content extraction tools exposed to the model."""

import logging
import re
from typing import Any

import httpx

from app.core.config import settings
from app.exceptions.ai import AIConfigurationError, UpstreamError

logger = logging.getLogger(__name__)

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)

_SCRIPT_RE = re.compile(r"<script[^>]*>[\s\S]*?</script>", re.IGNORECASE)
_STYLE_RE = re.compile(r"<style[^>]*>[\s\S]*?</style>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")
_TITLE_RE = re.compile(r"<title[^>]*>([^<]+)</title>", re.IGNORECASE)

MIN_RESULTS = 1
MAX_RESULTS = 20
DEFAULT_RESULTS = 10


def html_to_text(html: str) -> str:
    """Drop scripts, styles and tags, then collapse whitespace."""
    text = _SCRIPT_RE.sub("", html)
    text = _STYLE_RE.sub("", text)
    text = _TAG_RE.sub(" ", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def extract_title(html: str) -> str:
    match = _TITLE_RE.search(html)
    return match.group(1).strip() if match else "No title found"


class WebTools:
    """Stateless adapters for the search provider and arbitrary web pages.

    No retries: a failed call raises ``UpstreamError`` and the caller decides
    what to do with it.
    """

    def __init__(
        self,
        serper_api_key: str | None = None,
        serper_url: str | None = None,
        timeout: float | None = None,
        max_chars: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.serper_api_key = serper_api_key if serper_api_key is not None else settings.serper_api_key
        self.serper_url = serper_url or settings.serper_url
        self.timeout = timeout or settings.tool_request_timeout
        self.max_chars = max_chars or settings.extract_max_chars
        self.transport = transport

    def _client(self, **kwargs) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport, **kwargs)

    async def web_search(self, query: str, num_results: int | None = DEFAULT_RESULTS) -> dict[str, Any]:
        """Search the web and return a trimmed result document.

        Args:
            query: Search query
            num_results: Requested result count, clamped to 1..20

        Returns:
            dict with ``query``, ``knowledgeGraph``, ``organic``,
            ``peopleAlsoAsk`` (at most 3) and ``relatedSearches`` (at most 5)

        Raises:
            AIConfigurationError: If no search API key is configured
            UpstreamError: On non-2xx responses or transport failures
        """
        if not self.serper_api_key:
            raise AIConfigurationError("Search API key not configured")

        num = max(MIN_RESULTS, min(MAX_RESULTS, int(num_results or DEFAULT_RESULTS)))
        headers = {"X-API-KEY": self.serper_api_key, "Content-Type": "application/json"}

        try:
            async with self._client() as client:
                response = await client.post(self.serper_url, json={"q": query, "num": num}, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Web search transport error: {str(e)}")
            raise UpstreamError(f"Search request failed: {str(e)}", provider="serper") from e

        if not response.is_success:
            logger.warning(f"Web search returned {response.status_code} for query: {query}")
            raise UpstreamError(
                f"Search API error: {response.status_code}",
                provider="serper",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError("Search API returned invalid JSON", provider="serper") from e

        return {
            "query": query,
            "knowledgeGraph": data.get("knowledgeGraph"),
            "organic": [
                {
                    "title": result.get("title"),
                    "link": result.get("link"),
                    "snippet": result.get("snippet"),
                    "position": result.get("position"),
                }
                for result in data.get("organic") or []
            ],
            "peopleAlsoAsk": [
                {"question": item.get("question"), "snippet": item.get("snippet")}
                for item in (data.get("peopleAlsoAsk") or [])[:3]
            ],
            "relatedSearches": [item.get("query") for item in (data.get("relatedSearches") or [])[:5]],
        }

    async def extract_content(self, url: str) -> dict[str, Any]:
        """Fetch a page and return its plain text.

        Returns:
            dict with ``url``, ``title``, ``content`` (at most ``max_chars``),
            ``contentLength`` of the full clean text and ``truncated``

        Raises:
            UpstreamError: On non-2xx responses or transport failures
        """
        try:
            async with self._client(follow_redirects=True) as client:
                response = await client.get(url, headers={"User-Agent": BROWSER_USER_AGENT})
        except httpx.HTTPError as e:
            logger.error(f"Content extraction failed for {url}: {str(e)}")
            raise UpstreamError(f"Failed to extract content from URL: {str(e)}", provider="web") from e

        if not response.is_success:
            raise UpstreamError(
                f"Failed to fetch URL: {response.status_code}",
                provider="web",
                status_code=response.status_code,
            )

        html = response.text
        clean_text = html_to_text(html)

        return {
            "url": url,
            "title": extract_title(html),
            "content": clean_text[: self.max_chars],
            "contentLength": len(clean_text),
            "truncated": len(clean_text) > self.max_chars,
        }
