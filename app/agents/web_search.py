from typing import Any, List, Optional
import logging

import httpx

from app.settings import settings

# Module logger
logger = logging.getLogger(__name__)

SNIPPET_SEPARATOR = " — "


def _clean(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


class WebSearchClient:
    """
    Best-effort web search against a Bing Web Search (v7) compatible endpoint.

    Results come back as short attributed strings: "title — snippet — url".
    Without an endpoint and key the client is a no-op.
    """

    def __init__(
        self,
        endpoint: Optional[str] = None,
        api_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self.endpoint = endpoint if endpoint is not None else settings.BING_SEARCH_ENDPOINT
        self.api_key = api_key if api_key is not None else settings.BING_API_KEY
        self._timeout = timeout if timeout is not None else settings.REQUEST_TIMEOUT_SECONDS
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.endpoint and self.api_key)

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @staticmethod
    def format_item(item: Any) -> str:
        """Build "title — snippet — url" from one result item, skipping empty parts"""
        if not isinstance(item, dict):
            return ""
        title = _clean(item.get("name"))
        snippet = _clean(item.get("snippet")) or _clean(item.get("text"))
        url = _clean(item.get("url")) or _clean(item.get("displayUrl"))
        return SNIPPET_SEPARATOR.join(p for p in (title, snippet, url) if p)

    async def search(self, query: str, top_k: int = 3) -> List[str]:
        """
        Search the web and return up to top_k snippets.

        Raises:
            ValueError: if query is empty (caller bug, not an environmental failure)
        """
        if not query or not query.strip():
            raise ValueError("query is required")

        if not self.configured:
            logger.debug("Web search not configured; skipping")
            return []

        params = {
            "q": query,
            "count": str(top_k),
            "textDecorations": "false",
            "textFormat": "Raw",
        }
        headers = {"Ocp-Apim-Subscription-Key": self.api_key}

        try:
            response = await self.client.get(self.endpoint, params=params, headers=headers)
            if not response.is_success:
                logger.warning("Web search returned HTTP %s", response.status_code)
                return []

            payload = response.json()
            pages = payload.get("webPages") if isinstance(payload, dict) else None
            items = pages.get("value") if isinstance(pages, dict) else None
            if not isinstance(items, list):
                return []

            results = []
            for item in items[:top_k]:
                joined = self.format_item(item)
                if joined:
                    results.append(joined)
            return results

        except Exception as e:
            # Best-effort: callers never see errors from web search
            logger.warning("Web search failed: %s", str(e))
            return []
