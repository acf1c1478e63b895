from typing import Any, Iterable, List, Optional, Sequence
from dataclasses import dataclass, field
import asyncio
import logging

from app.settings import settings
from app.agents.web_search import WebSearchClient

# Module logger
logger = logging.getLogger(__name__)


def normalize_rows(rows: Any, fields: Sequence[str], top_k: int) -> List[str]:
    """
    Turn search rows of any shape into trimmed, non-empty snippets.

    For each row the first string-valued field in `fields` wins; rows without
    one are dropped. Source order is kept and the result is capped at top_k.
    """
    if not isinstance(rows, (list, tuple)):
        return []

    snippets: List[str] = []
    for row in rows:
        if len(snippets) >= top_k:
            break
        if not isinstance(row, dict):
            continue
        for name in fields:
            value = row.get(name)
            if isinstance(value, str):
                if value.strip():
                    snippets.append(value.strip())
                break
    return snippets


class RetrievalTier:
    """
    One stage of the fallback chain.

    Subclasses implement `_search`, which may raise. `retrieve` wraps it with a
    timeout and turns every failure into an empty list, so callers only ever
    see snippets.
    """

    name = "tier"

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout if timeout is not None else settings.REQUEST_TIMEOUT_SECONDS

    async def _search(self, query: str, top_k: int) -> List[str]:
        raise NotImplementedError

    async def retrieve(self, query: str, top_k: int) -> List[str]:
        try:
            snippets = await asyncio.wait_for(self._search(query, top_k), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("%s retrieval timed out after %ss", self.name, self.timeout)
            return []
        except Exception as e:
            logger.warning("%s retrieval failed: %s", self.name, str(e))
            return []
        return list(snippets or [])[:top_k]


class VectorTier(RetrievalTier):
    """Embedding + nearest-neighbour search; inactive without an embedding service"""

    name = "vector"

    def __init__(self, store, embedding_service=None, timeout: Optional[float] = None):
        super().__init__(timeout)
        self.store = store
        self.embedding_service = embedding_service

    async def _search(self, query: str, top_k: int) -> List[str]:
        if self.embedding_service is None:
            return []
        vector = await self.embedding_service.embed(query)
        rows = await self.store.similarity_search(vector, top_k)
        return normalize_rows(rows, ("content", "text"), top_k)


class FullTextTier(RetrievalTier):
    """Plain full-text search on document content"""

    name = "full_text"

    def __init__(self, store, timeout: Optional[float] = None):
        super().__init__(timeout)
        self.store = store

    async def _search(self, query: str, top_k: int) -> List[str]:
        rows = await self.store.text_search(query, limit=top_k)
        return normalize_rows(rows, ("content",), top_k)


class WebTier(RetrievalTier):
    """Live web search, the last resort"""

    name = "web"

    def __init__(self, client: WebSearchClient, timeout: Optional[float] = None):
        super().__init__(timeout)
        self.client = client

    async def _search(self, query: str, top_k: int) -> List[str]:
        return await self.client.search(query, top_k)


@dataclass
class RetrievedContext:
    snippets: List[str] = field(default_factory=list)
    source: Optional[str] = None  # name of the tier that produced the snippets

    @property
    def from_web(self) -> bool:
        return self.source == WebTier.name


class ContextRetriever:
    """
    Tries each tier in order and returns the first non-empty batch of snippets.
    Never raises.
    """

    def __init__(self, tiers: Iterable[RetrievalTier]):
        self.tiers = list(tiers)

    @classmethod
    def default(cls, web_client: Optional[WebSearchClient] = None) -> "ContextRetriever":
        """Vector -> full-text -> web, wired from settings"""
        from db.document_store import DocumentStore
        from utils.embedding import get_embedding_service

        store = DocumentStore()
        return cls([
            VectorTier(store, get_embedding_service()),
            FullTextTier(store),
            WebTier(web_client or WebSearchClient()),
        ])

    async def retrieve_context(self, query: str, top_k: Optional[int] = None) -> RetrievedContext:
        top_k = top_k if top_k is not None else settings.RAG_TOP_K
        if not query or not query.strip() or top_k <= 0:
            return RetrievedContext()

        for tier in self.tiers:
            snippets = await tier.retrieve(query, top_k)
            if snippets:
                logger.debug("Context for %r served by %s tier (%d snippets)", query, tier.name, len(snippets))
                return RetrievedContext(snippets=snippets, source=tier.name)

        logger.debug("No context found for %r", query)
        return RetrievedContext()

    async def retrieve(self, query: str, top_k: Optional[int] = None) -> List[str]:
        return (await self.retrieve_context(query, top_k)).snippets
