from typing import Any, Dict, List, Optional, Sequence
import logging

from sqlalchemy import select, func
from sqlalchemy.dialects.postgresql import insert as pg_insert

from db.models import Document

logger = logging.getLogger(__name__)


class DocumentStore:
    """
    Narrow access layer over the `documents` table.

    Rows are returned as plain dicts so retrieval code never depends on ORM
    objects. Errors propagate; the retrieval tiers decide what counts as failure.
    """

    def __init__(self, session_factory=None):
        if session_factory is None:
            from db.db import AsyncSessionLocal
            session_factory = AsyncSessionLocal
        self.session_factory = session_factory

    async def similarity_search(self, embedding: Sequence[float], top_k: int = 3) -> List[Dict[str, Any]]:
        """Nearest documents by cosine distance to the query embedding"""
        query = (
            select(Document.id, Document.content)
            .where(Document.embedding.isnot(None))
            .order_by(Document.embedding.cosine_distance(list(embedding)))
            .limit(int(top_k))
        )
        async with self.session_factory() as session:
            result = await session.execute(query)
            return [dict(row._mapping) for row in result.fetchall()]

    async def text_search(self, query_text: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Plain full-text search on the content column (plainto_tsquery)"""
        ts_match = func.to_tsvector("english", Document.content).bool_op("@@")(
            func.plainto_tsquery("english", query_text)
        )
        query = select(Document.id, Document.content).where(ts_match)
        if limit:
            query = query.limit(int(limit))

        async with self.session_factory() as session:
            result = await session.execute(query)
            return [dict(row._mapping) for row in result.fetchall()]

    async def upsert(self, doc_id: str, content: str, embedding: Optional[Sequence[float]] = None) -> None:
        """Insert or update a document; an existing vector is kept when none is given"""
        values: Dict[str, Any] = {"id": doc_id, "content": content}
        update = {"content": content, "updated_at": func.now()}
        if embedding is not None:
            values["embedding"] = list(embedding)
            update["embedding"] = list(embedding)

        stmt = pg_insert(Document).values(**values).on_conflict_do_update(
            index_elements=[Document.id],
            set_=update,
        )
        async with self.session_factory() as session:
            await session.execute(stmt)
            await session.commit()
        logger.debug("Upserted document %s (%d chars)", doc_id, len(content))
