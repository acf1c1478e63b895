import argparse
import asyncio
import logging
import os
import re
from typing import Any, Dict, List, Optional

from db.document_store import DocumentStore
from utils.embedding import get_embedding_service

logger = logging.getLogger(__name__)

STORE_FAILURE = "Failed to store document"

# Import necessary modules and libraries for document ingestion
# Define the DocumentIngestionService class for loading context documents
class DocumentIngestionService:
    def __init__(self, store: Optional[DocumentStore] = None, embedding_service=None, use_embeddings: bool = True):
        self.store = store or DocumentStore()
        if embedding_service is None and use_embeddings:
            embedding_service = get_embedding_service()
        self.embedding_service = embedding_service

    async def upsert_document(self, doc_id: str, text: str,
                              embedding: Optional[List[float]] = None) -> Dict[str, Any]:
        """
        Store a document, with an embedding when one can be generated.

        Embedding failures are not fatal: the document is stored without a
        vector and still serves full-text search.

        Raises:
            ValueError: if doc_id or text is empty
        """
        if not doc_id:
            raise ValueError("document id is required")
        if not text:
            raise ValueError("document text is required")

        if embedding is None and self.embedding_service is not None:
            try:
                embedding = await self.embedding_service.embed(text)
            except Exception as e:
                logger.warning("Embedding generation failed for %s, continuing without embedding: %s", doc_id, e)
                embedding = None

        try:
            await self.store.upsert(doc_id, text, embedding)
        except Exception:
            logger.exception("Upsert failed for %s", doc_id)
            return {"success": False, "id": doc_id, "error": STORE_FAILURE}

        return {"success": True, "id": doc_id, "size": len(text), "embedded": embedding is not None}

    @staticmethod
    def split_passages(content: str) -> List[str]:
        """Split text into blank-line separated passages"""
        return [p.strip() for p in re.split(r'\n\s*\n', content) if p.strip()]

    async def ingest_file(self, file_path: str) -> List[Dict[str, Any]]:
        """Ingest one text file; each passage becomes a document `<stem>-<n>`"""
        if not os.path.exists(file_path):
            raise FileNotFoundError(f"Document file not found: {file_path}")

        with open(file_path, 'r', encoding='utf-8') as f:
            content = f.read()

        stem = os.path.splitext(os.path.basename(file_path))[0]
        passages = self.split_passages(content)

        embeddings: List[Optional[List[float]]] = [None] * len(passages)
        if self.embedding_service is not None and passages:
            try:
                embeddings = list(await self.embedding_service.embed_many(passages))
            except Exception as e:
                # upsert_document retries each passage on its own
                logger.warning("Batch embedding failed for %s: %s", file_path, e)

        results = []
        for n, (passage, embedding) in enumerate(zip(passages, embeddings), start=1):
            results.append(await self.upsert_document(f"{stem}-{n}", passage, embedding))

        stored = sum(1 for r in results if r["success"])
        logger.info("Ingested %d/%d passages from %s", stored, len(results), file_path)
        return results


async def main(argv: Optional[List[str]] = None):
    """Run ingestion from command line"""
    parser = argparse.ArgumentParser(description="Load context documents into the documents table")
    parser.add_argument("files", nargs="+", help="Text files; passages are separated by blank lines")
    parser.add_argument("--no-embeddings", action="store_true", help="Store documents without vectors")
    parser.add_argument("--create-tables", action="store_true", help="Create tables and indexes first")
    parser.add_argument("--vector-index", action="store_true", help="Build the ivfflat index after loading")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s [%(name)s] %(message)s')

    if args.create_tables:
        from db.db import create_tables
        await create_tables()

    service = DocumentIngestionService(use_embeddings=not args.no_embeddings)
    total = 0
    for file_path in args.files:
        try:
            results = await service.ingest_file(file_path)
            total += sum(1 for r in results if r["success"])
        except FileNotFoundError as e:
            logger.error(str(e))

    if args.vector_index and total:
        from db.db import create_vector_index
        await create_vector_index()

    print(f"Ingested {total} passages")

if __name__ == "__main__":
    asyncio.run(main())
