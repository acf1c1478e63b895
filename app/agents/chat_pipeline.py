from typing import List, Optional, Sequence
import asyncio
import logging

from app.settings import settings
from app.agents.chat_model import ChatModel
from app.agents.context_retriever import ContextRetriever, RetrievedContext
from app.agents.request_assembler import ChatMessage, RequestAssembler, VerseBlock
from app.agents.response_extractor import extract_text
from app.agents.verse_fetcher import VerseFetcher
from utils.reference_parser import ReferenceParser

logger = logging.getLogger(__name__)

DEV_MOCK_CANNED = "DEV MOCK: This is a canned response for development."


class ChatPipeline:
    """
    Coordinates a single question: verse expansion, context retrieval,
    history assembly, the model call and answer extraction.

    Everything except the model call degrades to "no extra context" on
    failure. A failing model call propagates so the route can report it.
    """

    def __init__(
        self,
        verse_fetcher: VerseFetcher,
        retriever: ContextRetriever,
        chat_model: ChatModel,
        assembler: Optional[RequestAssembler] = None,
        top_k: Optional[int] = None,
    ):
        self.verse_fetcher = verse_fetcher
        self.retriever = retriever
        self.chat_model = chat_model
        self.assembler = assembler or RequestAssembler()
        self.parser = ReferenceParser()
        self.top_k = top_k if top_k is not None else settings.RAG_TOP_K

    async def aclose(self) -> None:
        await self.verse_fetcher.aclose()
        for tier in self.retriever.tiers:
            client = getattr(tier, "client", None)
            if client is not None and hasattr(client, "aclose"):
                await client.aclose()

    async def collect_verse_blocks(self, question: str) -> List[VerseBlock]:
        """
        Resolve scripture referenced in the question.

        A range ("John 3:16-18", "John 3:16-4:2") is expanded verse by verse;
        otherwise the first single reference is fetched. Unresolved verses are
        dropped.
        """
        range_ref = self.parser.find_range_reference(question)
        if range_ref:
            try:
                verses = await self.verse_fetcher.fetch_range(range_ref)
            except Exception as e:
                logger.warning("Failed to fetch range %s: %s", range_ref, str(e))
                return []
            return [(ref, text) for ref, text in verses.items() if text is not None]

        reference = self.parser.extract_first_reference(question)
        if reference is None:
            return []

        ref = str(reference)
        try:
            text = await self.verse_fetcher.fetch_one(ref)
        except Exception as e:
            logger.warning("Failed to fetch verse %s: %s", ref, str(e))
            return []
        return [(ref, text)] if text else []

    async def build_history(self, question: str, prior_turns: Sequence = ()) -> List[ChatMessage]:
        """Fetch verses and context concurrently, then assemble the message list"""
        verse_blocks, context = await asyncio.gather(
            self.collect_verse_blocks(question),
            self.retriever.retrieve_context(question, self.top_k),
        )
        if not isinstance(context, RetrievedContext):
            context = RetrievedContext()

        return self.assembler.assemble(
            question,
            prior_turns=prior_turns,
            snippets=context.snippets,
            verse_blocks=verse_blocks,
            web_sourced=context.from_web,
        )

    async def answer(self, question: str, prior_turns: Sequence = ()) -> str:
        """
        Answer a question with the model.

        Raises:
            ValueError: if question is empty
            Exception: whatever the model call raised
        """
        question = (question or "").strip()
        if not question:
            raise ValueError("question is required")

        history = await self.build_history(question, prior_turns)
        response = await self.chat_model.generate(history)
        return extract_text(response)

    async def dev_mock_answer(self, question: str) -> str:
        """Canned answer for local development: verse lookups only, no model call"""
        range_ref = self.parser.find_range_reference(question)
        if range_ref:
            verses = await self.verse_fetcher.fetch_range(range_ref)
            combined = "\n".join(f"{ref}: {text}" for ref, text in verses.items() if text is not None)
            if combined:
                return f"DEV MOCK: Found reference {range_ref} — {combined}"
            return DEV_MOCK_CANNED

        reference = self.parser.extract_first_reference(question)
        if reference is not None:
            text = await self.verse_fetcher.fetch_one(str(reference))
            if text:
                return f"DEV MOCK: Found reference {reference} — {text}"
        return DEV_MOCK_CANNED
