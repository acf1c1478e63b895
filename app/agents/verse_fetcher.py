from typing import Dict, List, Optional, Sequence, Union
from urllib.parse import quote
import asyncio
import logging

import httpx

from app.settings import settings
from utils.reference_parser import ReferenceParser, VerseRange, CrossChapterRange
from utils.verse_cache import VerseCache, get_verse_cache

# Module logger
logger = logging.getLogger(__name__)


class VerseFetcher:
    """
    Resolves scripture references to text through a bible-api.com style service.

    Every lookup goes through the shared VerseCache first. Failures never
    escape: a verse that cannot be fetched resolves to None and is not cached,
    so a later request gets another chance.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        cache: Optional[VerseCache] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        max_concurrency: Optional[int] = None,
    ):
        self.base_url = (base_url or settings.BIBLE_API_URL).rstrip("/")
        self.cache = cache if cache is not None else get_verse_cache()
        self.parser = ReferenceParser()
        self._timeout = timeout if timeout is not None else settings.REQUEST_TIMEOUT_SECONDS
        self._client = client
        self.max_concurrency = max_concurrency or settings.VERSE_LOOKUP_CONCURRENCY
        self._slots = asyncio.Semaphore(self.max_concurrency)

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _url_for(self, reference: str) -> str:
        return f"{self.base_url}/{quote(reference, safe='')}"

    async def _get_json(self, reference: str) -> Optional[dict]:
        """GET a passage and return its JSON body, or None on any failure"""
        try:
            async with self._slots:
                response = await self.client.get(self._url_for(reference))
            if not response.is_success:
                logger.warning("Verse lookup for %s returned HTTP %s", reference, response.status_code)
                return None
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Verse lookup for %s failed: %s", reference, str(e))
            return None

        if not isinstance(body, dict):
            logger.warning("Verse lookup for %s returned an unexpected body", reference)
            return None
        return body

    async def fetch_one(self, reference: str) -> Optional[str]:
        """
        Fetch a single reference (verse, chapter or book) as text.

        Returns:
            The passage text, or None if the lookup failed
        """
        normalized = VerseCache.normalize(reference or "")
        if not normalized:
            return None

        cached = self.cache.get_verse(normalized)
        if cached is not None:
            return cached

        body = await self._get_json(normalized)
        if body is None:
            return None

        text = body.get("text")
        if not isinstance(text, str) or not text:
            return None

        self.cache.set_verse(normalized, text)
        return text

    async def fetch_many(self, references: Union[str, Sequence[str]]) -> Dict[str, Optional[str]]:
        """
        Fetch several references concurrently.

        Args:
            references: List of references, or one comma-separated string
                        like "John 3:16, Genesis 1:1"

        Returns:
            Mapping of each trimmed reference to its text (or None), in input order
        """
        if isinstance(references, str):
            raw = references.split(",")
        else:
            raw = [str(r) for r in references]

        keys = [r.strip() for r in raw if r and r.strip()]
        # Duplicates share one lookup
        unique_keys = list(dict.fromkeys(keys))

        texts = await asyncio.gather(*(self.fetch_one(key) for key in unique_keys))
        return dict(zip(unique_keys, texts))

    async def chapter_length(self, book: str, chapter: int) -> int:
        """Number of verses in a chapter, or 0 when it cannot be determined"""
        cached = self.cache.get_chapter_length(book, chapter)
        if cached is not None:
            return cached

        body = await self._get_json(f"{book.strip()} {int(chapter)}")
        if body is None:
            return 0

        verses = body.get("verses")
        length = len(verses) if isinstance(verses, list) else 0
        if length > 0:
            self.cache.set_chapter_length(book, chapter, length)
        return length

    async def _expand_cross_chapter(self, verse_range: CrossChapterRange) -> List[str]:
        book = verse_range.book

        if verse_range.start_chapter == verse_range.end_chapter:
            same = VerseRange(book, verse_range.start_chapter, verse_range.start_verse, verse_range.end_verse)
            return same.to_references()

        # Lengths for the first chapter and every full chapter in between
        chapters = list(range(verse_range.start_chapter, verse_range.end_chapter))
        lengths = await asyncio.gather(*(self.chapter_length(book, c) for c in chapters))
        length_by_chapter = dict(zip(chapters, lengths))
        if not any(lengths):
            logger.warning("No chapter lengths found for %s; not expanding range", verse_range.first_reference)
            return []

        references: List[str] = []

        first_len = length_by_chapter[verse_range.start_chapter]
        if first_len == 0:
            logger.warning("Unknown length for %s %s; skipping its verses", book, verse_range.start_chapter)
        for v in range(verse_range.start_verse, first_len + 1):
            references.append(f"{book} {verse_range.start_chapter}:{v}")

        for c in chapters[1:]:
            clen = length_by_chapter[c]
            if clen == 0:
                logger.warning("Unknown length for %s %s; skipping its verses", book, c)
            for v in range(1, clen + 1):
                references.append(f"{book} {c}:{v}")

        for v in range(1, verse_range.end_verse + 1):
            references.append(f"{book} {verse_range.end_chapter}:{v}")

        return references

    async def fetch_range(self, range_text: str) -> Dict[str, Optional[str]]:
        """
        Expand a range into individual verses and fetch them.

        Supported inputs:
        - "John 3:16-18"   -> John 3:16, John 3:17, John 3:18
        - "John 3:16-4:2"  -> John 3:16..end of chapter 3, John 4:1, John 4:2
        - anything else ("John 3", "John", inverted ranges) -> fetched as one passage

        Raises:
            ValueError: if range_text is empty
        """
        if not range_text or not isinstance(range_text, str) or not range_text.strip():
            raise ValueError("range must be a non-empty string")

        candidate = range_text.strip()
        verse_range = self.parser.parse_range(candidate)

        if isinstance(verse_range, VerseRange):
            return await self.fetch_many(verse_range.to_references())

        if isinstance(verse_range, CrossChapterRange):
            references = await self._expand_cross_chapter(verse_range)
            return await self.fetch_many(references)

        # Chapter/book strings and invalid ranges are fetched verbatim
        return {candidate: await self.fetch_one(candidate)}
