from urllib.parse import unquote

import httpx
import pytest

from app.agents.verse_fetcher import VerseFetcher
from utils.verse_cache import VerseCache

BIBLE_API = "https://bible-api.test"


class FakeBibleApi:
    """
    Stand-in for bible-api.com.

    verses: reference -> text
    chapters: "Book C" -> number of verses
    Anything else answers 404. Every requested reference is recorded.
    """

    def __init__(self, verses=None, chapters=None, failing=()):
        self.verses = dict(verses or {})
        self.chapters = dict(chapters or {})
        self.failing = set(failing)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        reference = unquote(request.url.path).lstrip("/")
        self.requests.append(reference)

        if reference in self.failing:
            return httpx.Response(500, json={"error": "boom"})
        if reference in self.chapters:
            count = self.chapters[reference]
            verses = [{"verse": i + 1, "text": f"{reference}:{i + 1}"} for i in range(count)]
            return httpx.Response(200, json={"reference": reference, "verses": verses, "text": f"chapter {reference}"})
        if reference in self.verses:
            return httpx.Response(200, json={"reference": reference, "text": self.verses[reference]})
        return httpx.Response(404, json={"error": "not found"})

    def count(self, reference):
        return self.requests.count(reference)


def make_fetcher(handler, cache=None, **kwargs) -> VerseFetcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    cache = cache if cache is not None else VerseCache()
    return VerseFetcher(base_url=BIBLE_API, cache=cache, client=client, **kwargs)


@pytest.fixture
def cache():
    cache = VerseCache()
    yield cache
    cache.clear()
