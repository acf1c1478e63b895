import asyncio

import pytest

from app.agents.context_retriever import (
    ContextRetriever,
    FullTextTier,
    RetrievalTier,
    VectorTier,
    WebTier,
    normalize_rows,
)


class DummyStore:
    def __init__(self, similar=None, text=None, similar_error=None, text_error=None):
        self.similar = similar or []
        self.text = text or []
        self.similar_error = similar_error
        self.text_error = text_error
        self.calls = []

    async def similarity_search(self, vector, top_k):
        self.calls.append(("similarity", vector, top_k))
        if self.similar_error:
            raise self.similar_error
        return self.similar

    async def text_search(self, query, limit):
        self.calls.append(("text", query, limit))
        if self.text_error:
            raise self.text_error
        return self.text


class DummyEmbedder:
    def __init__(self):
        self.calls = []

    async def embed(self, text):
        self.calls.append(text)
        return [0.1, 0.2, 0.3]


class DummyWeb:
    def __init__(self, results=None):
        self.results = results or []
        self.calls = []

    async def search(self, query, top_k=3):
        self.calls.append((query, top_k))
        return self.results


class StaticTier(RetrievalTier):
    def __init__(self, name, result=None, error=None, delay=0.0, timeout=1.0):
        super().__init__(timeout)
        self.name = name
        self.result = result or []
        self.error = error
        self.delay = delay
        self.calls = 0

    async def _search(self, query, top_k):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.result


def build(store, web, embedder=None):
    return ContextRetriever([VectorTier(store, embedder), FullTextTier(store), WebTier(web)])


def test_normalize_rows_prefers_first_string_field():
    rows = [
        {"content": "  In the beginning  ", "text": "ignored"},
        {"text": "fallback text"},
        {"content": "   "},
        {"content": 42},
        "not a row",
        {"content": "fourth"},
    ]
    assert normalize_rows(rows, ("content", "text"), 5) == ["In the beginning", "fallback text", "fourth"]
    assert normalize_rows(rows, ("content", "text"), 1) == ["In the beginning"]
    assert normalize_rows(None, ("content",), 3) == []


@pytest.mark.asyncio
async def test_vector_hit_skips_other_tiers():
    store = DummyStore(similar=[{"content": "God is love"}], text=[{"content": "unused"}])
    web = DummyWeb(["unused"])
    embedder = DummyEmbedder()

    result = await build(store, web, embedder).retrieve_context("love", top_k=3)

    assert result.snippets == ["God is love"]
    assert result.source == "vector"
    assert result.from_web is False
    assert [c[0] for c in store.calls] == ["similarity"]
    assert web.calls == []
    assert embedder.calls == ["love"]


@pytest.mark.asyncio
async def test_full_text_fallback_when_vector_fails():
    store = DummyStore(similar_error=RuntimeError("pgvector missing"), text=[{"content": "Faith is..."}])
    web = DummyWeb(["unused"])

    result = await build(store, web, DummyEmbedder()).retrieve_context("faith", top_k=2)

    assert result.snippets == ["Faith is..."]
    assert result.source == "full_text"
    assert ("text", "faith", 2) in store.calls
    assert web.calls == []


@pytest.mark.asyncio
async def test_no_embedder_goes_straight_to_full_text():
    store = DummyStore(similar=[{"content": "never"}], text=[{"content": "hope"}])

    result = await build(store, DummyWeb()).retrieve_context("hope")

    assert result.snippets == ["hope"]
    assert [c[0] for c in store.calls] == ["text"]


@pytest.mark.asyncio
async def test_web_fallback_when_local_tiers_empty():
    store = DummyStore(similar=[{"content": "  "}], text_error=RuntimeError("db down"))
    web = DummyWeb(["Mercy — kindness — https://example.org"])

    result = await build(store, web, DummyEmbedder()).retrieve_context("mercy", top_k=3)

    assert result.snippets == ["Mercy — kindness — https://example.org"]
    assert result.from_web is True
    assert web.calls == [("mercy", 3)]


@pytest.mark.asyncio
async def test_all_tiers_empty_returns_empty_context():
    result = await build(DummyStore(), DummyWeb(), DummyEmbedder()).retrieve_context("anything")
    assert result.snippets == []
    assert result.source is None


@pytest.mark.asyncio
@pytest.mark.parametrize("query,top_k", [("", 3), ("   ", 3), ("grace", 0)])
async def test_blank_query_or_zero_top_k_skips_all_tiers(query, top_k):
    first = StaticTier("first", ["x"])
    retriever = ContextRetriever([first])

    assert await retriever.retrieve(query, top_k) == []
    assert first.calls == 0


@pytest.mark.asyncio
async def test_slow_tier_times_out_and_falls_through():
    slow = StaticTier("slow", ["late"], delay=0.5, timeout=0.01)
    fast = StaticTier("fast", ["quick"])

    result = await ContextRetriever([slow, fast]).retrieve_context("q", top_k=3)

    assert result.snippets == ["quick"]
    assert result.source == "fast"


@pytest.mark.asyncio
async def test_tier_results_are_capped_at_top_k():
    tier = StaticTier("many", ["a", "b", "c", "d"])
    assert await ContextRetriever([tier]).retrieve("q", top_k=2) == ["a", "b"]
