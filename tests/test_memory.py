from __future__ import annotations

import json

import httpx
import pytest

from conftest import FakeMemory
from investigator.errors import ToolError
from investigator.services import embeddings
from investigator.services.embeddings import LocalEmbeddingService, hashed_embedding
from investigator.services.memory_chroma import ChromaMemoryStore, _collection_name
from investigator.services.memory_mem0 import Mem0MemoryClient
from investigator.services.memory_store import (
    CONTEXT_THRESHOLD,
    add_investigation_memory,
    format_outcome_memory,
    get_investigation_context,
)


class _FakeCollection:
    """Brute-force cosine search over stored vectors, honouring simple equality filters."""

    def __init__(self):
        self.rows: dict[str, dict] = {}

    def count(self):
        return len(self.rows)

    def upsert(self, ids, documents, metadatas, embeddings):
        for row_id, doc, meta, vector in zip(ids, documents, metadatas, embeddings):
            self.rows[row_id] = {"doc": doc, "meta": meta, "vector": vector}

    @staticmethod
    def _matches(meta, where):
        if not where:
            return True
        if "$and" in where:
            return all(_FakeCollection._matches(meta, clause) for clause in where["$and"])
        return all(meta.get(key) == value for key, value in where.items())

    def query(self, query_embeddings, n_results, include, where=None):
        vector = query_embeddings[0]
        scored = []
        for row_id, row in self.rows.items():
            if not self._matches(row["meta"], where):
                continue
            similarity = sum(a * b for a, b in zip(vector, row["vector"]))
            scored.append((1.0 - similarity, row_id, row))
        scored.sort(key=lambda item: item[0])
        scored = scored[:n_results]
        return {
            "ids": [[row_id for _, row_id, _ in scored]],
            "documents": [[row["doc"] for _, _, row in scored]],
            "metadatas": [[row["meta"] for _, _, row in scored]],
            "distances": [[distance for distance, _, _ in scored]],
        }


class _FakeChromaClient:
    def __init__(self):
        self.collections: dict[str, _FakeCollection] = {}
        self.create_kwargs: list[dict] = []

    def get_or_create_collection(self, name, metadata=None, embedding_function=None):
        self.create_kwargs.append({"name": name, "metadata": metadata, "embedding_function": embedding_function})
        return self.collections.setdefault(name, _FakeCollection())


class _BrokenChromaClient:
    def get_or_create_collection(self, **kwargs):
        raise RuntimeError("sqlite is locked")


@pytest.fixture
def offline_embedder(monkeypatch):
    def unavailable(model_name):
        raise OSError(f"cannot download {model_name}")

    monkeypatch.setattr(embeddings, "_sentence_transformer", unavailable)
    return LocalEmbeddingService(model_name="test-model")


class _FakeSentenceModel:
    def __init__(self, failures=0):
        self.failures = failures
        self.calls: list[dict] = []

    def encode(self, texts, batch_size, normalize_embeddings, show_progress_bar):
        self.calls.append({"texts": list(texts), "batch_size": batch_size, "normalize": normalize_embeddings})
        if self.failures:
            self.failures -= 1
            raise RuntimeError("CUDA out of memory")
        return [[1.0, 0.0] if "acme" in text.lower() else [0.0, 1.0] for text in texts]


@pytest.mark.asyncio
async def test_local_embeddings_use_sentence_transformer(monkeypatch):
    model = _FakeSentenceModel()
    loaded: list[str] = []

    def load(model_name):
        loaded.append(model_name)
        return model

    monkeypatch.setattr(embeddings, "_sentence_transformer", load)
    service = LocalEmbeddingService(model_name="all-MiniLM-L6-v2", batch_size=8)

    assert await service.embed_texts(["Acme Corp", "Lisbon weather"]) == [[1.0, 0.0], [0.0, 1.0]]
    assert await service.embed_text("acme filing") == [1.0, 0.0]
    assert loaded == ["all-MiniLM-L6-v2"]
    assert model.calls[0] == {"texts": ["Acme Corp", "Lisbon weather"], "batch_size": 8, "normalize": True}
    assert not service.using_fallback
    assert await service.embed_texts([]) == []


@pytest.mark.asyncio
async def test_local_embeddings_retry_then_fall_back_to_hashing(monkeypatch):
    monkeypatch.setattr(embeddings.time, "sleep", lambda seconds: None)
    model = _FakeSentenceModel(failures=1)
    monkeypatch.setattr(embeddings, "_sentence_transformer", lambda name: model)
    service = LocalEmbeddingService(model_name="m", dim=32)

    assert await service.embed_text("Acme") == [1.0, 0.0]
    assert len(model.calls) == 2

    model.failures = 3
    assert await service.embed_text("Acme Corp") == hashed_embedding("Acme Corp", 32)


@pytest.mark.asyncio
async def test_local_embeddings_fall_back_when_model_unavailable(offline_embedder):
    vector = await offline_embedder.embed_text("Acme Corp fraud")

    assert offline_embedder.using_fallback
    assert vector == await offline_embedder.embed_text("acme corp FRAUD")
    assert sum(v * v for v in vector) == pytest.approx(1.0)
    assert hashed_embedding("", 64) == [0.0] * 64


@pytest.mark.asyncio
async def test_chroma_store_add_then_search_ranks_related_text(tmp_path, offline_embedder):
    client = _FakeChromaClient()
    store = ChromaMemoryStore(str(tmp_path / "chroma"), client=client, embedder=offline_embedder)

    await store.add("Acme Corp fraud allegations investigation", user_id="u1", metadata={"strategies": ["search"]})
    await store.add("Weather in Lisbon this weekend", user_id="u1")

    hits = await store.search("Acme Corp fraud", user_id="u1", limit=5, threshold=0.3)

    assert [hit.text for hit in hits] == ["Acme Corp fraud allegations investigation"]
    assert hits[0].metadata["category"] == "investigation"
    assert hits[0].metadata["strategies"] == json.dumps(["search"])
    assert client.create_kwargs[0]["metadata"]["hnsw:space"] == "cosine"
    assert client.create_kwargs[0]["embedding_function"] is None


@pytest.mark.asyncio
async def test_chroma_store_isolates_users_and_filters_category(tmp_path, offline_embedder):
    store = ChromaMemoryStore(str(tmp_path / "chroma"), client=_FakeChromaClient(), embedder=offline_embedder)
    await store.add("Acme notes", user_id="u1", category="investigation")
    await store.add("Acme notes", user_id="u1", category="scratch")
    await store.add("Acme notes", user_id="u2")

    hits = await store.search(
        "Acme notes", user_id="u1", threshold=0.5, filters={"category": "investigation"}
    )

    assert len(hits) == 1
    assert hits[0].metadata["user_id"] == "u1"
    assert _collection_name("u1") != _collection_name("u2")


@pytest.mark.asyncio
async def test_chroma_store_search_returns_empty_on_store_error(tmp_path, offline_embedder):
    store = ChromaMemoryStore(str(tmp_path / "chroma"), client=_BrokenChromaClient(), embedder=offline_embedder)

    assert await store.search("acme", user_id="u1") == []


@pytest.mark.asyncio
async def test_chroma_store_add_raises_tool_error(tmp_path, offline_embedder):
    store = ChromaMemoryStore(str(tmp_path / "chroma"), client=_BrokenChromaClient(), embedder=offline_embedder)

    with pytest.raises(ToolError) as exc_info:
        await store.add("acme", user_id="u1")
    assert exc_info.value.tool == "memory"


@pytest.mark.asyncio
async def test_mem0_search_maps_hits_and_sends_auth():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={"results": [{"id": "m1", "memory": "Acme context", "score": 0.8, "metadata": {"category": "investigation"}}]},
        )

    client = Mem0MemoryClient("mem0-key", "https://mem0.test/v1", transport=httpx.MockTransport(handler))

    hits = await client.search("acme", user_id="u1", limit=5, threshold=0.6, filters={"category": "investigation"})

    assert [(h.id, h.text, h.score) for h in hits] == [("m1", "Acme context", 0.8)]
    request = seen[0]
    assert request.url == "https://mem0.test/v1/memories/search"
    assert request.headers["Authorization"] == "Bearer mem0-key"
    body = json.loads(request.content)
    assert body == {
        "query": "acme",
        "user_id": "u1",
        "limit": 5,
        "threshold": 0.6,
        "filters": {"category": "investigation"},
    }


@pytest.mark.asyncio
async def test_mem0_search_returns_empty_on_http_error():
    transport = httpx.MockTransport(lambda request: httpx.Response(503, text="unavailable"))
    client = Mem0MemoryClient("k", "https://mem0.test/v1", transport=transport)

    assert await client.search("acme", user_id="u1") == []


@pytest.mark.asyncio
async def test_mem0_add_returns_id_and_raises_on_failure():
    def ok(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert body["metadata"]["category"] == "investigation"
        assert "timestamp" in body["metadata"]
        return httpx.Response(200, json={"id": "mem-42"})

    client = Mem0MemoryClient("k", "https://mem0.test/v1", transport=httpx.MockTransport(ok))
    assert await client.add("note", user_id="u1") == "mem-42"

    failing = Mem0MemoryClient(
        "k", "https://mem0.test/v1", transport=httpx.MockTransport(lambda r: httpx.Response(500))
    )
    with pytest.raises(ToolError):
        await failing.add("note", user_id="u1")


def test_format_outcome_memory_lists_top_three_findings():
    text = format_outcome_memory("acme", 0.52, ["search", "crawl"], ["f1", "f2", "f3", "f4"])

    assert text == (
        "Investigation: acme\n"
        "Confidence: 0.52\n"
        "Successful strategies: search, crawl\n"
        "Key findings: f1; f2; f3"
    )


@pytest.mark.asyncio
async def test_add_investigation_memory_metadata():
    memory = FakeMemory()

    memory_id = await add_investigation_memory(
        memory,
        investigation_id="inv-1",
        user_id="u1",
        query="acme",
        confidence=0.8,
        strategies=["search"],
        finding_summaries=["f1", "f2"],
        source_domains=["acme.test"],
    )

    assert memory_id == "mem-1"
    added = memory.added[0]
    assert added["category"] == "investigation"
    assert added["metadata"]["type"] == "investigation_outcome"
    assert added["metadata"]["investigation_id"] == "inv-1"
    assert added["metadata"]["findings_count"] == 2
    assert added["index_text"] == "acme"


@pytest.mark.asyncio
async def test_outcome_memory_is_recalled_for_the_same_query(tmp_path, offline_embedder):
    client = _FakeChromaClient()
    store = ChromaMemoryStore(str(tmp_path / "chroma"), client=client, embedder=offline_embedder)
    await add_investigation_memory(
        store,
        investigation_id="inv-1",
        user_id="u1",
        query="Acme Corp fraud allegations",
        confidence=0.64,
        strategies=["analyze_query", "generate_plan", "search", "crawl", "analyze_sources"],
        finding_summaries=["Restated revenue in 2021 filing", "SEC inquiry opened", "Auditor resigned"],
        source_domains=["acme.test", "sec.gov"],
    )

    context = await get_investigation_context(store, "Acme Corp fraud allegations", "u1")

    assert len(context) == 1
    assert context[0].startswith("Investigation: Acme Corp fraud allegations\n")
    assert "Key findings: Restated revenue in 2021 filing" in context[0]
    assert await get_investigation_context(store, "Lisbon weather forecast", "u1") == []

    (row,) = next(iter(client.collections.values())).rows.values()
    assert row["vector"] == hashed_embedding("Acme Corp fraud allegations")
    hits = await store.search("Acme Corp fraud allegations", user_id="u1", threshold=CONTEXT_THRESHOLD)
    assert hits[0].score == pytest.approx(1.0)


@pytest.mark.asyncio
async def test_get_investigation_context_uses_fixed_limits():
    memory = FakeMemory()

    assert await get_investigation_context(memory, "acme", "u1") == []
    assert memory.searches[0]["limit"] == 5
    assert memory.searches[0]["threshold"] == 0.6
    assert memory.searches[0]["filters"] == {"category": "investigation"}
