from __future__ import annotations

import asyncio
import hashlib
import json
import time
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from uuid import uuid4

import chromadb

from investigator.errors import ToolError
from investigator.models.memory import MemoryHit, MemoryRecord
from investigator.services import logger as log_service
from investigator.services.embeddings import LocalEmbeddingService


class ChromaMemoryStore:
    """Long-term memory backed by a local chromadb collection per user."""

    def __init__(
        self,
        persist_dir: str,
        *,
        client: Any | None = None,
        embedder: LocalEmbeddingService | None = None,
    ):
        self.persist_dir = Path(persist_dir)
        self._embedder = embedder or LocalEmbeddingService()
        self._client: Any | None = client
        self._client_lock = asyncio.Lock()

    async def search(
        self,
        query: str,
        *,
        user_id: str,
        limit: int = 10,
        threshold: float = 0.7,
        filters: dict[str, Any] | None = None,
    ) -> list[MemoryHit]:
        t0 = time.monotonic()
        try:
            vector = await self._embedder.embed_text(query)
            if not any(vector):
                return []
            client = await self._get_client()

            def _sync_query() -> dict[str, Any] | None:
                collection = _collection(client, user_id)
                count = collection.count()
                if count == 0:
                    return None
                kwargs: dict[str, Any] = {
                    "query_embeddings": [vector],
                    "n_results": max(min(int(limit), count), 1),
                    "include": ["documents", "metadatas", "distances"],
                }
                where = _where_clause(filters)
                if where:
                    kwargs["where"] = where
                return collection.query(**kwargs)

            result = await asyncio.to_thread(_sync_query)
        except Exception as exc:
            log_service.log_tool_call(
                tool="memory",
                operation="chroma.search",
                status="error",
                duration_ms=int((time.monotonic() - t0) * 1000),
                error=str(exc),
            )
            return []

        hits = _hits_from_result(result, threshold) if result else []
        log_service.log_tool_call(
            tool="memory",
            operation="chroma.search",
            status="success",
            duration_ms=int((time.monotonic() - t0) * 1000),
            details={"hits": len(hits), "user_id": user_id},
        )
        return hits

    async def add(
        self,
        text: str,
        *,
        user_id: str,
        metadata: dict[str, Any] | None = None,
        category: str = "investigation",
        index_text: str | None = None,
    ) -> str:
        """Store ``text``; ``index_text``, when given, is what gets embedded for recall."""
        record = MemoryRecord(
            id=f"mem-{uuid4().hex}",
            user_id=user_id,
            text=text,
            category=category,
            created_at=datetime.now(UTC).isoformat(),
            metadata=dict(metadata or {}),
        )
        try:
            vector = await self._embedder.embed_text(index_text or text)
            client = await self._get_client()

            def _sync_add() -> None:
                collection = _collection(client, user_id)
                collection.upsert(
                    ids=[record.id],
                    documents=[record.text],
                    metadatas=[_metadata_for_record(record)],
                    embeddings=[vector],
                )

            await asyncio.to_thread(_sync_add)
        except Exception as exc:
            raise ToolError("memory", f"Failed to store memory: {exc}") from exc
        return record.id

    async def _get_client(self) -> Any:
        async with self._client_lock:
            if self._client is None:
                self.persist_dir.mkdir(parents=True, exist_ok=True)
                self._client = chromadb.PersistentClient(path=str(self.persist_dir))
            return self._client


def _collection_name(user_id: str) -> str:
    digest = hashlib.sha1(user_id.encode("utf-8")).hexdigest()[:16]
    return f"memories_{digest}"


def _collection(client: Any, user_id: str) -> Any:
    return client.get_or_create_collection(
        name=_collection_name(user_id),
        metadata={"hnsw:space": "cosine", "user_id": user_id},
        embedding_function=None,
    )


def _scalar(value: Any) -> str | int | float | bool:
    if isinstance(value, (str, int, float, bool)):
        return value
    return json.dumps(value, default=str)


def _metadata_for_record(record: MemoryRecord) -> dict[str, Any]:
    metadata: dict[str, Any] = {
        key: _scalar(value) for key, value in record.metadata.items() if value is not None
    }
    metadata.update(
        {
            "user_id": record.user_id,
            "category": record.category,
            "created_at": record.created_at,
        }
    )
    return metadata


def _where_clause(filters: dict[str, Any] | None) -> dict[str, Any] | None:
    if not filters:
        return None
    clauses = [{key: _scalar(value)} for key, value in filters.items()]
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def _hits_from_result(result: dict[str, Any], threshold: float) -> list[MemoryHit]:
    docs = (result.get("documents") or [[]])[0]
    metas = (result.get("metadatas") or [[]])[0]
    distances = (result.get("distances") or [[]])[0]
    ids = (result.get("ids") or [[]])[0]
    hits: list[MemoryHit] = []
    for idx, doc in enumerate(docs):
        if not isinstance(doc, str):
            continue
        metadata = metas[idx] if idx < len(metas) and isinstance(metas[idx], dict) else {}
        distance = float(distances[idx]) if idx < len(distances) else 1.0
        score = max(0.0, min(1.0, 1.0 - distance))
        if score < threshold:
            continue
        hit_id = ids[idx] if idx < len(ids) and isinstance(ids[idx], str) else f"hit_{idx}"
        hits.append(
            MemoryHit(
                id=hit_id,
                text=doc,
                score=score,
                metadata=dict(metadata),
                created_at=str(metadata.get("created_at", "")),
            )
        )
    hits.sort(key=lambda hit: (-hit.score, hit.id))
    return hits
