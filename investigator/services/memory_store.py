from __future__ import annotations

from typing import Any

from investigator.config import settings
from investigator.services.memory_chroma import ChromaMemoryStore
from investigator.services.memory_mem0 import Mem0MemoryClient
from investigator.tools.interfaces import MemoryTool

CONTEXT_LIMIT = 5
CONTEXT_THRESHOLD = 0.6
INVESTIGATION_CATEGORY = "investigation"

_store: MemoryTool | None = None


def get_memory_store() -> MemoryTool:
    global _store
    if _store is None:
        backend = settings.memory_backend.lower().strip()
        if backend == "chromadb":
            _store = ChromaMemoryStore(persist_dir=settings.chroma_persist_dir)
        elif backend == "mem0":
            _store = Mem0MemoryClient()
        else:
            raise ValueError(f"Unsupported MEMORY_BACKEND: {settings.memory_backend}")
    return _store


async def get_investigation_context(memory: MemoryTool, query: str, user_id: str) -> list[str]:
    """Recall prior investigation notes relevant to ``query``."""
    hits = await memory.search(
        query,
        user_id=user_id,
        limit=CONTEXT_LIMIT,
        threshold=CONTEXT_THRESHOLD,
        filters={"category": INVESTIGATION_CATEGORY},
    )
    return [hit.text for hit in hits if hit.text]


def format_outcome_memory(
    query: str,
    confidence: float,
    strategies: list[str],
    finding_summaries: list[str],
) -> str:
    key_findings = "; ".join(finding_summaries[:3])
    return (
        f"Investigation: {query}\n"
        f"Confidence: {confidence:.2f}\n"
        f"Successful strategies: {', '.join(strategies)}\n"
        f"Key findings: {key_findings}"
    )


async def add_investigation_memory(
    memory: MemoryTool,
    *,
    investigation_id: str,
    user_id: str,
    query: str,
    confidence: float,
    strategies: list[str],
    finding_summaries: list[str],
    source_domains: list[str],
) -> str:
    """Persist an investigation outcome so later runs can recall it."""
    metadata: dict[str, Any] = {
        "investigation_id": investigation_id,
        "type": "investigation_outcome",
        "confidence": round(confidence, 4),
        "strategies": strategies,
        "findings_count": len(finding_summaries),
        "source_domains": source_domains,
    }
    return await memory.add(
        format_outcome_memory(query, confidence, strategies, finding_summaries),
        user_id=user_id,
        metadata=metadata,
        category=INVESTIGATION_CATEGORY,
        index_text=query,
    )
