from __future__ import annotations

from typing import Any, Callable, Sequence

import pytest

from investigator.agents.analyst import InvestigationPlan, QueryAnalysis, SourceSummary
from investigator.agents.investigation_agent import AgentTools
from investigator.llm_client import LLMResult
from investigator.models.agent import AgentConfig
from investigator.models.memory import MemoryHit
from investigator.tools.interfaces import ExtractResult, SearchResult


def make_results(prefix: str, count: int, *, domain: str = "example.com") -> list[SearchResult]:
    return [
        SearchResult(
            url=f"https://{domain}/{prefix}-{i}",
            title=f"{prefix.title()} result {i}",
            content=f"Content about {prefix} number {i}. " * 20,
            snippet=f"Snippet {prefix} {i}",
            score=0.8,
        )
        for i in range(count)
    ]


class FakeSearch:
    """Returns a fixed list, or calls ``results`` with the query."""

    def __init__(
        self,
        results: list[SearchResult] | Callable[[str], list[SearchResult]] | None = None,
        error: Exception | None = None,
    ):
        self.results = results if results is not None else []
        self.error = error
        self.calls: list[dict[str, Any]] = []

    async def search(self, query: str, *, search_depth: str = "advanced", max_results: int = 5):
        self.calls.append({"query": query, "search_depth": search_depth, "max_results": max_results})
        if self.error is not None:
            raise self.error
        if callable(self.results):
            return self.results(query)[:max_results]
        return list(self.results)[:max_results]


class FakeExtract:
    """Per-URL canned extraction results; an Exception value is raised for that URL."""

    def __init__(self, outcomes: dict[str, ExtractResult | Exception] | None = None):
        self.outcomes = outcomes or {}
        self.calls: list[list[str]] = []

    async def extract(self, urls: Sequence[str]) -> list[ExtractResult]:
        self.calls.append(list(urls))
        results: list[ExtractResult] = []
        for url in urls:
            outcome = self.outcomes.get(url)
            if isinstance(outcome, Exception):
                raise outcome
            if outcome is None:
                outcome = ExtractResult(
                    url=url,
                    success=True,
                    title=f"Crawled {url}",
                    content=f"Full crawled text of {url}",
                    links=[f"{url}/more"],
                    images=[f"{url}/image.png"],
                )
            results.append(outcome)
        return results


class FakeMemory:
    def __init__(self, hits: list[MemoryHit] | None = None, add_error: Exception | None = None):
        self.hits = hits or []
        self.add_error = add_error
        self.searches: list[dict[str, Any]] = []
        self.added: list[dict[str, Any]] = []

    async def search(self, query, *, user_id, limit=10, threshold=0.7, filters=None):
        self.searches.append(
            {"query": query, "user_id": user_id, "limit": limit, "threshold": threshold, "filters": filters}
        )
        return list(self.hits)

    async def add(self, text, *, user_id, metadata=None, category="investigation", index_text=None):
        if self.add_error is not None:
            raise self.add_error
        self.added.append(
            {"text": text, "user_id": user_id, "metadata": metadata, "category": category, "index_text": index_text}
        )
        return f"mem-{len(self.added)}"


class FakeAnalyst:
    """Analyst double returning fixed parsed results; ``errors`` maps method name to an exception."""

    def __init__(self, errors: dict[str, Exception] | None = None):
        self.errors = errors or {}
        self.calls: list[str] = []

    def _check(self, name: str) -> None:
        self.calls.append(name)
        if name in self.errors:
            raise self.errors[name]

    async def analyze_query(self, query: str, context: str = ""):
        self._check("analyze_query")
        return LLMResult(
            value=QueryAnalysis(entities=["Acme Corp"], topics=[query], complexity="moderate"),
            parsed=True,
        )

    async def generate_plan(self, query: str, config: AgentConfig):
        self._check("generate_plan")
        return LLMResult(
            value=InvestigationPlan(steps=["Search", "Analyze"], estimated_time="10 minutes"),
            parsed=True,
        )

    async def summarize_sources(self, sources, query: str):
        self._check("summarize_sources")
        return LLMResult(value=SourceSummary(summary="Sources agree.", confidence=0.6), parsed=True)


@pytest.fixture
def make_tools() -> Callable[..., AgentTools]:
    def _make(
        search: FakeSearch | None = None,
        extract: FakeExtract | None = None,
        memory: FakeMemory | None = None,
        analyst: FakeAnalyst | None = None,
    ) -> AgentTools:
        return AgentTools(
            search=search or FakeSearch(),
            extract=extract or FakeExtract(),
            memory=memory or FakeMemory(),
            analyst=analyst or FakeAnalyst(),
        )

    return _make
