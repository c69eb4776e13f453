from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

from investigator.models.memory import MemoryHit


@dataclass(slots=True)
class SearchResult:
    url: str
    title: str
    content: str
    snippet: str = ""
    score: float = 0.5
    published_date: str | None = None


@dataclass(slots=True)
class ExtractResult:
    url: str
    success: bool
    title: str = ""
    content: str = ""
    links: list[str] = field(default_factory=list)
    images: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    @classmethod
    def failure(cls, url: str, error: str) -> "ExtractResult":
        return cls(url=url, success=False, error=error)


class SearchTool(Protocol):
    async def search(
        self, query: str, *, search_depth: str = "advanced", max_results: int = 5
    ) -> list[SearchResult]: ...


class ExtractTool(Protocol):
    async def extract(self, urls: Sequence[str]) -> list[ExtractResult]: ...


class MemoryTool(Protocol):
    async def search(
        self,
        query: str,
        *,
        user_id: str,
        limit: int = 10,
        threshold: float = 0.7,
        filters: dict[str, Any] | None = None,
    ) -> list[MemoryHit]: ...

    async def add(
        self,
        text: str,
        *,
        user_id: str,
        metadata: dict[str, Any] | None = None,
        category: str = "investigation",
        index_text: str | None = None,
    ) -> str: ...
