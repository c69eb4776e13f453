from __future__ import annotations

from typing import Any

from tavily import AsyncTavilyClient

from investigator.config import settings
from investigator.tools.interfaces import SearchResult

SNIPPET_CHARS = 200


def _map_result(item: dict[str, Any]) -> SearchResult:
    content = item.get("content", "") or ""
    return SearchResult(
        url=item.get("url", ""),
        title=item.get("title", "") or "",
        content=content,
        snippet=item.get("snippet") or content[:SNIPPET_CHARS],
        score=float(item.get("score") or 0.5),
        published_date=item.get("published_date"),
    )


async def search(
    query: str,
    *,
    search_depth: str = "advanced",
    max_results: int = 10,
    include_domains: list[str] | None = None,
    exclude_domains: list[str] | None = None,
) -> list[SearchResult]:
    """Execute a Tavily web search and return structured results."""
    if not settings.tavily_api_key:
        raise RuntimeError("TAVILY_API_KEY is not configured")
    client = AsyncTavilyClient(api_key=settings.tavily_api_key)

    kwargs: dict[str, Any] = {
        "query": query,
        "search_depth": search_depth,
        "max_results": max_results,
        "include_answer": False,
        "include_raw_content": False,
        "timeout": int(settings.search_timeout_seconds),
    }
    if include_domains:
        kwargs["include_domains"] = include_domains
    if exclude_domains:
        kwargs["exclude_domains"] = exclude_domains

    response = await client.search(**kwargs)
    return [_map_result(r) for r in response.get("results", []) if r.get("url")]
