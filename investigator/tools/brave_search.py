from __future__ import annotations

from typing import Any

import httpx

from investigator.config import settings
from investigator.errors import ToolError
from investigator.tools.interfaces import SearchResult

BRAVE_SEARCH_URL = "https://api.search.brave.com/res/v1/web/search"
BRAVE_MAX_COUNT = 20
SNIPPET_CHARS = 200

# Advanced depth pulls Brave's extra snippets and folds them into the content.
DEPTH_PARAMS: dict[str, dict[str, str]] = {
    "basic": {"extra_snippets": "false"},
    "advanced": {"extra_snippets": "true"},
}


def _content(item: dict[str, Any], search_depth: str) -> str:
    description = (item.get("description") or "").strip()
    if search_depth != "advanced":
        return description
    snippets = [s.strip() for s in item.get("extra_snippets") or [] if s and s.strip()]
    return " ".join([description, *snippets]).strip()


def _map_results(raw_results: list[dict[str, Any]], search_depth: str) -> list[SearchResult]:
    items = [item for item in raw_results if item.get("url")]
    total = max(len(items), 1)
    mapped: list[SearchResult] = []
    for rank, item in enumerate(items):
        content = _content(item, search_depth)
        mapped.append(
            SearchResult(
                url=item["url"],
                title=item.get("title") or "",
                content=content,
                snippet=content[:SNIPPET_CHARS],
                score=round(1.0 - rank / total, 4),
                published_date=item.get("page_age") or item.get("age"),
            )
        )
    return mapped


async def search(
    query: str,
    *,
    search_depth: str = "advanced",
    max_results: int = 10,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[SearchResult]:
    """Run a Brave web search; rank position stands in for a relevance score."""
    if not settings.brave_api_key:
        raise ToolError("search", "BRAVE_API_KEY is not configured")
    if search_depth not in DEPTH_PARAMS:
        raise ValueError(f"Unsupported search depth: {search_depth}")

    params: dict[str, Any] = {
        "q": query,
        "count": max(1, min(max_results, BRAVE_MAX_COUNT)),
        "text_decorations": "false",
        **DEPTH_PARAMS[search_depth],
    }
    try:
        async with httpx.AsyncClient(timeout=settings.search_timeout_seconds, transport=transport) as client:
            response = await client.get(
                BRAVE_SEARCH_URL,
                params=params,
                headers={
                    "Accept": "application/json",
                    "X-Subscription-Token": settings.brave_api_key,
                },
            )
            response.raise_for_status()
            payload = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        raise ToolError("search", f"Brave search failed: {exc}") from exc

    return _map_results(payload.get("web", {}).get("results", []), search_depth)
