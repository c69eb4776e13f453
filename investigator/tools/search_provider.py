from __future__ import annotations

import time
from dataclasses import dataclass

from investigator.config import settings
from investigator.services import logger as log_service
from investigator.tools import brave_search, tavily_search
from investigator.tools.interfaces import SearchResult


@dataclass
class SearchResponse:
    results: list[SearchResult]
    provider: str
    fallback_from: str | None = None
    fallback_reason: str | None = None


async def search(
    query: str,
    *,
    search_depth: str = "advanced",
    max_results: int = 10,
) -> SearchResponse:
    provider = settings.search_provider.lower().strip()
    use_fallback = settings.search_fallback_to_tavily

    if provider == "tavily":
        results = await tavily_search.search(
            query=query,
            search_depth=search_depth,
            max_results=max_results,
        )
        return SearchResponse(results=results, provider="tavily")

    if provider == "brave":
        try:
            results = await brave_search.search(query=query, search_depth=search_depth, max_results=max_results)
            if results or not use_fallback:
                return SearchResponse(results=results, provider="brave")

            fallback_results = await tavily_search.search(
                query=query,
                search_depth=search_depth,
                max_results=max_results,
            )
            return SearchResponse(
                results=fallback_results,
                provider="tavily",
                fallback_from="brave",
                fallback_reason="brave returned zero results",
            )
        except Exception as e:
            if not use_fallback:
                raise
            fallback_results = await tavily_search.search(
                query=query,
                search_depth=search_depth,
                max_results=max_results,
            )
            return SearchResponse(
                results=fallback_results,
                provider="tavily",
                fallback_from="brave",
                fallback_reason=str(e),
            )

    raise ValueError(f"Unsupported SEARCH_PROVIDER: {settings.search_provider}")


class SearchClient:
    """Search tool used by the investigation agent.

    An empty result list is a valid answer; provider and transport failures
    propagate to the caller.
    """

    async def search(
        self, query: str, *, search_depth: str = "advanced", max_results: int = 5
    ) -> list[SearchResult]:
        t0 = time.monotonic()
        try:
            response = await search(query, search_depth=search_depth, max_results=max_results)
        except Exception as exc:
            log_service.log_tool_call(
                tool="search",
                operation="search",
                status="error",
                duration_ms=int((time.monotonic() - t0) * 1000),
                details={"query": query[:100]},
                error=str(exc),
            )
            raise
        log_service.log_tool_call(
            tool="search",
            operation="search",
            status="success",
            duration_ms=int((time.monotonic() - t0) * 1000),
            details={
                "query": query[:100],
                "provider": response.provider,
                "fallback_from": response.fallback_from,
                "results": len(response.results),
            },
        )
        return response.results
