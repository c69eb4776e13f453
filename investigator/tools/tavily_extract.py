from __future__ import annotations

import time
from typing import Any, Sequence

from tavily import AsyncTavilyClient

from investigator.config import settings
from investigator.services import logger as log_service
from investigator.tools.interfaces import ExtractResult
from investigator.tools.web_utils import extract_domain


class TavilyExtractor:
    """Extraction through Tavily's extract endpoint, one request per URL."""

    def __init__(self, client: Any | None = None):
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            if not settings.tavily_api_key:
                raise RuntimeError("TAVILY_API_KEY is not configured")
            self._client = AsyncTavilyClient(api_key=settings.tavily_api_key)
        return self._client

    async def _extract_one(self, url: str) -> ExtractResult:
        response = await self._get_client().extract(urls=[url], include_images=True)
        results = response.get("results") or []
        if not results:
            failed = response.get("failed_results") or []
            reason = failed[0].get("error") if failed and isinstance(failed[0], dict) else None
            return ExtractResult.failure(url, reason or "No content extracted")

        item = results[0]
        content = item.get("raw_content") or item.get("content") or ""
        if not content:
            return ExtractResult.failure(url, "No content extracted")
        return ExtractResult(
            url=url,
            success=True,
            title=item.get("title", "") or "",
            content=content,
            links=list(item.get("links") or []),
            images=list(item.get("images") or []),
            metadata={"domain": extract_domain(url), "extraction_method": "tavily"},
        )

    async def extract(self, urls: Sequence[str]) -> list[ExtractResult]:
        results: list[ExtractResult] = []
        for url in urls:
            t0 = time.monotonic()
            try:
                result = await self._extract_one(url)
            except Exception as exc:
                result = ExtractResult.failure(url, str(exc))
            log_service.log_tool_call(
                tool="extract",
                operation="tavily",
                status="success" if result.success else "error",
                duration_ms=int((time.monotonic() - t0) * 1000),
                details={"url": url},
                error=result.error,
            )
            results.append(result)
        return results
