from __future__ import annotations

import time
from datetime import UTC, datetime
from typing import Any

import httpx

from investigator.config import settings
from investigator.errors import ToolError
from investigator.models.memory import MemoryHit
from investigator.services import logger as log_service


class Mem0MemoryClient:
    """Memory client for the hosted Mem0 REST API."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.mem0_api_key
        self.base_url = (base_url or settings.mem0_base_url).rstrip("/")
        self._transport = transport

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=settings.memory_timeout_seconds,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self.api_key}",
            },
            transport=self._transport,
        )

    async def search(
        self,
        query: str,
        *,
        user_id: str,
        limit: int = 10,
        threshold: float = 0.7,
        filters: dict[str, Any] | None = None,
    ) -> list[MemoryHit]:
        body: dict[str, Any] = {
            "query": query,
            "user_id": user_id,
            "limit": limit,
            "threshold": threshold,
        }
        if filters:
            body["filters"] = filters

        t0 = time.monotonic()
        try:
            async with self._http() as client:
                response = await client.post("/memories/search", json=body)
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            log_service.log_tool_call(
                tool="memory",
                operation="mem0.search",
                status="error",
                duration_ms=int((time.monotonic() - t0) * 1000),
                error=str(exc),
            )
            return []

        raw_results = payload.get("results", []) if isinstance(payload, dict) else payload
        hits = [
            MemoryHit(
                id=str(item.get("id", "")),
                text=item.get("text") or item.get("memory") or "",
                score=float(item.get("score") or 0.0),
                metadata=item.get("metadata") or {},
                created_at=item.get("created_at") or "",
            )
            for item in raw_results or []
            if isinstance(item, dict)
        ]
        log_service.log_tool_call(
            tool="memory",
            operation="mem0.search",
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
        # Mem0 indexes the stored text server-side; index_text is not sent.
        body = {
            "text": text,
            "user_id": user_id,
            "metadata": {
                **(metadata or {}),
                "category": category,
                "timestamp": datetime.now(UTC).isoformat(),
            },
        }
        try:
            async with self._http() as client:
                response = await client.post("/memories", json=body)
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise ToolError("memory", f"Mem0 add memory failed: {exc}") from exc
        return str(payload.get("id", ""))
