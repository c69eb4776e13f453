from __future__ import annotations

import asyncio
from typing import Protocol

from investigator.errors import InvestigationNotFoundError
from investigator.models.investigation import Investigation


class InvestigationRepository(Protocol):
    async def save(self, investigation: Investigation) -> Investigation: ...

    async def get(self, investigation_id: str) -> Investigation: ...

    async def list(self, user_id: str | None = None) -> list[Investigation]: ...

    async def delete(self, investigation_id: str) -> None: ...


class InMemoryInvestigationRepository:
    """Process-local investigation snapshots, newest first on listing."""

    def __init__(self) -> None:
        self._items: dict[str, Investigation] = {}
        self._lock = asyncio.Lock()

    async def save(self, investigation: Investigation) -> Investigation:
        async with self._lock:
            self._items[investigation.id] = investigation
        return investigation

    async def get(self, investigation_id: str) -> Investigation:
        async with self._lock:
            investigation = self._items.get(investigation_id)
        if investigation is None:
            raise InvestigationNotFoundError(investigation_id)
        return investigation

    async def list(self, user_id: str | None = None) -> list[Investigation]:
        async with self._lock:
            items = list(self._items.values())
        if user_id:
            items = [item for item in items if item.user_id == user_id]
        return sorted(items, key=lambda item: item.updated_at, reverse=True)

    async def delete(self, investigation_id: str) -> None:
        async with self._lock:
            if self._items.pop(investigation_id, None) is None:
                raise InvestigationNotFoundError(investigation_id)
