from __future__ import annotations

import asyncio
from typing import Any, Callable

from loguru import logger

from investigator.agents import policy
from investigator.agents.investigation_agent import (
    AgentTools,
    InvestigationAgent,
    ThoughtCallback,
    default_tools,
)
from investigator.config import settings
from investigator.errors import InvestigationValidationError
from investigator.models.agent import AgentConfig, AgentState
from investigator.models.investigation import Investigation, utc_now
from investigator.services import logger as log_service
from investigator.services.investigation_store import (
    InMemoryInvestigationRepository,
    InvestigationRepository,
)
from investigator.services.memory_store import add_investigation_memory
from investigator.tools.interfaces import MemoryTool
from investigator.tools.web_utils import extract_domain

ToolsFactory = Callable[[AgentConfig], AgentTools]


def rehydrate_state(investigation: Investigation, config: AgentConfig) -> AgentState:
    """Build a fresh run state over a stored investigation.

    Collections, thoughts and the error note carry over; memory context is
    re-derived by ``analyze_query`` and the step counter starts at zero.
    """
    state = AgentState(
        investigation_id=investigation.id,
        current_query=investigation.query,
        max_steps=config.max_steps,
        user_id=investigation.user_id,
        sources=list(investigation.sources),
        findings=list(investigation.findings),
        leads=list(investigation.leads),
        thoughts=list(investigation.thoughts),
        error_message=investigation.error_message,
    )
    policy.recompute_confidence(state)
    return state


class InvestigationService:
    """Runs investigations and keeps their snapshots in a repository."""

    def __init__(
        self,
        repository: InvestigationRepository | None = None,
        tools_factory: ToolsFactory | None = None,
    ):
        self.repository = repository or InMemoryInvestigationRepository()
        self._tools_factory = tools_factory or default_tools

    def _agent(
        self,
        config: AgentConfig,
        user_id: str,
        on_thought: ThoughtCallback | None,
    ) -> InvestigationAgent:
        return InvestigationAgent(
            config,
            self._tools_factory(config),
            user_id=user_id,
            on_thought=on_thought,
        )

    async def start(
        self,
        query: str | None,
        config: dict[str, Any] | AgentConfig | None = None,
        user_id: str | None = None,
        on_thought: ThoughtCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> Investigation:
        if not query or not query.strip():
            raise InvestigationValidationError("Query is required")
        agent_config = AgentConfig.from_partial(config)
        agent = self._agent(agent_config, user_id or settings.default_user_id, on_thought)

        investigation = await agent.start(query, cancel_event=cancel_event)
        await self.repository.save(investigation)
        if agent_config.memory_enabled:
            await self._remember(agent.tools.memory, investigation)
        return investigation

    async def continue_(
        self,
        investigation_id: str,
        config: dict[str, Any] | AgentConfig | None = None,
        on_thought: ThoughtCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> Investigation:
        existing = await self.repository.get(investigation_id)
        agent_config = AgentConfig.from_partial(config)
        agent = self._agent(agent_config, existing.user_id, on_thought)

        log_service.log_event(
            event_type="investigation_continued",
            message="Investigation continued",
            investigation_id=investigation_id,
            prior_sources=len(existing.sources),
            prior_findings=len(existing.findings),
        )
        result = await agent.run(rehydrate_state(existing, agent_config), cancel_event)
        investigation = result.model_copy(
            update={
                "created_at": existing.created_at,
                "updated_at": utc_now(),
                "tags": list(existing.tags),
                "priority": existing.priority,
            }
        )
        await self.repository.save(investigation)
        if agent_config.memory_enabled:
            await self._remember(agent.tools.memory, investigation)
        return investigation

    async def get(self, investigation_id: str) -> Investigation:
        return await self.repository.get(investigation_id)

    async def list(self, user_id: str | None = None) -> list[Investigation]:
        return await self.repository.list(user_id)

    async def delete(self, investigation_id: str) -> None:
        await self.repository.delete(investigation_id)
        log_service.log_event(
            event_type="investigation_deleted",
            message="Investigation deleted",
            investigation_id=investigation_id,
        )

    async def _remember(self, memory: MemoryTool, investigation: Investigation) -> None:
        strategies = list(dict.fromkeys(thought.action for thought in investigation.thoughts))
        domains = list(dict.fromkeys(extract_domain(source.url) for source in investigation.sources))
        try:
            memory_id = await add_investigation_memory(
                memory,
                investigation_id=investigation.id,
                user_id=investigation.user_id or settings.default_user_id,
                query=investigation.query,
                confidence=investigation.confidence_score,
                strategies=strategies,
                finding_summaries=[f.summary or f.content for f in investigation.findings],
                source_domains=domains,
            )
        except Exception as exc:
            logger.warning(f"Failed to persist outcome memory for {investigation.id}: {exc}")
            return
        log_service.log_event(
            event_type="memory_added",
            message="Investigation outcome stored",
            investigation_id=investigation.id,
            memory_id=memory_id,
        )


_service: InvestigationService | None = None


def get_service() -> InvestigationService:
    global _service
    if _service is None:
        _service = InvestigationService()
    return _service
