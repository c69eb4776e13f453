from __future__ import annotations

from typing import Any

from investigator.models.events import EventType, SSEEvent
from investigator.models.investigation import AgentThought, Investigation


def investigation_started(query: str, config: dict[str, Any]) -> SSEEvent:
    return SSEEvent(
        event=EventType.INVESTIGATION_STARTED,
        data={"query": query, "config": config},
    )


def agent_thought(thought: AgentThought) -> SSEEvent:
    """Emit one orchestrator thought as it is recorded."""
    return SSEEvent(event=EventType.AGENT_THOUGHT, data=thought.model_dump(mode="json"))


def investigation_complete(investigation: Investigation) -> SSEEvent:
    return SSEEvent(
        event=EventType.INVESTIGATION_COMPLETE,
        data=investigation.model_dump(mode="json"),
    )


def error(message: str, investigation_id: str | None = None) -> SSEEvent:
    data: dict[str, Any] = {"message": message}
    if investigation_id:
        data["investigation_id"] = investigation_id
    return SSEEvent(event=EventType.ERROR, data=data)
