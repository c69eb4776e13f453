from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    INVESTIGATION_STARTED = "investigation_started"
    AGENT_THOUGHT = "agent_thought"
    INVESTIGATION_COMPLETE = "investigation_complete"
    ERROR = "error"


@dataclass
class SSEEvent:
    event: EventType
    data: dict[str, Any] = field(default_factory=dict)

    def format(self) -> str:
        return f"event: {self.event.value}\ndata: {json.dumps(self.data, default=str)}\n\n"

    def to_sse_dict(self) -> dict[str, str]:
        return {"event": self.event.value, "data": json.dumps(self.data, default=str)}
