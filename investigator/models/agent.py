from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from investigator.models.investigation import AgentThought, Finding, Lead, Source


class AgentAction(str, Enum):
    ANALYZE_QUERY = "analyze_query"
    GENERATE_PLAN = "generate_plan"
    SEARCH = "search"
    CRAWL = "crawl"
    ANALYZE_SOURCES = "analyze_sources"
    GENERATE_FINDINGS = "generate_findings"
    GENERATE_LEADS = "generate_leads"
    DECIDE_NEXT_ACTION = "decide_next_action"
    COMPLETE = "complete"


class SearchDepth(str, Enum):
    BASIC = "basic"
    ADVANCED = "advanced"


class LLMModel(str, Enum):
    GROQ_LLAMA = "groq-llama"
    GPT_4 = "gpt-4"
    CLAUDE_3_SONNET = "claude-3-sonnet"


class AgentConfig(BaseModel):
    """Per-run agent configuration. Every field has a default."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_steps: int = Field(default=10, ge=1)
    confidence_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    max_sources_per_query: int = Field(default=5, ge=1)
    enable_deep_crawl: bool = True
    llm_model: LLMModel = LLMModel.GROQ_LLAMA
    search_depth: SearchDepth = SearchDepth.ADVANCED
    memory_enabled: bool = True

    @classmethod
    def from_partial(cls, partial: dict[str, Any] | "AgentConfig" | None) -> "AgentConfig":
        if partial is None:
            return cls()
        if isinstance(partial, AgentConfig):
            return partial
        return cls.model_validate(partial)

    def merged(self, partial: dict[str, Any] | None) -> "AgentConfig":
        if not partial:
            return self
        return AgentConfig.model_validate({**self.model_dump(), **partial})


@dataclass
class AgentState:
    """Working memory of a single investigation run.

    Owned by the run that created it; handlers receive it by reference.
    """

    investigation_id: str
    current_query: str
    max_steps: int
    user_id: str = ""
    context: list[str] = field(default_factory=list)
    sources: list[Source] = field(default_factory=list)
    findings: list[Finding] = field(default_factory=list)
    leads: list[Lead] = field(default_factory=list)
    thoughts: list[AgentThought] = field(default_factory=list)
    next_action: AgentAction = AgentAction.ANALYZE_QUERY
    confidence: float = 0.0
    step_count: int = 0
    human_input_required: bool = False
    error_message: str | None = None

    def source_by_url(self, url: str) -> Source | None:
        for source in self.sources:
            if source.url == url:
                return source
        return None
