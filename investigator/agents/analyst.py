from __future__ import annotations

from typing import Literal, Sequence

from pydantic import BaseModel, Field

from investigator.llm_client import LLMClient, LLMResult, client as llm_client, parse_json_result, resolve_model
from investigator.models.agent import AgentConfig, LLMModel
from investigator.models.investigation import Source
from investigator.services import logger as log_service
from investigator.services.prompt_store import render_prompt

SOURCE_EXCERPT_CHARS = 200


class QueryAnalysis(BaseModel):
    entities: list[str] = Field(default_factory=list)
    topics: list[str] = Field(default_factory=list)
    complexity: Literal["simple", "moderate", "complex"] = "moderate"


class InvestigationPlan(BaseModel):
    steps: list[str] = Field(default_factory=list)
    estimated_time: str = ""


class SourceSummary(BaseModel):
    summary: str
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)


DEFAULT_PLAN_STEPS = [
    "Search for relevant information",
    "Analyze the search results",
    "Generate findings based on the analysis",
    "Identify potential leads for further investigation",
]


class AnalystAgent:
    """Structured LLM requests used by the investigation loop.

    Each method returns an ``LLMResult``: the parsed reply, or a fixed fallback
    when the model's output is not valid JSON of the expected shape. Transport
    failures propagate as ``LLMError``.
    """

    name = "analyst"

    def __init__(self, model: LLMModel | str = LLMModel.GROQ_LLAMA, client: LLMClient | None = None):
        self.model = resolve_model(model)
        self.client = client

    @property
    def system_prompt(self) -> str:
        return render_prompt("analyst.system_prompt")

    async def _ask(self, prompt: str, caller: str) -> str:
        active_client = self.client or llm_client()
        response = await active_client.complete(
            prompt,
            system=self.system_prompt,
            model=self.model,
            caller=f"{self.name}.{caller}",
        )
        return response.text

    def _note_fallback(self, caller: str, result: LLMResult) -> None:
        if not result.parsed:
            log_service.log_event(
                event_type="llm_parse_fallback",
                message=f"Using fallback for {self.name}.{caller}",
                error=result.error,
                model=self.model,
            )

    async def analyze_query(self, query: str, context: str = "") -> LLMResult[QueryAnalysis]:
        context_block = render_prompt("analyst.context_block", context=context) if context else ""
        raw = await self._ask(
            render_prompt("analyst.analyze_query", query=query, context_block=context_block),
            "analyze_query",
        )
        result = parse_json_result(
            raw,
            QueryAnalysis,
            QueryAnalysis(entities=[], topics=[query], complexity="moderate"),
        )
        self._note_fallback("analyze_query", result)
        return result

    async def generate_plan(self, query: str, config: AgentConfig) -> LLMResult[InvestigationPlan]:
        raw = await self._ask(
            render_prompt(
                "analyst.generate_plan",
                query=query,
                max_steps=config.max_steps,
                search_depth=config.search_depth.value,
                enable_deep_crawl=str(config.enable_deep_crawl).lower(),
            ),
            "generate_plan",
        )
        result = parse_json_result(
            raw,
            InvestigationPlan,
            InvestigationPlan(steps=list(DEFAULT_PLAN_STEPS), estimated_time="15-30 minutes"),
        )
        self._note_fallback("generate_plan", result)
        return result

    async def summarize_sources(self, sources: Sequence[Source], query: str) -> LLMResult[SourceSummary]:
        lines = [
            render_prompt(
                "analyst.source_line",
                title=source.title or source.url,
                url=source.url,
                excerpt=source.content[:SOURCE_EXCERPT_CHARS],
            )
            for source in sources
        ]
        raw = await self._ask(
            render_prompt("analyst.summarize_sources", query=query, sources="\n".join(lines)),
            "summarize_sources",
        )
        result = parse_json_result(
            raw,
            SourceSummary,
            SourceSummary(
                summary="Based on the collected information, the investigation has yielded several insights.",
                confidence=0.5,
            ),
        )
        self._note_fallback("summarize_sources", result)
        return result
