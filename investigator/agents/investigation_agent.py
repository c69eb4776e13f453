from __future__ import annotations

import asyncio
import dataclasses
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from loguru import logger

from investigator.agents import policy
from investigator.agents.analyst import AnalystAgent
from investigator.config import settings
from investigator.errors import InvestigationValidationError
from investigator.models.agent import AgentAction, AgentConfig, AgentState
from investigator.models.investigation import (
    AgentThought,
    Finding,
    Importance,
    Investigation,
    InvestigationStatus,
    Lead,
    LeadOrigin,
    LeadPriority,
    LeadStatus,
    Source,
    SourceType,
    new_id,
)
from investigator.services import logger as log_service
from investigator.services.memory_store import get_investigation_context, get_memory_store
from investigator.tools.extract_provider import get_extractor
from investigator.tools.interfaces import ExtractTool, MemoryTool, SearchTool
from investigator.tools.search_provider import SearchClient
from investigator.tools.web_utils import extract_domain

CRAWL_LIMIT = 3
FINDING_EXCERPT_CHARS = 200
LEAD_EFFORT = 3
FINDING_CONFIDENCE = 0.7

ThoughtCallback = Callable[[AgentThought], Any]


@dataclass
class AgentTools:
    """External collaborators the handlers call into."""

    search: SearchTool
    extract: ExtractTool
    memory: MemoryTool
    analyst: AnalystAgent
    on_thought: ThoughtCallback | None = None


Handler = Callable[[AgentState, AgentConfig, AgentTools], Awaitable[AgentAction]]


def default_tools(config: AgentConfig) -> AgentTools:
    return AgentTools(
        search=SearchClient(),
        extract=get_extractor(),
        memory=get_memory_store(),
        analyst=AnalystAgent(model=config.llm_model),
    )


# --- Thought and error bookkeeping ---


def add_thought(state: AgentState, tools: AgentTools, action: AgentAction, reasoning: str) -> AgentThought:
    thought = AgentThought(action=action.value, reasoning=reasoning, confidence=state.confidence)
    state.thoughts.append(thought)
    if tools.on_thought is not None:
        try:
            tools.on_thought(thought)
        except Exception as exc:
            logger.warning(f"Thought observer failed: {exc}")
    return thought


def record_error(
    state: AgentState,
    tools: AgentTools,
    action: AgentAction,
    context: str,
    exc: BaseException,
) -> None:
    state.error_message = f"{context}: {exc}"
    logger.warning(f"[{state.investigation_id}] {state.error_message}")
    add_thought(state, tools, action, state.error_message)


# --- Handlers ---


async def analyze_query(state: AgentState, config: AgentConfig, tools: AgentTools) -> AgentAction:
    try:
        if config.memory_enabled:
            user_id = state.user_id or settings.default_user_id
            state.context = await get_investigation_context(tools.memory, state.current_query, user_id)
        analysis = await tools.analyst.analyze_query(state.current_query, "\n".join(state.context))
    except Exception as exc:
        record_error(state, tools, AgentAction.ANALYZE_QUERY, "Error analyzing query", exc)
        return AgentAction.DECIDE_NEXT_ACTION

    value = analysis.value
    topics = ", ".join(value.topics) or "none"
    add_thought(
        state,
        tools,
        AgentAction.ANALYZE_QUERY,
        f"Query analyzed as {value.complexity}. Topics: {topics}. "
        f"Entities: {len(value.entities)}. Memory context items: {len(state.context)}.",
    )
    return AgentAction.GENERATE_PLAN


async def generate_plan(state: AgentState, config: AgentConfig, tools: AgentTools) -> AgentAction:
    try:
        plan = await tools.analyst.generate_plan(state.current_query, config)
    except Exception as exc:
        record_error(state, tools, AgentAction.GENERATE_PLAN, "Error generating plan", exc)
        return AgentAction.SEARCH

    steps = "; ".join(f"{i}. {step}" for i, step in enumerate(plan.value.steps, 1))
    add_thought(
        state,
        tools,
        AgentAction.GENERATE_PLAN,
        f"Investigation plan generated with {len(plan.value.steps)} steps. "
        f"Estimated time: {plan.value.estimated_time}. {steps}",
    )
    return AgentAction.SEARCH


async def search(state: AgentState, config: AgentConfig, tools: AgentTools) -> AgentAction:
    try:
        results = await tools.search.search(
            state.current_query,
            search_depth=config.search_depth.value,
            max_results=config.max_sources_per_query,
        )
    except Exception as exc:
        record_error(state, tools, AgentAction.SEARCH, "Error performing search", exc)
        return AgentAction.DECIDE_NEXT_ACTION

    if not results:
        add_thought(
            state,
            tools,
            AgentAction.SEARCH,
            "No search results found. Considering alternative approaches.",
        )
        return AgentAction.DECIDE_NEXT_ACTION

    added: list[Source] = []
    for result in results:
        if state.source_by_url(result.url) is not None or any(s.url == result.url for s in added):
            continue
        metadata: dict[str, Any] = {"domain": extract_domain(result.url)}
        if result.published_date:
            metadata["published_date"] = result.published_date
        added.append(
            Source(
                investigation_id=state.investigation_id,
                url=result.url,
                title=result.title,
                content=result.content,
                summary=result.snippet,
                credibility_score=max(0.0, min(1.0, result.score)),
                source_type=SourceType.WEB,
                metadata=metadata,
            )
        )
    state.sources.extend(added)
    policy.recompute_confidence(state)
    add_thought(
        state,
        tools,
        AgentAction.SEARCH,
        f"Found {len(added)} new sources from {len(results)} search results.",
    )

    if config.enable_deep_crawl and added:
        return AgentAction.CRAWL
    return AgentAction.ANALYZE_SOURCES


async def crawl(state: AgentState, config: AgentConfig, tools: AgentTools) -> AgentAction:
    targets = [source.url for source in state.sources[:CRAWL_LIMIT]]
    if not config.enable_deep_crawl or not targets:
        add_thought(state, tools, AgentAction.CRAWL, "Skipping deep crawl.")
        return AgentAction.ANALYZE_SOURCES

    crawled = 0
    failures: list[str] = []
    for url in targets:
        try:
            extracted = await tools.extract.extract([url])
        except Exception as exc:
            failures.append(f"{url}: {exc}")
            continue
        for result in extracted:
            if not result.success:
                failures.append(f"{result.url}: {result.error or 'extraction failed'}")
                continue
            if _apply_crawl_result(state, result):
                crawled += 1

    if failures:
        state.error_message = f"Error during deep crawl: {failures[0]}"
        logger.warning(f"[{state.investigation_id}] crawl failures: {failures}")
    add_thought(
        state,
        tools,
        AgentAction.CRAWL,
        f"Successfully crawled {crawled} of {len(targets)} sources for deeper content.",
    )
    return AgentAction.ANALYZE_SOURCES


def _apply_crawl_result(state: AgentState, result: Any) -> bool:
    for index, source in enumerate(state.sources):
        if source.url != result.url:
            continue
        state.sources[index] = source.model_copy(
            update={
                "content": result.content or source.content,
                "title": result.title or source.title,
                "metadata": {
                    **source.metadata,
                    **result.metadata,
                    "domain": extract_domain(source.url),
                    "crawled": True,
                    "links": list(result.links),
                    "images": list(result.images),
                },
            }
        )
        return True
    return False


async def analyze_sources(state: AgentState, config: AgentConfig, tools: AgentTools) -> AgentAction:
    if not state.sources:
        add_thought(
            state,
            tools,
            AgentAction.ANALYZE_SOURCES,
            "No sources to analyze. Considering alternative approaches.",
        )
        return AgentAction.DECIDE_NEXT_ACTION

    try:
        summary = await tools.analyst.summarize_sources(state.sources, state.current_query)
    except Exception as exc:
        record_error(state, tools, AgentAction.ANALYZE_SOURCES, "Error analyzing sources", exc)
        return AgentAction.GENERATE_FINDINGS

    add_thought(
        state,
        tools,
        AgentAction.ANALYZE_SOURCES,
        f"Analyzed {len(state.sources)} sources (summary confidence "
        f"{summary.value.confidence:.2f}): {summary.value.summary}",
    )
    return AgentAction.GENERATE_FINDINGS


async def generate_findings(state: AgentState, config: AgentConfig, tools: AgentTools) -> AgentAction:
    if not state.sources:
        add_thought(state, tools, AgentAction.GENERATE_FINDINGS, "No sources to derive findings from.")
        return AgentAction.DECIDE_NEXT_ACTION

    try:
        new_findings = [
            Finding(
                investigation_id=state.investigation_id,
                source_id=source.id,
                content=source.summary or source.content[:FINDING_EXCERPT_CHARS],
                summary=f"Information from {source.title or source.url}",
                importance=Importance.MEDIUM,
                confidence_level=FINDING_CONFIDENCE,
            )
            for source in state.sources
        ]
    except Exception as exc:
        record_error(state, tools, AgentAction.GENERATE_FINDINGS, "Error generating findings", exc)
        return AgentAction.DECIDE_NEXT_ACTION

    state.findings.extend(new_findings)
    policy.recompute_confidence(state)
    add_thought(
        state,
        tools,
        AgentAction.GENERATE_FINDINGS,
        f"Generated {len(new_findings)} findings. Confidence is now {state.confidence:.2f}.",
    )
    return AgentAction.GENERATE_LEADS


async def generate_leads(state: AgentState, config: AgentConfig, tools: AgentTools) -> AgentAction:
    if not state.findings:
        add_thought(state, tools, AgentAction.GENERATE_LEADS, "No findings to follow up on.")
        return AgentAction.DECIDE_NEXT_ACTION

    try:
        new_leads = [
            Lead(
                investigation_id=state.investigation_id,
                query=f"Follow-up on {finding.summary}",
                description=f"Investigate more about {finding.summary}",
                priority=LeadPriority.MEDIUM,
                status=LeadStatus.PENDING,
                generated_by=LeadOrigin.AGENT,
                estimated_effort=LEAD_EFFORT,
                finding_ids=[finding.id],
            )
            for finding in state.findings
        ]
    except Exception as exc:
        record_error(state, tools, AgentAction.GENERATE_LEADS, "Error generating leads", exc)
        return AgentAction.DECIDE_NEXT_ACTION

    state.leads.extend(new_leads)
    add_thought(
        state,
        tools,
        AgentAction.GENERATE_LEADS,
        f"Generated {len(new_leads)} leads for further investigation.",
    )
    return AgentAction.DECIDE_NEXT_ACTION


async def decide_next_action(state: AgentState, config: AgentConfig, tools: AgentTools) -> AgentAction:
    try:
        action, rationale = policy.decide(state, config)
    except Exception as exc:
        record_error(state, tools, AgentAction.DECIDE_NEXT_ACTION, "Error deciding next action", exc)
        return AgentAction.COMPLETE
    add_thought(state, tools, AgentAction.DECIDE_NEXT_ACTION, f"{rationale}. Next: {action.value}.")
    return action


HANDLERS: dict[AgentAction, Handler] = {
    AgentAction.ANALYZE_QUERY: analyze_query,
    AgentAction.GENERATE_PLAN: generate_plan,
    AgentAction.SEARCH: search,
    AgentAction.CRAWL: crawl,
    AgentAction.ANALYZE_SOURCES: analyze_sources,
    AgentAction.GENERATE_FINDINGS: generate_findings,
    AgentAction.GENERATE_LEADS: generate_leads,
    AgentAction.DECIDE_NEXT_ACTION: decide_next_action,
}


class InvestigationAgent:
    """Bounded, confidence-driven investigation loop.

    Each ``start``/``run`` call owns its ``AgentState``; the agent itself holds
    only configuration and tool clients, so one instance may serve several
    sequential runs.
    """

    def __init__(
        self,
        config: AgentConfig | dict[str, Any] | None = None,
        tools: AgentTools | None = None,
        *,
        user_id: str | None = None,
        on_thought: ThoughtCallback | None = None,
    ):
        self.config = AgentConfig.from_partial(config)
        base_tools = tools or default_tools(self.config)
        self.tools = dataclasses.replace(base_tools, on_thought=on_thought) if on_thought else base_tools
        self.user_id = user_id or ""

    def new_state(self, query: str, investigation_id: str | None = None) -> AgentState:
        return AgentState(
            investigation_id=investigation_id or new_id("inv"),
            current_query=query,
            max_steps=self.config.max_steps,
            user_id=self.user_id,
        )

    async def start(
        self,
        query: str,
        investigation_id: str | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> Investigation:
        if not query or not query.strip():
            raise InvestigationValidationError("Query is required")
        state = self.new_state(query.strip(), investigation_id)
        log_service.log_event(
            event_type="investigation_started",
            message="Investigation started",
            investigation_id=state.investigation_id,
            query=state.current_query[:100],
            max_steps=self.config.max_steps,
        )
        return await self.run(state, cancel_event)

    def _should_continue(self, state: AgentState, cancel_event: asyncio.Event | None) -> bool:
        if cancel_event is not None and cancel_event.is_set():
            return False
        return (
            state.step_count < state.max_steps
            and not state.human_input_required
            and state.confidence < self.config.confidence_threshold
        )

    async def run(self, state: AgentState, cancel_event: asyncio.Event | None = None) -> Investigation:
        t_run = time.monotonic()
        while self._should_continue(state, cancel_event):
            state.step_count += 1
            action = state.next_action
            if action is AgentAction.COMPLETE:
                break

            t0 = time.monotonic()
            state.next_action = await HANDLERS[action](state, self.config, self.tools)
            log_service.log_agent_step(
                investigation_id=state.investigation_id,
                step=state.step_count,
                action=action.value,
                next_action=state.next_action.value,
                confidence=state.confidence,
                duration_ms=int((time.monotonic() - t0) * 1000),
            )

        investigation = self.materialize(state)
        log_service.log_event(
            event_type="investigation_finished",
            message="Investigation finished",
            investigation_id=investigation.id,
            status=investigation.status.value,
            confidence=round(investigation.confidence_score, 4),
            steps=state.step_count,
            sources=len(investigation.sources),
            findings=len(investigation.findings),
            leads=len(investigation.leads),
            cancelled=bool(cancel_event is not None and cancel_event.is_set()),
            runtime_ms=int((time.monotonic() - t_run) * 1000),
        )
        return investigation

    def materialize(self, state: AgentState) -> Investigation:
        status = (
            InvestigationStatus.COMPLETED
            if state.confidence >= self.config.confidence_threshold
            else InvestigationStatus.ACTIVE
        )
        return Investigation(
            id=state.investigation_id,
            title=state.current_query,
            description=state.current_query,
            query=state.current_query,
            status=status,
            confidence_score=min(max(state.confidence, 0.0), 1.0),
            findings=list(state.findings),
            sources=list(state.sources),
            leads=list(state.leads),
            user_id=state.user_id,
            step_count=state.step_count,
            thoughts=list(state.thoughts),
            error_message=state.error_message,
        )
