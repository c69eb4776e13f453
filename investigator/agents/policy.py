from __future__ import annotations

from investigator.models.agent import AgentAction, AgentConfig, AgentState

FINDINGS_SATURATION = 5
SOURCES_SATURATION = 10
FINDINGS_WEIGHT = 0.6
SOURCES_WEIGHT = 0.4
MIN_FINDINGS = 3
QUERY_REFINEMENT_SUFFIX = " detailed information"


def compute_confidence(findings_count: int, sources_count: int) -> float:
    """Confidence grows with evidence volume and saturates at 5 findings / 10 sources."""
    findings_score = min(findings_count / FINDINGS_SATURATION, 1.0)
    sources_score = min(sources_count / SOURCES_SATURATION, 1.0)
    return FINDINGS_WEIGHT * findings_score + SOURCES_WEIGHT * sources_score


def recompute_confidence(state: AgentState) -> float:
    state.confidence = compute_confidence(len(state.findings), len(state.sources))
    return state.confidence


def decide(state: AgentState, config: AgentConfig) -> tuple[AgentAction, str]:
    """Pick the next action from the current state.

    Returns the action and a short rationale. Refines ``state.current_query``
    when nothing has been found yet.
    """
    if state.confidence >= config.confidence_threshold:
        return (
            AgentAction.COMPLETE,
            f"Confidence {state.confidence:.2f} reached threshold {config.confidence_threshold:.2f}",
        )
    if state.step_count >= state.max_steps:
        return AgentAction.COMPLETE, f"Step budget of {state.max_steps} exhausted"
    if not state.sources:
        state.current_query = f"{state.current_query}{QUERY_REFINEMENT_SUFFIX}"
        return AgentAction.SEARCH, f"No sources yet, refining query to '{state.current_query}'"
    if len(state.findings) < MIN_FINDINGS:
        return (
            AgentAction.GENERATE_FINDINGS,
            f"Only {len(state.findings)} findings from {len(state.sources)} sources",
        )
    return AgentAction.SEARCH, "Searching for more sources to raise confidence"
