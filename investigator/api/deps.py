from __future__ import annotations

from fastapi import HTTPException
from pydantic import ValidationError

from investigator.models.agent import AgentConfig, LLMModel
from investigator.services.investigations import InvestigationService, get_service

MODEL_DESCRIPTIONS: dict[LLMModel, tuple[str, str]] = {
    LLMModel.GROQ_LLAMA: (
        "Llama 3.3 70B",
        "Fastest model. Default for the investigation loop.",
    ),
    LLMModel.GPT_4: (
        "GPT-4",
        "Strong general reasoning. Slower and more expensive per step.",
    ),
    LLMModel.CLAUDE_3_SONNET: (
        "Claude 3 Sonnet",
        "Careful long-context analysis of many sources.",
    ),
}


def get_available_models() -> list[dict[str, str]]:
    """Return the selectable ``llm_model`` values for an investigation."""
    return [
        {"id": model.value, "name": name, "description": description}
        for model, (name, description) in MODEL_DESCRIPTIONS.items()
    ]


def get_investigation_service() -> InvestigationService:
    return get_service()


def require_query(query: str | None) -> str:
    if not query or not query.strip():
        raise HTTPException(status_code=400, detail="Query is required")
    return query.strip()


def parse_config(config: dict | None) -> AgentConfig:
    """Merge a partial request config over the defaults, 422 when it does not validate."""
    try:
        return AgentConfig.from_partial(config)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'config'}: {err['msg']}"
            for err in exc.errors()
        )
        raise HTTPException(status_code=422, detail=f"Invalid config: {problems}") from exc
