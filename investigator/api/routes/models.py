from __future__ import annotations

from fastapi import APIRouter

from investigator.api.deps import get_available_models
from investigator.models.schemas import ModelInfo, ModelsResponse

router = APIRouter(prefix="/api/models", tags=["models"])


@router.get("", response_model=ModelsResponse)
async def list_models():
    """List the language models an investigation can run on."""
    models = get_available_models()
    return ModelsResponse(models=[ModelInfo(**m) for m in models])
