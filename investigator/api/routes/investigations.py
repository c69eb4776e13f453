from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from investigator.api.deps import get_investigation_service, parse_config, require_query
from investigator.errors import InvestigationNotFoundError
from investigator.models.investigation import Investigation
from investigator.models.schemas import ContinueRequest, DeleteResponse, InvestigateRequest
from investigator.services import logger as log_service
from investigator.services.investigations import InvestigationService

router = APIRouter(prefix="/api/agent/investigate", tags=["investigations"])


@router.post("", response_model=Investigation)
async def start_investigation(
    request: InvestigateRequest,
    service: InvestigationService = Depends(get_investigation_service),
):
    """Run an investigation to completion and return its snapshot."""
    query = require_query(request.query)
    config = parse_config(request.config)
    log_service.log_event(
        event_type="api_investigate",
        message="Investigation requested",
        query=query[:100],
        config=config.model_dump(mode="json"),
    )
    return await service.start(query, config, user_id=request.user_id)


@router.get("", response_model=list[Investigation])
async def list_investigations(
    user_id: str | None = None,
    service: InvestigationService = Depends(get_investigation_service),
):
    return await service.list(user_id)


@router.get("/{investigation_id}", response_model=Investigation)
async def get_investigation(
    investigation_id: str,
    service: InvestigationService = Depends(get_investigation_service),
):
    try:
        return await service.get(investigation_id)
    except InvestigationNotFoundError:
        raise HTTPException(status_code=404, detail="Investigation not found")


@router.delete("/{investigation_id}", response_model=DeleteResponse)
async def delete_investigation(
    investigation_id: str,
    service: InvestigationService = Depends(get_investigation_service),
):
    try:
        await service.delete(investigation_id)
    except InvestigationNotFoundError:
        raise HTTPException(status_code=404, detail="Investigation not found")
    return DeleteResponse(success=True)


@router.post("/{investigation_id}/continue", response_model=Investigation)
async def continue_investigation(
    investigation_id: str,
    request: ContinueRequest | None = None,
    service: InvestigationService = Depends(get_investigation_service),
):
    """Resume a stored investigation with a fresh step budget."""
    config = parse_config(request.config if request else None)
    try:
        return await service.continue_(investigation_id, config)
    except InvestigationNotFoundError:
        raise HTTPException(status_code=404, detail="Investigation not found")
