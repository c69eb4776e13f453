from __future__ import annotations

from typing import Any

from pydantic import BaseModel


# --- Requests ---


class InvestigateRequest(BaseModel):
    query: str | None = None
    config: dict[str, Any] | None = None
    user_id: str | None = None


class ContinueRequest(BaseModel):
    config: dict[str, Any] | None = None


class StreamRequest(BaseModel):
    prompt: str | None = None


# --- Responses ---


class DeleteResponse(BaseModel):
    success: bool


class ModelInfo(BaseModel):
    id: str
    name: str
    description: str


class ModelsResponse(BaseModel):
    models: list[ModelInfo]
