"""Health check + meta endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from canvasprompt.dependencies import get_sessions
from canvasprompt.engine.session import SessionRegistry
from canvasprompt.llm.model_router import get_default_model, list_models
from canvasprompt.models.responses import HealthResponse, ModelEntry, ModelsResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(sessions: SessionRegistry = Depends(get_sessions)) -> HealthResponse:
    return HealthResponse(status="ok", version="0.1.0", sessions=len(sessions))


@router.get("/models", response_model=ModelsResponse)
async def models() -> ModelsResponse:
    return ModelsResponse(
        models=[ModelEntry(id=m.id, name=m.name) for m in list_models()],
        default=get_default_model(),
    )
