"""Generation endpoints: manual reference image, prepare, execute, cancel."""

from __future__ import annotations

import binascii
import logging
from collections.abc import Callable

from fastapi import APIRouter, Depends, HTTPException
from PIL import UnidentifiedImageError

from canvasprompt.config import Settings
from canvasprompt.dependencies import (
    get_client,
    get_session,
    get_settings,
    get_store,
    get_surface_factory,
)
from canvasprompt.engine.generation import (
    GenerationOptions,
    cancel_generation,
    execute_generation,
    prepare_generation,
)
from canvasprompt.engine.session import Session
from canvasprompt.errors import CanvasPromptError, status_for
from canvasprompt.llm.client import GenerationClient
from canvasprompt.models.requests import ExecuteRequest, PrepareRequest, ReferenceRequest
from canvasprompt.models.responses import ExecuteResponse, PrepareResponse
from canvasprompt.store import Store
from canvasprompt.utils.rasterizer import decode_image_src

router = APIRouter(prefix="/sessions")
logger = logging.getLogger(__name__)


@router.post("/{session_id}/reference")
async def set_reference(request: ReferenceRequest, session: Session = Depends(get_session)) -> dict[str, bool]:
    try:
        with decode_image_src(request.image) as img:
            img.verify()
    except (binascii.Error, ValueError, UnidentifiedImageError) as e:
        raise HTTPException(status_code=422, detail=f"Reference is not a readable image: {e}") from e
    session.manual_reference = request.image
    return {"has_manual_reference": True}


@router.delete("/{session_id}/reference")
async def clear_reference(session: Session = Depends(get_session)) -> dict[str, bool]:
    session.manual_reference = None
    return {"has_manual_reference": False}


@router.post("/{session_id}/generate/prepare", response_model=PrepareResponse)
async def prepare(
    request: PrepareRequest,
    session: Session = Depends(get_session),
    surface_factory: Callable = Depends(get_surface_factory),
    app_settings: Settings = Depends(get_settings),
) -> PrepareResponse:
    options = GenerationOptions(
        user_text=request.prompt,
        aspect_ratio=request.aspect_ratio,
        resolution=request.resolution,
        apply_color=request.apply_color,
        model=request.model,
    )
    try:
        payload = prepare_generation(session, surface_factory(session.scene), options, app_settings)
    except CanvasPromptError as e:
        logger.warning("Prepare failed for session %s: %s", session.id, e)
        raise HTTPException(status_code=status_for(e), detail=str(e)) from e
    return PrepareResponse(
        prompt=payload.prompt,
        model=payload.model,
        aspect_ratio=payload.aspect_ratio,
        resolution=payload.resolution,
        image_count=len(payload.images),
        reference_count=len(payload.references_b64),
        clean_image=payload.clean_b64,
        marked_image=payload.marked_b64,
    )


@router.post("/{session_id}/generate/execute", response_model=ExecuteResponse)
async def execute(
    request: ExecuteRequest | None = None,
    session: Session = Depends(get_session),
    client: GenerationClient = Depends(get_client),
    store: Store = Depends(get_store),
) -> ExecuteResponse:
    request = request or ExecuteRequest()
    if request.api_key:
        client = client.with_api_key(request.api_key)
    try:
        outcome = await execute_generation(session, client, store, place_result=request.place_result)
    except CanvasPromptError as e:
        logger.warning("Generation failed for session %s: %s", session.id, e)
        raise HTTPException(status_code=status_for(e), detail=str(e)) from e
    return ExecuteResponse(
        image=outcome.result.data_url,
        text=outcome.result.text,
        gallery_id=outcome.gallery_image.id if outcome.gallery_image else None,
        placed_object_id=outcome.placed.id if outcome.placed else None,
    )


@router.post("/{session_id}/generate/cancel")
async def cancel(session: Session = Depends(get_session)) -> dict[str, bool]:
    return {"cancelled": cancel_generation(session)}
