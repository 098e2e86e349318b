"""FOV camera marker endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from canvasprompt.dependencies import get_session
from canvasprompt.engine.session import Session
from canvasprompt.errors import CanvasPromptError, status_for
from canvasprompt.models.requests import FovCreateRequest, FovUpdateRequest
from canvasprompt.models.responses import FovDataResponse, ObjectResponse
from canvasprompt.scene.fov import (
    create_fov_marker,
    extract_fov_data,
    find_fov_marker,
    set_fov_parameters,
)
from canvasprompt.scene.serializer import object_to_dict

router = APIRouter(prefix="/sessions")


@router.post("/{session_id}/fov", response_model=ObjectResponse)
async def place_marker(request: FovCreateRequest, session: Session = Depends(get_session)) -> ObjectResponse:
    try:
        marker = create_fov_marker(
            session.scene,
            request.left,
            request.top,
            angle=request.angle,
            length=request.length,
            rotation=request.rotation,
        )
    except CanvasPromptError as e:
        raise HTTPException(status_code=status_for(e), detail=str(e)) from e
    return ObjectResponse(object=object_to_dict(marker), bounding_rect=marker.bounding_rect().as_dict())


@router.patch("/{session_id}/fov", response_model=ObjectResponse)
async def update_marker(request: FovUpdateRequest, session: Session = Depends(get_session)) -> ObjectResponse:
    try:
        marker = set_fov_parameters(session.scene, request.angle, request.length)
    except CanvasPromptError as e:
        raise HTTPException(status_code=status_for(e), detail=str(e)) from e
    if marker is None:
        raise HTTPException(status_code=404, detail="No FOV marker on the canvas")
    return ObjectResponse(object=object_to_dict(marker), bounding_rect=marker.bounding_rect().as_dict())


@router.get("/{session_id}/fov", response_model=FovDataResponse)
async def marker_data(session: Session = Depends(get_session)) -> FovDataResponse:
    marker = find_fov_marker(session.scene)
    if marker is None:
        raise HTTPException(status_code=404, detail="No FOV marker on the canvas")
    data = extract_fov_data(marker)
    return FovDataResponse(
        object_id=marker.id,
        x=data.x,
        y=data.y,
        heading_degrees=data.heading_degrees,
        heading=data.heading,
        angle_degrees=data.angle_degrees,
        length_units=data.length_units,
        far_left=data.far_left,
        far_right=data.far_right,
    )
