"""Session and scene-editing endpoints: objects, roles, z-order, clipboard, history."""

from __future__ import annotations

import logging
from dataclasses import replace

from fastapi import APIRouter, Depends, HTTPException

from canvasprompt.dependencies import get_session, get_sessions
from canvasprompt.engine.session import Session, SessionRegistry
from canvasprompt.errors import CanvasPromptError, status_for
from canvasprompt.models.requests import (
    AddObjectRequest,
    CopyRequest,
    CreateSessionRequest,
    LayerRequest,
    NudgeRequest,
    RoleRequest,
    TransformRequest,
)
from canvasprompt.models.responses import (
    ClearResponse,
    HistoryResponse,
    ObjectResponse,
    SceneResponse,
)
from canvasprompt.scene.objects import ObjectKind, Roles, SceneObject
from canvasprompt.scene.scene import scale_to_fit
from canvasprompt.scene.serializer import object_to_dict

router = APIRouter(prefix="/sessions")
logger = logging.getLogger(__name__)

# Arrow-key step sizes.
_NUDGE_SMALL = 1
_NUDGE_LARGE = 10


def _scene_response(session: Session) -> SceneResponse:
    return SceneResponse(
        session_id=session.id,
        objects=[object_to_dict(o) for o in session.scene.objects],
        can_undo=session.history.can_undo,
        can_redo=session.history.can_redo,
        generating=session.generating,
        has_manual_reference=session.manual_reference is not None,
    )


def _object_response(obj: SceneObject) -> ObjectResponse:
    return ObjectResponse(object=object_to_dict(obj), bounding_rect=obj.bounding_rect().as_dict())


def _history_response(session: Session, applied: bool) -> HistoryResponse:
    return HistoryResponse(
        applied=applied,
        can_undo=session.history.can_undo,
        can_redo=session.history.can_redo,
    )


def _http(e: CanvasPromptError) -> HTTPException:
    return HTTPException(status_code=status_for(e), detail=str(e))


@router.post("", response_model=SceneResponse)
async def create_session(
    request: CreateSessionRequest | None = None,
    sessions: SessionRegistry = Depends(get_sessions),
) -> SceneResponse:
    session_id = request.session_id if request else None
    return _scene_response(sessions.create(session_id))


@router.get("/{session_id}", response_model=SceneResponse)
async def get_scene(session: Session = Depends(get_session)) -> SceneResponse:
    return _scene_response(session)


@router.delete("/{session_id}")
async def close_session(session_id: str, sessions: SessionRegistry = Depends(get_sessions)) -> dict[str, bool]:
    if not sessions.drop(session_id):
        raise HTTPException(status_code=404, detail=f"Unknown session {session_id!r}")
    return {"closed": True}


# -- objects --


@router.post("/{session_id}/objects", response_model=ObjectResponse)
async def add_object(
    request: AddObjectRequest,
    session: Session = Depends(get_session),
) -> ObjectResponse:
    try:
        obj = SceneObject(
            kind=ObjectKind(request.kind),
            width=request.width,
            height=request.height,
            left=request.left,
            top=request.top,
            angle=request.angle,
            scale_x=request.scale_x,
            scale_y=request.scale_y,
            origin=request.origin,
            fill=request.fill,
            stroke=request.stroke,
            stroke_width=request.stroke_width,
            props=request.props,
        )
        Roles(is_base_image=request.is_base_image).validate_for(obj.kind)
        if obj.kind is ObjectKind.IMAGE:
            scale_to_fit(obj)
        with session.scene.batch():
            session.scene.add_object(obj)
            if request.is_base_image:
                session.scene.set_role(obj.id, Roles(is_base_image=True))
    except CanvasPromptError as e:
        raise _http(e) from e
    return _object_response(obj)


@router.delete("/{session_id}/objects/{object_id}")
async def remove_object(object_id: str, session: Session = Depends(get_session)) -> dict[str, bool]:
    try:
        removed = session.scene.remove_object(object_id)
    except CanvasPromptError as e:
        raise _http(e) from e
    return {"removed": removed}


@router.patch("/{session_id}/objects/{object_id}/transform", response_model=ObjectResponse)
async def transform_object(
    object_id: str,
    request: TransformRequest,
    session: Session = Depends(get_session),
) -> ObjectResponse:
    try:
        current = session.scene.require(object_id).transform
        changes = {k: v for k, v in request.model_dump().items() if v is not None}
        obj = session.scene.set_transform(object_id, replace(current, **changes))
    except CanvasPromptError as e:
        raise _http(e) from e
    return _object_response(obj)


@router.put("/{session_id}/objects/{object_id}/role", response_model=ObjectResponse)
async def set_role(
    object_id: str,
    request: RoleRequest,
    session: Session = Depends(get_session),
) -> ObjectResponse:
    try:
        current = session.scene.require(object_id)
        roles = Roles(is_base_image=request.is_base_image, is_fov_marker=current.is_fov_marker)
        obj = session.scene.set_role(object_id, roles)
    except CanvasPromptError as e:
        raise _http(e) from e
    return _object_response(obj)


@router.post("/{session_id}/objects/{object_id}/layer", response_model=ObjectResponse)
async def change_layer(
    object_id: str,
    request: LayerRequest,
    session: Session = Depends(get_session),
) -> ObjectResponse:
    scene = session.scene
    ops = {
        "forward": scene.bring_forward,
        "backward": scene.send_backwards,
        "front": scene.bring_to_front,
        "back": scene.send_to_back,
    }
    try:
        obj = ops[request.direction](object_id)
    except CanvasPromptError as e:
        raise _http(e) from e
    return _object_response(obj)


@router.post("/{session_id}/objects/{object_id}/nudge", response_model=ObjectResponse)
async def nudge_object(
    object_id: str,
    request: NudgeRequest,
    session: Session = Depends(get_session),
) -> ObjectResponse:
    step = _NUDGE_LARGE if request.large else _NUDGE_SMALL
    try:
        obj = session.scene.nudge(object_id, request.dx * step, request.dy * step)
    except CanvasPromptError as e:
        raise _http(e) from e
    return _object_response(obj)


# -- clipboard --


@router.post("/{session_id}/copy", response_model=ObjectResponse)
async def copy_object(request: CopyRequest, session: Session = Depends(get_session)) -> ObjectResponse:
    try:
        obj = session.copy(request.object_id)
    except CanvasPromptError as e:
        raise _http(e) from e
    return _object_response(obj)


@router.post("/{session_id}/paste", response_model=ObjectResponse)
async def paste_object(session: Session = Depends(get_session)) -> ObjectResponse:
    obj = session.paste()
    if obj is None:
        raise HTTPException(status_code=409, detail="Clipboard is empty")
    return _object_response(obj)


@router.post("/{session_id}/clear", response_model=ClearResponse)
async def clear_scene(session: Session = Depends(get_session)) -> ClearResponse:
    removed = session.scene.clear()
    logger.info("Session %s cleared (%d objects)", session.id, removed)
    return ClearResponse(removed=removed)


# -- history --


@router.post("/{session_id}/undo", response_model=HistoryResponse)
async def undo(session: Session = Depends(get_session)) -> HistoryResponse:
    return _history_response(session, session.undo())


@router.post("/{session_id}/redo", response_model=HistoryResponse)
async def redo(session: Session = Depends(get_session)) -> HistoryResponse:
    return _history_response(session, session.redo())
