"""FastAPI dependency injection."""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Depends, HTTPException, Request

from canvasprompt.config import Settings, settings
from canvasprompt.engine.capture import RenderSurface
from canvasprompt.engine.session import Session, SessionRegistry
from canvasprompt.llm.client import GenerationClient
from canvasprompt.scene.scene import Scene
from canvasprompt.store import Store
from canvasprompt.utils.rasterizer import PillowSurface


def get_settings() -> Settings:
    return settings


def get_sessions(request: Request) -> SessionRegistry:
    return request.app.state.sessions


def get_store(request: Request) -> Store:
    return request.app.state.store


def get_client(
    request: Request, app_settings: Settings = Depends(get_settings)
) -> GenerationClient:
    client = getattr(request.app.state, "client", None)
    if client is None:
        client = GenerationClient(app_settings)
    return client


def get_session(
    session_id: str, sessions: SessionRegistry = Depends(get_sessions)
) -> Session:
    session = sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Unknown session {session_id!r}")
    return session


def get_surface_factory(request: Request) -> Callable[[Scene], RenderSurface]:
    return getattr(request.app.state, "surface_factory", None) or PillowSurface
