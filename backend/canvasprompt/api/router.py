"""Mounts the canvas, FOV, generation, gallery and relay routers under /api."""

from __future__ import annotations

from fastapi import APIRouter

from canvasprompt.api import fov, gallery, generate, health, relay, sessions

api_router = APIRouter(prefix="/api")

api_router.include_router(health.router)
api_router.include_router(sessions.router)
api_router.include_router(fov.router)
api_router.include_router(generate.router)
api_router.include_router(gallery.router)
api_router.include_router(relay.router)
