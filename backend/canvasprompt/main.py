"""FastAPI app factory."""

from __future__ import annotations

import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from canvasprompt.config import Settings, settings

load_dotenv()

logging.basicConfig(
    level=getattr(logging, settings.canvasprompt_log_level.upper(), logging.DEBUG),
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(app_settings: Settings | None = None) -> FastAPI:
    app_settings = app_settings or settings
    app = FastAPI(
        title="CanvasPrompt",
        description="Annotated-canvas scene engine: capture layers and prompts for image generation",
        version="0.1.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _init_state(app, app_settings)

    from canvasprompt.api.router import api_router

    app.include_router(api_router)

    return app


def _init_state(app: FastAPI, app_settings: Settings) -> None:
    """Session registry and store live on ``app.state`` for the process lifetime."""
    from canvasprompt.engine.session import SessionRegistry
    from canvasprompt.llm.client import GenerationClient
    from canvasprompt.store import InMemoryStore, JsonFileStore

    if app_settings.store_path:
        store = JsonFileStore(app_settings.store_path)
        logger.info("Persisting scenes and gallery under %s", app_settings.store_path)
    else:
        store = InMemoryStore()
    app.state.store = store
    app.state.sessions = SessionRegistry(store, capacity=app_settings.history_capacity)
    app.state.client = GenerationClient(app_settings)


app = create_app()
