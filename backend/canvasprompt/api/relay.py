"""POST /api/relay -- key-injecting proxy to the generation provider.

The client never holds the key: it sends ``{url, payload}`` and the server
appends its own ``GOOGLE_API_KEY``. Only URLs under ``provider_base_url``
are forwarded. Upstream status and body pass through.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response

from canvasprompt.config import Settings
from canvasprompt.dependencies import get_settings
from canvasprompt.llm.client import forward_to_provider
from canvasprompt.models.requests import RelayRequest

router = APIRouter()
logger = logging.getLogger(__name__)


def _targets_provider(url: str, base_url: str) -> bool:
    return url.startswith(base_url.rstrip("/") + "/")


@router.post("/relay")
async def relay(
    body: RelayRequest,
    request: Request,
    app_settings: Settings = Depends(get_settings),
) -> Response:
    if not app_settings.google_api_key:
        logger.error("Relay called but GOOGLE_API_KEY is not configured")
        return JSONResponse(status_code=500, content={"error": "Server Configuration Error: No API Key."})
    if not body.url or body.payload is None:
        return JSONResponse(status_code=400, content={"error": "Missing 'url' or 'payload' in request body."})
    if not _targets_provider(body.url, app_settings.provider_base_url):
        logger.warning("Relay refused foreign target %s", body.url)
        return JSONResponse(status_code=400, content={"error": "Relay only forwards to the configured provider."})

    logger.info("Relaying to %s", body.url)
    upstream = await forward_to_provider(
        body.url,
        body.payload,
        app_settings.google_api_key,
        app_settings.relay_timeout_s,
        transport=getattr(request.app.state, "relay_transport", None),
    )
    return Response(
        content=upstream.body,
        status_code=upstream.status_code,
        media_type=upstream.content_type,
    )
