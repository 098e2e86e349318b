"""Generation relay client — Gemini ``generateContent`` over httpx.

Two routes:
  direct  POST {base}/models/{model}:generateContent?key=...   (60 s)
  relay   POST {relay_url} with {"url", "payload"}; the relay adds the key  (9 s)

No automatic retry on any failure.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from canvasprompt.config import Settings, settings
from canvasprompt.errors import (
    MalformedResponseError,
    ModelNotFoundError,
    RelayTimeoutError,
    RelayTransportError,
    SafetyBlockError,
    UpstreamRejectedError,
)
from canvasprompt.llm.model_router import (
    DEFAULT_ASPECT_RATIO,
    is_image_model,
    resolve_image_size,
)

logger = logging.getLogger(__name__)

IMAGE_MIME_TYPE = "image/jpeg"
# Marks a relay-side transport failure in the relay error body.
TRANSPORT_FAILURE_STATUS = "TRANSPORT"


@dataclass
class GenerationResult:
    """Either an image (base64) or a text-only answer."""

    image_data: str | None = None
    mime_type: str = IMAGE_MIME_TYPE
    text: str | None = None

    @property
    def has_image(self) -> bool:
        return self.image_data is not None

    @property
    def data_url(self) -> str | None:
        if self.image_data is None:
            return None
        return f"data:{self.mime_type};base64,{self.image_data}"


def build_payload(
    model_id: str,
    prompt: str,
    images: list[str],
    aspect_ratio: str | None = None,
    resolution: str | None = None,
) -> dict[str, Any]:
    """Request body: the prompt text, then every image in order."""
    parts: list[dict[str, Any]] = [{"text": prompt}]
    for data in images:
        parts.append({"inline_data": {"mime_type": IMAGE_MIME_TYPE, "data": data}})
    payload: dict[str, Any] = {"contents": [{"parts": parts}]}
    if is_image_model(model_id):
        payload["generationConfig"] = {
            "responseModalities": ["IMAGE"],
            "imageConfig": {
                "aspect_ratio": aspect_ratio or DEFAULT_ASPECT_RATIO,
                "image_size": resolve_image_size(model_id, resolution),
            },
        }
    return payload


def parse_response(model_id: str, status_code: int, body: bytes | str) -> GenerationResult:
    """Map a provider (or relay) HTTP response onto a result or a RelayError."""
    if status_code == 404:
        raise ModelNotFoundError(model_id)
    if status_code == 504:
        raise RelayTimeoutError("Relay timed out waiting for the provider.")
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError) as e:
        raise MalformedResponseError(f"Invalid JSON from provider (HTTP {status_code})") from e
    if not isinstance(data, dict):
        raise MalformedResponseError("Provider response is not a JSON object")

    error = data.get("error")
    if error:
        if isinstance(error, dict):
            message = error.get("message", "")
            if error.get("status") == TRANSPORT_FAILURE_STATUS:
                raise RelayTransportError(f"Relay could not reach the provider: {message}")
        else:
            message = str(error)
        raise UpstreamRejectedError(f"API Error: {message}")

    candidates = data.get("candidates") or []
    if not isinstance(candidates, list) or not candidates:
        raise MalformedResponseError("No candidates returned.")
    candidate = candidates[0]
    if not isinstance(candidate, dict):
        raise MalformedResponseError("Candidate is not a JSON object")
    if candidate.get("finishReason") == "SAFETY":
        raise SafetyBlockError()

    content = candidate.get("content") or {}
    if not isinstance(content, dict):
        raise MalformedResponseError("Candidate content is not a JSON object")
    parts = content.get("parts") or []
    if not isinstance(parts, list) or not all(isinstance(p, dict) for p in parts):
        raise MalformedResponseError("Candidate parts are not a list of objects")
    image_part = next((p for p in parts if p.get("inline_data") or p.get("inlineData")), None)
    text_part = next((p for p in parts if p.get("text")), None)

    if image_part is not None:
        inline = image_part.get("inlineData") or image_part.get("inline_data")
        if not isinstance(inline, dict):
            raise MalformedResponseError("Inline image part is not a JSON object")
        mime = inline.get("mimeType") or inline.get("mime_type")
        return GenerationResult(
            image_data=inline.get("data", ""),
            mime_type=mime or IMAGE_MIME_TYPE,
            text=text_part.get("text") if text_part else None,
        )
    if text_part is not None:
        logger.info("Model %s returned text only", model_id)
        return GenerationResult(text=text_part["text"])
    raise MalformedResponseError("Model returned unrecognized format.")


class GenerationClient:
    """Submits one generation request per call; routes direct or through the relay."""

    def __init__(
        self,
        app_settings: Settings | None = None,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = app_settings or settings
        self.api_key = api_key
        self.transport = transport

    def with_api_key(self, api_key: str | None) -> GenerationClient:
        return GenerationClient(self.settings, api_key=api_key, transport=self.transport)

    @property
    def route(self) -> str:
        return "direct" if self.api_key else "relay"

    def model_url(self, model_id: str) -> str:
        base = self.settings.provider_base_url.rstrip("/")
        return f"{base}/models/{model_id}:generateContent"

    async def submit(
        self,
        model_id: str,
        prompt: str,
        images: list[str],
        aspect_ratio: str | None = None,
        resolution: str | None = None,
    ) -> GenerationResult:
        payload = build_payload(model_id, prompt, images, aspect_ratio, resolution)
        target = self.model_url(model_id)

        if self.api_key:
            url, body, params = target, payload, {"key": self.api_key}
            timeout = self.settings.direct_timeout_s
        else:
            url, body, params = self.settings.relay_url, {"url": target, "payload": payload}, None
            timeout = self.settings.relay_timeout_s

        logger.info("Generation request (%s): %s, %d image(s)", self.route, model_id, len(images))
        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=timeout) as http:
                response = await http.post(url, json=body, params=params)
        except httpx.TimeoutException as e:
            raise RelayTimeoutError(f"Generation timed out after {timeout:g}s") from e
        except httpx.TransportError as e:
            raise RelayTransportError(f"Could not reach {self.route} endpoint: {e}") from e

        logger.debug("Generation response HTTP %d", response.status_code)
        return parse_response(model_id, response.status_code, response.content)


@dataclass
class RelayResponse:
    status_code: int
    body: bytes
    content_type: str = "application/json"


async def forward_to_provider(
    url: str,
    payload: dict[str, Any],
    api_key: str,
    timeout: float,
    transport: httpx.AsyncBaseTransport | None = None,
) -> RelayResponse:
    """Relay side: POST ``payload`` to ``url`` with the server key injected.

    Upstream status and body pass through untouched. A timeout becomes a
    504 with an ``{"error": {"message"}}`` body; an unreachable provider a
    502 whose error carries ``status: TRANSPORT``.
    """
    try:
        async with httpx.AsyncClient(transport=transport, timeout=timeout) as http:
            response = await http.post(url, json=payload, params={"key": api_key})
    except httpx.TimeoutException:
        logger.warning("Relay: provider timed out after %gs", timeout)
        body = {"error": {"message": f"Gateway Timeout: provider did not answer within {timeout:g}s"}}
        return RelayResponse(504, json.dumps(body).encode())
    except httpx.TransportError as e:
        logger.warning("Relay: transport error %s", e)
        body = {"error": {"message": str(e), "status": TRANSPORT_FAILURE_STATUS}}
        return RelayResponse(502, json.dumps(body).encode())
    return RelayResponse(
        response.status_code,
        response.content,
        response.headers.get("content-type", "application/json"),
    )

