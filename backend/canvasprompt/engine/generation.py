"""Generation flow: prepare (classify, capture, prompt) then execute (submit, gallery, place).

prepare is synchronous and leaves a ``GenerationPayload`` on the session.
execute performs the single network call. The session's ``generating`` flag
is held from prepare until execute or cancel finishes, and the pending
payload is discarded on every outcome.
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass, field

from canvasprompt.config import Settings, settings
from canvasprompt.engine.capture import CaptureConfig, CapturedImages, RenderSurface, capture_layers
from canvasprompt.engine.classifier import RoleClassification, classify_scene
from canvasprompt.engine.session import Session
from canvasprompt.errors import GenerationInProgressError, MalformedResponseError, NoPendingPayloadError
from canvasprompt.llm.client import GenerationClient, GenerationResult
from canvasprompt.llm.model_router import DEFAULT_ASPECT_RATIO, DEFAULT_RESOLUTION, get_default_model
from canvasprompt.llm.prompts import assemble_prompt
from canvasprompt.scene.fov import extract_fov_data
from canvasprompt.scene.objects import ObjectKind, Origin, SceneObject
from canvasprompt.scene.scene import Scene, scale_to_fit
from canvasprompt.store import GalleryImage, Store
from canvasprompt.utils.rasterizer import decode_image_src

logger = logging.getLogger(__name__)


@dataclass
class GenerationOptions:
    user_text: str = ""
    aspect_ratio: str = DEFAULT_ASPECT_RATIO
    resolution: str = DEFAULT_RESOLUTION
    apply_color: bool = False
    model: str | None = None


@dataclass
class GenerationPayload:
    prompt: str
    clean_b64: str
    marked_b64: str
    references_b64: list[str] = field(default_factory=list)
    model: str = ""
    aspect_ratio: str = DEFAULT_ASPECT_RATIO
    resolution: str = DEFAULT_RESOLUTION

    @property
    def images(self) -> list[str]:
        """Clean, marked, then references: the order the prompt footer describes."""
        return [self.clean_b64, self.marked_b64, *self.references_b64]


@dataclass
class GenerationOutcome:
    result: GenerationResult
    gallery_image: GalleryImage | None = None
    placed: SceneObject | None = None


def _strip_data_url(data: str) -> str:
    return data.split(",", 1)[1] if data.startswith("data:") else data


def classify_and_capture(
    session: Session,
    surface: RenderSurface,
    config: CaptureConfig | None = None,
) -> tuple[RoleClassification, CapturedImages]:
    """Classify the session's scene, capture every layer, append the manual reference."""
    classification = classify_scene(session.scene)
    captured = capture_layers(classification, surface, config)
    if session.manual_reference:
        captured.references.append(base64.b64decode(_strip_data_url(session.manual_reference)))
    return classification, captured


def prepare_generation(
    session: Session,
    surface: RenderSurface,
    options: GenerationOptions | None = None,
    app_settings: Settings | None = None,
) -> GenerationPayload:
    options = options or GenerationOptions()
    app_settings = app_settings or settings
    if session.generating:
        raise GenerationInProgressError("A generation is already in progress for this session.")

    session.generating = True
    try:
        classification, captured = classify_and_capture(
            session, surface, CaptureConfig.from_settings(app_settings)
        )
        fov_data = (
            extract_fov_data(classification.fov_marker)
            if classification.fov_marker is not None
            else None
        )
        prompt = assemble_prompt(
            classification,
            captured,
            fov_data,
            options.user_text,
            aspect_ratio=options.aspect_ratio,
            apply_color=options.apply_color,
        )
    except Exception:
        session.generating = False
        session.pending_payload = None
        raise

    payload = GenerationPayload(
        prompt=prompt,
        clean_b64=captured.clean_b64,
        marked_b64=captured.marked_b64,
        references_b64=captured.references_b64,
        model=options.model or get_default_model(),
        aspect_ratio=options.aspect_ratio,
        resolution=options.resolution,
    )
    session.pending_payload = payload
    logger.info(
        "Prepared generation for session %s: %d image(s), %d prompt chars",
        session.id,
        len(payload.images),
        len(prompt),
    )
    return payload


async def execute_generation(
    session: Session,
    client: GenerationClient,
    store: Store | None = None,
    place_result: bool = True,
) -> GenerationOutcome:
    payload: GenerationPayload | None = session.pending_payload
    if payload is None:
        raise NoPendingPayloadError()
    try:
        result = await client.submit(
            payload.model,
            payload.prompt,
            payload.images,
            aspect_ratio=payload.aspect_ratio,
            resolution=payload.resolution,
        )
        outcome = GenerationOutcome(result=result)
        if result.has_image:
            verify_result_image(result)
            if store is not None:
                outcome.gallery_image = store.save_generated_image(
                    {"prompt": payload.prompt, "model": payload.model, "ratio": payload.aspect_ratio},
                    result.data_url,
                )
            if place_result:
                outcome.placed = place_image(session.scene, result.data_url)
        return outcome
    finally:
        session.pending_payload = None
        session.generating = False


def cancel_generation(session: Session) -> bool:
    """Discard a prepared payload before dispatch. False when nothing was pending."""
    had_payload = session.pending_payload is not None
    session.pending_payload = None
    session.generating = False
    return had_payload


def verify_result_image(result: GenerationResult) -> None:
    """Raise MalformedResponseError unless the returned image data decodes."""
    try:
        with decode_image_src(result.image_data or "") as img:
            img.verify()
    except (binascii.Error, ValueError, OSError) as e:
        raise MalformedResponseError(f"Model returned an undecodable image: {e}") from e


def place_image(scene: Scene, src: str) -> SceneObject:
    """Add an image at the workspace centre, scaled down to fit the workspace."""
    with decode_image_src(src) as img:
        width, height = img.size
    center = scene.workspace.bounding_rect().center if scene.workspace else (0.0, 0.0)
    obj = SceneObject(
        kind=ObjectKind.IMAGE,
        width=float(width),
        height=float(height),
        left=center[0],
        top=center[1],
        origin=Origin.CENTER,
        props={"src": src},
    )
    scale_to_fit(obj)
    return scene.add_object(obj)
