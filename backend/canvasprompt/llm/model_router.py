"""Model catalogue and per-model request options."""

from __future__ import annotations

from dataclasses import dataclass

from canvasprompt.config import settings


@dataclass(frozen=True)
class ModelInfo:
    id: str
    name: str
    # Image models accept imageConfig and answer with image parts.
    image_output: bool = True


MODELS: list[ModelInfo] = [
    ModelInfo(id="gemini-3-pro-image-preview", name="Gemini 3 Pro Image (Preview)"),
]

RESOLUTIONS = ("1K", "2K", "4K")
DEFAULT_RESOLUTION = "1K"
DEFAULT_ASPECT_RATIO = "1:1"

# Substrings that mark a model id as image-capable.
_IMAGE_MODEL_MARKERS = ("gemini-3-pro-image-preview", "gemini-2.5-flash-image")


def list_models() -> list[ModelInfo]:
    return list(MODELS)


def get_default_model() -> str:
    return settings.default_model or MODELS[0].id


def is_image_model(model_id: str) -> bool:
    return any(marker in model_id for marker in _IMAGE_MODEL_MARKERS)


def resolve_image_size(model_id: str, resolution: str | None) -> str:
    """Requested output size, with 4K downgraded to 2K for flash models."""
    size = resolution if resolution in RESOLUTIONS else DEFAULT_RESOLUTION
    if "flash" in model_id and size == "4K":
        return "2K"
    return size
