"""Multi-layer capture — clean, marked and per-reference rasterizations.

The scene is shared with the rendering surface and mutated in place
(visibility, border stroke) while capturing. All of it happens inside
``preserved_state`` so the pre-capture values come back on every exit path,
including a rasterizer exception.
"""

from __future__ import annotations

import base64
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Protocol

from canvasprompt.engine.classifier import RoleClassification
from canvasprompt.errors import CaptureError
from canvasprompt.scene.objects import SceneObject
from canvasprompt.utils.geometry import BBox

logger = logging.getLogger(__name__)


class RenderSurface(Protocol):
    """Rendering capability consumed by the capture pipeline."""

    def render(self) -> None:
        """Bring the surface up to date with current object state."""

    def rasterize(self, region: BBox, multiplier: float, quality: int = 95) -> bytes:
        """Encode ``region`` (workspace units) scaled by ``multiplier`` to image bytes."""


@dataclass
class CaptureConfig:
    target_size: int = 4096
    reference_target_size: int = 2048
    reference_max_multiplier: float = 2.0
    quality: int = 95
    reference_quality: int = 90

    @classmethod
    def from_settings(cls, settings) -> CaptureConfig:
        return cls(
            target_size=settings.capture_target_size,
            reference_target_size=settings.reference_target_size,
            reference_max_multiplier=settings.reference_max_multiplier,
            quality=settings.jpeg_quality,
            reference_quality=settings.reference_jpeg_quality,
        )


@dataclass
class CapturedImages:
    clean: bytes
    marked: bytes
    references: list[bytes] = field(default_factory=list)
    clean_region: BBox | None = None
    marked_region: BBox | None = None

    @staticmethod
    def encode(data: bytes) -> str:
        return base64.b64encode(data).decode("ascii")

    @property
    def clean_b64(self) -> str:
        return self.encode(self.clean)

    @property
    def marked_b64(self) -> str:
        return self.encode(self.marked)

    @property
    def references_b64(self) -> list[str]:
        return [self.encode(r) for r in self.references]


class RestoreToken:
    """Pre-capture visibility and border style of a set of objects."""

    def __init__(self, objects: list[SceneObject], styled: list[SceneObject]) -> None:
        self._visibility = [(o, o.visible) for o in objects]
        self._styles = [(o, o.stroke, o.stroke_width) for o in styled if o.stroke]

    def strip_styles(self) -> None:
        for obj, _, _ in self._styles:
            obj.stroke = None
            obj.stroke_width = 0.0

    def restore_styles(self) -> None:
        for obj, stroke, width in self._styles:
            obj.stroke = stroke
            obj.stroke_width = width

    def restore_visibility(self) -> None:
        for obj, visible in self._visibility:
            obj.visible = visible

    def restore(self) -> None:
        self.restore_styles()
        self.restore_visibility()


@contextmanager
def preserved_state(objects: list[SceneObject], styled: list[SceneObject]) -> Iterator[RestoreToken]:
    token = RestoreToken(objects, styled)
    try:
        yield token
    finally:
        token.restore()


def fit_multiplier(region: BBox, target_size: float, max_multiplier: float | None = None) -> float:
    """Scale that maps the region's longer side onto ``target_size``."""
    longer = region.longer_side
    if longer <= 0:
        raise CaptureError(f"Cannot capture a degenerate region {region}")
    multiplier = target_size / longer
    if max_multiplier is not None:
        multiplier = min(multiplier, max_multiplier)
    return multiplier


def capture_layers(
    classification: RoleClassification,
    surface: RenderSurface,
    config: CaptureConfig | None = None,
) -> CapturedImages:
    """Produce the clean, marked and reference images without altering the scene."""
    config = config or CaptureConfig()
    objects = classification.objects
    try:
        with preserved_state(objects, classification.content) as token:
            # 1. Clean: content only, base border stripped.
            for obj in objects:
                obj.visible = classification.is_content(obj)
            token.strip_styles()
            surface.render()
            clean = surface.rasterize(
                classification.clean_bbox,
                fit_multiplier(classification.clean_bbox, config.target_size),
                quality=config.quality,
            )

            # 2. Marked: everything as the user left it.
            token.restore()
            surface.render()
            marked = surface.rasterize(
                classification.marked_bbox,
                fit_multiplier(classification.marked_bbox, config.target_size),
                quality=config.quality,
            )

            # 3. One image per reference, each cropped to itself.
            references: list[bytes] = []
            for ref in classification.references:
                for obj in objects:
                    obj.visible = False
                ref.visible = True
                surface.render()
                region = ref.bounding_rect()
                references.append(
                    surface.rasterize(
                        region,
                        fit_multiplier(
                            region,
                            config.reference_target_size,
                            config.reference_max_multiplier,
                        ),
                        quality=config.reference_quality,
                    )
                )
    except CaptureError:
        logger.warning("Capture aborted; scene state restored")
        raise
    except Exception as e:
        logger.warning("Capture failed: %s; scene state restored", e)
        raise CaptureError(f"Rasterization failed: {e}") from e

    surface.render()
    logger.info(
        "Captured clean %s, marked %s, %d reference image(s)",
        _fmt(classification.clean_bbox),
        _fmt(classification.marked_bbox),
        len(references),
    )
    return CapturedImages(
        clean=clean,
        marked=marked,
        references=references,
        clean_region=classification.clean_bbox,
        marked_region=classification.marked_bbox,
    )


def _fmt(b: BBox) -> str:
    return f"{b.width:.0f}x{b.height:.0f}@({b.left:.0f},{b.top:.0f})"
