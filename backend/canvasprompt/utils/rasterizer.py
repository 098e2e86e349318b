"""Pillow rendering surface for scene objects.

Not pixel-faithful to any browser canvas; it draws each object's rendered
shapely geometry so the capture pipeline can run headless and produce real
JPEG bytes.
"""

from __future__ import annotations

import base64
import io
import logging
from collections.abc import Callable

from PIL import Image, ImageColor, ImageDraw, ImageFont
from shapely.geometry.base import BaseGeometry

from canvasprompt.scene.objects import ObjectKind, SceneObject
from canvasprompt.scene.scene import Scene
from canvasprompt.utils.geometry import BBox, place_geometry

logger = logging.getLogger(__name__)

_CANVAS_BACKGROUND = "#0d0d0d"
_MISSING_IMAGE_FILL = (200, 200, 200)
# Longest rasterized side; guards against runaway multipliers.
_MAX_PIXELS_SIDE = 8192

Point = tuple[float, float]


def _color(value) -> tuple[int, ...] | None:
    if value is None or value == "" or value == "transparent":
        return None
    if isinstance(value, (tuple, list)):
        return tuple(int(v) for v in value)
    try:
        return ImageColor.getrgb(str(value))
    except ValueError:
        logger.debug("Unparseable colour %r, skipping", value)
        return None


def decode_image_src(src: str) -> Image.Image:
    """Decode a base64 payload or ``data:`` URL into a Pillow image."""
    if src.startswith("data:"):
        src = src.split(",", 1)[1]
    return Image.open(io.BytesIO(base64.b64decode(src)))


def _polygons(geom: BaseGeometry):
    if geom is None or geom.is_empty:
        return
    if geom.geom_type == "Polygon":
        yield geom
    elif geom.geom_type in ("MultiPolygon", "GeometryCollection"):
        for g in geom.geoms:
            yield from _polygons(g)


class PillowSurface:
    """RenderSurface over a live Scene."""

    def __init__(self, scene: Scene, background: str = _CANVAS_BACKGROUND) -> None:
        self.scene = scene
        self.background = _color(background) or (0, 0, 0)
        self.frames = 0
        self._frame: list[SceneObject] = []

    def render(self) -> None:
        self._frame = [o for o in self.scene.objects if o.visible]
        self.frames += 1

    def rasterize(self, region: BBox, multiplier: float, quality: int = 95) -> bytes:
        w = max(1, min(_MAX_PIXELS_SIDE, round(region.width * multiplier)))
        h = max(1, min(_MAX_PIXELS_SIDE, round(region.height * multiplier)))
        img = Image.new("RGB", (w, h), self.background)
        draw = ImageDraw.Draw(img, "RGBA")

        def to_px(x: float, y: float) -> Point:
            return ((x - region.left) * multiplier, (y - region.top) * multiplier)

        for obj in self._frame:
            self._draw_object(img, draw, obj, to_px, multiplier)
        self._mask_outside_clip(draw, to_px, w, h)

        buf = io.BytesIO()
        img.save(buf, format="JPEG", quality=quality)
        return buf.getvalue()

    # -- drawing --

    def _draw_object(
        self,
        img: Image.Image,
        draw: ImageDraw.ImageDraw,
        obj: SceneObject,
        to_px: Callable[[float, float], Point],
        m: float,
    ) -> None:
        if obj.kind is ObjectKind.IMAGE:
            self._draw_image(img, draw, obj, to_px, m)
        elif obj.kind is ObjectKind.MARKER:
            self._draw_marker(draw, obj, to_px, m)
        elif obj.kind is ObjectKind.TEXT:
            self._draw_text(draw, obj, to_px)
        elif obj.kind is ObjectKind.STROKE:
            _draw_geometry(draw, obj.rendered_geometry(), to_px, fill=_color(obj.stroke))
        elif obj.kind is ObjectKind.SHAPE and obj.props.get("shape") in ("arrow", "line"):
            _draw_geometry(draw, obj.rendered_geometry(), to_px, fill=_color(obj.stroke or obj.fill))
        else:
            _draw_geometry(
                draw,
                obj.rendered_geometry(),
                to_px,
                fill=_color(obj.fill),
                outline=_color(obj.stroke),
                width=max(1, round(obj.stroke_width * m)) if obj.stroke else 0,
            )

    def _draw_image(self, img, draw, obj: SceneObject, to_px, m: float) -> None:
        rect = obj.bounding_rect()
        src = obj.props.get("src")
        if src:
            pic = decode_image_src(src).convert("RGBA")
            size = (max(1, round(obj.rendered_width * m)), max(1, round(obj.rendered_height * m)))
            pic = pic.resize(size)
            if obj.angle:
                pic = pic.rotate(-obj.angle, expand=True)
            x, y = to_px(rect.left, rect.top)
            img.paste(pic, (round(x), round(y)), pic)
        else:
            _draw_geometry(draw, obj.rendered_geometry(), to_px, fill=_MISSING_IMAGE_FILL)
        if obj.stroke and obj.stroke_width:
            _draw_geometry(
                draw,
                obj.rendered_geometry(),
                to_px,
                outline=_color(obj.stroke),
                width=max(1, round(obj.stroke_width * m)),
            )

    def _draw_marker(self, draw, obj: SceneObject, to_px, m: float) -> None:
        from canvasprompt.scene import fov

        styles = {
            "cone": {"fill": fov.CONE_FILL, "outline": _color(fov.EYE_COLOR), "width": max(1, round(2 * m))},
            "arrow_line": {"fill": _color(fov.ARROW_COLOR)},
            "arrow_head": {"fill": _color(fov.ARROW_COLOR)},
            "eye": {"fill": _color(fov.EYE_COLOR), "outline": (255, 255, 255), "width": max(1, round(3 * m))},
            "pupil": {"fill": _color(fov.PUPIL_COLOR)},
        }
        for name, part in fov.marker_parts(obj).drawing_order():
            placed = place_geometry(part, obj.left, obj.top, angle=obj.angle)
            _draw_geometry(draw, placed, to_px, **styles[name])

    def _draw_text(self, draw, obj: SceneObject, to_px) -> None:
        rect = obj.bounding_rect()
        draw.text(
            to_px(rect.left, rect.top),
            str(obj.props.get("text", "")),
            fill=_color(obj.fill) or (255, 0, 0),
            font=ImageFont.load_default(),
        )

    def _mask_outside_clip(self, draw, to_px, w: int, h: int) -> None:
        clip = self.scene.clip_region
        if clip is None:
            return
        x0, y0 = to_px(clip.left, clip.top)
        x1, y1 = to_px(clip.right, clip.bottom)
        bg = self.background
        if y0 > 0:
            draw.rectangle([0, 0, w, y0], fill=bg)
        if y1 < h:
            draw.rectangle([0, y1, w, h], fill=bg)
        if x0 > 0:
            draw.rectangle([0, 0, x0, h], fill=bg)
        if x1 < w:
            draw.rectangle([x1, 0, w, h], fill=bg)


def _draw_geometry(
    draw: ImageDraw.ImageDraw,
    geom: BaseGeometry,
    to_px: Callable[[float, float], Point],
    fill=None,
    outline=None,
    width: int = 0,
) -> None:
    for poly in _polygons(geom):
        ring = [to_px(x, y) for x, y in poly.exterior.coords]
        if len(ring) < 3:
            continue
        if fill is not None:
            draw.polygon(ring, fill=fill)
        if outline is not None and width > 0:
            draw.line(ring, fill=outline, width=width, joint="curve")
