"""Leaf-node geometry helpers. No scene or engine imports."""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass

from shapely import affinity
from shapely.geometry.base import BaseGeometry


@dataclass(frozen=True)
class BBox:
    """Axis-aligned rectangle in workspace coordinates (y grows downward)."""

    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def longer_side(self) -> float:
        return max(self.width, self.height)

    @property
    def center(self) -> tuple[float, float]:
        return (self.left + self.width / 2, self.top + self.height / 2)

    @classmethod
    def from_bounds(cls, bounds: tuple[float, float, float, float]) -> BBox:
        xmin, ymin, xmax, ymax = bounds
        return cls(left=xmin, top=ymin, width=xmax - xmin, height=ymax - ymin)

    def union(self, other: BBox) -> BBox:
        left = min(self.left, other.left)
        top = min(self.top, other.top)
        return BBox(
            left=left,
            top=top,
            width=max(self.right, other.right) - left,
            height=max(self.bottom, other.bottom) - top,
        )

    def contains_point(self, x: float, y: float) -> bool:
        return self.left <= x <= self.right and self.top <= y <= self.bottom

    def as_dict(self) -> dict[str, float]:
        return {"left": self.left, "top": self.top, "width": self.width, "height": self.height}


def union_bboxes(boxes: Iterable[BBox]) -> BBox:
    """Smallest box covering every input box. Raises ValueError on empty input."""
    result: BBox | None = None
    for b in boxes:
        result = b if result is None else result.union(b)
    if result is None:
        raise ValueError("union_bboxes() needs at least one box")
    return result


def place_geometry(
    geom: BaseGeometry,
    left: float,
    top: float,
    angle: float = 0.0,
    scale_x: float = 1.0,
    scale_y: float = 1.0,
) -> BaseGeometry:
    """Map a local-frame geometry (anchor at 0,0) into workspace coordinates.

    Order matches the canvas convention: scale, then rotate clockwise by
    ``angle`` degrees about the anchor, then translate the anchor to (left, top).
    """
    g = geom
    if scale_x != 1.0 or scale_y != 1.0:
        g = affinity.scale(g, xfact=scale_x, yfact=scale_y, origin=(0, 0))
    if angle:
        # y points down, so a positive screen angle is a clockwise turn, which
        # is shapely's counter-clockwise rotation in a y-up frame.
        g = affinity.rotate(g, angle, origin=(0, 0))
    return affinity.translate(g, xoff=left, yoff=top)


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def position_in_parent(x: float, y: float, parent: BBox) -> tuple[float, float]:
    """Percent position (0-100) of a point inside a box, clamped to the box."""
    if parent.width < 1 or parent.height < 1:
        return (50.0, 50.0)
    x_pct = clamp((x - parent.left) / parent.width * 100, 0, 100)
    y_pct = clamp((y - parent.top) / parent.height * 100, 0, 100)
    return (x_pct, y_pct)


def position_label(x_pct: float, y_pct: float) -> str:
    """Human-readable thirds label, e.g. 'top-left', 'middle-center'."""
    h = "left" if x_pct < 100 / 3 else ("center" if x_pct < 200 / 3 else "right")
    v = "top" if y_pct < 100 / 3 else ("middle" if y_pct < 200 / 3 else "bottom")
    return f"{v}-{h}"


_HEADINGS = [
    "right",
    "down-right",
    "down",
    "down-left",
    "left",
    "up-left",
    "up",
    "up-right",
]


def normalize_angle(angle: float) -> float:
    """Wrap to [0, 360)."""
    return angle % 360.0


def heading_label(angle: float) -> str:
    """8-way screen direction for a canvas rotation (0 = pointing right)."""
    idx = int(math.floor((normalize_angle(angle) + 22.5) / 45.0)) % 8
    return _HEADINGS[idx]
