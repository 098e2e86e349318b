"""Scene object model: kinds, role flags, transforms and rendered geometry.

Each object carries its geometry in a local frame whose (0, 0) is the anchor
point. ``place_geometry`` maps it into workspace coordinates using the
object's transform; the axis-aligned bounds of that result are the object's
rendered bounding rect.
"""

from __future__ import annotations

import copy
import enum
import math
import uuid
from dataclasses import dataclass, field, replace
from typing import Any

from shapely import affinity
from shapely.geometry import LineString, Point, Polygon, box
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union

from canvasprompt.errors import InvalidRoleError
from canvasprompt.utils.geometry import BBox, place_geometry

WORKSPACE_SIZE = 4096.0

# Border drawn around an image tagged as base. Display only: stripped before
# the clean capture.
BASE_BORDER_COLOR = "#4CAF50"
BASE_BORDER_WIDTH = 4.0

# Arrow head edge = stroke width x 4.
_ARROW_HEAD_FACTOR = 4.0


class ObjectKind(str, enum.Enum):
    IMAGE = "image"
    SHAPE = "shape"
    TEXT = "text"
    STROKE = "stroke"
    MARKER = "marker"
    WORKSPACE = "workspace"


class Origin(str, enum.Enum):
    CENTER = "center"
    TOP_LEFT = "top-left"


@dataclass(frozen=True)
class Roles:
    """Closed set of role flags. At most one may be set."""

    is_base_image: bool = False
    is_fov_marker: bool = False
    is_workspace: bool = False

    def validate_for(self, kind: ObjectKind) -> None:
        flags = [self.is_base_image, self.is_fov_marker, self.is_workspace]
        if sum(flags) > 1:
            raise InvalidRoleError(f"Conflicting role flags: {self}")
        if self.is_base_image and kind is not ObjectKind.IMAGE:
            raise InvalidRoleError(f"Only images can be base images, not {kind.value}")
        if self.is_fov_marker and kind is not ObjectKind.MARKER:
            raise InvalidRoleError(f"Only markers can be FOV markers, not {kind.value}")
        if self.is_workspace and kind is not ObjectKind.WORKSPACE:
            raise InvalidRoleError(f"Only the workspace background can be the workspace, not {kind.value}")

    def as_dict(self) -> dict[str, bool]:
        return {
            "is_base_image": self.is_base_image,
            "is_fov_marker": self.is_fov_marker,
            "is_workspace": self.is_workspace,
        }


@dataclass(frozen=True)
class Transform:
    left: float = 0.0
    top: float = 0.0
    angle: float = 0.0
    scale_x: float = 1.0
    scale_y: float = 1.0


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass
class SceneObject:
    """A placed entity on the workspace."""

    kind: ObjectKind
    width: float = 0.0
    height: float = 0.0
    left: float = 0.0
    top: float = 0.0
    angle: float = 0.0
    scale_x: float = 1.0
    scale_y: float = 1.0
    origin: Origin = Origin.TOP_LEFT
    roles: Roles = field(default_factory=Roles)
    visible: bool = True
    selectable: bool = True
    fill: str | None = None
    stroke: str | None = None
    stroke_width: float = 0.0
    # Kind-specific payload: image src, text content, stroke points, shape type...
    props: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=_new_id)

    def __post_init__(self) -> None:
        self.kind = ObjectKind(self.kind)
        self.origin = Origin(self.origin)
        self.roles.validate_for(self.kind)

    # -- roles --

    @property
    def is_base_image(self) -> bool:
        return self.roles.is_base_image

    @property
    def is_fov_marker(self) -> bool:
        return self.roles.is_fov_marker

    @property
    def is_workspace(self) -> bool:
        return self.roles.is_workspace

    def with_roles(self, roles: Roles) -> None:
        roles.validate_for(self.kind)
        self.roles = roles

    # -- transform --

    @property
    def transform(self) -> Transform:
        return Transform(
            left=self.left,
            top=self.top,
            angle=self.angle,
            scale_x=self.scale_x,
            scale_y=self.scale_y,
        )

    def apply_transform(self, t: Transform) -> None:
        self.left = t.left
        self.top = t.top
        self.angle = t.angle
        self.scale_x = t.scale_x
        self.scale_y = t.scale_y

    @property
    def rendered_width(self) -> float:
        return self.width * self.scale_x

    @property
    def rendered_height(self) -> float:
        return self.height * self.scale_y

    @property
    def rendered_area(self) -> float:
        """Width x height after scale, ignoring rotation."""
        return self.rendered_width * self.rendered_height

    # -- geometry --

    def local_geometry(self) -> BaseGeometry:
        if self.kind is ObjectKind.MARKER:
            from canvasprompt.scene.fov import marker_geometry

            return marker_geometry(self)
        if self.kind is ObjectKind.STROKE:
            return _stroke_geometry(self)
        if self.kind is ObjectKind.SHAPE:
            geom = _shape_geometry(self)
        else:
            geom = box(0, 0, self.width, self.height)
        if self.origin is Origin.CENTER:
            geom = affinity.translate(geom, xoff=-self.width / 2, yoff=-self.height / 2)
        return geom

    def rendered_geometry(self) -> BaseGeometry:
        return place_geometry(
            self.local_geometry(),
            self.left,
            self.top,
            angle=self.angle,
            scale_x=self.scale_x,
            scale_y=self.scale_y,
        )

    def bounding_rect(self) -> BBox:
        """Rendered axis-aligned bounding rect in workspace coordinates."""
        geom = self.rendered_geometry()
        if geom.is_empty:
            return BBox(self.left, self.top, 0.0, 0.0)
        return BBox.from_bounds(geom.bounds)

    def clone(self, dx: float = 0.0, dy: float = 0.0) -> SceneObject:
        """Deep copy with a fresh id, optionally offset."""
        return replace(
            self,
            props=copy.deepcopy(self.props),
            left=self.left + dx,
            top=self.top + dy,
            id=_new_id(),
        )


def _shape_geometry(obj: SceneObject) -> BaseGeometry:
    shape = obj.props.get("shape", "rect")
    w, h = obj.width, obj.height
    if shape == "ellipse":
        unit = Point(0, 0).buffer(1.0, resolution=32)
        return affinity.translate(
            affinity.scale(unit, xfact=w / 2, yfact=h / 2, origin=(0, 0)),
            xoff=w / 2,
            yoff=h / 2,
        )
    if shape == "polygon":
        pts = obj.props.get("points") or []
        if len(pts) >= 3:
            return Polygon([(float(x), float(y)) for x, y in pts])
        return box(0, 0, w, h)
    if shape in ("arrow", "line"):
        x1, y1, x2, y2 = (float(v) for v in obj.props.get("points", (0, 0, w, h)))
        half = max(obj.stroke_width, 1.0) / 2
        line = LineString([(x1, y1), (x2, y2)]).buffer(half, cap_style="flat")
        if shape == "line":
            return line
        return unary_union([line, arrow_head(x1, y1, x2, y2, max(obj.stroke_width, 1.0))])
    return box(0, 0, w, h)


def arrow_head(x1: float, y1: float, x2: float, y2: float, stroke_width: float) -> Polygon:
    """Isoceles head centred on (x2, y2), pointing along (x1, y1) -> (x2, y2)."""
    size = stroke_width * _ARROW_HEAD_FACTOR
    theta = math.atan2(y2 - y1, x2 - x1)
    ux, uy = math.cos(theta), math.sin(theta)
    px, py = -uy, ux
    tip = (x2 + ux * size / 2, y2 + uy * size / 2)
    base_l = (x2 - ux * size / 2 + px * size / 2, y2 - uy * size / 2 + py * size / 2)
    base_r = (x2 - ux * size / 2 - px * size / 2, y2 - uy * size / 2 - py * size / 2)
    return Polygon([tip, base_l, base_r])


def _stroke_geometry(obj: SceneObject) -> BaseGeometry:
    pts = [(float(x), float(y)) for x, y in obj.props.get("points") or []]
    half = max(obj.stroke_width, 1.0) / 2
    if len(pts) == 0:
        return Point(0, 0).buffer(half)
    if len(pts) == 1:
        return Point(pts[0]).buffer(half)
    return LineString(pts).buffer(half)


def make_workspace(center: tuple[float, float] = (WORKSPACE_SIZE / 2, WORKSPACE_SIZE / 2)) -> SceneObject:
    return SceneObject(
        kind=ObjectKind.WORKSPACE,
        width=WORKSPACE_SIZE,
        height=WORKSPACE_SIZE,
        left=center[0],
        top=center[1],
        origin=Origin.CENTER,
        roles=Roles(is_workspace=True),
        selectable=False,
        fill="#ffffff",
    )
