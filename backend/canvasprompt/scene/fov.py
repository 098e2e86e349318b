"""Field-of-view camera marker: construction, rebuild and viewing-data extraction.

Local frame: the eye sits at (0, 0) and the view points along +x.

    eye circle + pupil   at the origin
    direction arrow      origin -> 0.7 * length, ending in an arrowhead
    view cone            (0, 0), (length, -length*tan(a/2)), (length, +length*tan(a/2))

The whole composite is then translated to (left, top) and rotated about the
eye by the marker's angle. Markers never scale.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray
from shapely.geometry import LineString, Point, Polygon
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union

from canvasprompt.errors import InvalidFovParametersError
from canvasprompt.scene.objects import ObjectKind, Origin, Roles, SceneObject
from canvasprompt.scene.scene import Scene
from canvasprompt.utils.geometry import heading_label, normalize_angle, place_geometry

logger = logging.getLogger(__name__)

DEFAULT_ANGLE = 60.0
DEFAULT_LENGTH = 200.0

EYE_RADIUS = 14.0
PUPIL_RADIUS = 5.0
# Arrow stops short of the cone's far edge.
ARROW_REACH = 0.7
ARROW_STROKE = 3.0
ARROW_HEAD_WIDTH = 16.0
ARROW_HEAD_LENGTH = 20.0

# Cone spread must stay strictly inside (0, 180) or tan() blows up.
_MIN_ANGLE = 1.0
_MAX_ANGLE = 179.0

EYE_COLOR = "#00BCD4"
PUPIL_COLOR = "#0D47A1"
ARROW_COLOR = "#FF5722"
CONE_FILL = (0, 188, 212, 64)


@dataclass(frozen=True)
class FovParts:
    eye: BaseGeometry
    pupil: BaseGeometry
    arrow_line: BaseGeometry
    arrow_head: BaseGeometry
    cone: BaseGeometry

    def drawing_order(self) -> list[tuple[str, BaseGeometry]]:
        """Bottom to top, matching how the marker is stacked."""
        return [
            ("cone", self.cone),
            ("arrow_line", self.arrow_line),
            ("arrow_head", self.arrow_head),
            ("eye", self.eye),
            ("pupil", self.pupil),
        ]

    def union(self) -> BaseGeometry:
        return unary_union([g for _, g in self.drawing_order()])


@dataclass(frozen=True)
class FovData:
    """Structured viewing data read off a placed marker."""

    x: float
    y: float
    heading_degrees: float
    heading: str
    angle_degrees: float
    length_units: float
    far_left: tuple[float, float]
    far_right: tuple[float, float]


def validate_parameters(angle: float, length: float) -> None:
    if not (_MIN_ANGLE <= angle <= _MAX_ANGLE):
        raise InvalidFovParametersError(
            f"FOV angle must be between {_MIN_ANGLE:g} and {_MAX_ANGLE:g} degrees, got {angle:g}"
        )
    if length <= 0:
        raise InvalidFovParametersError(f"FOV length must be positive, got {length:g}")


def cone_vertices(angle: float, length: float) -> NDArray[np.float64]:
    """Eye, far-left and far-right corners of the view cone in the local frame."""
    spread = length * math.tan(math.radians(angle / 2))
    return np.array([[0.0, 0.0], [length, -spread], [length, spread]])


def build_fov_parts(angle: float = DEFAULT_ANGLE, length: float = DEFAULT_LENGTH) -> FovParts:
    validate_parameters(angle, length)
    reach = length * ARROW_REACH
    head = Polygon(
        [
            (reach + ARROW_HEAD_LENGTH / 2, 0.0),
            (reach - ARROW_HEAD_LENGTH / 2, -ARROW_HEAD_WIDTH / 2),
            (reach - ARROW_HEAD_LENGTH / 2, ARROW_HEAD_WIDTH / 2),
        ]
    )
    return FovParts(
        eye=Point(0, 0).buffer(EYE_RADIUS),
        pupil=Point(0, 0).buffer(PUPIL_RADIUS),
        arrow_line=LineString([(0, 0), (reach, 0)]).buffer(ARROW_STROKE / 2, cap_style="flat"),
        arrow_head=head,
        cone=Polygon(cone_vertices(angle, length)),
    )


def fov_parameters(marker: SceneObject) -> tuple[float, float]:
    return (
        float(marker.props.get("angle", DEFAULT_ANGLE)),
        float(marker.props.get("length", DEFAULT_LENGTH)),
    )


def marker_parts(marker: SceneObject) -> FovParts:
    return build_fov_parts(*fov_parameters(marker))


def marker_geometry(marker: SceneObject) -> BaseGeometry:
    return marker_parts(marker).union()


def make_fov_marker(
    left: float,
    top: float,
    angle: float = DEFAULT_ANGLE,
    length: float = DEFAULT_LENGTH,
    rotation: float = 0.0,
    object_id: str | None = None,
) -> SceneObject:
    validate_parameters(angle, length)
    xmin, ymin, xmax, ymax = build_fov_parts(angle, length).union().bounds
    marker = SceneObject(
        kind=ObjectKind.MARKER,
        width=xmax - xmin,
        height=ymax - ymin,
        left=left,
        top=top,
        angle=rotation,
        origin=Origin.TOP_LEFT,
        roles=Roles(is_fov_marker=True),
        props={"angle": float(angle), "length": float(length)},
    )
    if object_id is not None:
        marker.id = object_id
    return marker


def find_fov_marker(scene: Scene) -> SceneObject | None:
    markers = scene.query_by_role(lambda o: o.is_fov_marker)
    return markers[-1] if markers else None


def create_fov_marker(
    scene: Scene,
    left: float,
    top: float,
    angle: float = DEFAULT_ANGLE,
    length: float = DEFAULT_LENGTH,
    rotation: float = 0.0,
) -> SceneObject:
    """Place a new marker, evicting any marker already in the scene."""
    marker = make_fov_marker(left, top, angle, length, rotation)
    with scene.batch():
        for old in scene.query_by_role(lambda o: o.is_fov_marker):
            scene.remove_object(old.id)
            logger.debug("Evicted FOV marker %s", old.id)
        scene.add_object(marker)
    logger.info("FOV marker placed at (%.0f, %.0f), %g deg / %g units", left, top, angle, length)
    return marker


def set_fov_parameters(scene: Scene, angle: float, length: float) -> SceneObject | None:
    """Rebuild the existing marker with new parameters at its current placement.

    Returns None when the scene has no marker.
    """
    current = find_fov_marker(scene)
    if current is None:
        return None
    validate_parameters(angle, length)
    # Read placement before the old marker is disposed of.
    left, top, rotation, object_id = current.left, current.top, current.angle, current.id
    rebuilt = make_fov_marker(left, top, angle, length, rotation, object_id=object_id)
    with scene.batch():
        scene.remove_object(current.id)
        scene.add_object(rebuilt)
    return rebuilt


def extract_fov_data(marker: SceneObject) -> FovData:
    angle, length = fov_parameters(marker)
    corners = place_geometry(
        LineString(cone_vertices(angle, length)[1:]),
        marker.left,
        marker.top,
        angle=marker.angle,
    )
    (lx, ly), (rx, ry) = list(corners.coords)
    heading = normalize_angle(marker.angle)
    return FovData(
        x=marker.left,
        y=marker.top,
        heading_degrees=heading,
        heading=heading_label(heading),
        angle_degrees=angle,
        length_units=length,
        far_left=(lx, ly),
        far_right=(rx, ry),
    )
