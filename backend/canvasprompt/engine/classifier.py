"""Role classifier — splits the scene into content, annotation and reference groups.

Content is what the clean image shows. References are extra images sent as
style guides. Everything else (shapes, text, strokes, the FOV marker) is
annotation and only appears in the marked image.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from canvasprompt.errors import EmptyBaseError, EmptyCanvasError
from canvasprompt.scene.objects import ObjectKind, SceneObject
from canvasprompt.scene.scene import Scene
from canvasprompt.utils.geometry import BBox

logger = logging.getLogger(__name__)


@dataclass
class RoleClassification:
    objects: list[SceneObject]
    content: list[SceneObject]
    references: list[SceneObject]
    annotations: list[SceneObject]
    clean_bbox: BBox
    marked_bbox: BBox
    has_tagged_base: bool = False
    fov_marker: SceneObject | None = None
    implicit_base: SceneObject | None = None
    content_ids: set[str] = field(default_factory=set)

    def is_content(self, obj: SceneObject) -> bool:
        return obj.id in self.content_ids


def _is_image(obj: SceneObject) -> bool:
    return obj.kind is ObjectKind.IMAGE and not obj.is_fov_marker


def rank_by_area(images: list[SceneObject]) -> list[SceneObject]:
    """Largest rendered area first. ``sorted`` is stable, so ties keep scene order."""
    return sorted(images, key=lambda o: o.rendered_area, reverse=True)


def classify_roles(objects: list[SceneObject]) -> RoleClassification:
    """Partition ``objects`` (workspace excluded automatically) into roles.

    Raises EmptyCanvasError when nothing is placed and EmptyBaseError when
    no object can serve as the base content.
    """
    placed = [o for o in objects if not o.is_workspace]
    if not placed:
        raise EmptyCanvasError()

    has_tagged_base = any(o.is_base_image for o in placed)
    images = [o for o in placed if _is_image(o)]
    implicit_base: SceneObject | None = None

    if has_tagged_base:
        content = [o for o in placed if o.is_base_image]
        references = [o for o in images if not o.is_base_image]
    else:
        ranked = rank_by_area(images)
        implicit_base = ranked[0] if ranked else None
        # A single untagged image is the base with zero references.
        references = [o for o in images if o is not implicit_base]
        content = [implicit_base] if implicit_base is not None else []

    if not content:
        raise EmptyBaseError()

    content_ids = {o.id for o in content}
    reference_ids = {o.id for o in references}
    annotations = [o for o in placed if o.id not in content_ids and o.id not in reference_ids]
    fov_marker = next((o for o in reversed(placed) if o.is_fov_marker), None)

    result = RoleClassification(
        objects=placed,
        content=content,
        references=references,
        annotations=annotations,
        clean_bbox=Scene.bounding_box_of(content),
        marked_bbox=Scene.bounding_box_of(placed),
        has_tagged_base=has_tagged_base,
        fov_marker=fov_marker,
        implicit_base=implicit_base,
        content_ids=content_ids,
    )
    logger.info(
        "Classified %d objects: %d content, %d reference, %d annotation (tagged base: %s)",
        len(placed),
        len(content),
        len(references),
        len(annotations),
        has_tagged_base,
    )
    return result


def classify_scene(scene: Scene) -> RoleClassification:
    return classify_roles(scene.placed_objects())
