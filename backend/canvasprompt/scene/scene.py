"""Scene — owns every placed object, their z-order and the workspace invariant.

Every structural mutation notifies subscribers (the history engine, autosave).
Visibility and stroke toggles made by the capture pipeline go straight to the
objects and are deliberately not notifications.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import replace

from canvasprompt.errors import InvalidRoleError, ObjectNotFoundError
from canvasprompt.scene.objects import (
    BASE_BORDER_COLOR,
    BASE_BORDER_WIDTH,
    WORKSPACE_SIZE,
    ObjectKind,
    Roles,
    SceneObject,
    Transform,
    make_workspace,
)
from canvasprompt.utils.geometry import BBox, clamp, union_bboxes

logger = logging.getLogger(__name__)

ChangeListener = Callable[[str, "SceneObject | None"], None]

OBJECT_ADDED = "object:added"
OBJECT_REMOVED = "object:removed"
OBJECT_MODIFIED = "object:modified"
SCENE_LOADED = "scene:loaded"
SCENE_CHANGED = "scene:changed"

# Objects may not be dragged further than half the workspace from its centre.
_MOVE_LIMIT = WORKSPACE_SIZE / 2


class Scene:
    """Ordered collection of scene objects; index 0 is the bottom of z-order."""

    def __init__(self, objects: list[SceneObject] | None = None) -> None:
        self._objects: list[SceneObject] = list(objects or [])
        self._listeners: list[ChangeListener] = []
        self._batch_depth = 0
        self._batch_dirty = False
        self.clip_region: BBox | None = None
        self.ensure_workspace()

    # -- access --

    @property
    def objects(self) -> list[SceneObject]:
        return list(self._objects)

    def __len__(self) -> int:
        return len(self._objects)

    def __iter__(self) -> Iterator[SceneObject]:
        return iter(list(self._objects))

    def get(self, object_id: str) -> SceneObject | None:
        for obj in self._objects:
            if obj.id == object_id:
                return obj
        return None

    def require(self, object_id: str) -> SceneObject:
        obj = self.get(object_id)
        if obj is None:
            raise ObjectNotFoundError(object_id)
        return obj

    def index_of(self, obj: SceneObject) -> int:
        return self._objects.index(obj)

    @property
    def workspace(self) -> SceneObject | None:
        for obj in self._objects:
            if obj.is_workspace:
                return obj
        return None

    def placed_objects(self) -> list[SceneObject]:
        """Every object except the workspace background, in z-order."""
        return [o for o in self._objects if not o.is_workspace]

    def query_by_role(self, predicate: Callable[[SceneObject], bool]) -> list[SceneObject]:
        return [o for o in self._objects if predicate(o)]

    @staticmethod
    def bounding_box_of(objects: list[SceneObject]) -> BBox:
        """Smallest AABB covering the rendered rects of ``objects``.

        Raises ValueError for an empty list.
        """
        if not objects:
            raise ValueError("bounding_box_of() needs at least one object")
        return union_bboxes(o.bounding_rect() for o in objects)

    # -- notifications --

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, event: str, obj: SceneObject | None) -> None:
        if self._batch_depth:
            self._batch_dirty = True
            return
        for listener in list(self._listeners):
            listener(event, obj)

    @contextmanager
    def batch(self) -> Iterator[Scene]:
        """Group several mutations into one ``scene:changed`` notification."""
        self._batch_depth += 1
        try:
            yield self
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0 and self._batch_dirty:
                self._batch_dirty = False
                self._notify(SCENE_CHANGED, None)

    # -- structural mutations --

    def add_object(self, obj: SceneObject) -> SceneObject:
        if obj.is_workspace:
            raise InvalidRoleError("The scene already owns its workspace background")
        if self.get(obj.id) is not None:
            raise ValueError(f"Duplicate scene object id {obj.id!r}")
        self._objects.append(obj)
        logger.debug("Added %s %s", obj.kind.value, obj.id)
        self._notify(OBJECT_ADDED, obj)
        return obj

    def remove_object(self, object_id: str) -> bool:
        """Remove an object. Removing the workspace is a no-op returning False."""
        obj = self.require(object_id)
        if obj.is_workspace:
            logger.debug("Refusing to remove the workspace background")
            return False
        self._objects.remove(obj)
        logger.debug("Removed %s %s", obj.kind.value, obj.id)
        self._notify(OBJECT_REMOVED, obj)
        return True

    def set_role(self, object_id: str, roles: Roles) -> SceneObject:
        """Replace an object's role flags. Toggling base adds/removes its border."""
        obj = self.require(object_id)
        if obj.is_workspace or roles.is_workspace:
            raise InvalidRoleError("The workspace role cannot be reassigned")
        was_base = obj.is_base_image
        obj.with_roles(roles)
        if roles.is_base_image and not was_base:
            obj.stroke = BASE_BORDER_COLOR
            obj.stroke_width = BASE_BORDER_WIDTH
        elif was_base and not roles.is_base_image:
            obj.stroke = None
            obj.stroke_width = 0.0
        self._notify(OBJECT_MODIFIED, obj)
        return obj

    def set_transform(self, object_id: str, transform: Transform) -> SceneObject:
        obj = self.require(object_id)
        if obj.is_workspace:
            raise InvalidRoleError("The workspace background cannot be moved")
        if obj.kind is ObjectKind.MARKER:
            # Markers are rotate/move only.
            transform = replace(transform, scale_x=1.0, scale_y=1.0)
        obj.apply_transform(self.clamped(transform))
        self._notify(OBJECT_MODIFIED, obj)
        return obj

    def nudge(self, object_id: str, dx: float, dy: float) -> SceneObject:
        obj = self.require(object_id)
        t = obj.transform
        return self.set_transform(object_id, replace(t, left=t.left + dx, top=t.top + dy))

    def clear(self) -> int:
        """Soft clear: remove everything except the workspace."""
        removed = 0
        with self.batch():
            for obj in reversed(self.placed_objects()):
                if self.remove_object(obj.id):
                    removed += 1
        return removed

    def load(self, objects: list[SceneObject]) -> None:
        """Replace the whole scene (history replay, store restore)."""
        self._objects = list(objects)
        self.ensure_workspace()
        self._notify(SCENE_LOADED, None)

    # -- z-order --

    def bring_forward(self, object_id: str) -> SceneObject:
        obj = self.require(object_id)
        idx = self.index_of(obj)
        if idx < len(self._objects) - 1:
            self._objects[idx], self._objects[idx + 1] = self._objects[idx + 1], obj
        return self._z_changed(obj)

    def send_backwards(self, object_id: str) -> SceneObject:
        obj = self.require(object_id)
        idx = self.index_of(obj)
        if idx > 0:
            self._objects[idx], self._objects[idx - 1] = self._objects[idx - 1], obj
        self._pin_workspace()
        return self._z_changed(obj)

    def bring_to_front(self, object_id: str) -> SceneObject:
        obj = self.require(object_id)
        self._objects.remove(obj)
        self._objects.append(obj)
        return self._z_changed(obj)

    def send_to_back(self, object_id: str) -> SceneObject:
        obj = self.require(object_id)
        self._objects.remove(obj)
        self._objects.insert(0, obj)
        self._pin_workspace()
        return self._z_changed(obj)

    def _z_changed(self, obj: SceneObject) -> SceneObject:
        self._notify(OBJECT_MODIFIED, obj)
        return obj

    # -- workspace invariant --

    def ensure_workspace(self) -> SceneObject:
        """Re-tag or synthesize the workspace, pin it to the bottom, reset the clip."""
        workspace = self.workspace
        if workspace is None:
            workspace = next(
                (o for o in self._objects if o.kind is ObjectKind.WORKSPACE),
                None,
            )
        if workspace is None:
            workspace = make_workspace()
            self._objects.insert(0, workspace)
            logger.info("Synthesized workspace background")
        workspace.roles = Roles(is_workspace=True)
        workspace.selectable = False
        workspace.fill = "#ffffff"
        # Extra workspace-kind objects would break the single-workspace rule.
        self._objects = [
            o for o in self._objects if o is workspace or o.kind is not ObjectKind.WORKSPACE
        ]
        self._pin_workspace()
        self.clip_region = workspace.bounding_rect()
        return workspace

    def _pin_workspace(self) -> None:
        workspace = self.workspace
        if workspace is not None and self._objects[0] is not workspace:
            self._objects.remove(workspace)
            self._objects.insert(0, workspace)

    def clamped(self, t: Transform) -> Transform:
        """``t`` with its position held within the workspace move limit."""
        workspace = self.workspace
        if workspace is None:
            return t
        cx, cy = workspace.left, workspace.top
        return replace(
            t,
            left=clamp(t.left, cx - _MOVE_LIMIT, cx + _MOVE_LIMIT),
            top=clamp(t.top, cy - _MOVE_LIMIT, cy + _MOVE_LIMIT),
        )


def scale_to_fit(obj: SceneObject, max_size: float = WORKSPACE_SIZE) -> SceneObject:
    """Uniformly scale down an object whose intrinsic size exceeds ``max_size``."""
    if obj.width > max_size or obj.height > max_size:
        s = min(max_size / obj.width, max_size / obj.height)
        obj.scale_x = s
        obj.scale_y = s
    return obj
