"""Scene <-> plain dict / JSON. Used by history snapshots and the store."""

from __future__ import annotations

import enum
import json
from typing import Any

from canvasprompt.scene.objects import Roles, SceneObject

SCENE_FORMAT_VERSION = 1

_OBJECT_FIELDS = (
    "id",
    "kind",
    "width",
    "height",
    "left",
    "top",
    "angle",
    "scale_x",
    "scale_y",
    "origin",
    "visible",
    "selectable",
    "fill",
    "stroke",
    "stroke_width",
)


def object_to_dict(obj: SceneObject) -> dict[str, Any]:
    data: dict[str, Any] = {}
    for name in _OBJECT_FIELDS:
        value = getattr(obj, name)
        data[name] = value.value if isinstance(value, enum.Enum) else value
    data["roles"] = obj.roles.as_dict()
    data["props"] = json.loads(json.dumps(obj.props))
    return data


def object_from_dict(data: dict[str, Any]) -> SceneObject:
    kwargs = {name: data[name] for name in _OBJECT_FIELDS if name in data}
    roles = data.get("roles") or {}
    return SceneObject(
        roles=Roles(
            is_base_image=bool(roles.get("is_base_image", False)),
            is_fov_marker=bool(roles.get("is_fov_marker", False)),
            is_workspace=bool(roles.get("is_workspace", False)),
        ),
        props=dict(data.get("props") or {}),
        **kwargs,
    )


def scene_to_dict(objects: list[SceneObject]) -> dict[str, Any]:
    return {
        "version": SCENE_FORMAT_VERSION,
        "objects": [object_to_dict(o) for o in objects],
    }


def scene_from_dict(data: dict[str, Any] | str) -> list[SceneObject]:
    """Parse a serialized scene. Accepts the dict or its JSON text."""
    if isinstance(data, str):
        data = json.loads(data)
    return [object_from_dict(o) for o in data.get("objects", [])]


def dumps(objects: list[SceneObject]) -> str:
    return json.dumps(scene_to_dict(objects), sort_keys=True, separators=(",", ":"))
