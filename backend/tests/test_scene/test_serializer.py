"""Tests for scene serialization."""

import json

from canvasprompt.scene import serializer
from canvasprompt.scene.fov import make_fov_marker
from canvasprompt.scene.scene import Scene
from tests.conftest import make_image, make_text


def test_object_dict_uses_plain_values():
    img = make_image(100, 50, base=True, src="abc")
    data = serializer.object_to_dict(img)
    assert data["kind"] == "image"
    assert data["origin"] == "top-left"
    assert data["roles"] == {"is_base_image": True, "is_fov_marker": False, "is_workspace": False}
    assert data["props"] == {"src": "abc"}
    json.dumps(data)


def test_scene_payload_restores_roles_and_ids():
    scene = Scene()
    img = scene.add_object(make_image(100, 50, base=True))
    marker = scene.add_object(make_fov_marker(300, 300, angle=75, rotation=15))
    text = scene.add_object(make_text("window"))

    restored = serializer.scene_from_dict(serializer.dumps(scene.objects))

    by_id = {o.id: o for o in restored}
    assert by_id[img.id].is_base_image
    assert by_id[img.id].stroke == "#4CAF50"
    assert by_id[marker.id].is_fov_marker
    assert by_id[marker.id].props["angle"] == 75
    assert by_id[text.id].props["text"] == "window"
    assert restored[0].is_workspace


def test_dumps_is_deterministic():
    scene = Scene()
    scene.add_object(make_image(10, 10))
    assert serializer.dumps(scene.objects) == serializer.dumps(scene.objects)


def test_scene_dict_is_versioned():
    data = serializer.scene_to_dict(Scene().objects)
    assert data["version"] == 1
    assert len(data["objects"]) == 1
