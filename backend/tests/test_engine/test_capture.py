"""Tests for the multi-layer capture pipeline."""

import pytest

from canvasprompt.engine.capture import CaptureConfig, capture_layers, fit_multiplier
from canvasprompt.engine.classifier import classify_scene
from canvasprompt.errors import CaptureError
from canvasprompt.scene.fov import create_fov_marker
from canvasprompt.utils.geometry import BBox
from tests.conftest import FakeSurface, make_image, make_rect


@pytest.fixture
def staged(scene):
    plan = scene.add_object(make_image(1000, 500, left=0, top=0, base=True))
    chair = scene.add_object(make_image(100, 50, left=1500, top=0))
    note = scene.add_object(make_rect(left=200, top=200))
    marker = create_fov_marker(scene, 400, 300)
    return scene, plan, chair, note, marker


def test_clean_marked_and_reference_layers(staged):
    scene, plan, chair, note, marker = staged
    surface = FakeSurface(scene)
    captured = capture_layers(classify_scene(scene), surface)

    assert captured.clean == b"image-0"
    assert captured.marked == b"image-1"
    assert captured.references == [b"image-2"]

    clean, marked, ref = surface.calls
    ws = scene.workspace.id
    assert set(clean["visible"]) == {ws, plan.id}
    assert set(marked["visible"]) == {ws, plan.id, chair.id, note.id, marker.id}
    assert set(ref["visible"]) == {ws, chair.id}


def test_clean_capture_strips_base_border(staged):
    scene, plan, *_ = staged
    surface = FakeSurface(scene)
    capture_layers(classify_scene(scene), surface)
    clean, marked, _ = surface.calls
    assert clean["strokes"][plan.id] is None
    assert marked["strokes"][plan.id] == "#4CAF50"


def test_regions_and_multipliers(staged):
    scene, plan, chair, *_ = staged
    surface = FakeSurface(scene)
    result = classify_scene(scene)
    capture_layers(result, surface)
    clean, marked, ref = surface.calls

    assert clean["region"] == BBox(0, 0, 1000, 500)
    assert clean["multiplier"] == pytest.approx(4096 / 1000)
    assert clean["quality"] == 95
    assert marked["region"] == result.marked_bbox
    assert marked["multiplier"] == pytest.approx(4096 / result.marked_bbox.longer_side)
    assert ref["region"] == BBox(1500, 0, 100, 50)
    # 2048 / 100 would be 20.48; references are capped at 2x.
    assert ref["multiplier"] == pytest.approx(2.0)
    assert ref["quality"] == 90


def test_state_restored_after_success(staged):
    scene, plan, *_ = staged
    hidden = scene.add_object(make_rect(left=900, top=900))
    hidden.visible = False
    before = {o.id: (o.visible, o.stroke, o.stroke_width) for o in scene.objects}

    capture_layers(classify_scene(scene), FakeSurface(scene))

    after = {o.id: (o.visible, o.stroke, o.stroke_width) for o in scene.objects}
    assert after == before


@pytest.mark.parametrize("fail_on", [0, 1, 2])
def test_state_restored_after_failure(staged, fail_on):
    scene, plan, *_ = staged
    before = {o.id: (o.visible, o.stroke, o.stroke_width) for o in scene.objects}

    with pytest.raises(CaptureError):
        capture_layers(classify_scene(scene), FakeSurface(scene, fail_on=fail_on))

    after = {o.id: (o.visible, o.stroke, o.stroke_width) for o in scene.objects}
    assert after == before
    assert plan.stroke == "#4CAF50"


def test_capture_does_not_touch_history(staged, history):
    scene = staged[0]
    count = len(history.snapshots)
    capture_layers(classify_scene(scene), FakeSurface(scene))
    assert len(history.snapshots) == count


def test_custom_target_size(scene):
    scene.add_object(make_image(200, 100, left=0, top=0))
    surface = FakeSurface(scene)
    capture_layers(classify_scene(scene), surface, CaptureConfig(target_size=512))
    assert surface.calls[0]["multiplier"] == pytest.approx(2.56)


def test_fit_multiplier_rejects_degenerate_region():
    with pytest.raises(CaptureError):
        fit_multiplier(BBox(0, 0, 0, 0), 4096)


def test_captured_images_base64():
    from canvasprompt.engine.capture import CapturedImages

    captured = CapturedImages(clean=b"abc", marked=b"xyz", references=[b"r"])
    assert captured.clean_b64 == "YWJj"
    assert captured.references_b64 == ["cg=="]
