"""Tests for prompt assembly."""

import pytest

from canvasprompt.engine.capture import CapturedImages
from canvasprompt.engine.classifier import classify_roles
from canvasprompt.llm.prompts import (
    APPLY_COLOR_TEXT,
    DEFAULT_INSTRUCTION,
    FOOTER_HEADER,
    PERSPECTIVE_HEADER,
    REFERENCE_LINE_LABEL,
    STYLE_HEADER,
    assemble_prompt,
    build_clauses,
    perspective_clause,
)
from canvasprompt.scene.fov import extract_fov_data, make_fov_marker
from tests.conftest import make_image


@pytest.fixture
def classification():
    return classify_roles([make_image(1000, 1000, left=0, top=0, base=True)])


def _captured(reference_count: int) -> CapturedImages:
    return CapturedImages(
        clean=b"clean",
        marked=b"marked",
        references=[f"ref-{i}".encode() for i in range(reference_count)],
    )


def test_empty_text_uses_default_instruction(classification):
    prompt = assemble_prompt(classification, _captured(0), None, "   ")
    assert prompt.startswith(DEFAULT_INSTRUCTION)


def test_footer_always_present(classification):
    prompt = assemble_prompt(classification, _captured(0), None, "Paint it")
    assert FOOTER_HEADER in prompt
    assert "You are provided with 2 images:" in prompt
    assert "MAGENTA REMOVAL ZONES" in prompt
    assert "#FF00FF" in prompt


@pytest.mark.parametrize("count", [0, 1, 3])
def test_one_footer_line_per_reference(classification, count):
    prompt = assemble_prompt(classification, _captured(count), None, "Paint it")
    assert prompt.count(REFERENCE_LINE_LABEL) == count
    assert f"You are provided with {count + 2} images:" in prompt
    for n in range(3, count + 3):
        assert f"IMAGE {n}: {REFERENCE_LINE_LABEL}" in prompt
    assert (STYLE_HEADER in prompt) == (count > 0)


def test_perspective_block_iff_marker(classification):
    marker = make_fov_marker(250, 750, angle=70, rotation=-90)
    fov = extract_fov_data(marker)
    with_marker = assemble_prompt(classification, _captured(0), fov, "Render it")
    without = assemble_prompt(classification, _captured(0), None, "Render it")
    assert PERSPECTIVE_HEADER in with_marker
    assert PERSPECTIVE_HEADER not in without
    assert "(70° FOV)" in with_marker
    assert "bottom-left" in with_marker
    assert "faces up" in with_marker


def test_perspective_without_frame_skips_position():
    marker = make_fov_marker(10, 10)
    clause = perspective_clause(extract_fov_data(marker))
    assert "% from the left" not in clause.text


def test_aspect_ratio_phrase(classification):
    prompt = assemble_prompt(classification, _captured(0), None, "x", aspect_ratio="9:16")
    assert "Tall Vertical 9:16 Aspect Ratio." in prompt
    unknown = assemble_prompt(classification, _captured(0), None, "x", aspect_ratio="2:1")
    assert "Aspect Ratio." not in unknown


def test_color_clause_is_optional(classification):
    assert APPLY_COLOR_TEXT in assemble_prompt(classification, _captured(0), None, "x", apply_color=True)
    assert APPLY_COLOR_TEXT not in assemble_prompt(classification, _captured(0), None, "x")


def test_clause_order(classification):
    fov = extract_fov_data(make_fov_marker(500, 500))
    clauses = build_clauses(classification, _captured(1), fov, "x", aspect_ratio="1:1", apply_color=True)
    assert [c.key for c in clauses] == [
        "instruction",
        "aspect_ratio",
        "color",
        "perspective",
        "style_reference",
        "system_footer",
    ]


def test_assembly_is_deterministic(classification):
    fov = extract_fov_data(make_fov_marker(500, 500))
    a = assemble_prompt(classification, _captured(2), fov, "Add plants", "16:9", True)
    b = assemble_prompt(classification, _captured(2), fov, "Add plants", "16:9", True)
    assert a == b
