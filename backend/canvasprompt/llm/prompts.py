"""Prompt assembly — ordered optional clauses joined into one instruction text.

Clause order is fixed:
  1. user instruction
  2. aspect-ratio reinforcement       (optional)
  3. apply-colour                     (optional)
  4. perspective block                (iff an FOV marker is on the canvas)
  5. style-reference block            (iff at least one reference image)
  6. system footer                    (always)
"""

from __future__ import annotations

from dataclasses import dataclass

from canvasprompt.engine.capture import CapturedImages
from canvasprompt.engine.classifier import RoleClassification
from canvasprompt.scene.fov import FovData
from canvasprompt.utils.geometry import BBox, position_in_parent, position_label

DEFAULT_INSTRUCTION = "Enhance the image and remove visual markers."

ASPECT_RATIO_PHRASES: dict[str, str] = {
    "16:9": "Wide Cinematic 16:9 Aspect Ratio.",
    "9:16": "Tall Vertical 9:16 Aspect Ratio.",
    "4:3": "Standard 4:3 Aspect Ratio.",
    "3:4": "Vertical 3:4 Aspect Ratio.",
    "1:1": "Square 1:1 Aspect Ratio.",
}

APPLY_COLOR_TEXT = "Apply the color."

# Exactly one footer line per reference image carries this label.
REFERENCE_LINE_LABEL = "REFERENCE/STYLE IMAGE"
PERSPECTIVE_HEADER = "PERSPECTIVE VIEW INSTRUCTION:"
STYLE_HEADER = "REFERENCE IMAGES FOR STYLE & FURNITURE:"
FOOTER_HEADER = "*** SYSTEM INSTRUCTIONS ***"


@dataclass(frozen=True)
class PromptClause:
    key: str
    text: str


def instruction_clause(user_text: str) -> PromptClause:
    text = (user_text or "").strip() or DEFAULT_INSTRUCTION
    return PromptClause("instruction", text)


def aspect_ratio_clause(tag: str | None) -> PromptClause | None:
    phrase = ASPECT_RATIO_PHRASES.get(tag or "")
    return PromptClause("aspect_ratio", phrase) if phrase else None


def color_clause(enabled: bool) -> PromptClause | None:
    return PromptClause("color", APPLY_COLOR_TEXT) if enabled else None


def perspective_clause(fov: FovData | None, frame: BBox | None = None) -> PromptClause | None:
    if fov is None:
        return None
    angle = f"{fov.angle_degrees:g}°"
    lines = [
        PERSPECTIVE_HEADER,
        "- This floor plan contains a CAMERA MARKER with these visual elements:",
        "  * CYAN CIRCLE: The exact camera/eye position where you are standing",
        "  * ORANGE ARROW: Points in the EXACT DIRECTION you are looking (this is the viewing direction!)",
        f"  * CYAN CONE/TRIANGLE: Shows the field of view spread ({angle} FOV)",
    ]
    if frame is not None:
        x_pct, y_pct = position_in_parent(fov.x, fov.y, frame)
        lines.append(
            f"- The camera stands at the {position_label(x_pct, y_pct)} of the plan "
            f"({x_pct:.0f}% from the left, {y_pct:.0f}% from the top) and faces "
            f"{fov.heading} ({fov.heading_degrees:.0f}° clockwise from pointing right)."
        )
    lines += [
        "",
        "- Generate a PHOTOREALISTIC INTERIOR PERSPECTIVE VIEW:",
        "  * Stand at the CYAN CIRCLE position",
        "  * Look in the direction the ORANGE ARROW points",
        f"  * The field of view should match the cone angle ({angle})",
        "  * Create an immersive eye-level interior view as if you are physically standing there",
        "",
        "- The orange arrow direction is CRITICAL - it shows exactly where the camera is facing",
        "- Do NOT include the marker graphics (circles, arrows, cone) in the output - they are instructions only",
    ]
    return PromptClause("perspective", "\n".join(lines))


def style_reference_clause(count: int) -> PromptClause | None:
    if count <= 0:
        return None
    lines = [
        STYLE_HEADER,
        f"- {count} reference image(s) are provided alongside the floor plan.",
        "- These images show the DESIRED STYLE, FURNITURE, MATERIALS, and ATMOSPHERE for the result.",
        "- IMPORTANT: Incorporate elements from these reference images into your generated image:",
        "  * Use similar FURNITURE STYLES (sofas, chairs, tables, etc.)",
        "  * Match the MATERIAL FINISHES (wood, marble, fabric, metal)",
        "  * Apply the COLOR PALETTE and LIGHTING MOOD",
        "  * Replicate the INTERIOR DESIGN AESTHETIC",
        "- Do NOT copy their composition or camera framing; the layout comes from Image 1 and Image 2.",
    ]
    return PromptClause("style_reference", "\n".join(lines))


def system_footer_clause(reference_count: int) -> PromptClause:
    total = 2 + reference_count
    lines = [
        FOOTER_HEADER,
        f"You are provided with {total} images:",
        '1. IMAGE 1: The "Clean" original scene (floor plan or base image).',
        '2. IMAGE 2: The "Instruction" layer (Red Arrows, Boxes, Text Labels, Magenta Brush Marks, '
        "Eye Markers) overlaid on the scene.",
    ]
    for i in range(reference_count):
        n = i + 3
        lines.append(
            f"{n}. IMAGE {n}: {REFERENCE_LINE_LABEL} - Use this for furniture, materials, "
            "colors, and design inspiration."
        )
    lines += [
        "",
        "SPECIAL INSTRUCTION - MAGENTA REMOVAL ZONES:",
        "- Any areas marked with BRIGHT MAGENTA color (hex code #FF00FF) indicate regions to "
        "REMOVE and INTELLIGENTLY FILL IN.",
        "- Erase the content/objects in those magenta-painted areas.",
        "- Inpaint naturally based on surrounding context to make it seamless and realistic.",
        "- Remove all traces of the magenta markings themselves.",
        "",
        "ORIENTATION PRESERVATION:",
        "- When replacing or transforming objects, MAINTAIN the same orientation, rotation, and "
        "perspective as the original object.",
        "- New elements must align with the spatial direction and angle of what they are replacing.",
        "- Respect the existing perspective grid and vanishing points in the scene.",
        "",
        "TASK:",
        "- Apply the edits described by the MARKUPS in Image 2 to the context of Image 1.",
        "- The Output must correspond to the Clean Image but with the Requested Changes applied.",
    ]
    if reference_count:
        lines.append(
            "- INCORPORATE the furniture styles, materials, and design aesthetic from the REFERENCE IMAGES."
        )
    lines += [
        "- DO NOT include the red arrows, boxes, text labels, magenta brush marks, or camera "
        "markers in the final result.",
        "- The goal is a high-quality, continuous image that looks like the original but edited.",
    ]
    return PromptClause("system_footer", "\n".join(lines))


def build_clauses(
    classification: RoleClassification,
    captured: CapturedImages,
    fov_data: FovData | None,
    user_text: str,
    aspect_ratio: str | None = None,
    apply_color: bool = False,
) -> list[PromptClause]:
    reference_count = len(captured.references)
    candidates = [
        instruction_clause(user_text),
        aspect_ratio_clause(aspect_ratio),
        color_clause(apply_color),
        perspective_clause(fov_data, classification.clean_bbox),
        style_reference_clause(reference_count),
        system_footer_clause(reference_count),
    ]
    return [c for c in candidates if c is not None]


def join_clauses(clauses: list[PromptClause]) -> str:
    return "\n\n".join(c.text.strip() for c in clauses if c.text.strip())


def assemble_prompt(
    classification: RoleClassification,
    captured: CapturedImages,
    fov_data: FovData | None,
    user_text: str,
    aspect_ratio: str | None = None,
    apply_color: bool = False,
) -> str:
    """Deterministic prompt text for one generation request."""
    return join_clauses(
        build_clauses(classification, captured, fov_data, user_text, aspect_ratio, apply_color)
    )
