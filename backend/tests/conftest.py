"""Shared test fixtures."""

from __future__ import annotations

import base64
import io

import pytest
from PIL import Image

from canvasprompt.engine.history import HistoryEngine
from canvasprompt.engine.session import Session
from canvasprompt.scene.objects import ObjectKind, Origin, Roles, SceneObject
from canvasprompt.scene.scene import Scene
from canvasprompt.store import InMemoryStore
from canvasprompt.utils.geometry import BBox


def _png_b64(width: int, height: int, color: tuple[int, int, int]) -> str:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="PNG")
    return base64.b64encode(buf.getvalue()).decode("ascii")


RED_PNG_B64 = _png_b64(8, 6, (255, 0, 0))
RED_PNG_DATA_URL = f"data:image/png;base64,{RED_PNG_B64}"
BLUE_PNG_B64 = _png_b64(4, 4, (0, 0, 255))


# -- object builders --


def make_image(
    width: float,
    height: float,
    left: float = 100.0,
    top: float = 100.0,
    base: bool = False,
    src: str | None = None,
    **kwargs,
) -> SceneObject:
    obj = SceneObject(
        kind=ObjectKind.IMAGE,
        width=width,
        height=height,
        left=left,
        top=top,
        roles=Roles(is_base_image=base),
        props={"src": src} if src else {},
        **kwargs,
    )
    if base:
        obj.stroke = "#4CAF50"
        obj.stroke_width = 4.0
    return obj


def make_rect(width: float = 50.0, height: float = 40.0, left: float = 300.0, top: float = 300.0, **kwargs) -> SceneObject:
    return SceneObject(
        kind=ObjectKind.SHAPE,
        width=width,
        height=height,
        left=left,
        top=top,
        fill="transparent",
        stroke="#ff0000",
        stroke_width=3.0,
        props={"shape": "rect"},
        **kwargs,
    )


def make_text(text: str = "sofa here", left: float = 400.0, top: float = 400.0) -> SceneObject:
    return SceneObject(
        kind=ObjectKind.TEXT,
        width=90.0,
        height=20.0,
        left=left,
        top=top,
        origin=Origin.TOP_LEFT,
        fill="#ff0000",
        props={"text": text},
    )


def make_stroke(points: list[tuple[float, float]], width: float = 10.0) -> SceneObject:
    return SceneObject(
        kind=ObjectKind.STROKE,
        stroke="#FF00FF",
        stroke_width=width,
        props={"points": [list(p) for p in points]},
    )


# -- rendering --


class FakeSurface:
    """Records what was visible (and stroked) at every rasterize call."""

    def __init__(self, scene: Scene, fail_on: int | None = None) -> None:
        self.scene = scene
        self.fail_on = fail_on
        self.renders = 0
        self.calls: list[dict] = []
        self._visible: list[str] = []
        self._strokes: dict[str, str | None] = {}

    def render(self) -> None:
        self.renders += 1
        self._visible = [o.id for o in self.scene.objects if o.visible]
        self._strokes = {o.id: o.stroke for o in self.scene.objects}

    def rasterize(self, region: BBox, multiplier: float, quality: int = 95) -> bytes:
        index = len(self.calls)
        self.calls.append(
            {
                "region": region,
                "multiplier": multiplier,
                "quality": quality,
                "visible": list(self._visible),
                "strokes": dict(self._strokes),
            }
        )
        if self.fail_on is not None and index == self.fail_on:
            raise RuntimeError("rasterizer exploded")
        return f"image-{index}".encode()


# -- fixtures --


@pytest.fixture
def scene() -> Scene:
    return Scene()


@pytest.fixture
def history(scene: Scene) -> HistoryEngine:
    engine = HistoryEngine(scene).attach()
    engine.record()
    return engine


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def session(store: InMemoryStore) -> Session:
    return Session.create(store)
