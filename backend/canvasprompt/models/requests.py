"""API request models."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


class CreateSessionRequest(BaseModel):
    session_id: str | None = Field(
        default=None,
        description="Reuse an id to restore its autosaved scene",
    )


class AddObjectRequest(BaseModel):
    kind: Literal["image", "shape", "text", "stroke"]
    width: float = 0.0
    height: float = 0.0
    left: float = 0.0
    top: float = 0.0
    angle: float = 0.0
    scale_x: float = 1.0
    scale_y: float = 1.0
    origin: Literal["center", "top-left"] = "top-left"
    is_base_image: bool = False
    fill: str | None = None
    stroke: str | None = None
    stroke_width: float = 0.0
    props: dict[str, Any] = Field(
        default_factory=dict,
        description="Kind-specific payload: image src, text, points, shape type",
    )


class TransformRequest(BaseModel):
    left: float | None = None
    top: float | None = None
    angle: float | None = None
    scale_x: float | None = None
    scale_y: float | None = None


class RoleRequest(BaseModel):
    is_base_image: bool = False


class LayerRequest(BaseModel):
    direction: Literal["forward", "backward", "front", "back"]


class NudgeRequest(BaseModel):
    dx: int = Field(0, ge=-1, le=1, description="Direction only: -1, 0 or 1")
    dy: int = Field(0, ge=-1, le=1)
    large: bool = Field(False, description="Step 10 units instead of 1")


class CopyRequest(BaseModel):
    object_id: str


class FovCreateRequest(BaseModel):
    left: float
    top: float
    angle: float = 60.0
    length: float = 200.0
    rotation: float = 0.0


class FovUpdateRequest(BaseModel):
    angle: float
    length: float


class ReferenceRequest(BaseModel):
    image: str = Field(..., description="Base64 image or data URL")


class PrepareRequest(BaseModel):
    prompt: str = Field(default="", description="User instruction; empty uses the default")
    aspect_ratio: str = "1:1"
    resolution: Literal["1K", "2K", "4K"] = "1K"
    apply_color: bool = False
    model: str | None = None


class ExecuteRequest(BaseModel):
    api_key: str | None = Field(
        default=None,
        description="Client-side provider key; without one the request goes through the relay",
    )
    place_result: bool = True


class RelayRequest(BaseModel):
    url: str | None = None
    payload: dict[str, Any] | None = None
