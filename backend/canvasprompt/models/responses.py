"""API response models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    sessions: int = 0


class ModelEntry(BaseModel):
    id: str
    name: str


class ModelsResponse(BaseModel):
    models: list[ModelEntry] = Field(default_factory=list)
    default: str = ""


class SceneResponse(BaseModel):
    session_id: str
    objects: list[dict[str, Any]] = Field(default_factory=list)
    can_undo: bool = False
    can_redo: bool = False
    generating: bool = False
    has_manual_reference: bool = False


class ObjectResponse(BaseModel):
    object: dict[str, Any]
    bounding_rect: dict[str, float]


class HistoryResponse(BaseModel):
    applied: bool
    can_undo: bool
    can_redo: bool


class ClearResponse(BaseModel):
    removed: int


class FovDataResponse(BaseModel):
    object_id: str
    x: float
    y: float
    heading_degrees: float
    heading: str
    angle_degrees: float
    length_units: float
    far_left: tuple[float, float]
    far_right: tuple[float, float]


class PrepareResponse(BaseModel):
    prompt: str
    model: str
    aspect_ratio: str
    resolution: str
    image_count: int
    reference_count: int
    clean_image: str = Field(..., description="Base64 JPEG, image 1")
    marked_image: str = Field(..., description="Base64 JPEG, image 2")


class ExecuteResponse(BaseModel):
    image: str | None = Field(default=None, description="Result as a data URL")
    text: str | None = None
    gallery_id: str | None = None
    placed_object_id: str | None = None


class GalleryEntry(BaseModel):
    id: str
    prompt: str = ""
    model: str = ""
    ratio: str = ""
    created_at: str = ""


class GalleryImageResponse(GalleryEntry):
    data_url: str
