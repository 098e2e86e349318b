"""Gallery of generated images."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from canvasprompt.dependencies import get_session, get_store
from canvasprompt.engine.generation import place_image
from canvasprompt.engine.session import Session
from canvasprompt.models.responses import GalleryEntry, GalleryImageResponse, ObjectResponse
from canvasprompt.scene.serializer import object_to_dict
from canvasprompt.store import Store

router = APIRouter()


@router.get("/gallery", response_model=list[GalleryEntry])
async def list_gallery(store: Store = Depends(get_store)) -> list[GalleryEntry]:
    return [
        GalleryEntry(id=i.id, prompt=i.prompt, model=i.model, ratio=i.ratio, created_at=i.created_at)
        for i in store.list_images()
    ]


@router.get("/gallery/{image_id}", response_model=GalleryImageResponse)
async def get_gallery_image(image_id: str, store: Store = Depends(get_store)) -> GalleryImageResponse:
    image = store.get_image(image_id)
    if image is None:
        raise HTTPException(status_code=404, detail=f"No gallery image {image_id!r}")
    return GalleryImageResponse(
        id=image.id,
        prompt=image.prompt,
        model=image.model,
        ratio=image.ratio,
        created_at=image.created_at,
        data_url=image.data_url,
    )


@router.delete("/gallery/{image_id}")
async def delete_gallery_image(image_id: str, store: Store = Depends(get_store)) -> dict[str, bool]:
    if not store.delete_image(image_id):
        raise HTTPException(status_code=404, detail=f"No gallery image {image_id!r}")
    return {"deleted": True}


@router.post("/sessions/{session_id}/gallery/{image_id}/place", response_model=ObjectResponse)
async def place_gallery_image(
    image_id: str,
    session: Session = Depends(get_session),
    store: Store = Depends(get_store),
) -> ObjectResponse:
    image = store.get_image(image_id)
    if image is None:
        raise HTTPException(status_code=404, detail=f"No gallery image {image_id!r}")
    obj = place_image(session.scene, image.data_url)
    return ObjectResponse(object=object_to_dict(obj), bounding_rect=obj.bounding_rect().as_dict())
