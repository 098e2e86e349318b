"""Persistence: autosaved scenes and the generated-image gallery.

Two backends behind one protocol. ``InMemoryStore`` for tests and
throwaway servers, ``JsonFileStore`` for a directory on disk:

  {root}/scenes/{key}.json
  {root}/gallery/{image_id}.json    {"id", "data_url", "prompt", "model", "ratio", "created_at"}
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class GalleryImage:
    id: str
    data_url: str
    prompt: str = ""
    model: str = ""
    ratio: str = ""
    created_at: str = field(default_factory=_now)

    @property
    def meta(self) -> dict[str, str]:
        return {"prompt": self.prompt, "model": self.model, "ratio": self.ratio}


class Store(Protocol):
    def save_scene(self, key: str, payload: str) -> None: ...

    def load_scene(self, key: str) -> str | None: ...

    def save_generated_image(self, meta: dict[str, str], data_url: str) -> GalleryImage: ...

    def list_images(self) -> list[GalleryImage]: ...

    def get_image(self, image_id: str) -> GalleryImage | None: ...

    def delete_image(self, image_id: str) -> bool: ...


def _gallery_image(meta: dict[str, str], data_url: str) -> GalleryImage:
    return GalleryImage(
        id=uuid.uuid4().hex,
        data_url=data_url,
        prompt=meta.get("prompt", ""),
        model=meta.get("model", ""),
        ratio=meta.get("ratio", ""),
    )


class InMemoryStore:
    def __init__(self) -> None:
        self._scenes: dict[str, str] = {}
        self._images: dict[str, GalleryImage] = {}

    def save_scene(self, key: str, payload: str) -> None:
        self._scenes[key] = payload

    def load_scene(self, key: str) -> str | None:
        return self._scenes.get(key)

    def save_generated_image(self, meta: dict[str, str], data_url: str) -> GalleryImage:
        image = _gallery_image(meta, data_url)
        self._images[image.id] = image
        return image

    def list_images(self) -> list[GalleryImage]:
        # Newest first.
        return sorted(self._images.values(), key=lambda i: i.created_at, reverse=True)

    def get_image(self, image_id: str) -> GalleryImage | None:
        return self._images.get(image_id)

    def delete_image(self, image_id: str) -> bool:
        return self._images.pop(image_id, None) is not None


class JsonFileStore:
    """One JSON file per scene key and per gallery image."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self._scenes = self.root / "scenes"
        self._gallery = self.root / "gallery"
        self._scenes.mkdir(parents=True, exist_ok=True)
        self._gallery.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _safe(name: str) -> str:
        return name.replace("/", "_").replace("\\", "_").replace("..", "_")

    def save_scene(self, key: str, payload: str) -> None:
        path = self._scenes / f"{self._safe(key)}.json"
        tmp = path.with_suffix(".tmp")
        tmp.write_text(payload, encoding="utf-8")
        tmp.replace(path)

    def load_scene(self, key: str) -> str | None:
        path = self._scenes / f"{self._safe(key)}.json"
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def save_generated_image(self, meta: dict[str, str], data_url: str) -> GalleryImage:
        image = _gallery_image(meta, data_url)
        path = self._gallery / f"{image.id}.json"
        path.write_text(json.dumps(asdict(image)), encoding="utf-8")
        logger.info("Saved generated image %s", image.id)
        return image

    def list_images(self) -> list[GalleryImage]:
        images: list[GalleryImage] = []
        for path in self._gallery.glob("*.json"):
            try:
                images.append(GalleryImage(**json.loads(path.read_text(encoding="utf-8"))))
            except (json.JSONDecodeError, TypeError) as e:
                logger.warning("Skipping unreadable gallery entry %s: %s", path.name, e)
        return sorted(images, key=lambda i: i.created_at, reverse=True)

    def get_image(self, image_id: str) -> GalleryImage | None:
        path = self._gallery / f"{self._safe(image_id)}.json"
        if not path.exists():
            return None
        return GalleryImage(**json.loads(path.read_text(encoding="utf-8")))

    def delete_image(self, image_id: str) -> bool:
        path = self._gallery / f"{self._safe(image_id)}.json"
        if not path.exists():
            return False
        path.unlink()
        return True
