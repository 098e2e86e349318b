"""One editing session: a scene, its history and per-session generation state."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from canvasprompt.engine.history import DEFAULT_CAPACITY, HistoryEngine
from canvasprompt.scene import serializer
from canvasprompt.scene.objects import SceneObject
from canvasprompt.scene.scene import Scene
from canvasprompt.store import Store

if TYPE_CHECKING:
    from canvasprompt.engine.generation import GenerationPayload

logger = logging.getLogger(__name__)

PASTE_OFFSET = 20.0


@dataclass
class Session:
    scene: Scene
    history: HistoryEngine
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    store: Store | None = None
    # Prepared but not yet executed generation request.
    pending_payload: GenerationPayload | None = None
    # Uploaded base64 image, sent after the canvas references.
    manual_reference: str | None = None
    clipboard: SceneObject | None = None
    # Set from prepare until execute (or cancel) finishes.
    generating: bool = False

    @classmethod
    def create(
        cls,
        store: Store | None = None,
        capacity: int = DEFAULT_CAPACITY,
        session_id: str | None = None,
    ) -> Session:
        """New session, restoring the autosaved scene for ``session_id`` when present."""
        sid = session_id or uuid.uuid4().hex
        objects: list[SceneObject] = []
        if store is not None:
            saved = store.load_scene(sid)
            if saved:
                objects = serializer.scene_from_dict(saved)
                logger.info("Restored session %s with %d object(s)", sid, len(objects))
        scene = Scene(objects)
        session = cls(scene=scene, history=HistoryEngine(scene, capacity), id=sid, store=store)
        session.history.attach()
        if store is not None:
            scene.subscribe(session._autosave)
        # Initial snapshot so the first edit can be undone.
        session.history.record()
        return session

    def _autosave(self, event: str, obj: SceneObject | None) -> None:
        if self.store is not None:
            self.store.save_scene(self.id, serializer.dumps(self.scene.objects))

    # -- history --

    def record(self) -> bool:
        return self.history.record()

    def undo(self) -> bool:
        return self.history.undo()

    def redo(self) -> bool:
        return self.history.redo()

    # -- clipboard --

    def copy(self, object_id: str) -> SceneObject:
        obj = self.scene.require(object_id)
        self.clipboard = obj.clone()
        return self.clipboard

    def paste(self) -> SceneObject | None:
        """Add a copy of the clipboard offset by +20/+20. None when it is empty."""
        if self.clipboard is None:
            return None
        pasted = self.clipboard.clone(PASTE_OFFSET, PASTE_OFFSET)
        pasted.apply_transform(self.scene.clamped(pasted.transform))
        if pasted.is_fov_marker:
            from canvasprompt.scene.fov import create_fov_marker, fov_parameters

            angle, length = fov_parameters(pasted)
            pasted = create_fov_marker(self.scene, pasted.left, pasted.top, angle, length, pasted.angle)
        else:
            self.scene.add_object(pasted)
        # Repeated pastes cascade instead of stacking.
        self.clipboard.left += PASTE_OFFSET
        self.clipboard.top += PASTE_OFFSET
        return pasted


class SessionRegistry:
    """Sessions by id for the lifetime of the server process."""

    def __init__(self, store: Store | None = None, capacity: int = DEFAULT_CAPACITY) -> None:
        self.store = store
        self.capacity = capacity
        self._sessions: dict[str, Session] = {}

    def create(self, session_id: str | None = None) -> Session:
        session = Session.create(self.store, self.capacity, session_id)
        self._sessions[session.id] = session
        logger.info("Session %s opened", session.id)
        return session

    def get(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def drop(self, session_id: str) -> bool:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.history.detach()
        return True

    def __len__(self) -> int:
        return len(self._sessions)
