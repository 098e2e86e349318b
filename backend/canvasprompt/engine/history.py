"""History engine — bounded linear undo/redo over full-scene snapshots.

Two states: IDLE and REPLAYING. Restoring a snapshot mutates the scene, and
those mutations notify the engine like any other edit; while REPLAYING they
are dropped so a replay never records itself.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass

from canvasprompt.scene import serializer
from canvasprompt.scene.objects import SceneObject
from canvasprompt.scene.scene import Scene

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 20


class HistoryState(enum.Enum):
    IDLE = "idle"
    REPLAYING = "replaying"


@dataclass(frozen=True)
class HistorySnapshot:
    """Immutable serialized copy of the whole scene."""

    payload: str

    @classmethod
    def of(cls, scene: Scene) -> HistorySnapshot:
        return cls(payload=serializer.dumps(scene.objects))

    def objects(self) -> list[SceneObject]:
        return serializer.scene_from_dict(self.payload)


class HistoryEngine:
    """Snapshot log plus cursor. ``cursor`` indexes the current scene state."""

    def __init__(self, scene: Scene, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("History capacity must be at least 1")
        self.scene = scene
        self.capacity = capacity
        self.snapshots: list[HistorySnapshot] = []
        self.cursor = -1
        self.state = HistoryState.IDLE
        self._unsubscribe: Callable[[], None] | None = None

    # -- wiring --

    def attach(self) -> HistoryEngine:
        """Record on every committed scene mutation."""
        if self._unsubscribe is None:
            self._unsubscribe = self.scene.subscribe(self._on_scene_change)
        return self

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_scene_change(self, event: str, obj: SceneObject | None) -> None:
        self.record()

    # -- queries --

    @property
    def can_undo(self) -> bool:
        return self.cursor > 0

    @property
    def can_redo(self) -> bool:
        return 0 <= self.cursor < len(self.snapshots) - 1

    @property
    def current(self) -> HistorySnapshot | None:
        if 0 <= self.cursor < len(self.snapshots):
            return self.snapshots[self.cursor]
        return None

    # -- operations --

    def record(self) -> bool:
        """Append the current scene. Suppressed (returns False) while replaying."""
        if self.state is HistoryState.REPLAYING:
            return False
        # Prune the redo branch.
        if self.cursor < len(self.snapshots) - 1:
            del self.snapshots[self.cursor + 1 :]
        self.snapshots.append(HistorySnapshot.of(self.scene))
        self.cursor = len(self.snapshots) - 1
        if len(self.snapshots) > self.capacity:
            self.snapshots.pop(0)
            self.cursor -= 1
        logger.debug("History recorded (%d/%d, cursor=%d)", len(self.snapshots), self.capacity, self.cursor)
        return True

    def undo(self) -> bool:
        if self.cursor <= 0:
            return False
        self._replay(self.cursor - 1)
        return True

    def redo(self) -> bool:
        if self.cursor >= len(self.snapshots) - 1:
            return False
        self._replay(self.cursor + 1)
        return True

    def _replay(self, index: int) -> None:
        self.state = HistoryState.REPLAYING
        try:
            self.cursor = index
            # Scene.load re-applies the workspace invariants (role, z-order, clip).
            self.scene.load(self.snapshots[index].objects())
        finally:
            self.state = HistoryState.IDLE
        logger.debug("History restored snapshot %d/%d", index, len(self.snapshots) - 1)
