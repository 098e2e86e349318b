"""CanvasPrompt scene engine: history, role classification, capture and sessions."""

from canvasprompt.engine.capture import CapturedImages, CaptureConfig, RenderSurface, capture_layers
from canvasprompt.engine.classifier import RoleClassification, classify_roles, classify_scene
from canvasprompt.engine.history import HistoryEngine, HistorySnapshot, HistoryState
from canvasprompt.engine.session import Session, SessionRegistry

__all__ = [
    "CapturedImages",
    "CaptureConfig",
    "RenderSurface",
    "capture_layers",
    "RoleClassification",
    "classify_roles",
    "classify_scene",
    "HistoryEngine",
    "HistorySnapshot",
    "HistoryState",
    "Session",
    "SessionRegistry",
]
