"""Exception hierarchy shared by the engine, the relay client and the API layer."""

from __future__ import annotations


class CanvasPromptError(Exception):
    """Base class for every error raised on purpose by canvasprompt."""


# -- User input (surfaced immediately, never retried) --


class UserInputError(CanvasPromptError):
    """The scene or request cannot be used as given."""


class EmptyCanvasError(UserInputError):
    def __init__(self) -> None:
        super().__init__("Canvas is empty! Draw something on the workspace.")


class EmptyBaseError(UserInputError):
    def __init__(self) -> None:
        super().__init__(
            "No base image found! Add an image or mark one as 'Base'."
        )


class InvalidRoleError(UserInputError, ValueError):
    """A role flag was applied to an object kind that cannot carry it."""


class InvalidFovParametersError(UserInputError, ValueError):
    """FOV angle or length outside the drawable range."""


class ObjectNotFoundError(UserInputError, KeyError):
    def __init__(self, object_id: str) -> None:
        super().__init__(f"No scene object with id {object_id!r}")
        self.object_id = object_id

    def __str__(self) -> str:
        return str(self.args[0])


class GenerationInProgressError(CanvasPromptError):
    """A second generation was triggered while one is still in flight."""


class NoPendingPayloadError(UserInputError):
    def __init__(self) -> None:
        super().__init__("Nothing to generate: prepare a payload first.")


# -- Capture --


class CaptureError(CanvasPromptError):
    """Rasterization failed mid-pipeline. Scene visibility is already restored."""


# -- Relay (terminal for the request, no automatic retry) --


class RelayError(CanvasPromptError):
    status_code: int = 502


class RelayTimeoutError(RelayError):
    status_code = 504


class RelayTransportError(RelayError):
    status_code = 502


class UpstreamRejectedError(RelayError):
    status_code = 502


class ModelNotFoundError(RelayError):
    status_code = 404

    def __init__(self, model_id: str) -> None:
        super().__init__(
            f"Model '{model_id}' not found (404). Access denied or wrong endpoint."
        )
        self.model_id = model_id


class SafetyBlockError(RelayError):
    status_code = 422

    def __init__(self) -> None:
        super().__init__("Blocked by Safety Settings.")


class MalformedResponseError(RelayError):
    status_code = 502


def status_for(exc: CanvasPromptError) -> int:
    """HTTP status an API route answers with for ``exc``."""
    if isinstance(exc, ObjectNotFoundError):
        return 404
    if isinstance(exc, UserInputError):
        return 422
    if isinstance(exc, GenerationInProgressError):
        return 409
    if isinstance(exc, CaptureError):
        return 500
    if isinstance(exc, RelayError):
        return exc.status_code
    return 500
