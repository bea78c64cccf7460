"""Exception hierarchy for the composition pipeline."""

from __future__ import annotations

from typing import Optional


class PhygitalError(RuntimeError):
    """Base class for pipeline failures."""


class InvalidDimensionError(PhygitalError, ValueError):
    """Raised when a viewport or image dimension is zero or negative."""


class InvalidPlacementError(PhygitalError, ValueError):
    """Raised when a QR placement has negative offsets or an empty area."""


class ImageDecodeError(PhygitalError):
    """Raised when an image payload cannot be decoded."""


class CompositionError(PhygitalError):
    """Raised when the overlay cannot be composited onto the design."""


class CompilationFailedError(PhygitalError):
    """Raised when the AR target compiler fails or produces nothing."""

    def __init__(
        self,
        message: str,
        *,
        returncode: Optional[int] = None,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


class UploadFailedError(PhygitalError):
    """Raised when an upload fails permanently or exhausts its retries."""

    def __init__(self, message: str, *, attempts: int = 1) -> None:
        super().__init__(message)
        self.attempts = attempts


class DownloadFailedError(PhygitalError):
    """Raised when a design reference cannot be fetched."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


_STAGE_MESSAGES = {
    "validate": "The QR placement or upload details are invalid.",
    "resolve_design": "We could not load your design image.",
    "map_placement": "The QR position does not fit your design image.",
    "compose": "Failed to process your design image.",
    "upload_composite": "Failed to save your composed design. Please try again.",
}


class PipelineStageError(PhygitalError):
    """Mandatory pipeline stage failed; the cause is chained."""

    def __init__(self, stage: str, message: str) -> None:
        super().__init__(f"{stage}: {message}")
        self.stage = stage

    @property
    def user_message(self) -> str:
        return _STAGE_MESSAGES.get(self.stage, "Failed to process your design image.")


__all__ = [
    "PhygitalError",
    "InvalidDimensionError",
    "InvalidPlacementError",
    "ImageDecodeError",
    "CompositionError",
    "CompilationFailedError",
    "UploadFailedError",
    "DownloadFailedError",
    "PipelineStageError",
]
