"""Design + QR composition and AR target publishing."""

from .errors import (
    CompilationFailedError,
    CompositionError,
    DownloadFailedError,
    ImageDecodeError,
    InvalidDimensionError,
    InvalidPlacementError,
    PhygitalError,
    PipelineStageError,
    UploadFailedError,
)
from .mapping import map_to_full_resolution
from .models import (
    ARTarget,
    AssetType,
    CompositeArtifact,
    PublishResult,
    QRPlacement,
    ResourceClass,
    UploadRecord,
    Viewport,
)
from .pipeline import PhygitalPipeline

__all__ = [
    "ARTarget",
    "AssetType",
    "CompilationFailedError",
    "CompositeArtifact",
    "CompositionError",
    "DownloadFailedError",
    "ImageDecodeError",
    "InvalidDimensionError",
    "InvalidPlacementError",
    "PhygitalError",
    "PhygitalPipeline",
    "PipelineStageError",
    "PublishResult",
    "QRPlacement",
    "ResourceClass",
    "UploadFailedError",
    "UploadRecord",
    "Viewport",
    "map_to_full_resolution",
]
