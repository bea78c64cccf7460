"""Shared data models for the composition pipeline."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

from .errors import InvalidDimensionError, InvalidPlacementError

Number = Union[int, float]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _coerce_number(name: str, value: Any) -> Number:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidPlacementError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise InvalidPlacementError(f"{name} must be finite, got {value!r}")
    return value


@dataclass(frozen=True, slots=True)
class QRPlacement:
    """QR rectangle in pixels, either preview space or full-resolution space."""

    x: Number
    y: Number
    width: Number
    height: Number

    def __post_init__(self) -> None:
        for name in ("x", "y", "width", "height"):
            _coerce_number(name, getattr(self, name))
        if self.x < 0 or self.y < 0:
            raise InvalidPlacementError(
                f"QR placement offsets must be non-negative (x={self.x}, y={self.y})"
            )
        if self.width <= 0 or self.height <= 0:
            raise InvalidPlacementError(
                f"QR placement must have a positive size ({self.width}x{self.height})"
            )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "QRPlacement":
        """Build a placement from a stored ``{x, y, width, height}`` document."""

        missing = [key for key in ("x", "y", "width", "height") if data.get(key) is None]
        if missing:
            raise InvalidPlacementError(f"QR placement is missing {', '.join(missing)}")
        return cls(x=data["x"], y=data["y"], width=data["width"], height=data["height"])

    @property
    def right(self) -> Number:
        return self.x + self.width

    @property
    def bottom(self) -> Number:
        return self.y + self.height

    def to_dict(self) -> Dict[str, Number]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass(frozen=True, slots=True)
class Viewport:
    """Preview canvas the placement was authored against."""

    width: Number
    height: Number

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise InvalidDimensionError(
                f"Preview viewport must be positive ({self.width}x{self.height})"
            )


@dataclass(frozen=True, slots=True)
class CompositeArtifact:
    """Encoded composite image produced by the compositor."""

    data: bytes
    width: int
    height: int
    mime_type: str = "image/png"

    @property
    def byte_size(self) -> int:
        return len(self.data)


@dataclass(frozen=True, slots=True)
class ARTarget:
    """Compiled AR tracking target. The payload is opaque."""

    data: bytes
    generated_at: datetime = field(default_factory=_utcnow)

    @property
    def byte_size(self) -> int:
        return len(self.data)


class AssetType(str, Enum):
    """Folder an asset is stored under; also selects upload behaviour."""

    DESIGN = "design"
    COMPOSITE = "composite-image"
    VIDEO = "video"
    TARGETS = "targets"
    QR_DESIGNS = "qr-designs"
    DOCUMENTS = "documents"


class ResourceClass(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    RAW = "raw"


@dataclass(frozen=True, slots=True)
class UploadRecord:
    """Reference to an object persisted in remote storage."""

    url: str
    object_key: str
    byte_size: int
    content_type: str
    folder: str
    resource_class: ResourceClass
    uploaded_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "objectKey": self.object_key,
            "size": self.byte_size,
            "contentType": self.content_type,
            "folder": self.folder,
            "resourceType": self.resource_class.value,
            "uploadedAt": self.uploaded_at.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class PublishResult:
    """Outcome of one compose-and-publish call."""

    composite_record: UploadRecord
    placement_full: QRPlacement
    composite_width: int
    composite_height: int
    target_record: Optional[UploadRecord] = None
    target_error: Optional[str] = None
    generated_at: datetime = field(default_factory=_utcnow)

    @property
    def target_pending(self) -> bool:
        return self.target_record is None

    def to_document(self) -> Dict[str, Any]:
        """Fields the user/project store persists for the published design."""

        return {
            "compositeUrl": self.composite_record.url,
            "compositeSize": self.composite_record.byte_size,
            "compositeKey": self.composite_record.object_key,
            "targetUrl": self.target_record.url if self.target_record else None,
            "targetSize": self.target_record.byte_size if self.target_record else None,
            "targetKey": self.target_record.object_key if self.target_record else None,
            "targetPending": self.target_pending,
            "targetError": self.target_error,
            "placementFull": self.placement_full.to_dict(),
            "dimensions": {
                "width": self.composite_width,
                "height": self.composite_height,
            },
            "generatedAt": self.generated_at.isoformat(),
        }


__all__ = [
    "ARTarget",
    "AssetType",
    "CompositeArtifact",
    "PublishResult",
    "QRPlacement",
    "ResourceClass",
    "UploadRecord",
    "Viewport",
]
