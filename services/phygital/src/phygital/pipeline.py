"""Compose-and-publish orchestrator."""

from __future__ import annotations

import asyncio
from contextlib import contextmanager
from typing import Any, Callable, Iterable, Iterator, Mapping, Optional, Sequence, Set, Tuple, Union

from common.logging import get_logger

from .errors import PipelineStageError
from .imaging.compositor import ImageSource, compose, probe_dimensions
from .mapping import map_to_full_resolution
from .models import (
    AssetType,
    CompositeArtifact,
    PublishResult,
    QRPlacement,
    UploadRecord,
    Viewport,
)
from .sources import DesignRef, DesignResolver
from .storage.uploader import AssetUploader, UploadOptions, unique_filename
from .targets.generator import ARTargetGenerator

LOGGER = get_logger(__name__)

TARGET_CONTENT_TYPE = "application/octet-stream"

PlacementInput = Union[QRPlacement, Mapping[str, Any]]
ViewportInput = Union[Viewport, Mapping[str, Any], Tuple[float, float]]
Compositor = Callable[[ImageSource, bytes, QRPlacement], CompositeArtifact]


@contextmanager
def _stage(name: str) -> Iterator[None]:
    try:
        yield
    except PipelineStageError:
        raise
    except Exception as exc:
        LOGGER.error("Pipeline stage failed", stage=name, error=str(exc))
        raise PipelineStageError(name, str(exc)) from exc


def _coerce_placement(value: PlacementInput) -> QRPlacement:
    if isinstance(value, QRPlacement):
        return value
    return QRPlacement.from_mapping(value)


def _coerce_viewport(value: ViewportInput) -> Viewport:
    if isinstance(value, Viewport):
        return value
    if isinstance(value, Mapping):
        return Viewport(width=value["width"], height=value["height"])
    width, height = value
    return Viewport(width=width, height=height)


class PhygitalPipeline:
    """Builds the composite design and its AR target for one user.

    The composite is mandatory; target generation and upload degrade to
    ``target_record=None`` so the caller can fall back to image tracking.
    """

    def __init__(
        self,
        uploader: AssetUploader,
        target_generator: Optional[ARTargetGenerator],
        resolver: Optional[DesignResolver] = None,
        compositor: Compositor = compose,
    ) -> None:
        self._uploader = uploader
        self._targets = target_generator
        self._resolver = resolver or DesignResolver()
        self._compose = compositor

    async def compose_and_publish(
        self,
        user_id: str,
        design_ref: DesignRef,
        qr_image: bytes,
        placement_preview: PlacementInput,
        preview_viewport: ViewportInput,
        superseded_urls: Sequence[str] = (),
    ) -> PublishResult:
        with _stage("validate"):
            user = str(user_id or "").strip()
            if not user:
                raise ValueError("user id is required")
            if not qr_image:
                raise ValueError("QR raster is empty")
            placement = _coerce_placement(placement_preview)
            viewport = _coerce_viewport(preview_viewport)

        with _stage("resolve_design"):
            design = await self._resolver.resolve(design_ref)

        with _stage("compose"):
            natural_width, natural_height = probe_dimensions(design)

        with _stage("map_placement"):
            placement_full = map_to_full_resolution(
                placement, viewport.width, viewport.height, natural_width, natural_height
            )
        LOGGER.info(
            "Mapped QR placement",
            user_id=user,
            preview=placement.to_dict(),
            viewport=f"{viewport.width}x{viewport.height}",
            natural=f"{natural_width}x{natural_height}",
            full=placement_full.to_dict(),
        )

        with _stage("compose"):
            composite = await asyncio.to_thread(
                self._compose, design, bytes(qr_image), placement_full
            )

        with _stage("upload_composite"):
            composite_record = await asyncio.to_thread(
                self._uploader.upload,
                composite.data,
                user,
                AssetType.COMPOSITE,
                unique_filename("composite", "png"),
                composite.mime_type,
                UploadOptions(optimize=False),
            )

        target_record, target_error = await self._publish_target(user, composite.data)

        if superseded_urls:
            keep = {composite_record.object_key}
            if target_record:
                keep.add(target_record.object_key)
            await self._delete_superseded(superseded_urls, keep)

        return PublishResult(
            composite_record=composite_record,
            placement_full=placement_full,
            composite_width=composite.width,
            composite_height=composite.height,
            target_record=target_record,
            target_error=target_error,
        )

    async def publish_target(self, user_id: str, composite_ref: DesignRef) -> UploadRecord:
        """Regenerate and upload a target for an already published composite.

        Unlike the degradable step inside :meth:`compose_and_publish`,
        failures propagate.
        """

        if self._targets is None:
            raise PipelineStageError("generate_target", "AR target generation is disabled")
        composite = await self._resolver.resolve(composite_ref)
        target = await asyncio.to_thread(self._targets.generate, composite)
        return await asyncio.to_thread(self._upload_target, user_id, target.data)

    def _upload_target(self, user_id: str, data: bytes) -> UploadRecord:
        return self._uploader.upload(
            data,
            user_id,
            AssetType.TARGETS,
            unique_filename("target", "mind", separator="_"),
            TARGET_CONTENT_TYPE,
        )

    async def _publish_target(
        self, user_id: str, composite: bytes
    ) -> Tuple[Optional[UploadRecord], Optional[str]]:
        if self._targets is None:
            return None, "AR target generation is disabled"
        try:
            target = await asyncio.to_thread(self._targets.generate, composite)
            record = await asyncio.to_thread(self._upload_target, user_id, target.data)
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning(
                "AR target unavailable; falling back to image tracking",
                user_id=user_id,
                error=str(exc),
            )
            return None, str(exc)
        LOGGER.info("Published AR target", user_id=user_id, url=record.url, size=record.byte_size)
        return record, None

    async def _delete_superseded(self, urls: Iterable[str], keep: Set[str]) -> None:
        for url in urls:
            key = self._uploader.object_key_from_url(url)
            if not key:
                LOGGER.debug("Skipping superseded asset outside this store", url=url)
                continue
            if key in keep:
                continue
            await asyncio.to_thread(self._uploader.delete, key)


__all__ = ["PhygitalPipeline", "TARGET_CONTENT_TYPE"]
