"""Upload generated assets under the per-user folder convention."""

from __future__ import annotations

import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, Union
from uuid import uuid4

from common.logging import get_logger

from ..config import UploadPolicy
from ..errors import ImageDecodeError, UploadFailedError
from ..imaging.normalization import cap_dimensions, detect_content_type
from ..models import AssetType, ResourceClass, UploadRecord
from .backends import StorageBackend
from .retry import is_timeout_error, linear_backoff, with_retry

LOGGER = get_logger(__name__)

GENERIC_CONTENT_TYPE = "application/octet-stream"
RAW_CONTENT_TYPES = {GENERIC_CONTENT_TYPE}
RAW_SUFFIXES = (".mind",)
_USER_ID_UNSAFE = re.compile(r"[^A-Za-z0-9_-]")


@dataclass(frozen=True)
class UploadOptions:
    """Per-call overrides.

    ``optimize`` caps oversized images to the policy's bounding box; turn it
    off for assets that must stay pixel-exact.
    """

    optimize: bool = True
    max_width: Optional[int] = None
    max_height: Optional[int] = None
    timeout: Optional[float] = None


def classify_resource(asset_type: AssetType, content_type: str, filename: str) -> ResourceClass:
    """Pick the upload path; binary payloads must never go through image transforms."""

    ctype = (content_type or "").lower()
    if asset_type is AssetType.VIDEO:
        return ResourceClass.VIDEO
    if (
        asset_type is AssetType.TARGETS
        or ctype in RAW_CONTENT_TYPES
        or filename.lower().endswith(RAW_SUFFIXES)
    ):
        return ResourceClass.RAW
    if ctype.startswith("image/"):
        return ResourceClass.IMAGE
    return ResourceClass.RAW


def sanitize_user_id(user_id: str) -> str:
    cleaned = _USER_ID_UNSAFE.sub("", str(user_id or ""))
    if not cleaned:
        raise UploadFailedError(f"Invalid user id: {user_id!r}", attempts=0)
    return cleaned


def build_folder(namespace: str, user_id: str, asset_type: AssetType) -> str:
    return f"{namespace.strip('/')}/users/{sanitize_user_id(user_id)}/{asset_type.value}"


def unique_filename(prefix: str, extension: str, separator: str = "-") -> str:
    """``{prefix}{sep}{epoch_ms}{sep}{uuid}.{extension}``."""

    millis = int(time.time() * 1000)
    return f"{prefix}{separator}{millis}{separator}{uuid4()}.{extension.lstrip('.')}"


class AssetUploader:
    def __init__(
        self,
        backend: StorageBackend,
        namespace: str = "phygital-zone",
        policy: Optional[UploadPolicy] = None,
        is_retryable: Callable[[BaseException], bool] = is_timeout_error,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._backend = backend
        self._namespace = namespace
        self._policy = policy or UploadPolicy()
        self._is_retryable = is_retryable
        self._sleep = sleep

    def upload(
        self,
        data: bytes,
        user_id: str,
        asset_type: Union[AssetType, str],
        filename: str,
        content_type: str,
        options: Optional[UploadOptions] = None,
    ) -> UploadRecord:
        options = options or UploadOptions()
        if not data:
            raise UploadFailedError("Refusing to upload an empty payload", attempts=0)
        try:
            asset = AssetType(asset_type)
        except ValueError as exc:
            raise UploadFailedError(f"Unknown asset type: {asset_type!r}", attempts=0) from exc
        if not filename or "/" in filename or "\\" in filename or filename in (".", ".."):
            raise UploadFailedError(f"Invalid filename: {filename!r}", attempts=0)
        if not content_type or content_type == GENERIC_CONTENT_TYPE:
            content_type = detect_content_type(data, filename)

        folder = build_folder(self._namespace, user_id, asset)
        object_key = f"{folder}/{filename}"
        resource = classify_resource(asset, content_type, filename)
        payload = self._prepare(data, resource, options)
        timeout = options.timeout or self._policy.timeout_for(resource)
        part_size = self._policy.part_size_for(resource)
        metadata = {
            "user-id": sanitize_user_id(user_id),
            "asset-type": asset.value,
            "uploaded-at": datetime.now(timezone.utc).isoformat(),
        }

        attempts = 0

        def _put() -> None:
            nonlocal attempts
            attempts += 1
            self._backend.put(
                object_key,
                payload,
                content_type,
                timeout=timeout,
                part_size=part_size,
                metadata=metadata,
            )

        LOGGER.info(
            "Uploading asset",
            object_key=object_key,
            resource_class=resource.value,
            size=len(payload),
            timeout=timeout,
        )
        try:
            with_retry(
                _put,
                max_attempts=self._policy.max_attempts,
                is_retryable=self._is_retryable,
                backoff=linear_backoff(self._policy.backoff_seconds),
                sleep=self._sleep,
            )
        except Exception as exc:  # noqa: BLE001
            LOGGER.error(
                "Asset upload failed",
                object_key=object_key,
                attempts=attempts,
                error=str(exc),
            )
            raise UploadFailedError(
                f"Upload of {object_key} failed after {attempts} attempt(s): {exc}",
                attempts=attempts,
            ) from exc

        return UploadRecord(
            url=self._backend.public_url(object_key),
            object_key=object_key,
            byte_size=len(payload),
            content_type=content_type,
            folder=folder,
            resource_class=resource,
        )

    def _prepare(self, data: bytes, resource: ResourceClass, options: UploadOptions) -> bytes:
        if resource is not ResourceClass.IMAGE or not options.optimize:
            return data
        max_width = options.max_width or self._policy.image_max_width
        max_height = options.max_height or self._policy.image_max_height
        try:
            return cap_dimensions(data, max_width, max_height)
        except ImageDecodeError as exc:
            LOGGER.warning("Skipping image optimization", error=str(exc))
            return data

    def delete(self, object_key: str) -> bool:
        """Best-effort removal of a superseded asset."""

        try:
            self._backend.remove(object_key)
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Failed to delete asset", object_key=object_key, error=str(exc))
            return False
        LOGGER.info("Deleted asset", object_key=object_key)
        return True

    def object_key_from_url(self, url: str) -> Optional[str]:
        """Object key for a URL this store issued, else ``None``."""

        if not url:
            return None
        return self._backend.key_from_url(url)


__all__ = [
    "AssetUploader",
    "UploadOptions",
    "build_folder",
    "classify_resource",
    "sanitize_user_id",
    "unique_filename",
]
