"""Explicit configuration values injected into pipeline components."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from common.config import Settings

from .models import ResourceClass
from .targets.compiler import DEFAULT_COMMAND, DEFAULT_TIMEOUT


@dataclass(frozen=True)
class StorageConfig:
    endpoint: str = "http://localhost:9000"
    bucket: str = "phygital-assets"
    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    namespace: str = "phygital-zone"
    public_base_url: Optional[str] = None
    local_root: str = "uploads"

    @property
    def has_credentials(self) -> bool:
        return bool(self.access_key and self.secret_key)

    @classmethod
    def from_settings(cls, settings: Settings) -> "StorageConfig":
        return cls(
            endpoint=settings.minio_endpoint,
            bucket=settings.minio_bucket,
            access_key=settings.minio_access_key,
            secret_key=settings.minio_secret_key,
            namespace=settings.storage_namespace,
            public_base_url=settings.minio_public_base_url,
            local_root=settings.local_storage_root,
        )


@dataclass(frozen=True)
class UploadPolicy:
    """Timeouts, chunking and retry budget per resource class."""

    max_attempts: int = 3
    backoff_seconds: float = 2.0
    image_timeout: float = 120.0
    raw_timeout: float = 300.0
    video_timeout: float = 600.0
    video_part_size: int = 6 * 1024 * 1024
    image_max_width: int = 1920
    image_max_height: int = 1080

    def timeout_for(self, resource_class: ResourceClass) -> float:
        if resource_class is ResourceClass.VIDEO:
            return self.video_timeout
        if resource_class is ResourceClass.IMAGE:
            return self.image_timeout
        return self.raw_timeout

    def part_size_for(self, resource_class: ResourceClass) -> int:
        """Multipart chunk size; ``0`` lets the client send a single part."""

        return self.video_part_size if resource_class is ResourceClass.VIDEO else 0

    @classmethod
    def from_settings(cls, settings: Settings) -> "UploadPolicy":
        return cls(
            max_attempts=max(1, settings.upload_max_attempts),
            backoff_seconds=settings.upload_backoff_seconds,
            image_timeout=settings.upload_timeout_image,
            raw_timeout=settings.upload_timeout_raw,
            video_timeout=settings.upload_timeout_video,
            video_part_size=settings.upload_video_part_size,
            image_max_width=settings.upload_image_max_width,
            image_max_height=settings.upload_image_max_height,
        )


@dataclass(frozen=True)
class CompilerConfig:
    command: str = DEFAULT_COMMAND
    timeout_seconds: float = DEFAULT_TIMEOUT
    temp_root: Optional[str] = None
    node_path: Optional[str] = None

    @property
    def env(self) -> Dict[str, str]:
        """Extra environment for the compiler process."""

        return {"NODE_PATH": self.node_path} if self.node_path else {}

    @classmethod
    def from_settings(cls, settings: Settings) -> "CompilerConfig":
        return cls(
            command=settings.mindar_command,
            timeout_seconds=settings.mindar_timeout_seconds,
            temp_root=settings.temp_root,
            node_path=settings.mindar_node_path,
        )


@dataclass(frozen=True)
class PipelineConfig:
    download_timeout: float = 30.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "PipelineConfig":
        return cls(download_timeout=settings.design_download_timeout)


__all__ = ["CompilerConfig", "PipelineConfig", "StorageConfig", "UploadPolicy"]
