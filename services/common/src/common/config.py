"""Application-wide configuration management using Pydantic settings."""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the composition pipeline.

    Environment variables are read once per process; components receive the
    values they need through explicit config objects built in
    ``phygital.dependencies``.
    """

    model_config = SettingsConfigDict(env_file=".env", env_nested_delimiter="__", extra="allow")

    environment: str = "development"
    service_name: str = "phygital-pipeline"
    log_level: str = "INFO"
    log_format: str = "json"

    # MinIO / object storage
    minio_endpoint: str = "http://localhost:9000"
    minio_bucket: str = "phygital-assets"
    minio_access_key: Optional[str] = None
    minio_secret_key: Optional[str] = None
    minio_public_base_url: Optional[str] = None
    storage_namespace: str = "phygital-zone"
    local_storage_root: str = "uploads"

    # Upload policy (seconds unless noted)
    upload_max_attempts: int = 3
    upload_backoff_seconds: float = 2.0
    upload_timeout_image: float = 120.0
    upload_timeout_raw: float = 300.0
    upload_timeout_video: float = 600.0
    upload_video_part_size: int = 6 * 1024 * 1024  # bytes
    upload_image_max_width: int = 1920
    upload_image_max_height: int = 1080

    # MindAR target compiler
    mindar_command: str = "npx -y mind-ar-js-cli@latest compile"
    mindar_timeout_seconds: float = 300.0
    mindar_node_path: Optional[str] = None  # NODE_PATH for a globally installed CLI
    temp_root: Optional[str] = None

    # Design download
    design_download_timeout: float = 30.0


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load and cache configuration for the current process."""

    return Settings()  # type: ignore[arg-type]


__all__ = ["Settings", "get_settings"]
