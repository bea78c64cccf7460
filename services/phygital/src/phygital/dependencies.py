"""Dependency wiring for the composition pipeline."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from common.config import get_settings
from common.logging import configure_logging, get_logger

from .config import CompilerConfig, PipelineConfig, StorageConfig, UploadPolicy
from .pipeline import PhygitalPipeline
from .sources import DesignResolver
from .storage.backends import LocalBackend, MinioBackend, StorageBackend
from .storage.uploader import AssetUploader
from .targets.compiler import MindARCompiler
from .targets.generator import ARTargetGenerator

LOGGER = get_logger(__name__)


@lru_cache(maxsize=1)
def get_storage_backend() -> StorageBackend:
    config = StorageConfig.from_settings(get_settings())
    if config.has_credentials:
        return MinioBackend(config)
    LOGGER.warning("MinIO credentials missing; storing assets locally", root=config.local_root)
    return LocalBackend(Path(config.local_root), public_base_url=config.public_base_url)


@lru_cache(maxsize=1)
def get_asset_uploader() -> AssetUploader:
    settings = get_settings()
    return AssetUploader(
        backend=get_storage_backend(),
        namespace=settings.storage_namespace,
        policy=UploadPolicy.from_settings(settings),
    )


@lru_cache(maxsize=1)
def get_target_generator() -> ARTargetGenerator:
    config = CompilerConfig.from_settings(get_settings())
    compiler = MindARCompiler(
        command=config.command,
        timeout=config.timeout_seconds,
        extra_env=config.env,
    )
    return ARTargetGenerator(compiler, temp_root=config.temp_root)


@lru_cache(maxsize=1)
def get_pipeline() -> PhygitalPipeline:
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)
    return PhygitalPipeline(
        uploader=get_asset_uploader(),
        target_generator=get_target_generator(),
        resolver=DesignResolver(timeout=PipelineConfig.from_settings(settings).download_timeout),
    )


__all__ = ["get_asset_uploader", "get_pipeline", "get_storage_backend", "get_target_generator"]
