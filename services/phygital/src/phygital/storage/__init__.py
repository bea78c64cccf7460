"""Remote storage for generated assets."""

from .backends import LocalBackend, MinioBackend, StorageBackend
from .retry import is_timeout_error, linear_backoff, with_retry
from .uploader import AssetUploader, UploadOptions, classify_resource, unique_filename

__all__ = [
    "AssetUploader",
    "LocalBackend",
    "MinioBackend",
    "StorageBackend",
    "UploadOptions",
    "classify_resource",
    "is_timeout_error",
    "linear_backoff",
    "unique_filename",
    "with_retry",
]
