"""Object storage backends: MinIO/S3 or the local filesystem."""

from __future__ import annotations

import threading
from io import BytesIO
from pathlib import Path
from typing import Dict, Mapping, Optional, Protocol
from urllib.parse import quote, unquote, urlsplit

import urllib3
from minio import Minio

from common.logging import get_logger

from ..config import StorageConfig

LOGGER = get_logger(__name__)

CONNECT_TIMEOUT = 10.0


class StorageBackend(Protocol):
    def put(
        self,
        object_key: str,
        data: bytes,
        content_type: str,
        *,
        timeout: float,
        part_size: int = 0,
        metadata: Optional[Mapping[str, str]] = None,
    ) -> None:
        ...

    def remove(self, object_key: str) -> None:
        ...

    def public_url(self, object_key: str) -> str:
        ...

    def key_from_url(self, url: str) -> Optional[str]:
        ...


def _strip_query(url: str) -> str:
    parts = urlsplit(url)
    return parts._replace(query="", fragment="").geturl()


class MinioBackend:
    """MinIO/S3 storage with one client per read timeout.

    urllib3 retries are disabled so timeouts surface to the uploader's
    retry policy instead of being retried twice.
    """

    def __init__(self, config: StorageConfig, ensure_bucket: bool = True) -> None:
        self._config = config
        self._bucket = config.bucket
        self._endpoint = config.endpoint.replace("http://", "").replace("https://", "")
        self._secure = config.endpoint.startswith("https")
        self._clients: Dict[float, Minio] = {}
        self._clients_lock = threading.Lock()
        base = config.public_base_url or config.endpoint
        self._url_prefix = f"{base.rstrip('/')}/{self._bucket}/"
        if ensure_bucket:
            client = self._client(CONNECT_TIMEOUT * 3)
            if not client.bucket_exists(self._bucket):
                client.make_bucket(self._bucket)
                LOGGER.info("Created storage bucket", bucket=self._bucket)

    def _client(self, timeout: float) -> Minio:
        with self._clients_lock:
            client = self._clients.get(timeout)
            if client is None:
                http_client = urllib3.PoolManager(
                    timeout=urllib3.Timeout(connect=CONNECT_TIMEOUT, read=timeout),
                    retries=False,
                )
                client = Minio(
                    self._endpoint,
                    access_key=self._config.access_key,
                    secret_key=self._config.secret_key,
                    secure=self._secure,
                    http_client=http_client,
                )
                self._clients[timeout] = client
            return client

    def put(
        self,
        object_key: str,
        data: bytes,
        content_type: str,
        *,
        timeout: float,
        part_size: int = 0,
        metadata: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._client(timeout).put_object(
            self._bucket,
            object_key,
            data=BytesIO(data),
            length=len(data),
            content_type=content_type,
            metadata=dict(metadata or {}),
            part_size=part_size,
        )
        LOGGER.info("Stored asset in MinIO", bucket=self._bucket, object_key=object_key)

    def remove(self, object_key: str) -> None:
        self._client(CONNECT_TIMEOUT * 3).remove_object(self._bucket, object_key)

    def public_url(self, object_key: str) -> str:
        return f"{self._url_prefix}{quote(object_key)}"

    def key_from_url(self, url: str) -> Optional[str]:
        url = _strip_query(url)
        if not url.startswith(self._url_prefix):
            return None
        return unquote(url[len(self._url_prefix):]) or None


class LocalBackend:
    """Filesystem storage used when no object store credentials are set."""

    def __init__(self, root: Path, public_base_url: Optional[str] = None) -> None:
        self._root = root.resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        self._public_base = public_base_url.rstrip("/") + "/" if public_base_url else None

    def _path(self, object_key: str) -> Path:
        path = (self._root / object_key).resolve()
        if self._root not in path.parents:
            raise ValueError(f"Object key escapes storage root: {object_key}")
        return path

    def put(
        self,
        object_key: str,
        data: bytes,
        content_type: str,
        *,
        timeout: float,
        part_size: int = 0,
        metadata: Optional[Mapping[str, str]] = None,
    ) -> None:
        path = self._path(object_key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        LOGGER.info("Stored asset locally", path=str(path), content_type=content_type)

    def remove(self, object_key: str) -> None:
        self._path(object_key).unlink()

    def public_url(self, object_key: str) -> str:
        if self._public_base:
            return f"{self._public_base}{quote(object_key)}"
        return self._path(object_key).as_uri()

    def key_from_url(self, url: str) -> Optional[str]:
        url = _strip_query(url)
        prefix = self._public_base or self._root.as_uri() + "/"
        if not url.startswith(prefix):
            return None
        return unquote(url[len(prefix):]) or None


__all__ = ["LocalBackend", "MinioBackend", "StorageBackend"]
