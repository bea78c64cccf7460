"""Resolve design references (bytes, data URIs, URLs, paths) to bytes."""

from __future__ import annotations

import base64
import binascii
from pathlib import Path
from typing import Optional, Union
from urllib.parse import unquote, unquote_to_bytes, urlsplit

import httpx

from common.logging import get_logger

from .errors import DownloadFailedError

LOGGER = get_logger(__name__)

DesignRef = Union[bytes, bytearray, str, Path]


def decode_data_uri(uri: str) -> bytes:
    header, sep, payload = uri.partition(",")
    if not sep or not header.startswith("data:"):
        raise DownloadFailedError("Malformed data URI for design image")
    if header.endswith(";base64"):
        try:
            return base64.b64decode(payload, validate=False)
        except (binascii.Error, ValueError) as exc:
            raise DownloadFailedError(f"Invalid base64 in design data URI: {exc}") from exc
    return unquote_to_bytes(payload)


class DesignResolver:
    """Turns whatever the project document stores into raw image bytes."""

    def __init__(
        self,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._timeout = timeout
        self._transport = transport

    async def resolve(self, ref: DesignRef) -> bytes:
        if isinstance(ref, (bytes, bytearray)):
            data = bytes(ref)
        elif isinstance(ref, Path):
            data = self._read_path(ref)
        else:
            data = await self._resolve_str(ref)
        if not data:
            raise DownloadFailedError("Design image is empty")
        return data

    async def _resolve_str(self, ref: str) -> bytes:
        ref = ref.strip()
        if ref.startswith("data:"):
            return decode_data_uri(ref)
        parts = urlsplit(ref)
        scheme = parts.scheme.lower()
        if scheme in ("http", "https"):
            return await self._download(ref)
        if scheme == "file":
            return self._read_path(Path(unquote(parts.path)))
        # Anything else, including Windows drive letters, is a local path.
        return self._read_path(Path(ref))

    def _read_path(self, path: Path) -> bytes:
        try:
            return path.read_bytes()
        except OSError as exc:
            raise DownloadFailedError(f"Design image not found: {path}") from exc

    async def _download(self, url: str) -> bytes:
        LOGGER.info("Downloading design image", url=url, timeout=self._timeout)
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
                follow_redirects=True,
            ) as client:
                response = await client.get(url)
        except httpx.TimeoutException as exc:
            raise DownloadFailedError(
                f"Timed out downloading design after {self._timeout:.0f}s"
            ) from exc
        except httpx.HTTPError as exc:
            raise DownloadFailedError(f"Network error downloading design: {exc}") from exc

        if not response.is_success:
            raise DownloadFailedError(
                f"Design download failed: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )
        LOGGER.info("Downloaded design image", url=url, size=len(response.content))
        return response.content


__all__ = ["DesignRef", "DesignResolver", "decode_data_uri"]
