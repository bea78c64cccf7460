"""Content-type detection and size capping for image uploads."""

from __future__ import annotations

import mimetypes
from io import BytesIO
from typing import Optional

from PIL import Image, UnidentifiedImageError

from ..errors import ImageDecodeError

FORMAT_CONTENT_TYPES = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
    "WEBP": "image/webp",
    "GIF": "image/gif",
    "BMP": "image/bmp",
}


def detect_content_type(data: bytes, filename: Optional[str] = None) -> str:
    """Best guess at an image payload's MIME type."""

    try:
        with Image.open(BytesIO(data)) as image:
            fmt = image.format or ""
    except (UnidentifiedImageError, OSError, ValueError):
        fmt = ""
    if fmt in FORMAT_CONTENT_TYPES:
        return FORMAT_CONTENT_TYPES[fmt]
    if filename:
        guess = mimetypes.guess_type(filename)[0]
        if guess:
            return guess
    return "application/octet-stream"


def cap_dimensions(data: bytes, max_width: int, max_height: int) -> bytes:
    """Downsize an image to fit ``max_width x max_height``.

    Aspect ratio and container format are preserved; images already inside
    the box are returned unchanged.
    """

    try:
        image = Image.open(BytesIO(data))
        image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        raise ImageDecodeError(f"Could not decode image for optimization: {exc}") from exc

    if image.width <= max_width and image.height <= max_height:
        return data

    fmt = image.format or "PNG"
    image.thumbnail((max_width, max_height), Image.Resampling.LANCZOS)
    if fmt == "JPEG" and image.mode not in ("RGB", "L"):
        image = image.convert("RGB")
    buffer = BytesIO()
    save_kwargs = {"quality": 90} if fmt in ("JPEG", "WEBP") else {}
    image.save(buffer, format=fmt, **save_kwargs)
    return buffer.getvalue()


__all__ = ["FORMAT_CONTENT_TYPES", "cap_dimensions", "detect_content_type"]
