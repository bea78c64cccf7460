"""Overlay a QR raster onto a design image."""

from __future__ import annotations

from io import BytesIO
from pathlib import Path
from typing import Tuple, Union

from PIL import Image, ImageOps, UnidentifiedImageError

from common.logging import get_logger

from ..errors import CompositionError, ImageDecodeError
from ..mapping import round_half_up
from ..models import CompositeArtifact, QRPlacement

LOGGER = get_logger(__name__)

ImageSource = Union[bytes, bytearray, str, Path]

# EXIF orientations that swap width and height.
_ROTATED_ORIENTATIONS = {5, 6, 7, 8}
_EXIF_ORIENTATION = 0x0112


def _read_source(source: ImageSource) -> bytes:
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)
    path = Path(source)
    try:
        return path.read_bytes()
    except OSError as exc:
        raise ImageDecodeError(f"Design image file not readable: {path}") from exc


def _decode(data: bytes, label: str) -> Image.Image:
    if not data:
        raise ImageDecodeError(f"{label} payload is empty")
    try:
        image = Image.open(BytesIO(data))
        image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        raise ImageDecodeError(f"Could not decode {label}: {exc}") from exc
    # Browsers honour EXIF orientation, so the preview did too.
    return ImageOps.exif_transpose(image)


def _has_alpha(image: Image.Image) -> bool:
    return "A" in image.getbands() or "transparency" in image.info


def probe_dimensions(source: ImageSource) -> Tuple[int, int]:
    """Natural (orientation-corrected) size without decoding pixel data."""

    data = _read_source(source)
    try:
        with Image.open(BytesIO(data)) as image:
            width, height = image.size
            orientation = image.getexif().get(_EXIF_ORIENTATION)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        raise ImageDecodeError(f"Could not read design dimensions: {exc}") from exc
    if orientation in _ROTATED_ORIENTATIONS:
        return height, width
    return width, height


def compose(
    base_image: ImageSource,
    overlay: bytes,
    placement: QRPlacement,
) -> CompositeArtifact:
    """Composite ``overlay`` onto ``base_image`` and return lossless PNG bytes.

    The overlay is resized to the placement with bilinear resampling and
    drawn source-over at ``(placement.x, placement.y)``. Parts that fall past
    the right or bottom edge are clipped.
    """

    base = _decode(_read_source(base_image), "design image")
    qr = _decode(bytes(overlay), "QR overlay")

    x, y = round_half_up(placement.x), round_half_up(placement.y)
    width, height = round_half_up(placement.width), round_half_up(placement.height)
    if x >= base.width or y >= base.height:
        raise CompositionError(
            f"QR placement at ({x}, {y}) lies outside the {base.width}x{base.height} design"
        )

    try:
        keep_alpha = _has_alpha(base)
        canvas = base.convert("RGBA")
        tile = qr.convert("RGBA").resize((width, height), Image.Resampling.BILINEAR)

        visible = (min(width, canvas.width - x), min(height, canvas.height - y))
        if visible != (width, height):
            LOGGER.info(
                "QR overlay clipped to design bounds",
                placement=placement.to_dict(),
                visible_width=visible[0],
                visible_height=visible[1],
            )
            tile = tile.crop((0, 0, visible[0], visible[1]))

        canvas.alpha_composite(tile, dest=(x, y))
        output = canvas if keep_alpha else canvas.convert("RGB")

        buffer = BytesIO()
        output.save(buffer, format="PNG")
    except Exception as exc:  # noqa: BLE001
        raise CompositionError(f"Failed to overlay QR code on design: {exc}") from exc

    artifact = CompositeArtifact(
        data=buffer.getvalue(),
        width=output.width,
        height=output.height,
        mime_type="image/png",
    )
    LOGGER.info(
        "Composite image generated",
        width=artifact.width,
        height=artifact.height,
        size=artifact.byte_size,
    )
    return artifact


__all__ = ["ImageSource", "compose", "probe_dimensions"]
