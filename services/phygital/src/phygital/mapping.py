"""Preview-space to image-space coordinate mapping for QR placements."""

from __future__ import annotations

import math
from typing import Tuple

from common.logging import get_logger

from .errors import InvalidDimensionError
from .models import Number, QRPlacement

LOGGER = get_logger(__name__)

# Relative difference between the axis scale factors tolerated before the
# mapping is reported as distorting.
NON_UNIFORM_TOLERANCE = 0.01


def round_half_up(value: float) -> int:
    """Nearest integer, halves rounded up (``round`` would round to even)."""

    return int(math.floor(value + 0.5))


def _require_positive(**dimensions: Number) -> None:
    for name, value in dimensions.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidDimensionError(f"{name} must be a number, got {value!r}")
        if not math.isfinite(value) or value <= 0:
            raise InvalidDimensionError(f"{name} must be positive, got {value!r}")


def scale_factors(
    preview_width: Number,
    preview_height: Number,
    natural_width: Number,
    natural_height: Number,
) -> Tuple[float, float]:
    """Return ``(scale_x, scale_y)`` from preview pixels to image pixels."""

    _require_positive(
        preview_width=preview_width,
        preview_height=preview_height,
        natural_width=natural_width,
        natural_height=natural_height,
    )
    return natural_width / preview_width, natural_height / preview_height


def map_to_full_resolution(
    placement: QRPlacement,
    preview_width: Number,
    preview_height: Number,
    natural_width: Number,
    natural_height: Number,
) -> QRPlacement:
    """Map a preview-space placement onto the full-resolution image.

    Each axis is scaled independently, so a square placement stays square
    only when the preview and the image share an aspect ratio.
    """

    scale_x, scale_y = scale_factors(
        preview_width, preview_height, natural_width, natural_height
    )
    if abs(scale_x - scale_y) > NON_UNIFORM_TOLERANCE * max(scale_x, scale_y):
        LOGGER.warning(
            "Non-uniform preview scale; QR overlay will be distorted",
            scale_x=round(scale_x, 4),
            scale_y=round(scale_y, 4),
            preview=f"{preview_width}x{preview_height}",
            natural=f"{natural_width}x{natural_height}",
        )

    width = round_half_up(placement.width * scale_x)
    height = round_half_up(placement.height * scale_y)
    if width <= 0 or height <= 0:
        raise InvalidDimensionError(
            f"Placement {placement.width}x{placement.height} collapses to "
            f"{width}x{height} at full resolution"
        )
    return QRPlacement(
        x=round_half_up(placement.x * scale_x),
        y=round_half_up(placement.y * scale_y),
        width=width,
        height=height,
    )


__all__ = ["map_to_full_resolution", "round_half_up", "scale_factors"]
