import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[2]
for src in (ROOT / "services" / "phygital" / "src", ROOT / "services" / "common" / "src"):
    if str(src) not in sys.path:
        sys.path.insert(0, str(src))

from phygital.errors import InvalidDimensionError, InvalidPlacementError  # noqa: E402
from phygital.mapping import (  # noqa: E402
    map_to_full_resolution,
    round_half_up,
    scale_factors,
)
from phygital.models import QRPlacement  # noqa: E402


def test_scales_preview_placement_to_full_resolution():
    placement = QRPlacement(x=100, y=100, width=100, height=100)

    mapped = map_to_full_resolution(placement, 800, 600, 1600, 1200)

    assert mapped == QRPlacement(x=200, y=200, width=200, height=200)


def test_identity_scale_is_a_no_op():
    placement = QRPlacement(x=13, y=7, width=250, height=120)

    mapped = map_to_full_resolution(placement, 640, 480, 640, 480)

    assert mapped == placement


@pytest.mark.parametrize(
    "preview, natural",
    [
        ((800, 600), (1600, 1200)),
        ((800, 600), (1023, 767)),
        ((375, 667), (3024, 4032)),
        ((800, 600), (333, 251)),
        ((1000, 1000), (999, 1001)),
    ],
)
def test_rounding_error_stays_within_one_pixel(preview, natural):
    preview_w, preview_h = preview
    natural_w, natural_h = natural
    scale_x, scale_y = natural_w / preview_w, natural_h / preview_h

    for x, y, w, h in [(0, 0, 10, 10), (12.3, 45.6, 77.7, 88.8), (101, 99, 150.5, 149.5)]:
        mapped = map_to_full_resolution(
            QRPlacement(x=x, y=y, width=w, height=h), preview_w, preview_h, natural_w, natural_h
        )
        assert abs(mapped.x - x * scale_x) <= 1
        assert abs(mapped.y - y * scale_y) <= 1
        assert abs(mapped.width - w * scale_x) <= 1
        assert abs(mapped.height - h * scale_y) <= 1
        assert all(isinstance(v, int) for v in mapped.to_dict().values())


def test_round_half_up_does_not_round_to_even():
    assert round_half_up(0.5) == 1
    assert round_half_up(2.5) == 3
    assert round_half_up(2.49) == 2


def test_non_uniform_scale_keeps_axes_independent():
    placement = QRPlacement(x=0, y=0, width=100, height=100)

    mapped = map_to_full_resolution(placement, 800, 600, 1600, 600)

    assert (mapped.width, mapped.height) == (200, 100)


@pytest.mark.parametrize(
    "dims",
    [(0, 600, 1600, 1200), (800, -1, 1600, 1200), (800, 600, 0, 1200), (800, 600, 1600, -5)],
)
def test_rejects_non_positive_dimensions(dims):
    with pytest.raises(InvalidDimensionError):
        map_to_full_resolution(QRPlacement(x=0, y=0, width=10, height=10), *dims)


def test_rejects_placement_that_collapses_to_zero():
    with pytest.raises(InvalidDimensionError):
        map_to_full_resolution(QRPlacement(x=0, y=0, width=1, height=1), 800, 600, 100, 75)


def test_scale_factors():
    assert scale_factors(800, 600, 1600, 900) == (2.0, 1.5)


def test_placement_validation():
    with pytest.raises(InvalidPlacementError):
        QRPlacement(x=-1, y=0, width=10, height=10)
    with pytest.raises(InvalidPlacementError):
        QRPlacement(x=0, y=0, width=0, height=10)
    with pytest.raises(InvalidPlacementError):
        QRPlacement.from_mapping({"x": 1, "y": 2, "width": 3})
    assert QRPlacement.from_mapping({"x": 1, "y": 2, "width": 3, "height": 4}).height == 4
