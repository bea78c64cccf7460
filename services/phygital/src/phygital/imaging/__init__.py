"""Image decoding, compositing and upload normalization."""

from .compositor import compose, probe_dimensions
from .normalization import cap_dimensions, detect_content_type

__all__ = ["cap_dimensions", "compose", "detect_content_type", "probe_dimensions"]
