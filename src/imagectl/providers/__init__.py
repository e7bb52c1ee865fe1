"""Provider interfaces for imagectl."""
from __future__ import annotations

from .yandex import Image, ImageDriver, ImageLookupError, resolve_source_image, to_gigabytes

__all__ = [
    "Image",
    "ImageDriver",
    "ImageLookupError",
    "resolve_source_image",
    "to_gigabytes",
]
