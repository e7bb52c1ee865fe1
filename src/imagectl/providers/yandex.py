"""Image lookups against the Yandex Cloud Compute API.

The SDK-backed driver lives outside this package; this module defines the
interface it implements and the selection logic that runs on top of it.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Protocol

from ..models import BuildConfig

LOGGER = logging.getLogger(__name__)

_BYTES_PER_GIGABYTE = 1024 ** 3


class ImageLookupError(RuntimeError):
    """Raised when a source image cannot be located."""


@dataclass(frozen=True)
class Image:
    """Subset of image attributes used by a build."""

    id: str
    name: str
    folder_id: str
    family: str = ""
    labels: Mapping[str, str] = field(default_factory=dict)
    product_ids: tuple[str, ...] = ()
    min_disk_size_gb: int = 0
    size_gb: int = 0


class ImageDriver(Protocol):
    """Operations a provider driver exposes for images."""

    def get_image(self, image_id: str) -> Image:
        """Return the image with *image_id*."""

    def get_image_from_folder(self, folder_id: str, family: str) -> Image:
        """Return the latest image of *family* within *folder_id*."""

    def delete_image(self, image_id: str) -> None:
        """Delete the image with *image_id*."""


def to_gigabytes(size_bytes: int) -> int:
    """Convert a byte count reported by the API into whole gigabytes."""
    return int(size_bytes // _BYTES_PER_GIGABYTE)


def resolve_source_image(driver: ImageDriver, config: BuildConfig) -> Image:
    """Return the base image selected by *config*.

    An explicit ``source_image_id`` wins; otherwise the newest image of
    ``source_image_family`` in ``source_image_folder_id`` is used.
    """
    if config.source_image_id:
        LOGGER.debug("looking up source image %s", config.source_image_id)
        return driver.get_image(config.source_image_id)
    if config.source_image_family:
        LOGGER.debug(
            "looking up latest image of family %s in folder %s",
            config.source_image_family,
            config.source_image_folder_id,
        )
        return driver.get_image_from_folder(
            config.source_image_folder_id, config.source_image_family
        )
    raise ImageLookupError("a source_image_id or source_image_family must be specified")


__all__ = [
    "Image",
    "ImageDriver",
    "ImageLookupError",
    "resolve_source_image",
    "to_gigabytes",
]
