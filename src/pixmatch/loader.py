"""Pillow-backed image loading into PBGRA32 images."""

from __future__ import annotations

import io
import logging
from pathlib import Path

import numpy as np
from PIL import Image, ImageCms

from pixmatch.conversion import premultiply_rgba
from pixmatch.image import InterleavedImagePBgra32, RawImageData

log = logging.getLogger(__name__)

Region = tuple[int, int, int, int]


class PillowImagePBgra32(InterleavedImagePBgra32):
    """PBGRA32 image decoded by Pillow; closing it also closes the source image."""

    def __init__(self, data: RawImageData, source: Image.Image | None = None) -> None:
        super().__init__(data)
        self._source = source

    def close(self) -> None:
        if self._source is not None:
            self._source.close()
            self._source = None
        super().close()


def _to_srgb(img: Image.Image) -> Image.Image:
    """Convert an image carrying an embedded ICC profile to sRGB."""
    icc = img.info.get("icc_profile")
    if not icc:
        return img
    mode = "RGBA" if "A" in img.getbands() or "transparency" in img.info else "RGB"
    try:
        src = ImageCms.getOpenProfile(io.BytesIO(icc))
        dst = ImageCms.createProfile("sRGB")
        converted = ImageCms.profileToProfile(img.convert(mode), src, dst, outputMode=mode)
    except ImageCms.PyCMSError as exc:
        log.warning("ICC color correction failed, using raw colors: %s", exc)
        return img
    log.debug("applied embedded ICC profile (%d bytes)", len(icc))
    return converted if converted is not None else img


def load_image(
    path: Path,
    *,
    color_correction: bool = True,
    region: Region | None = None,
) -> PillowImagePBgra32:
    """Decode an image file into a PBGRA32 image.

    Args:
        path: Image file to open.
        color_correction: Apply an embedded ICC profile, converting to sRGB.
        region: Optional (left, top, right, bottom) crop box.

    Returns:
        Image ready for comparison; close it (or use it as a context manager)
        when done.

    Raises:
        FileNotFoundError: If the path does not exist.
        PIL.UnidentifiedImageError: If the file is not a valid image.
    """
    source = Image.open(path)
    try:
        img = _to_srgb(source) if color_correction else source
        if region is not None:
            img = img.crop(region)
        rgba = np.asarray(img.convert("RGBA"), dtype=np.uint8)
    except Exception:
        source.close()
        raise

    log.debug("loaded %s: %dx%d %s", path, rgba.shape[1], rgba.shape[0], source.mode)
    return PillowImagePBgra32(RawImageData.from_array(premultiply_rgba(rgba)), source)
