"""File-level perceptual image comparison."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import numpy.typing as npt
from PIL import Image

from pixmatch.conversion import unpack_rgb
from pixmatch.loader import load_image
from pixmatch.matcher import PixelMatcher

log = logging.getLogger(__name__)

DIFF_COLOR = (255, 0, 0, 255)
AA_COLOR = (255, 255, 0, 255)
# blend factor of image A in the diff visualization
FADE_ALPHA = 0.1


@dataclass(frozen=True)
class CompareResult:
    """Result of comparing two image files."""

    identical: bool
    diff_pixels: int
    anti_aliased_pixels: int
    total_pixels: int
    diff_ratio: float
    elapsed_ms: float
    diff_image: Path | None


def _write_diff_image(
    pixels: npt.NDArray[np.uint32],
    diffs: list[tuple[int, int]],
    aa: list[tuple[int, int]],
    output: Path,
) -> None:
    """Write image A faded to gray with differing pixels highlighted.

    The background comes from the pixels that were compared, so it reflects
    color correction and premultiplied alpha.
    """
    base = Image.fromarray(unpack_rgb(pixels))
    gray = np.asarray(base.convert("L"), dtype=np.float32)
    faded = (255.0 + (gray - 255.0) * FADE_ALPHA).astype(np.uint8)
    arr = np.dstack([faded, faded, faded, np.full_like(faded, 255)])
    for x, y in aa:
        arr[y, x] = AA_COLOR
    for x, y in diffs:
        arr[y, x] = DIFF_COLOR
    Image.fromarray(arr).save(output)
    log.debug("wrote diff image %s (%d diff, %d anti-aliased)", output, len(diffs), len(aa))


def compare_images(
    path_a: Path,
    path_b: Path,
    *,
    threshold: float = 0.1,
    include_anti_aliased: bool = False,
    color_correction: bool = True,
    diff_output: Path | None = None,
) -> CompareResult:
    """Compare two image files with the perceptual pixel matcher.

    Args:
        path_a: Path to the first (expected) image.
        path_b: Path to the second (actual) image.
        threshold: Matching threshold from 0 to 1; smaller is more sensitive.
        include_anti_aliased: Count anti-aliased pixels as differences.
        color_correction: Apply embedded ICC profiles when loading.
        diff_output: If set, write a diff visualization PNG here.

    Returns:
        CompareResult with comparison details.

    Raises:
        ValueError: If the threshold is out of range or the two images have
            different dimensions.
        FileNotFoundError: If either path does not exist.
        PIL.UnidentifiedImageError: If either file is not a valid image.
    """
    matcher = PixelMatcher(threshold=threshold, ignore_anti_aliased_pixels=not include_anti_aliased)
    diffs: list[tuple[int, int]] = []
    aa: list[tuple[int, int]] = []

    def on_difference(x: int, y: int, delta: float) -> None:
        (aa if delta == 0 else diffs).append((x, y))

    diff_image: Path | None = None
    with load_image(path_a, color_correction=color_correction) as img_a:
        with load_image(path_b, color_correction=color_correction) as img_b:
            start = time.perf_counter()
            diff_pixels = matcher.compare(img_a, img_b, on_difference)
            elapsed_ms = (time.perf_counter() - start) * 1000.0
        width, height = img_a.size
        if diff_output and (diffs or aa):
            _write_diff_image(img_a.pixels, diffs, aa, diff_output)
            diff_image = diff_output

    total_pixels = width * height
    diff_ratio = diff_pixels / total_pixels * 100.0 if total_pixels else 0.0
    log.debug(
        "%s vs %s: %d/%d pixels in %.1fms",
        path_a,
        path_b,
        diff_pixels,
        total_pixels,
        elapsed_ms,
    )

    return CompareResult(
        identical=diff_pixels == 0,
        diff_pixels=diff_pixels,
        anti_aliased_pixels=len(aa),
        total_pixels=total_pixels,
        diff_ratio=diff_ratio,
        elapsed_ms=elapsed_ms,
        diff_image=diff_image,
    )
