"""Perceptual pixel matching with anti-aliasing detection.

Color differences follow "Measuring perceived color difference using YIQ NTSC
transmission color space in mobile applications" (Y. Kotsarenko, F. Ramos);
anti-aliasing detection follows "Anti-aliased Pixel and Intensity Slope
Detector" (V. Vysniauskas, 2009).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import numpy as np
import numpy.typing as npt

from pixmatch.conversion import Color4, normalized_planes
from pixmatch.image import AbstractImage, InterleavedImagePBgra32

log = logging.getLogger(__name__)

DifferenceCallback = Callable[[int, int, float], None]

RGB2Y = np.array((0.29889531, 0.58662247, 0.11448223, 0), dtype=np.float32)
RGB2I = np.array((0.59597799, -0.27417610, -0.32180189, 0), dtype=np.float32)
RGB2Q = np.array((0.21147017, -0.52261711, 0.31114694, 0), dtype=np.float32)
YIQ2D = np.array((0.5053, 0.299, 0.1957, 0), dtype=np.float32)

# maximum possible value of the YIQ difference metric for 8-bit colors
MAX_YIQ_DELTA = 35215


class ImageSizeMismatchError(ValueError):
    """Raised when two images of different sizes are compared."""

    def __init__(self, size1: tuple[int, int], size2: tuple[int, int]) -> None:
        super().__init__(f"size mismatch: {size1} vs {size2}")
        self.size1 = size1
        self.size2 = size2


class ComparisonCancelled(RuntimeError):
    """Raised when a comparison is aborted through its cancellation hook."""


# Single colors and whole planes share this arithmetic so both compare paths
# round identically. The alpha slot carries no weight and is skipped.
def _project(color: npt.NDArray[np.float32], coeffs: npt.NDArray[np.float32]) -> Any:
    return color[..., 0] * coeffs[0] + color[..., 1] * coeffs[1] + color[..., 2] * coeffs[2]


def _yiq_delta(color1: npt.NDArray[np.float32], color2: npt.NDArray[np.float32]) -> Any:
    y = _project(color1, RGB2Y) - _project(color2, RGB2Y)
    i = _project(color1, RGB2I) - _project(color2, RGB2I)
    q = _project(color1, RGB2Q) - _project(color2, RGB2Q)
    delta = y * y * YIQ2D[0] + i * i * YIQ2D[1] + q * q * YIQ2D[2]
    return np.where(y > 0, -delta, delta)


def color_delta_y(color1: Color4, color2: Color4) -> float:
    """Return the luminance difference between two normalized colors."""
    return float(_project(color1, RGB2Y) - _project(color2, RGB2Y))


def color_delta(color1: Color4, color2: Color4) -> float:
    """Return the squared YIQ distance between two normalized colors.

    The result is negative when the first color is the brighter one.
    """
    return float(_yiq_delta(color1, color2))


def _window(x: int, y: int, width: int, height: int) -> tuple[int, int, int, int, int]:
    """Return the clamped 3x3 window around (x, y) and its border seed."""
    x0 = max(x - 1, 0)
    y0 = max(y - 1, 0)
    x2 = min(x + 1, width - 1)
    y2 = min(y + 1, height - 1)
    seed = 1 if x in (x0, x2) or y in (y0, y2) else 0
    return x0, y0, x2, y2, seed


def has_many_siblings(img: AbstractImage, x1: int, y1: int, width: int, height: int) -> bool:
    """Return True if the pixel has 3+ adjacent pixels of the same raw value.

    Pixels on the image border start with one virtual equal sibling.
    """
    x0, y0, x2, y2, zeroes = _window(x1, y1, width, height)
    color = img[x1, y1]

    for x in range(x0, x2 + 1):
        for y in range(y0, y2 + 1):
            if x == x1 and y == y1:
                continue
            if img.are_equal(color, img[x, y]):
                zeroes += 1
            if zeroes > 2:
                return True

    return False


def is_anti_aliased(
    img1: AbstractImage,
    color1: Color4,
    x1: int,
    y1: int,
    width: int,
    height: int,
    img2: AbstractImage,
) -> bool:
    """Return True if the pixel at (x1, y1) of img1 is likely anti-aliasing.

    Args:
        img1: Image the pixel belongs to.
        color1: Normalized color of the pixel in img1.
        x1: Pixel column.
        y1: Pixel row.
        width: Width shared by both images.
        height: Height shared by both images.
        img2: The other image of the comparison.
    """
    x0, y0, x2, y2, zeroes = _window(x1, y1, width, height)
    min_delta = 0.0
    max_delta = 0.0
    min_x = min_y = max_x = max_y = 0

    for x in range(x0, x2 + 1):
        for y in range(y0, y2 + 1):
            if x == x1 and y == y1:
                continue

            # brightness delta between the center pixel and the adjacent one
            delta = color_delta_y(color1, img1.normalized(img1[x, y]))

            if delta == 0:
                zeroes += 1
                # more than 2 equal siblings rules out anti-aliasing
                if zeroes > 2:
                    return False
            elif delta < min_delta:
                min_delta = delta
                min_x, min_y = x, y
            elif delta > max_delta:
                max_delta = delta
                max_x, max_y = x, y

    # anti-aliasing needs both a darker and a brighter neighbour
    if min_delta == 0 or max_delta == 0:
        return False

    # the darkest or brightest neighbour sits in a flat area of both images
    return (
        has_many_siblings(img1, min_x, min_y, width, height)
        and has_many_siblings(img2, min_x, min_y, width, height)
    ) or (
        has_many_siblings(img1, max_x, max_y, width, height)
        and has_many_siblings(img2, max_x, max_y, width, height)
    )


# 3x3 neighbour offsets (dx, dy) in the order is_anti_aliased scans them
_NEIGHBOURS = [(dx, dy) for dx in (-1, 0, 1) for dy in (-1, 0, 1) if dx or dy]


def _neighbours(plane: npt.NDArray[Any], fill: Any) -> npt.NDArray[Any]:
    """Stack ``plane[y + dy, x + dx]`` for every neighbour offset, ``fill`` outside."""
    height, width = plane.shape
    padded = np.pad(plane, 1, constant_values=fill)
    return np.stack(
        [padded[1 + dy : 1 + dy + height, 1 + dx : 1 + dx + width] for dx, dy in _NEIGHBOURS]
    )


def _border_seed(height: int, width: int) -> npt.NDArray[np.int64]:
    seed = np.zeros((height, width), dtype=np.int64)
    seed[0, :] = seed[-1, :] = 1
    seed[:, 0] = seed[:, -1] = 1
    return seed


def _many_siblings_map(
    pixels: npt.NDArray[np.uint32], inside: npt.NDArray[np.bool_], seed: npt.NDArray[np.int64]
) -> npt.NDArray[np.bool_]:
    """has_many_siblings for every pixel of a packed image."""
    equal = (_neighbours(pixels, 0) == pixels) & inside
    return seed + equal.sum(axis=0) > 2


def _anti_aliased_map(
    luma: npt.NDArray[np.float32],
    flat: npt.NDArray[np.bool_],
    inside: npt.NDArray[np.bool_],
    seed: npt.NDArray[np.int64],
) -> npt.NDArray[np.bool_]:
    """is_anti_aliased for every pixel, given its image's luminance plane.

    ``flat`` marks pixels with many siblings in both images.
    """
    delta = luma - _neighbours(luma, 0)
    zeroes = seed + ((delta == 0) & inside).sum(axis=0)
    negative = inside & (delta < 0)
    positive = inside & (delta > 0)

    # argmin/argmax return the first extreme in scan order, like the strict
    # comparisons of the per-pixel classifier
    k_min = np.where(negative, delta, np.inf).argmin(axis=0)[np.newaxis]
    k_max = np.where(positive, delta, -np.inf).argmax(axis=0)[np.newaxis]
    flat_near = _neighbours(flat, False)
    flat_min = np.take_along_axis(flat_near, k_min, axis=0)[0]
    flat_max = np.take_along_axis(flat_near, k_max, axis=0)[0]

    return (zeroes <= 2) & negative.any(axis=0) & positive.any(axis=0) & (flat_min | flat_max)


def _anti_aliased_pair(
    pixels1: npt.NDArray[np.uint32], pixels2: npt.NDArray[np.uint32]
) -> npt.NDArray[np.bool_]:
    """Mask of pixels classified as anti-aliasing in either image."""
    height, width = pixels1.shape
    inside = _neighbours(np.ones((height, width), dtype=bool), False)
    seed = _border_seed(height, width)
    flat = _many_siblings_map(pixels1, inside, seed) & _many_siblings_map(pixels2, inside, seed)
    aa1 = _anti_aliased_map(_project(normalized_planes(pixels1), RGB2Y), flat, inside, seed)
    aa2 = _anti_aliased_map(_project(normalized_planes(pixels2), RGB2Y), flat, inside, seed)
    return aa1 | aa2


class PixelMatcher:
    """Counts perceptually different pixels between two images.

    Args:
        threshold: Matching threshold from 0 to 1; smaller is more sensitive.
        ignore_anti_aliased_pixels: Skip differences classified as anti-aliasing.
    """

    def __init__(self, threshold: float = 0.1, ignore_anti_aliased_pixels: bool = True) -> None:
        self.threshold = threshold
        self.ignore_anti_aliased_pixels = ignore_anti_aliased_pixels

    @property
    def threshold(self) -> float:
        return self._threshold

    @threshold.setter
    def threshold(self, value: float) -> None:
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"threshold must be between 0 and 1, got {value}")
        self._threshold = float(value)

    @property
    def max_delta(self) -> float:
        """Maximum acceptable squared YIQ distance for the current threshold."""
        t = np.float32(self._threshold)
        return float(np.float32(MAX_YIQ_DELTA) / np.float32(255) / np.float32(255) * (t * t))

    def compare(
        self,
        img1: AbstractImage,
        img2: AbstractImage,
        on_difference: DifferenceCallback | None = None,
        *,
        should_cancel: Callable[[], bool] | None = None,
    ) -> int:
        """Compare two images of the same size.

        Two ``InterleavedImagePBgra32`` images are compared with whole-array
        numpy operations; any other images go through their own ``[x, y]``,
        ``are_equal`` and ``normalized`` one pixel at a time. Both give the
        same count and the same callbacks.

        Args:
            img1: The first image.
            img2: The second image.
            on_difference: Called with (x, y, delta) for every pixel whose
                delta exceeds the threshold. Pixels ignored as anti-aliasing
                are reported too, with a delta of 0.
            should_cancel: Polled before each row; a truthy result aborts.

        Returns:
            Number of different pixels.

        Raises:
            ImageSizeMismatchError: If the images differ in size.
            ComparisonCancelled: If should_cancel returned True.
        """
        if img1.size != img2.size:
            raise ImageSizeMismatchError(img1.size, img2.size)

        if isinstance(img1, InterleavedImagePBgra32) and isinstance(img2, InterleavedImagePBgra32):
            diff = self._compare_packed(img1.pixels, img2.pixels, on_difference, should_cancel)
        else:
            diff = self._compare_pixels(img1, img2, on_difference, should_cancel)

        width, height = img1.size
        log.debug("compared %dx%d images: %d different pixels", width, height, diff)
        return diff

    def _compare_pixels(
        self,
        img1: AbstractImage,
        img2: AbstractImage,
        on_difference: DifferenceCallback | None,
        should_cancel: Callable[[], bool] | None,
    ) -> int:
        max_delta = self.max_delta
        check_aa = self.ignore_anti_aliased_pixels
        width, height = img1.size
        diff = 0

        for y in range(height):
            if should_cancel is not None and should_cancel():
                raise ComparisonCancelled(f"comparison cancelled at row {y} of {height}")

            for x in range(width):
                raw1 = img1[x, y]
                raw2 = img2[x, y]
                if img1.are_equal(raw1, raw2):
                    continue

                norm1 = img1.normalized(raw1)
                norm2 = img2.normalized(raw2)
                delta = color_delta(norm1, norm2)

                if abs(delta) > max_delta:
                    if not check_aa or (
                        not is_anti_aliased(img1, norm1, x, y, width, height, img2)
                        and not is_anti_aliased(img2, norm2, x, y, width, height, img1)
                    ):
                        diff += 1
                    else:
                        delta = 0.0

                    if on_difference is not None:
                        on_difference(x, y, delta)

        return diff

    def _compare_packed(
        self,
        pixels1: npt.NDArray[np.uint32],
        pixels2: npt.NDArray[np.uint32],
        on_difference: DifferenceCallback | None,
        should_cancel: Callable[[], bool] | None,
    ) -> int:
        height = pixels1.shape[0]
        ys, xs = np.nonzero(pixels1 != pixels2)
        delta = _yiq_delta(normalized_planes(pixels1[ys, xs]), normalized_planes(pixels2[ys, xs]))

        exceeds = np.abs(delta) > self.max_delta
        ys, xs, delta = ys[exceeds], xs[exceeds], delta[exceeds]
        counted = np.ones(delta.shape, dtype=bool)
        if self.ignore_anti_aliased_pixels and delta.size:
            counted = ~_anti_aliased_pair(pixels1, pixels2)[ys, xs]

        # callbacks still go out row by row, between cancellation polls
        reported = np.where(counted, delta, 0).tolist()
        columns = xs.tolist()
        row_starts = np.searchsorted(ys, np.arange(height + 1)).tolist()
        for y in range(height):
            if should_cancel is not None and should_cancel():
                raise ComparisonCancelled(f"comparison cancelled at row {y} of {height}")
            if on_difference is not None:
                for n in range(row_starts[y], row_starts[y + 1]):
                    on_difference(columns[n], y, reported[n])

        return int(counted.sum())
