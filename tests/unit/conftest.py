"""Shared helpers for unit tests."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

import numpy as np
import pytest

from pixmatch.conversion import Color4, normalized_pbgra32
from pixmatch.image import AbstractImage, InterleavedImagePBgra32

Pixel = tuple[int, int, int, int]

BLACK: Pixel = (0, 0, 0, 255)
WHITE: Pixel = (255, 255, 255, 255)
RED: Pixel = (255, 0, 0, 255)


def make_image(rows: Sequence[Sequence[Pixel]]) -> InterleavedImagePBgra32:
    """Build a PBGRA32 image from rows of straight RGBA tuples."""
    return InterleavedImagePBgra32.from_rgba(np.array(rows, dtype=np.uint8))


def solid_image(color: Pixel, size: tuple[int, int] = (4, 4)) -> InterleavedImagePBgra32:
    """Build a single-color image of the given (width, height)."""
    width, height = size
    return make_image([[color] * width for _ in range(height)])


@pytest.fixture
def random_pair() -> Callable[..., tuple[InterleavedImagePBgra32, InterleavedImagePBgra32]]:
    """Return a factory of seeded random image pairs that share most pixels."""

    def factory(
        seed: int = 0, size: tuple[int, int] = (12, 10)
    ) -> tuple[InterleavedImagePBgra32, InterleavedImagePBgra32]:
        rng = np.random.default_rng(seed)
        width, height = size
        # few distinct colors so flat regions and exact siblings occur
        palette = rng.integers(0, 256, size=(5, 4), dtype=np.uint8)
        palette[:, 3] = 255
        a = palette[rng.integers(0, len(palette), size=(height, width))]
        b = a.copy()
        mask = rng.random((height, width)) < 0.3
        b[mask] = rng.integers(0, 256, size=(int(mask.sum()), 4), dtype=np.uint8)
        return InterleavedImagePBgra32.from_rgba(a), InterleavedImagePBgra32.from_rgba(b)

    return factory


class BytesImage(AbstractImage):
    """Image whose raw pixels are 4-byte little-endian strings.

    Uses the default bytewise equality of AbstractImage.
    """

    def __init__(self, rows: list[list[bytes]]) -> None:
        self._rows = rows

    @classmethod
    def from_image(cls, img: InterleavedImagePBgra32) -> BytesImage:
        width, height = img.size
        return cls(
            [[int(img[x, y]).to_bytes(4, "little") for x in range(width)] for y in range(height)]
        )

    @property
    def size(self) -> tuple[int, int]:
        return len(self._rows[0]), len(self._rows)

    def __getitem__(self, xy: tuple[int, int]) -> Any:
        x, y = xy
        return self._rows[y][x]

    def normalized(self, raw: Any) -> Color4:
        return normalized_pbgra32(int.from_bytes(raw, "little"))
