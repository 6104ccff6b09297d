"""Image capability consumed by the pixel matcher, plus the built-in PBGRA32 image."""

from __future__ import annotations

import abc
from types import TracebackType
from typing import Any

import numpy as np
import numpy.typing as npt
from numpy.lib.stride_tricks import as_strided

from pixmatch.conversion import Color4, normalized_pbgra32, premultiply_rgba


class AbstractImage(abc.ABC):
    """Read-only view of a rectangular grid of raw pixels.

    Raw pixel values are opaque to the matcher: it only compares them with
    ``are_equal`` and turns them into colors with ``normalized``.
    Images are context managers; ``close`` releases whatever backs them.
    """

    @property
    @abc.abstractmethod
    def size(self) -> tuple[int, int]:
        """Return (width, height)."""

    @abc.abstractmethod
    def __getitem__(self, xy: tuple[int, int]) -> Any:
        """Return the raw pixel at (x, y)."""

    @abc.abstractmethod
    def normalized(self, raw: Any) -> Color4:
        """Convert a raw pixel to a normalized, alpha-premultiplied color."""

    def are_equal(self, raw1: Any, raw2: Any) -> bool:
        """Return True if both raw pixels have the same bytes."""
        return bool(np.asarray(raw1).tobytes() == np.asarray(raw2).tobytes())

    def close(self) -> None:
        """Release the pixel storage. Safe to call more than once."""

    def __enter__(self) -> AbstractImage:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class RawImageData:
    """Zero-copy view over a caller-owned 32-bit pixel buffer.

    The buffer is addressed as ``pixels[x + y * stride]`` where stride is
    counted in pixels. The caller keeps the buffer alive and unchanged until
    ``close`` is called.
    """

    def __init__(self, size: tuple[int, int], pixels: npt.NDArray[np.uint32]) -> None:
        width, height = size
        if pixels.shape != (height, width):
            raise ValueError(f"pixel array shape {pixels.shape} does not match size {size}")
        self.size = (width, height)
        self._pixels: npt.NDArray[np.uint32] | None = pixels

    @classmethod
    def from_array(cls, pixels: npt.NDArray[np.uint32]) -> RawImageData:
        """Wrap a 2-D ``uint32`` array indexed ``[y, x]``."""
        if pixels.ndim != 2:
            raise ValueError(f"expected a 2-D pixel array, got {pixels.ndim} dimensions")
        if pixels.dtype != np.uint32:
            raise ValueError(f"expected uint32 pixels, got {pixels.dtype}")
        height, width = pixels.shape
        return cls((width, height), pixels)

    @classmethod
    def from_bytes(cls, size: tuple[int, int], buffer: Any, byte_stride: int) -> RawImageData:
        """Wrap a raw byte buffer holding rows of little-endian 32-bit pixels.

        Args:
            size: (width, height) in pixels.
            buffer: Any object exposing the buffer protocol.
            byte_stride: Distance between the starts of two rows, in bytes.

        Raises:
            ValueError: If the stride is not a multiple of 4 or shorter than a
                row, or the buffer is too small for the requested size.
        """
        if byte_stride % 4 != 0:
            raise ValueError(f"byte_stride must be a multiple of 4, got {byte_stride}")
        width, height = size
        if byte_stride < width * 4:
            raise ValueError(f"byte_stride {byte_stride} is shorter than a {width}-pixel row")
        flat = np.frombuffer(buffer, dtype="<u4")
        needed = (height - 1) * (byte_stride // 4) + width if height else 0
        if flat.size < needed:
            raise ValueError(f"buffer holds {flat.size} pixels, {needed} needed for {size}")
        pixels = as_strided(flat, shape=(height, width), strides=(byte_stride, 4), writeable=False)
        return cls((width, height), pixels)

    @property
    def stride(self) -> int:
        """Row stride in pixels."""
        return self.pixels.strides[0] // self.pixels.itemsize

    @property
    def closed(self) -> bool:
        return self._pixels is None

    @property
    def pixels(self) -> npt.NDArray[np.uint32]:
        if self._pixels is None:
            raise ValueError("operation on closed image data")
        return self._pixels

    def __getitem__(self, xy: tuple[int, int]) -> int:
        x, y = xy
        return int(self.pixels[y, x])

    def close(self) -> None:
        self._pixels = None

    def __enter__(self) -> RawImageData:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class InterleavedImagePBgra32(AbstractImage):
    """Image of packed premultiplied BGRA pixels, one ``uint32`` each."""

    def __init__(self, data: RawImageData) -> None:
        self._data = data
        self._size = data.size

    @classmethod
    def from_rgba(cls, rgba: npt.ArrayLike) -> InterleavedImagePBgra32:
        """Build an image from a straight-alpha ``(H, W, 4)`` RGBA array."""
        return cls(RawImageData.from_array(premultiply_rgba(rgba)))

    @property
    def closed(self) -> bool:
        return self._data.closed

    @property
    def size(self) -> tuple[int, int]:
        return self._size

    @property
    def pixels(self) -> npt.NDArray[np.uint32]:
        """Packed pixels as a ``(height, width)`` array indexed ``[y, x]``."""
        return self._data.pixels

    def __getitem__(self, xy: tuple[int, int]) -> int:
        return self._data[xy]

    def normalized(self, raw: int) -> Color4:
        return normalized_pbgra32(raw)

    def are_equal(self, raw1: int, raw2: int) -> bool:
        return raw1 == raw2

    def close(self) -> None:
        self._data.close()
