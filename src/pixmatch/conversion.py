"""Conversion between packed PBGRA32 pixels and normalized colors."""

from __future__ import annotations

import numpy as np
import numpy.typing as npt

Color4 = npt.NDArray[np.float32]

BYTE_SCALE = np.float32(1.0 / 255)
COLOR_SCALE = BYTE_SCALE * BYTE_SCALE


def normalized_pbgra32(raw: int) -> Color4:
    """Convert a packed premultiplied BGRA pixel to a normalized color.

    Byte 0 is blue, byte 1 green, byte 2 red and byte 3 alpha. Every channel,
    plus a constant 255 in the fourth slot, is scaled by ``alpha / 255**2``,
    which keeps the 0-255 tuned YIQ coefficients usable as-is.
    """
    raw = int(raw)
    scale = np.float32(raw >> 24 & 0xFF) * COLOR_SCALE
    color = np.array(
        (raw >> 16 & 0xFF, raw >> 8 & 0xFF, raw & 0xFF, 255),
        dtype=np.float32,
    )
    return color * scale


def normalized_planes(pixels: npt.ArrayLike) -> npt.NDArray[np.float32]:
    """Apply ``normalized_pbgra32`` to every element of a packed pixel array.

    The result gains a trailing axis holding the four normalized channels.
    """
    p = np.asarray(pixels, dtype=np.uint32)
    scale = (p >> 24 & 0xFF).astype(np.float32) * COLOR_SCALE
    color = np.stack(
        (p >> 16 & 0xFF, p >> 8 & 0xFF, p & 0xFF, np.full_like(p, 255)),
        axis=-1,
    ).astype(np.float32)
    return color * scale[..., np.newaxis]


def pack_pbgra32(r: int, g: int, b: int, a: int = 255) -> int:
    """Pack already premultiplied channels into one PBGRA32 value."""
    return (a & 0xFF) << 24 | (r & 0xFF) << 16 | (g & 0xFF) << 8 | (b & 0xFF)


def premultiply_rgba(rgba: npt.ArrayLike) -> npt.NDArray[np.uint32]:
    """Convert a straight-alpha ``(H, W, 4)`` RGBA array to packed PBGRA32.

    Raises:
        ValueError: If the array does not have a trailing axis of 4 channels.
    """
    arr = np.asarray(rgba, dtype=np.uint32)
    if arr.ndim != 3 or arr.shape[2] != 4:
        raise ValueError(f"expected an (H, W, 4) RGBA array, got shape {arr.shape}")

    alpha = arr[..., 3]
    # round(c * a / 255) in integer arithmetic
    r = (arr[..., 0] * alpha + 127) // 255
    g = (arr[..., 1] * alpha + 127) // 255
    b = (arr[..., 2] * alpha + 127) // 255
    packed = (alpha << 24) | (r << 16) | (g << 8) | b
    return packed.astype(np.uint32)


def unpack_rgb(pixels: npt.ArrayLike) -> npt.NDArray[np.uint8]:
    """Split packed PBGRA32 pixels into an ``(H, W, 3)`` array of premultiplied RGB."""
    p = np.asarray(pixels, dtype=np.uint32)
    return np.stack((p >> 16 & 0xFF, p >> 8 & 0xFF, p & 0xFF), axis=-1).astype(np.uint8)
