"""Tests for Pillow image loading."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from PIL import Image, ImageCms, UnidentifiedImageError

from pixmatch.loader import PillowImagePBgra32, load_image


def _channels(raw: int) -> tuple[int, int, int, int]:
    """Unpack a PBGRA32 value into (r, g, b, a)."""
    return raw >> 16 & 0xFF, raw >> 8 & 0xFF, raw & 0xFF, raw >> 24 & 0xFF


def _save(tmp_path: Path, name: str, img: Image.Image, **params: object) -> Path:
    p = tmp_path / name
    img.save(p, **params)
    return p


class TestLoadImage:
    def test_rgba_png(self, tmp_path: Path) -> None:
        p = _save(tmp_path, "a.png", Image.new("RGBA", (3, 2), (255, 0, 0, 255)))
        with load_image(p) as img:
            assert isinstance(img, PillowImagePBgra32)
            assert img.size == (3, 2)
            assert img[2, 1] == 0xFFFF0000

    def test_rgb_becomes_opaque(self, tmp_path: Path) -> None:
        p = _save(tmp_path, "a.png", Image.new("RGB", (1, 1), (10, 20, 30)))
        with load_image(p) as img:
            assert _channels(img[0, 0]) == (10, 20, 30, 255)

    def test_grayscale(self, tmp_path: Path) -> None:
        p = _save(tmp_path, "a.png", Image.new("L", (1, 1), 128))
        with load_image(p) as img:
            assert _channels(img[0, 0]) == (128, 128, 128, 255)

    def test_alpha_is_premultiplied(self, tmp_path: Path) -> None:
        p = _save(tmp_path, "a.png", Image.new("RGBA", (1, 1), (255, 255, 255, 128)))
        with load_image(p) as img:
            assert _channels(img[0, 0]) == (128, 128, 128, 128)

    def test_region(self, tmp_path: Path) -> None:
        src = Image.new("RGBA", (4, 4), (0, 0, 0, 255))
        src.putpixel((2, 1), (0, 255, 0, 255))
        p = _save(tmp_path, "a.png", src)
        with load_image(p, region=(1, 1, 3, 3)) as img:
            assert img.size == (2, 2)
            assert _channels(img[1, 0]) == (0, 255, 0, 255)

    def test_close_releases_image(self, tmp_path: Path) -> None:
        p = _save(tmp_path, "a.png", Image.new("RGBA", (1, 1), (0, 0, 0, 255)))
        img = load_image(p)
        img.close()
        img.close()
        assert img.closed

    def test_file_not_found(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_image(tmp_path / "missing.png")

    def test_invalid_image(self, tmp_path: Path) -> None:
        bad = tmp_path / "bad.png"
        bad.write_text("not an image")
        with pytest.raises(UnidentifiedImageError):
            load_image(bad)


class TestColorCorrection:
    def test_srgb_profile_keeps_colors(self, tmp_path: Path) -> None:
        icc = ImageCms.ImageCmsProfile(ImageCms.createProfile("sRGB")).tobytes()
        img = Image.new("RGB", (2, 2), (200, 100, 50))
        p = _save(tmp_path, "a.png", img, icc_profile=icc)
        with load_image(p) as loaded:
            r, g, b, a = _channels(loaded[0, 0])
        assert a == 255
        assert abs(r - 200) <= 2 and abs(g - 100) <= 2 and abs(b - 50) <= 2

    def test_skip_color_correction(self, tmp_path: Path) -> None:
        icc = ImageCms.ImageCmsProfile(ImageCms.createProfile("sRGB")).tobytes()
        p = _save(tmp_path, "a.png", Image.new("RGB", (1, 1), (200, 100, 50)), icc_profile=icc)
        with load_image(p, color_correction=False) as loaded:
            assert _channels(loaded[0, 0]) == (200, 100, 50, 255)

    def test_broken_profile_falls_back(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        img = Image.new("RGB", (1, 1), (200, 100, 50))
        p = _save(tmp_path, "a.png", img, icc_profile=b"not a profile")
        with caplog.at_level(logging.WARNING, logger="pixmatch.loader"):
            with load_image(p) as loaded:
                assert _channels(loaded[0, 0]) == (200, 100, 50, 255)
        assert "ICC color correction failed" in caplog.text
