"""pixmatch package."""

from importlib.metadata import PackageNotFoundError, version

from pixmatch.image import AbstractImage, InterleavedImagePBgra32, RawImageData
from pixmatch.matcher import ComparisonCancelled, ImageSizeMismatchError, PixelMatcher

__all__ = [
    "__version__",
    "AbstractImage",
    "ComparisonCancelled",
    "ImageSizeMismatchError",
    "InterleavedImagePBgra32",
    "PixelMatcher",
    "RawImageData",
]

try:
    __version__ = version("pixmatch")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"
