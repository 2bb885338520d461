"""Shared image loading, pixel buffer and encoding utilities."""

from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

RGBA_CHANNELS = 4


class ImageDecodeError(ValueError):
    """Raised when an image payload or file cannot be decoded."""


class InvalidCropError(ValueError):
    """Raised when a caller supplies crop geometry outside the image."""


class EnhancementError(RuntimeError):
    """Raised when an enhancement stage cannot produce its output buffer."""


@dataclass(frozen=True)
class PixelBuffer:
    """RGBA pixels, shape (height, width, 4), dtype uint8, row-major."""

    pixels: np.ndarray

    def __post_init__(self) -> None:
        arr = self.pixels
        if arr.dtype != np.uint8 or arr.ndim != 3 or arr.shape[2] != RGBA_CHANNELS:
            raise ValueError(f"Expected (H, W, 4) uint8 pixels, got {arr.shape} {arr.dtype}")

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @classmethod
    def from_pil(cls, pil_image: Image.Image) -> PixelBuffer:
        rgba = pil_image.convert("RGBA")
        return cls(np.array(rgba, dtype=np.uint8))

    def to_pil(self) -> Image.Image:
        return Image.fromarray(self.pixels)


def _upright(im: Image.Image) -> Image.Image:
    upright = ImageOps.exif_transpose(im)
    # Transposing returns a copy, which drops the source format.
    upright.format = im.format
    return upright


def load_image(path: str) -> Image.Image:
    """Load image and apply EXIF transpose."""
    try:
        with Image.open(path) as im:
            im.load()
            return _upright(im)
    except (OSError, UnidentifiedImageError, Image.DecompressionBombError) as exc:
        raise ImageDecodeError(f"Unable to decode image {path}: {exc}") from exc


def decode_image_bytes(payload: bytes) -> Image.Image:
    """Decode an encoded image payload and apply EXIF transpose."""
    if not payload:
        raise ImageDecodeError("Image payload is empty.")
    try:
        with Image.open(BytesIO(payload)) as im:
            im.load()
            return _upright(im)
    except (OSError, UnidentifiedImageError, Image.DecompressionBombError) as exc:
        raise ImageDecodeError(f"Unable to decode image: {exc}") from exc


def encode_image(pil_image: Image.Image, fmt: str = "PNG") -> bytes:
    fmt = fmt.upper()
    if fmt in ("JPG", "JPEG"):
        # JPEG has no alpha channel.
        pil_image = pil_image.convert("RGB")
        fmt = "JPEG"
    out = BytesIO()
    if fmt == "JPEG":
        pil_image.save(out, fmt, quality=100)
    else:
        pil_image.save(out, fmt)
    return out.getvalue()


def encode_png(buffer: PixelBuffer) -> bytes:
    """Encode a pixel buffer as lossless PNG."""
    return encode_image(buffer.to_pil(), "PNG")
