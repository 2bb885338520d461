"""Auto-crop policy and crop export built on top of the detection and enhancement engines."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from PIL import Image

from .crop_detection_engine import suggest_crop
from .enhancement_engine import enhance_pixels
from .geometry import CropBox, full_image_box, pad_crop_box
from .image_utils import InvalidCropError, PixelBuffer, encode_image, encode_png

logger = logging.getLogger(__name__)

DEFAULT_EXPORT_FORMAT = "PNG"
_FORMAT_EXTENSIONS = {"PNG": "png", "JPEG": "jpg", "WEBP": "webp", "TIFF": "tif", "BMP": "bmp"}


@dataclass(frozen=True)
class CropSuggestion:
    box: CropBox
    raw_box: CropBox | None
    detected: bool


def resolve_crop(pil_image: Image.Image) -> CropSuggestion:
    """Suggest a crop, padded for presentation, falling back to the full image."""
    width, height = pil_image.size
    fallback = full_image_box(width, height)

    raw_box = suggest_crop(pil_image)
    if raw_box is None:
        logger.info("No crop suggestion, using full image")
        return CropSuggestion(box=fallback, raw_box=None, detected=False)
    if raw_box.w <= 0 or raw_box.h <= 0:
        logger.warning(f"Invalid crop dimensions {raw_box.as_tuple()}, using full image")
        return CropSuggestion(box=fallback, raw_box=raw_box, detected=False)

    return CropSuggestion(box=pad_crop_box(raw_box, width, height), raw_box=raw_box, detected=True)


def validate_crop_box(box: CropBox, width: int, height: int) -> None:
    """Reject geometry outside the image instead of clamping it."""
    if box.w <= 0 or box.h <= 0:
        raise InvalidCropError(f"Crop width and height must be positive, got {box.w}x{box.h}")
    if box.x < 0 or box.y < 0 or box.right > width or box.bottom > height:
        raise InvalidCropError(f"Crop {box.as_tuple()} exceeds image bounds {width}x{height}")


def crop_pixels(buffer: PixelBuffer, box: CropBox) -> PixelBuffer:
    validate_crop_box(box, buffer.width, buffer.height)
    region = buffer.pixels[box.y : box.bottom, box.x : box.right]
    return PixelBuffer(region.copy())


def export_crop(
    pil_image: Image.Image,
    box: CropBox,
    enhance: bool = False,
    fmt: str | None = None,
) -> tuple[bytes, str]:
    """Crop an image and encode the region.

    Enhanced output is always PNG. Otherwise the requested format, or the
    source format, or PNG is used. Returns (payload, file extension).
    """
    cropped = crop_pixels(PixelBuffer.from_pil(pil_image), box)
    if enhance:
        return encode_png(enhance_pixels(cropped)), "png"

    out_fmt = (fmt or pil_image.format or DEFAULT_EXPORT_FORMAT).upper()
    if out_fmt == "JPG":
        out_fmt = "JPEG"
    if out_fmt not in _FORMAT_EXTENSIONS:
        out_fmt = DEFAULT_EXPORT_FORMAT
    return encode_image(cropped.to_pil(), out_fmt), _FORMAT_EXTENSIONS[out_fmt]
