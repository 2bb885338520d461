from __future__ import annotations

import logging

import cv2
import numpy as np

from .image_utils import EnhancementError, PixelBuffer, decode_image_bytes, encode_png

logger = logging.getLogger(__name__)

UPSCALE_MIN_DIM = 512
UPSCALE_FACTOR = 2

SHARPEN_KERNEL = np.array([[0, -1, 0], [-1, 5, -1], [0, -1, 0]], dtype=np.int32)

CONTRAST_ALPHA = 1.05
BRIGHTNESS_BETA = 10.0


def upscale_if_small(buffer: PixelBuffer) -> PixelBuffer:
    """Double both dimensions with Lanczos resampling when either side is below 512."""
    width, height = buffer.width, buffer.height
    if width >= UPSCALE_MIN_DIM and height >= UPSCALE_MIN_DIM:
        return buffer
    if width == 0 or height == 0:
        raise EnhancementError(f"Cannot upscale an empty {width}x{height} image")

    target = (width * UPSCALE_FACTOR, height * UPSCALE_FACTOR)
    try:
        resized = cv2.resize(buffer.pixels, target, interpolation=cv2.INTER_LANCZOS4)
    except (cv2.error, MemoryError) as exc:
        raise EnhancementError(f"Failed to upscale {width}x{height} image: {exc}") from exc
    if resized is None or resized.shape[:2] != (target[1], target[0]):
        raise EnhancementError(f"Upscaling produced no buffer for {width}x{height} image")
    logger.debug(f"Upscaled {width}x{height} -> {target[0]}x{target[1]}")
    return PixelBuffer(np.ascontiguousarray(resized, dtype=np.uint8))


def _sharpen_rgb(rgb: np.ndarray) -> np.ndarray:
    src = rgb.astype(np.int32)
    height, width = src.shape[:2]
    acc = np.zeros_like(src)
    for ky in range(3):
        for kx in range(3):
            weight = int(SHARPEN_KERNEL[ky, kx])
            if not weight:
                continue
            dy, dx = ky - 1, kx - 1
            # Output rows/cols whose (y+dy, x+dx) tap lies inside the image.
            oy0, oy1 = max(0, -dy), min(height, height - dy)
            ox0, ox1 = max(0, -dx), min(width, width - dx)
            if oy0 >= oy1 or ox0 >= ox1:
                continue
            acc[oy0:oy1, ox0:ox1] += weight * src[oy0 + dy : oy1 + dy, ox0 + dx : ox1 + dx]
    return np.clip(acc, 0, 255).astype(np.uint8)


def _linear_rgb(rgb: np.ndarray, alpha: float, beta: float) -> np.ndarray:
    return np.rint(np.clip(alpha * rgb.astype(np.float64) + beta, 0, 255)).astype(np.uint8)


def sharpen(buffer: PixelBuffer) -> PixelBuffer:
    """Apply the 3x3 sharpen kernel to R, G and B.

    Kernel taps falling outside the image are skipped rather than padded.
    Alpha is copied unchanged.
    """
    src = buffer.pixels
    try:
        out = src.copy()
        out[:, :, :3] = _sharpen_rgb(src[:, :, :3])
    except MemoryError as exc:
        raise EnhancementError(f"Failed to allocate {buffer.width}x{buffer.height} sharpen buffers") from exc
    return PixelBuffer(out)


def adjust_contrast_brightness(
    buffer: PixelBuffer,
    alpha: float = CONTRAST_ALPHA,
    beta: float = BRIGHTNESS_BETA,
) -> PixelBuffer:
    """Linear out = alpha * in + beta on R, G and B, clamped to [0, 255]."""
    src = buffer.pixels
    try:
        out = src.copy()
        out[:, :, :3] = _linear_rgb(src[:, :, :3], alpha, beta)
    except MemoryError as exc:
        raise EnhancementError(f"Failed to allocate {buffer.width}x{buffer.height} contrast buffers") from exc
    return PixelBuffer(out)


def enhance_pixels(buffer: PixelBuffer) -> PixelBuffer:
    """Upscale (when small), sharpen, then adjust contrast and brightness."""
    working = upscale_if_small(buffer)
    working = sharpen(working)
    return adjust_contrast_brightness(working)


def enhance_image_bytes(payload: bytes) -> bytes:
    """Decode an image payload, enhance it and return PNG bytes."""
    image = decode_image_bytes(payload)
    enhanced = enhance_pixels(PixelBuffer.from_pil(image))
    return encode_png(enhanced)
