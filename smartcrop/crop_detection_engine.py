from __future__ import annotations

import logging
from collections.abc import Iterable

import numpy as np
from PIL import Image

from .edge_filters import find_contours, gaussian_blur, sobel_edges, to_grayscale
from .geometry import Contour, CropBox, bounding_rect, merge_nearby_boxes
from .image_utils import PixelBuffer

logger = logging.getLogger(__name__)

# 30: low sensitivity, larger/fewer edges. 70: high sensitivity, finer edges.
# Contours from both passes are pooled; merging resolves the redundancy.
EDGE_THRESHOLDS = (30, 70)

MIN_BOX_AREA_RATIO = 0.015
MAX_BOX_AREA_RATIO = 0.95


def collect_contours(blurred: np.ndarray, thresholds: Iterable[float] = EDGE_THRESHOLDS) -> list[Contour]:
    """Run edge extraction at every threshold and pool the contours."""
    pooled: list[Contour] = []
    for threshold in thresholds:
        contours = find_contours(sobel_edges(blurred, threshold))
        logger.debug(f"Found {len(contours)} contours with threshold {threshold}")
        pooled.extend(contours)
    return pooled


def filter_boxes(boxes: Iterable[CropBox], width: int, height: int) -> list[CropBox]:
    # Drop sensor-noise and icon-scale regions.
    min_area = width * height * MIN_BOX_AREA_RATIO
    return [box for box in boxes if box.area > min_area]


def select_best_box(boxes: Iterable[CropBox], width: int, height: int) -> CropBox | None:
    """Merge candidate boxes and pick the largest one.

    Returns None when nothing is left to choose from, or when the winner covers
    more than 95% of the image (a near-full-frame box carries no information).
    """
    if width <= 0 or height <= 0:
        return None
    merged = merge_nearby_boxes(boxes, width, height)
    if not merged:
        return None

    best = merged[0]
    for box in merged[1:]:
        if box.area > best.area:
            best = box

    if best.area / float(width * height) > MAX_BOX_AREA_RATIO:
        logger.info(f"Best crop {best.as_tuple()} is nearly the full image, no suggestion")
        return None
    return best


def suggest_crop_from_buffer(buffer: PixelBuffer) -> CropBox | None:
    """Suggest a crop rectangle for an RGBA pixel buffer, or None."""
    width, height = buffer.width, buffer.height
    if width == 0 or height == 0:
        return None

    blurred = gaussian_blur(to_grayscale(buffer))
    contours = collect_contours(blurred)
    if not contours:
        logger.info("No contours found across all thresholds")
        return None

    boxes = filter_boxes((bounding_rect(c) for c in contours), width, height)
    if not boxes:
        logger.info("Edge detection did not find any significant content areas")
        return None

    return select_best_box(boxes, width, height)


def suggest_crop(pil_image: Image.Image) -> CropBox | None:
    """Detect the dominant rectangular content region of an image.

    Returns a CropBox (x, y, w, h) in image pixel coordinates, or None when no
    useful suggestion exists.
    """
    return suggest_crop_from_buffer(PixelBuffer.from_pil(pil_image))
