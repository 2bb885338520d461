from __future__ import annotations

from collections import deque

import numpy as np

from .geometry import Contour, Point
from .image_utils import PixelBuffer

EDGE_VALUE = 255

BLUR_KERNEL = np.array([[1, 2, 1], [2, 4, 2], [1, 2, 1]], dtype=np.int32)
BLUR_WEIGHT = 16

SOBEL_X = np.array([[-1, 0, 1], [-2, 0, 2], [-1, 0, 1]], dtype=np.int32)
SOBEL_Y = np.array([[-1, -2, -1], [0, 0, 0], [1, 2, 1]], dtype=np.int32)

_NEIGHBOURS = [(dx, dy) for dy in (-1, 0, 1) for dx in (-1, 0, 1) if (dx, dy) != (0, 0)]


def _to_uint8(values: np.ndarray) -> np.ndarray:
    # 8-bit store: round to nearest (ties to even), then clamp.
    return np.clip(np.rint(values), 0, 255).astype(np.uint8)


def _correlate_interior(data: np.ndarray, kernel: np.ndarray) -> np.ndarray:
    """3x3 correlation over interior pixels; result has shape (H-2, W-2)."""
    height, width = data.shape
    src = data.astype(np.int32)
    acc = np.zeros((height - 2, width - 2), dtype=np.int32)
    for ky in range(3):
        for kx in range(3):
            weight = int(kernel[ky, kx])
            if weight:
                acc += weight * src[ky : ky + height - 2, kx : kx + width - 2]
    return acc


def to_grayscale(buffer: PixelBuffer) -> np.ndarray:
    """Unweighted mean of R, G and B per pixel; alpha is ignored."""
    rgb = buffer.pixels[:, :, :3].astype(np.float64)
    return _to_uint8(rgb.sum(axis=2) / 3.0)


def gaussian_blur(gray: np.ndarray) -> np.ndarray:
    """Fixed 3x3 weighted blur. Border rows and columns are left at 0."""
    height, width = gray.shape
    out = np.zeros((height, width), dtype=np.uint8)
    if height < 3 or width < 3:
        return out
    acc = _correlate_interior(gray, BLUR_KERNEL)
    out[1:-1, 1:-1] = _to_uint8(acc / float(BLUR_WEIGHT))
    return out


def sobel_edges(gray: np.ndarray, threshold: float) -> np.ndarray:
    """Binary edge mask from Sobel gradient magnitude.

    Single-threshold approximation of Canny: no hysteresis and no
    non-maximum suppression. Border pixels are never marked.
    """
    height, width = gray.shape
    mask = np.zeros((height, width), dtype=np.uint8)
    if height < 3 or width < 3:
        return mask
    gx = _correlate_interior(gray, SOBEL_X).astype(np.float64)
    gy = _correlate_interior(gray, SOBEL_Y).astype(np.float64)
    magnitude = np.sqrt(gx * gx + gy * gy)
    mask[1:-1, 1:-1][magnitude > threshold] = EDGE_VALUE
    return mask


def find_contours(mask: np.ndarray) -> list[Contour]:
    """Split an edge mask into 8-connected components.

    Seeds are taken in row-major order; each component is collected by a
    breadth-first fill, so points appear in visitation order.
    """
    height, width = mask.shape
    edge_indices = np.flatnonzero(mask == EDGE_VALUE)
    # Flat byte maps keep the per-pixel loop out of numpy scalar indexing.
    is_edge = bytearray(width * height)
    for idx in edge_indices.tolist():
        is_edge[idx] = 1
    visited = bytearray(width * height)
    contours: list[Contour] = []

    for seed in edge_indices.tolist():
        if visited[seed]:
            continue
        visited[seed] = 1
        sy, sx = divmod(seed, width)
        contour: Contour = []
        queue = deque([(sx, sy)])
        while queue:
            x, y = queue.popleft()
            contour.append(Point(x, y))
            for dx, dy in _NEIGHBOURS:
                nx = x + dx
                ny = y + dy
                if 0 <= nx < width and 0 <= ny < height:
                    n_idx = ny * width + nx
                    if is_edge[n_idx] and not visited[n_idx]:
                        visited[n_idx] = 1
                        queue.append((nx, ny))
        contours.append(contour)

    return contours
