from __future__ import annotations

from io import BytesIO

import numpy as np
import pytest
from PIL import Image


def make_rect_image(
    size: tuple[int, int] = (200, 200),
    rects: list[tuple[int, int, int, int]] | None = None,
    background: int = 0,
    foreground: int = 255,
) -> Image.Image:
    """Uniform RGBA canvas with solid rectangles given as (x, y, w, h)."""
    width, height = size
    arr = np.full((height, width, 4), background, dtype=np.uint8)
    arr[:, :, 3] = 255
    for x, y, w, h in rects or []:
        arr[y : y + h, x : x + w, :3] = foreground
    return Image.fromarray(arr)


def to_png_bytes(image: Image.Image) -> bytes:
    out = BytesIO()
    image.save(out, "PNG")
    return out.getvalue()


@pytest.fixture
def rect_image() -> Image.Image:
    return make_rect_image(rects=[(50, 50, 100, 100)])


@pytest.fixture
def blank_image() -> Image.Image:
    return make_rect_image()
