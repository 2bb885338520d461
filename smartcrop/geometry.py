from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import NamedTuple

MERGE_MARGIN_FRACTION = 0.05
PADDING_FRACTION = 0.02


class Point(NamedTuple):
    x: int
    y: int


Contour = list[Point]


@dataclass(frozen=True)
class CropBox:
    """Axis-aligned rectangle in source-image pixel coordinates."""

    x: int
    y: int
    w: int
    h: int

    @property
    def right(self) -> int:
        return self.x + self.w

    @property
    def bottom(self) -> int:
        return self.y + self.h

    @property
    def area(self) -> int:
        return self.w * self.h

    def as_tuple(self) -> tuple[int, int, int, int]:
        return (self.x, self.y, self.w, self.h)

    def to_dict(self) -> dict[str, int]:
        return {"x": self.x, "y": self.y, "w": self.w, "h": self.h}


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def bounding_rect(contour: Sequence[Point]) -> CropBox:
    """Return the bounding rectangle of a contour.

    A single-point contour yields a zero-sized box; such boxes never pass the
    area filter of the detection engine.
    """
    if not contour:
        raise ValueError("Cannot compute bounding rect of an empty contour.")
    xs = [p.x for p in contour]
    ys = [p.y for p in contour]
    min_x, min_y = min(xs), min(ys)
    return CropBox(x=min_x, y=min_y, w=max(xs) - min_x, h=max(ys) - min_y)


def merge_rects(a: CropBox, b: CropBox) -> CropBox:
    x = min(a.x, b.x)
    y = min(a.y, b.y)
    return CropBox(x=x, y=y, w=max(a.right, b.right) - x, h=max(a.bottom, b.bottom) - y)


def should_merge(a: CropBox, b: CropBox, margin: float) -> bool:
    # Expand a by margin on all sides; touching rectangles count as intersecting.
    ex0 = a.x - margin
    ey0 = a.y - margin
    ex1 = a.right + margin
    ey1 = a.bottom + margin
    return ex0 <= b.right and ex1 >= b.x and ey0 <= b.bottom and ey1 >= b.y


def merge_nearby_boxes(boxes: Iterable[CropBox], img_width: int, img_height: int) -> list[CropBox]:
    """Merge boxes lying within 5% of the smaller image dimension of each other.

    After every merge the pair scan restarts from the beginning; the loop ends
    on the first full pass that finds nothing to merge. Returns a new list.
    """
    merged = list(boxes)
    if len(merged) < 2:
        return merged

    margin = MERGE_MARGIN_FRACTION * min(img_width, img_height)
    changed = True
    while changed:
        changed = False
        for i in range(len(merged)):
            for j in range(i + 1, len(merged)):
                if should_merge(merged[i], merged[j], margin):
                    merged[i] = merge_rects(merged[i], merged[j])
                    del merged[j]
                    changed = True
                    break
            if changed:
                break
    return merged


def full_image_box(img_width: int, img_height: int) -> CropBox:
    return CropBox(x=0, y=0, w=img_width, h=img_height)


def pad_crop_box(box: CropBox, img_width: int, img_height: int) -> CropBox:
    """Grow a detected box by 2% of its smaller side, kept inside the image."""
    padding = PADDING_FRACTION * min(box.w, box.h)
    x = max(0, _round_half_up(box.x - padding))
    y = max(0, _round_half_up(box.y - padding))
    w = _round_half_up(box.w + padding * 2)
    h = _round_half_up(box.h + padding * 2)
    if x + w > img_width:
        w = img_width - x
    if y + h > img_height:
        h = img_height - y
    return CropBox(x=x, y=y, w=w, h=h)


def intersection_over_union(a: CropBox, b: CropBox) -> float:
    ix = max(0, min(a.right, b.right) - max(a.x, b.x))
    iy = max(0, min(a.bottom, b.bottom) - max(a.y, b.y))
    inter = ix * iy
    union = a.area + b.area - inter
    if union <= 0:
        return 0.0
    return inter / float(union)
