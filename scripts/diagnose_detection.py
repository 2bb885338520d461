"""Diagnostic tool to analyze crop detection behavior."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

import numpy as np

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from smartcrop.crop_detection_engine import EDGE_THRESHOLDS, filter_boxes, select_best_box
from smartcrop.edge_filters import find_contours, gaussian_blur, sobel_edges, to_grayscale
from smartcrop.geometry import bounding_rect, merge_nearby_boxes
from smartcrop.image_utils import PixelBuffer, load_image


def analyze_image(image_path: Path) -> None:
    """Print per-threshold edge and contour statistics for an image."""
    buffer = PixelBuffer.from_pil(load_image(str(image_path)))
    width, height = buffer.width, buffer.height
    blurred = gaussian_blur(to_grayscale(buffer))

    print(f"\n{'='*60}")
    print(f"Image: {image_path.name}")
    print(f"Size: {width}x{height}")
    print(f"{'='*60}")

    pooled = []
    for threshold in EDGE_THRESHOLDS:
        mask = sobel_edges(blurred, threshold)
        contours = find_contours(mask)
        edge_ratio = float(np.count_nonzero(mask)) / float(max(1, width * height))
        sizes = sorted((len(c) for c in contours), reverse=True)
        print(f"\nThreshold {threshold}:")
        print(f"  Edge pixels: {edge_ratio:.2%} of image")
        print(f"  Contours: {len(contours)}  largest sizes: {sizes[:5]}")
        pooled.extend(contours)

    boxes = filter_boxes((bounding_rect(c) for c in pooled), width, height)
    merged = merge_nearby_boxes(boxes, width, height)
    best = select_best_box(boxes, width, height)

    print(f"\nBoxes above area filter: {len(boxes)}")
    print(f"Boxes after merge: {[b.as_tuple() for b in merged[:10]]}")
    if best is None:
        print("Suggestion: none")
    else:
        ratio = best.area / float(width * height)
        print(f"Suggestion: {best.as_tuple()} ({ratio:.1%} of image)")


def main() -> int:
    parser = argparse.ArgumentParser(description="Print crop detection diagnostics.")
    parser.add_argument("paths", nargs="+", help="Image files to analyze")
    args = parser.parse_args()

    for raw in args.paths:
        analyze_image(Path(raw))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
