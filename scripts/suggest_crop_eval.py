from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from smartcrop.crop_detection_engine import suggest_crop
from smartcrop.geometry import CropBox, intersection_over_union
from smartcrop.image_utils import load_image

IMAGE_EXTS = (".png", ".jpg", ".jpeg", ".webp", ".tif", ".tiff", ".bmp")


def _parse_expected(bbox: object) -> CropBox | None:
    if isinstance(bbox, list) and len(bbox) == 4:
        x, y, w, h = (int(v) for v in bbox)
        return CropBox(x=x, y=y, w=w, h=h)
    if isinstance(bbox, dict):
        return CropBox(x=int(bbox["x"]), y=int(bbox["y"]), w=int(bbox["w"]), h=int(bbox["h"]))
    return None


def main() -> int:
    parser = argparse.ArgumentParser(description="Validate crop suggestions against expected boxes.")
    parser.add_argument(
        "--data-dir",
        default=ROOT / "tests" / "debug",
        type=Path,
        help="Directory containing image files and matching JSON metadata",
    )
    parser.add_argument(
        "--min-iou",
        default=0.8,
        type=float,
        help="Minimum intersection-over-union with the expected box",
    )
    args = parser.parse_args()

    total = 0
    failures = 0

    json_paths = sorted(args.data_dir.glob("*.json"))
    if not json_paths:
        print(f"No JSON metadata files found in {args.data_dir}")
        return 1

    for json_path in json_paths:
        with json_path.open("r", encoding="utf-8") as handle:
            metadata = json.load(handle)
        if "bbox" not in metadata:
            print(f"[SKIP] {json_path.name} missing bbox")
            continue

        expected = _parse_expected(metadata["bbox"])
        if expected is None:
            print(f"[SKIP] {json_path.name} invalid bbox format")
            continue

        image_path = None
        for ext in IMAGE_EXTS:
            candidate = json_path.with_suffix(ext)
            if candidate.exists():
                image_path = candidate
                break

        total += 1
        if image_path is None:
            print(f"[MISSING] {json_path.stem} (no matching image)")
            failures += 1
            continue

        actual = suggest_crop(load_image(str(image_path)))
        if actual is None:
            print(f"[FAIL] {image_path.name} no suggestion expected={expected.as_tuple()}")
            failures += 1
            continue

        iou = intersection_over_union(actual, expected)
        ok = iou >= args.min_iou
        status = "OK" if ok else "FAIL"
        print(
            f"[{status}] {image_path.name} actual={actual.as_tuple()} "
            f"expected={expected.as_tuple()} iou={iou:.3f} min={args.min_iou:.3f}"
        )
        if not ok:
            failures += 1

    print(f"Done. {total - failures}/{total} passed.")
    return 0 if failures == 0 else 1


if __name__ == "__main__":
    raise SystemExit(main())
