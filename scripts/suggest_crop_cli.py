from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from PIL import ImageDraw

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from smartcrop.cropper import resolve_crop
from smartcrop.image_utils import load_image

IMAGE_SUFFIXES = {".jpg", ".jpeg", ".png", ".webp", ".tif", ".tiff", ".bmp"}


def _is_image_path(path: Path) -> bool:
    return path.suffix.lower() in IMAGE_SUFFIXES


def _process_image(src_path: Path) -> Path:
    dst_path = src_path.with_name(f"{src_path.stem}_detected.png")
    image = load_image(str(src_path))
    suggestion = resolve_crop(image)
    preview = image.convert("RGB")
    draw = ImageDraw.Draw(preview)
    box = suggestion.box
    color = (255, 0, 0) if suggestion.detected else (128, 128, 128)
    # ImageDraw rectangles are inclusive of the right/bottom edge.
    draw.rectangle((box.x, box.y, box.right - 1, box.bottom - 1), outline=color, width=5)
    preview.save(dst_path)
    print(f"{src_path}: box={box.as_tuple()} detected={suggestion.detected}")
    return dst_path


def main() -> int:
    parser = argparse.ArgumentParser(description="Suggest a crop rectangle for a photo.")
    parser.add_argument("path", help="Path to an image file or a directory of images")
    parser.add_argument("--verbose", action="store_true", help="Log per-threshold contour counts")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    src_path = Path(args.path)
    if not src_path.exists():
        raise SystemExit(f"Input path not found: {src_path}")

    outputs = []
    if src_path.is_dir():
        for entry in sorted(src_path.iterdir()):
            if entry.is_file() and _is_image_path(entry) and not entry.stem.endswith("_detected"):
                outputs.append(_process_image(entry))
    else:
        if not _is_image_path(src_path):
            raise SystemExit(f"Unsupported file type: {src_path.suffix}")
        outputs.append(_process_image(src_path))

    for out_path in outputs:
        print(out_path)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
