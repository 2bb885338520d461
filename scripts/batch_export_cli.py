from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from smartcrop.batch_exporter import export_batch, iter_image_files, write_zip
from smartcrop.config import load_config


def main() -> int:
    parser = argparse.ArgumentParser(description="Auto-crop and export a set of images")
    parser.add_argument("inputs", nargs="+", help="Image files or directories")
    parser.add_argument("--output", required=True, help="Directory for exported crops")
    parser.add_argument("--enhance", action="store_true", help="Sharpen and contrast-correct each crop")
    parser.add_argument("--zip", dest="zip_path", default=None, help="Also bundle outputs into this zip file")
    parser.add_argument("--workers", type=int, default=None, help="0 = auto, 1 = sequential")
    parser.add_argument("--data-dir", default=None, help="Directory containing config.json")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    config = load_config(args.data_dir)
    workers = config.batch_workers if args.workers is None else args.workers
    enhance = args.enhance or config.enhance_default

    paths = list(iter_image_files(args.inputs, config.include_extensions))
    if not paths:
        print("No images found", file=sys.stderr)
        return 1

    results, errors = export_batch(
        paths,
        args.output,
        enhance=enhance,
        prefix=config.export_prefix,
        workers=workers,
    )

    if args.zip_path and results:
        write_zip(results, args.zip_path)

    print(json.dumps({"exported": results, "errors": errors}, indent=2, sort_keys=True))
    return 0 if not errors else 1


if __name__ == "__main__":
    raise SystemExit(main())
