from __future__ import annotations

import logging
import os
import zipfile
from collections.abc import Iterable, Iterator
from concurrent.futures import ProcessPoolExecutor, as_completed
from typing import Any

from .cropper import export_crop, resolve_crop
from .image_utils import load_image

logger = logging.getLogger(__name__)

# Default batch size for worker processing
BATCH_SIZE = 20


def assign_output_names(paths: Iterable[str], prefix: str = "") -> list[tuple[str, str]]:
    """
    Pair each input path with a unique output name (without extension).

    Inputs sharing a file stem, e.g. from sibling directories, get a numeric
    suffix in input order: "a", "a_1", "a_2". Names are compared
    case-insensitively and regardless of the final extension, since an
    enhanced export is always PNG.
    """
    taken: set[str] = set()
    named = []
    for path in paths:
        stem = f"{prefix}{os.path.splitext(os.path.basename(path))[0]}"
        name = stem
        counter = 1
        while name.lower() in taken:
            name = f"{stem}_{counter}"
            counter += 1
        if name != stem:
            logger.info(f"Output name {stem} already used, exporting {path} as {name}")
        taken.add(name.lower())
        named.append((path, name))
    return named


def _export_one(path: str, output_name: str, output_dir: str, enhance: bool) -> dict[str, Any]:
    image = load_image(path)
    suggestion = resolve_crop(image)
    payload, ext = export_crop(image, suggestion.box, enhance=enhance)

    output_path = os.path.join(output_dir, f"{output_name}.{ext}")
    with open(output_path, "wb") as f:
        f.write(payload)

    return {
        "path": path,
        "output_path": output_path,
        "box": suggestion.box.to_dict(),
        "detected": suggestion.detected,
        "enhanced": enhance,
    }


def _process_image_batch(
    items: list[tuple[str, str]],
    output_dir: str,
    enhance: bool,
) -> tuple[list[dict[str, Any]], list[str]]:
    """
    Auto-crop and export a batch of (path, output name) pairs in a worker process.

    A failing image is recorded in the error list and does not stop the batch.

    Returns:
        Tuple of (results, errors)
    """
    results = []
    errors = []

    for path, output_name in items:
        try:
            results.append(_export_one(path, output_name, output_dir, enhance))
        except Exception as exc:
            errors.append(f"{path}: {exc}")

    return results, errors


def _iter_batches(items: Iterable[tuple[str, str]], batch_size: int) -> Iterator[list[tuple[str, str]]]:
    batch = []
    for item in items:
        batch.append(item)
        if len(batch) >= batch_size:
            yield batch
            batch = []

    if batch:
        yield batch


def export_batch_sequential(
    paths: Iterable[str],
    output_dir: str,
    enhance: bool = False,
    prefix: str = "",
) -> tuple[list[dict[str, Any]], list[str]]:
    """Export every image in order within the current process."""
    os.makedirs(output_dir, exist_ok=True)
    results: list[dict[str, Any]] = []
    errors: list[str] = []

    for path, output_name in assign_output_names(paths, prefix):
        try:
            results.append(_export_one(path, output_name, output_dir, enhance))
        except Exception as exc:
            logger.error(f"Failed to export {path}: {exc}")
            errors.append(f"{path}: {exc}")

        processed = len(results) + len(errors)
        if processed % 100 == 0:
            logger.info(f"Processed {processed} files...")

    return results, errors


def export_batch_parallel(
    paths: Iterable[str],
    output_dir: str,
    enhance: bool = False,
    prefix: str = "",
    workers: int = 0,
    batch_size: int = BATCH_SIZE,
) -> tuple[list[dict[str, Any]], list[str]]:
    """
    Export images using a process pool.

    Args:
        paths: Iterable of image file paths to process
        output_dir: Directory receiving the cropped files
        enhance: Run the enhancement pipeline on each crop
        prefix: File name prefix for exported files
        workers: Number of worker processes (0 = auto detect)
        batch_size: Number of files per batch

    Returns:
        Tuple of (results, errors); results are sorted by source path.
    """
    max_workers = max(1, (os.cpu_count() or 2) - 1)

    if workers <= 0:
        workers = max_workers
    else:
        # Always cap at cpu_count - 1, regardless of config
        workers = min(workers, max_workers)

    logger.info(f"Exporting with {workers} worker processes (max available: {max_workers})")
    os.makedirs(output_dir, exist_ok=True)

    results: list[dict[str, Any]] = []
    all_errors: list[str] = []
    processed_count = 0
    last_logged = 0

    with ProcessPoolExecutor(max_workers=workers) as executor:
        futures = [
            executor.submit(_process_image_batch, batch, output_dir, enhance)
            for batch in _iter_batches(assign_output_names(paths, prefix), batch_size)
        ]

        for future in as_completed(futures):
            try:
                batch_results, errors = future.result(timeout=300)  # 5 min timeout per batch
            except Exception as exc:
                logger.error(f"Worker process error: {exc}")
                all_errors.append(f"Worker error: {exc}")
                continue

            results.extend(batch_results)
            all_errors.extend(errors)
            processed_count += len(batch_results) + len(errors)

            # Log progress every 100 files
            if processed_count // 100 > last_logged:
                logger.info(f"Processed {processed_count} files...")
                last_logged = processed_count // 100

    results.sort(key=lambda item: item["path"])
    return results, all_errors


def export_batch(
    paths: Iterable[str],
    output_dir: str,
    enhance: bool = False,
    prefix: str = "",
    workers: int = 1,
) -> tuple[list[dict[str, Any]], list[str]]:
    """Dispatch to sequential (workers == 1) or parallel export."""
    if workers == 1:
        logger.info("Using sequential processing (workers=1)")
        results, errors = export_batch_sequential(paths, output_dir, enhance, prefix)
    else:
        results, errors = export_batch_parallel(paths, output_dir, enhance, prefix, workers=workers)

    logger.info(f"Export complete: {len(results)} files written, {len(errors)} errors")
    if errors:
        logger.warning(f"Encountered {len(errors)} errors during export")
    return results, errors


def write_zip(results: Iterable[dict[str, Any]], zip_path: str) -> str:
    """Bundle exported files into a single zip archive."""
    os.makedirs(os.path.dirname(zip_path) or ".", exist_ok=True)
    with zipfile.ZipFile(zip_path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for item in results:
            output_path = item["output_path"]
            archive.write(output_path, arcname=os.path.basename(output_path))
    logger.info(f"Wrote archive {zip_path}")
    return zip_path


def iter_image_files(paths: Iterable[str], extensions: Iterable[str]) -> Iterator[str]:
    ext_set = {ext.lower() for ext in extensions}
    for base in paths:
        if not base:
            continue
        base = os.path.expanduser(base)
        if os.path.isfile(base):
            _, ext = os.path.splitext(base)
            if ext.lower() in ext_set:
                yield base
            continue
        for root, dirs, files in os.walk(base):
            dirs.sort()
            for name in sorted(files):
                _, ext = os.path.splitext(name)
                if ext.lower() not in ext_set:
                    continue
                yield os.path.join(root, name)
