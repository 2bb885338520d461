from __future__ import annotations

import json
import os
from collections.abc import Iterable
from dataclasses import dataclass, field

DEFAULT_INCLUDE_EXTENSIONS = [".jpg", ".jpeg", ".png", ".tif", ".tiff", ".webp", ".bmp"]
DEFAULT_EXPORT_PREFIX = "cropped_"
DEFAULT_BATCH_WORKERS = 1  # 0 = auto (cpu_count - 1), 1 = sequential, N = parallel with N workers
DEFAULT_MAX_UPLOAD_MB = 20.0


@dataclass(frozen=True)
class AppConfig:
    data_dir: str = ""
    include_extensions: list[str] = field(default_factory=lambda: list(DEFAULT_INCLUDE_EXTENSIONS))
    export_prefix: str = DEFAULT_EXPORT_PREFIX
    enhance_default: bool = False
    batch_workers: int = DEFAULT_BATCH_WORKERS
    debug_dir: str = ""  # Defaults to data_dir/debug, but overridable in config
    max_upload_mb: float = DEFAULT_MAX_UPLOAD_MB

    @property
    def max_upload_bytes(self) -> int:
        return int(self.max_upload_mb * 1024 * 1024)


def _normalize_extensions(exts: Iterable[str]) -> list[str]:
    normalized = []
    for ext in exts:
        if not ext:
            continue
        ext = ext.lower()
        if not ext.startswith("."):
            ext = "." + ext
        normalized.append(ext)
    return normalized


def load_config(data_dir: str | None = None) -> AppConfig:
    """Load configuration from SMARTCROP_DATA_DIR.

    Args:
        data_dir: Optional override for data directory. If None, uses SMARTCROP_DATA_DIR env var.

    Returns:
        AppConfig with values from data_dir/config.json, or defaults when no
        data directory is configured.
    """
    if data_dir is None:
        data_dir = os.environ.get("SMARTCROP_DATA_DIR") or ""
    if not data_dir:
        return AppConfig()

    config_path = os.path.join(data_dir, "config.json")

    # Default values
    include_extensions = list(DEFAULT_INCLUDE_EXTENSIONS)
    export_prefix = DEFAULT_EXPORT_PREFIX
    enhance_default = False
    batch_workers = DEFAULT_BATCH_WORKERS
    max_upload_mb = DEFAULT_MAX_UPLOAD_MB
    debug_dir = os.path.join(data_dir, "debug")

    # Load config file if it exists
    if os.path.exists(config_path):
        with open(config_path, encoding="utf-8") as f:
            raw = json.load(f)

        include_extensions = _normalize_extensions(
            raw.get("include_extensions", DEFAULT_INCLUDE_EXTENSIONS)
        )
        export_prefix = str(raw.get("export_prefix", DEFAULT_EXPORT_PREFIX))
        enhance_default = bool(raw.get("enhance_default", False))
        batch_workers = int(raw.get("batch_workers", DEFAULT_BATCH_WORKERS))
        max_upload_mb = max(1.0, float(raw.get("max_upload_mb", DEFAULT_MAX_UPLOAD_MB)))

        # debug_dir can be overridden in config, otherwise defaults to data_dir/debug
        if "debug_dir" in raw and raw["debug_dir"]:
            debug_dir = raw["debug_dir"]

    return AppConfig(
        data_dir=data_dir,
        include_extensions=include_extensions,
        export_prefix=export_prefix,
        enhance_default=enhance_default,
        batch_workers=batch_workers,
        debug_dir=debug_dir,
        max_upload_mb=max_upload_mb,
    )
