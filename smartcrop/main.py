from __future__ import annotations

import json
import logging
import os
import random
import string

from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.responses import JSONResponse, Response
from PIL import Image
from pydantic import BaseModel

from .config import AppConfig, load_config
from .cropper import export_crop, resolve_crop
from .enhancement_engine import enhance_image_bytes
from .geometry import CropBox
from .image_utils import (
    EnhancementError,
    ImageDecodeError,
    InvalidCropError,
    decode_image_bytes,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


app = FastAPI(title="SmartCrop", version="0.1.0")

VERSION_FILE = os.path.join(os.path.dirname(__file__), "..", "VERSION")

_MEDIA_TYPES = {"png": "image/png", "jpg": "image/jpeg", "webp": "image/webp", "tif": "image/tiff", "bmp": "image/bmp"}


def _read_version() -> str:
    """Read version from VERSION file."""
    try:
        with open(VERSION_FILE, encoding="utf-8") as f:
            return f.read().strip()
    except OSError as exc:
        logger.warning(f"Failed to read VERSION file: {exc}")
        return "unknown"


_VERSION = _read_version()


class Box(BaseModel):
    x: int
    y: int
    w: int
    h: int


class SuggestResponse(BaseModel):
    box: Box
    raw_box: Box | None
    detected: bool
    width: int
    height: int


def _load_app_config() -> AppConfig:
    data_dir = os.environ.get("SMARTCROP_DATA_DIR")
    return load_config(data_dir)


_CONFIG = _load_app_config()


def _read_upload(file: UploadFile) -> bytes:
    data = file.file.read(_CONFIG.max_upload_bytes + 1)
    if len(data) > _CONFIG.max_upload_bytes:
        raise HTTPException(
            status_code=413,
            detail=f"Uploaded file is too large. Hard limit is {_CONFIG.max_upload_mb:.0f}MB.",
        )
    return data


def _open_uploaded_image(file: UploadFile) -> Image.Image:
    data = _read_upload(file)
    try:
        return decode_image_bytes(data)
    except ImageDecodeError as exc:
        logger.error(f"Failed to open uploaded image: {exc}")
        raise HTTPException(status_code=400, detail=f"Invalid image: {exc}") from exc


def _box_model(box: CropBox | None) -> Box | None:
    if box is None:
        return None
    return Box(**box.to_dict())


def _parse_box(bbox: str | None) -> CropBox | None:
    if not bbox:
        return None
    try:
        parts = [int(part.strip()) for part in bbox.split(",")]
        if len(parts) != 4:
            raise ValueError("Expected 4 integers.")
        return CropBox(x=parts[0], y=parts[1], w=parts[2], h=parts[3])
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid bbox: {exc}") from exc


def _random_id(length: int = 8) -> str:
    alphabet = string.ascii_lowercase + string.digits
    return "".join(random.choice(alphabet) for _ in range(length))


@app.get("/api/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/api/config")
def get_config() -> JSONResponse:
    return JSONResponse(
        {
            "version": _VERSION,
            "include_extensions": _CONFIG.include_extensions,
            "export_prefix": _CONFIG.export_prefix,
            "enhance_default": _CONFIG.enhance_default,
            "batch_workers": _CONFIG.batch_workers,
            "max_upload_mb": _CONFIG.max_upload_mb,
            "debug_dir": _CONFIG.debug_dir,
        }
    )


@app.post("/api/suggest", response_model=SuggestResponse)
def suggest(file: UploadFile = File(...)) -> SuggestResponse:
    image = _open_uploaded_image(file)
    suggestion = resolve_crop(image)
    return SuggestResponse(
        box=_box_model(suggestion.box),
        raw_box=_box_model(suggestion.raw_box),
        detected=suggestion.detected,
        width=image.width,
        height=image.height,
    )


@app.post("/api/crop")
def crop(
    file: UploadFile = File(...),
    x: int = Form(...),
    y: int = Form(...),
    w: int = Form(...),
    h: int = Form(...),
    enhance: bool | None = Form(None),
) -> Response:
    image = _open_uploaded_image(file)
    effective_enhance = _CONFIG.enhance_default if enhance is None else enhance
    try:
        payload, ext = export_crop(image, CropBox(x=x, y=y, w=w, h=h), enhance=effective_enhance)
    except InvalidCropError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except EnhancementError as exc:
        logger.error(f"Enhancement failed: {exc}")
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return Response(content=payload, media_type=_MEDIA_TYPES[ext])


@app.post("/api/enhance")
def enhance_image(file: UploadFile = File(...)) -> Response:
    data = _read_upload(file)
    try:
        payload = enhance_image_bytes(data)
    except ImageDecodeError as exc:
        logger.error(f"Failed to open uploaded image: {exc}")
        raise HTTPException(status_code=400, detail=f"Invalid image: {exc}") from exc
    except EnhancementError as exc:
        logger.error(f"Enhancement failed: {exc}")
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return Response(content=payload, media_type="image/png")


@app.post("/api/debug")
def debug_image(
    file: UploadFile = File(...),
    bbox: str | None = Form(None),
) -> dict[str, str | None]:
    """Store an upload with its detected box and an optional user box for evaluation."""
    if not _CONFIG.debug_dir:
        raise HTTPException(status_code=400, detail="Debug directory is not configured.")
    image = _open_uploaded_image(file)
    user_box = _parse_box(bbox)
    suggestion = resolve_crop(image)

    os.makedirs(_CONFIG.debug_dir, exist_ok=True)
    image_id = _random_id()
    image_path = os.path.join(_CONFIG.debug_dir, f"{image_id}.png")
    json_path = os.path.join(_CONFIG.debug_dir, f"{image_id}.json")

    image.convert("RGBA").save(image_path, "PNG")

    payload = {
        "detected_bbox": suggestion.raw_box.to_dict() if suggestion.raw_box else None,
        "bbox": user_box.to_dict() if user_box else None,
    }
    with open(json_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, sort_keys=True)

    return {"id": image_id, "image": image_path, "meta": json_path}
