from __future__ import annotations

import json
import os
from io import BytesIO

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from smartcrop import enhancement_engine, main
from smartcrop.config import AppConfig
from smartcrop.image_utils import EnhancementError
from smartcrop.main import app

from .conftest import make_rect_image, to_png_bytes


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def _upload(image: Image.Image) -> dict:
    return {"file": ("upload.png", to_png_bytes(image), "image/png")}


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_config_reports_version(client):
    resp = client.get("/api/config")
    assert resp.status_code == 200
    body = resp.json()
    assert "version" in body
    assert ".png" in body["include_extensions"]


def test_suggest_returns_padded_box(client, rect_image):
    resp = client.post("/api/suggest", files=_upload(rect_image))
    assert resp.status_code == 200
    body = resp.json()
    assert body["detected"] is True
    assert body["raw_box"] == {"x": 48, "y": 48, "w": 103, "h": 103}
    assert body["box"] == {"x": 46, "y": 46, "w": 107, "h": 107}
    assert (body["width"], body["height"]) == (200, 200)


def test_suggest_falls_back_when_nothing_detected(client, blank_image):
    body = client.post("/api/suggest", files=_upload(blank_image)).json()
    assert body["detected"] is False
    assert body["raw_box"] is None
    assert body["box"] == {"x": 0, "y": 0, "w": 200, "h": 200}


def test_suggest_rejects_invalid_image(client):
    resp = client.post("/api/suggest", files={"file": ("x.png", b"garbage", "image/png")})
    assert resp.status_code == 400


def test_crop_returns_region(client, rect_image):
    resp = client.post(
        "/api/crop",
        files=_upload(rect_image),
        data={"x": "10", "y": "20", "w": "30", "h": "40", "enhance": "false"},
    )
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "image/png"
    with Image.open(BytesIO(resp.content)) as im:
        assert im.size == (30, 40)


def test_crop_with_enhancement_upscales(client, rect_image):
    resp = client.post(
        "/api/crop",
        files=_upload(rect_image),
        data={"x": "10", "y": "20", "w": "30", "h": "40", "enhance": "true"},
    )
    assert resp.status_code == 200
    with Image.open(BytesIO(resp.content)) as im:
        assert im.size == (60, 80)


@pytest.mark.parametrize("geometry", [("0", "0", "0", "10"), ("190", "0", "20", "10"), ("-1", "0", "5", "5")])
def test_crop_rejects_invalid_geometry(client, rect_image, geometry):
    x, y, w, h = geometry
    resp = client.post("/api/crop", files=_upload(rect_image), data={"x": x, "y": y, "w": w, "h": h})
    assert resp.status_code == 400


def test_enhance_endpoint_returns_png(client):
    image = make_rect_image(size=(64, 32), rects=[(8, 8, 16, 16)])
    resp = client.post("/api/enhance", files=_upload(image))
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "image/png"
    with Image.open(BytesIO(resp.content)) as im:
        assert im.size == (128, 64)


def test_enhance_endpoint_rejects_invalid_image(client):
    resp = client.post("/api/enhance", files={"file": ("x.png", b"garbage", "image/png")})
    assert resp.status_code == 400


@pytest.mark.parametrize("path", ["/api/suggest", "/api/enhance", "/api/debug"])
def test_oversized_upload_is_rejected(client, monkeypatch, tmp_path, path):
    monkeypatch.setattr(main, "_CONFIG", AppConfig(max_upload_mb=0.001, debug_dir=str(tmp_path)))
    payload = b"\x00" * 2048
    resp = client.post(path, files={"file": ("big.png", payload, "image/png")})
    assert resp.status_code == 413


def _fail_upscale(buffer):
    raise EnhancementError("out of memory")


def test_crop_enhancement_failure_maps_to_server_error(client, monkeypatch, rect_image):
    monkeypatch.setattr(enhancement_engine, "upscale_if_small", _fail_upscale)
    resp = client.post(
        "/api/crop",
        files=_upload(rect_image),
        data={"x": "10", "y": "20", "w": "30", "h": "40", "enhance": "true"},
    )
    assert resp.status_code == 500
    assert resp.json()["detail"] == "out of memory"


def test_enhance_failure_maps_to_server_error(client, monkeypatch, rect_image):
    monkeypatch.setattr(enhancement_engine, "upscale_if_small", _fail_upscale)
    resp = client.post("/api/enhance", files=_upload(rect_image))
    assert resp.status_code == 500


def test_debug_requires_debug_dir(client, monkeypatch, rect_image):
    monkeypatch.setattr(main, "_CONFIG", AppConfig())
    resp = client.post("/api/debug", files=_upload(rect_image))
    assert resp.status_code == 400


def test_debug_stores_image_and_boxes(client, monkeypatch, tmp_path, rect_image):
    debug_dir = tmp_path / "debug"
    monkeypatch.setattr(main, "_CONFIG", AppConfig(data_dir=str(tmp_path), debug_dir=str(debug_dir)))

    resp = client.post("/api/debug", files=_upload(rect_image), data={"bbox": "10, 20, 30, 40"})
    assert resp.status_code == 200
    body = resp.json()
    assert sorted(os.listdir(debug_dir)) == sorted([f"{body['id']}.json", f"{body['id']}.png"])

    with open(body["meta"], encoding="utf-8") as f:
        meta = json.load(f)
    assert meta == {
        "bbox": {"x": 10, "y": 20, "w": 30, "h": 40},
        "detected_bbox": {"x": 48, "y": 48, "w": 103, "h": 103},
    }
    with Image.open(body["image"]) as im:
        assert im.format == "PNG"
        assert im.size == (200, 200)


def test_debug_without_user_box_or_detection(client, monkeypatch, tmp_path, blank_image):
    monkeypatch.setattr(main, "_CONFIG", AppConfig(debug_dir=str(tmp_path)))
    body = client.post("/api/debug", files=_upload(blank_image)).json()
    with open(body["meta"], encoding="utf-8") as f:
        assert json.load(f) == {"bbox": None, "detected_bbox": None}


@pytest.mark.parametrize("bbox", ["1,2,3", "a,b,c,d"])
def test_debug_rejects_malformed_bbox(client, monkeypatch, tmp_path, rect_image, bbox):
    monkeypatch.setattr(main, "_CONFIG", AppConfig(debug_dir=str(tmp_path)))
    resp = client.post("/api/debug", files=_upload(rect_image), data={"bbox": bbox})
    assert resp.status_code == 400
    assert os.listdir(tmp_path) == []
