from __future__ import annotations

import json

from smartcrop.config import DEFAULT_INCLUDE_EXTENSIONS, load_config


def test_defaults_without_data_dir(monkeypatch):
    monkeypatch.delenv("SMARTCROP_DATA_DIR", raising=False)
    config = load_config()
    assert config.data_dir == ""
    assert config.include_extensions == DEFAULT_INCLUDE_EXTENSIONS
    assert config.batch_workers == 1
    assert config.debug_dir == ""


def test_config_json_overrides(tmp_path):
    (tmp_path / "config.json").write_text(
        json.dumps(
            {
                "include_extensions": ["PNG", ".jpg", ""],
                "export_prefix": "TikCrop_",
                "enhance_default": True,
                "batch_workers": 0,
                "max_upload_mb": 5,
            }
        ),
        encoding="utf-8",
    )
    config = load_config(str(tmp_path))
    assert config.include_extensions == [".png", ".jpg"]
    assert config.export_prefix == "TikCrop_"
    assert config.enhance_default is True
    assert config.batch_workers == 0
    assert config.max_upload_bytes == 5 * 1024 * 1024
    assert config.debug_dir == str(tmp_path / "debug")


def test_env_var_data_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("SMARTCROP_DATA_DIR", str(tmp_path))
    config = load_config()
    assert config.data_dir == str(tmp_path)
    assert config.debug_dir == str(tmp_path / "debug")
