"""Tests for JSON settings."""

import json

import pytest

from infrastructure.settings import JsonSettings


def test_defaults_without_file():
    settings = JsonSettings()
    assert settings.get("cache.image_memory_count") == 200
    assert settings.get("missing.key", "x") == "x"
    assert settings.data_dir.name


def test_file_overrides_defaults_and_expands_paths(tmp_path, monkeypatch):
    monkeypatch.setenv("MEDIA_ROOT", str(tmp_path))
    path = tmp_path / "settings.json"
    path.write_text(
        json.dumps(
            {"library": {"data_dir": "$MEDIA_ROOT/lib"}, "cache": {"image_memory_count": "50"}}
        ),
        encoding="utf-8",
    )
    settings = JsonSettings(path)
    assert settings.data_dir == tmp_path / "lib"
    assert settings.get_int("cache.image_memory_count", 200) == 50
    assert settings.get_float("cache.http_timeout", 1.0) == 30.0
    assert settings.log_dir == tmp_path / "lib" / "logs"


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        JsonSettings(tmp_path / "nope.json")
