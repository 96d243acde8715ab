"""Settings access helpers for JSON-based configuration."""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any

from infrastructure.utils import expand_path, get_app_cache_dir, get_app_data_dir

DEFAULT_SETTINGS: dict[str, Any] = {
    "library": {"data_dir": None},
    "cache": {"dir": None, "image_memory_count": 200, "http_timeout": 30.0},
    "logging": {"dir": None, "level": "INFO"},
}


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


class JsonSettings:
    """Lightweight JSON settings reader with dotted-key access.

    Values from the file are layered over `DEFAULT_SETTINGS`. Without a path
    only the defaults apply.
    """

    def __init__(self, settings_path: str | Path | None = None) -> None:
        self._data: dict[str, Any] = copy.deepcopy(DEFAULT_SETTINGS)
        self._path = Path(settings_path) if settings_path is not None else None
        if self._path is None:
            return
        if not self._path.exists():
            raise FileNotFoundError(f"settings.json not found: {self._path}")
        with self._path.open("r", encoding="utf-8") as f:
            loaded = json.load(f)
        if not isinstance(loaded, dict):
            raise ValueError(f"settings.json must contain an object: {self._path}")
        _merge(self._data, loaded)

    def get(self, key: str, default: Any | None = None) -> Any:
        """Return value for dotted `key`, or `default` if not present."""
        parts = key.split(".")
        node: Any = self._data
        for part in parts:
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return default if node is None else node

    def get_int(self, key: str, default: int) -> int:
        try:
            return int(self.get(key, default))
        except (ValueError, TypeError):
            return default

    def get_float(self, key: str, default: float) -> float:
        try:
            return float(self.get(key, default))
        except (ValueError, TypeError):
            return default

    @property
    def data_dir(self) -> Path:
        """Directory holding the library document and playback stats."""
        raw = self.get("library.data_dir")
        return expand_path(raw) if isinstance(raw, str) and raw else get_app_data_dir()

    @property
    def cache_dir(self) -> Path:
        """Cache root; flavors live in `audio/` and `image/` below it."""
        raw = self.get("cache.dir")
        return expand_path(raw) if isinstance(raw, str) and raw else get_app_cache_dir()

    @property
    def log_dir(self) -> Path:
        raw = self.get("logging.dir")
        return expand_path(raw) if isinstance(raw, str) and raw else self.data_dir / "logs"
