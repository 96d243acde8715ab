"""Filesystem helpers: application directories and atomic file writes.

Writes go to a temporary file beside the target and are moved into place with
`os.replace`, so readers see either the previous document or the new one and
never a partial write.
"""

from __future__ import annotations

from datetime import date, datetime
import os
from pathlib import Path
import tempfile

from loguru import logger

APP_NAME = "MediaLibrary"
DAY_KEY_FMT = "%Y-%m-%d"


def get_app_data_dir() -> Path:
    """Per-user data directory (`%LOCALAPPDATA%` on Windows, XDG elsewhere)."""
    if os.name == "nt":
        base = os.environ.get("LOCALAPPDATA") or str(Path.home() / "AppData" / "Local")
        return Path(base) / APP_NAME
    base = os.environ.get("XDG_DATA_HOME") or str(Path.home() / ".local" / "share")
    return Path(base) / APP_NAME.lower()


def get_app_cache_dir() -> Path:
    """Per-user cache root; one subdirectory per cache flavor lives under it."""
    if os.name == "nt":
        return get_app_data_dir() / "cache"
    base = os.environ.get("XDG_CACHE_HOME") or str(Path.home() / ".cache")
    return Path(base) / APP_NAME.lower()


def expand_path(value: str | Path) -> Path:
    """Expand `~` and environment variables in a configured path."""
    return Path(os.path.expandvars(os.path.expanduser(str(value))))


def ensure_dir(p: Path) -> None:
    """Create directory `p` if missing (including parents)."""
    p.mkdir(parents=True, exist_ok=True)


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Replace `path` with `data` in a single filesystem rename.

    Raises OSError on failure; the temporary file is removed in that case.
    """
    ensure_dir(path.parent)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except OSError:
        try:
            os.unlink(tmp_name)
        except OSError as ex:
            logger.debug("Temp cleanup failed for {}: {}", tmp_name, ex)
        raise


def format_day_key(value: date | datetime) -> str:
    """Format a day as `YYYY-MM-DD`."""
    return value.strftime(DAY_KEY_FMT)


def parse_day_key(value: str | None) -> date | None:
    """Parse a `YYYY-MM-DD` key; None on failure."""
    if not value:
        return None
    try:
        return datetime.strptime(value.strip(), DAY_KEY_FMT).date()
    except (ValueError, TypeError):
        return None
