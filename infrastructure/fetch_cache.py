"""Disk caches for remote audio files and images with single-flight downloads.

Resolution order is in-flight table, then disk, then network. Downloads land in
a temporary file inside the cache directory and are renamed onto their
content-addressed name, so a crash never leaves a partial cache entry. The
existence of the file is the cache record; there is no eviction on disk.

Failures never propagate: callers get the original URL back and may stream it
directly. Failed keys are not remembered, so the next call retries.
"""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass
import os
from pathlib import Path
import tempfile
import threading
from typing import BinaryIO
from urllib.parse import urlsplit

from PySide6.QtCore import QObject, Qt, Signal
from PySide6.QtGui import QImage
from loguru import logger
import requests

from core.errors import FetchError
from core.models import MediaType
from infrastructure.cache_keys import (
    AUDIO_DEFAULT_EXT,
    IMAGE_DEFAULT_EXT,
    cache_key,
    file_name_for,
    path_extension,
)
from infrastructure.utils import ensure_dir

REMOTE_SCHEMES = frozenset({"http", "https"})
STREAMING_FORMATS = frozenset({"m3u8"})


class CacheSignals(QObject):
    """Emits `cached(url)` after a download has been stored."""

    cached = Signal(str)


class FetchCache:
    """Content-addressed disk cache keyed by URL with per-key single flight."""

    def __init__(
        self,
        cache_dir: str | Path,
        session: requests.Session | None = None,
        timeout: float = 30.0,
        default_ext: str = AUDIO_DEFAULT_EXT,
        chunk_size: int = 64 * 1024,
    ) -> None:
        self._dir = Path(cache_dir)
        ensure_dir(self._dir)
        self._session = session if session is not None else requests.Session()
        self._timeout = timeout
        self._default_ext = default_ext
        self._chunk_size = chunk_size
        self._lock = threading.Lock()
        self._in_flight: dict[str, Future[str]] = {}
        self.signals = CacheSignals()

    @property
    def cache_dir(self) -> Path:
        return self._dir

    def path_for(self, url: str) -> Path:
        """Where `url` is (or would be) stored."""
        return self._dir / file_name_for(url, self._default_ext)

    def is_cached(self, url: str) -> bool:
        return self.path_for(url).is_file()

    def in_flight_count(self) -> int:
        with self._lock:
            return len(self._in_flight)

    def on_cached(self, callback: Callable[[str], None]) -> None:
        """Call `callback(url)` on the downloading thread after each store."""
        self.signals.cached.connect(callback, type=Qt.ConnectionType.DirectConnection)

    def resolve(self, url: str, hint: str | None = None) -> str:
        """Return a local file path for `url`, or `url` itself on failure.

        Concurrent calls with the same key share one download. The caller that
        registers the key performs the fetch; the others wait for its result.
        """
        key = cache_key(url, hint)
        with self._lock:
            future = self._in_flight.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._in_flight[key] = future
        if not owner:
            return future.result()

        result = url
        try:
            result = self._load(url)
        except FetchError as ex:
            logger.warning("Cache fetch failed, falling back to remote: {}", ex)
        finally:
            with self._lock:
                self._in_flight.pop(key, None)
            future.set_result(result)
        return result

    def _load(self, url: str) -> str:
        target = self.path_for(url)
        if target.is_file():
            return str(target)
        self._download(url, target)
        logger.info("Cached {} -> {}", url, target.name)
        self.signals.cached.emit(url)
        return str(target)

    def _download(self, url: str, target: Path) -> None:
        try:
            ensure_dir(self._dir)
            fd, tmp_name = tempfile.mkstemp(prefix=".download-", suffix=".part", dir=str(self._dir))
        except OSError as ex:
            raise FetchError(url, f"cache directory unavailable: {ex}") from ex

        tmp = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as f:
                self._fetch_into(url, f)
            self._validate(url, tmp)
            os.replace(tmp, target)
        except (OSError, ValueError) as ex:
            raise FetchError(url, f"write failed: {ex}") from ex
        finally:
            try:
                tmp.unlink(missing_ok=True)
            except OSError as ex:
                logger.debug("Temp cleanup failed for {}: {}", tmp, ex)

    def _fetch_into(self, url: str, out: BinaryIO) -> None:
        try:
            response = self._session.get(url, stream=True, timeout=self._timeout)
        except requests.RequestException as ex:
            raise FetchError(url, str(ex)) from ex
        try:
            if not 200 <= response.status_code < 300:
                raise FetchError(url, f"HTTP {response.status_code}")
            for chunk in response.iter_content(chunk_size=self._chunk_size):
                if chunk:
                    out.write(chunk)
        except requests.RequestException as ex:
            raise FetchError(url, str(ex)) from ex
        finally:
            response.close()

    def _validate(self, url: str, path: Path) -> None:
        """Hook to reject downloaded content before it is stored."""


def is_passthrough(url: str, fmt: str | None = None) -> bool:
    """True for URLs that are never cached.

    Only http and https URLs are cached. Other schemes such as `file:` pass
    through unchanged, as do HLS manifests.
    """
    try:
        scheme = urlsplit(url).scheme.lower()
    except ValueError:
        return True
    if scheme not in REMOTE_SCHEMES:
        return True
    if fmt and fmt.strip().lower() in STREAMING_FORMATS:
        return True
    return path_extension(url).lower() in STREAMING_FORMATS


class AudioCache(FetchCache):
    """Caches remote audio files; video, local files and HLS pass through."""

    def __init__(
        self,
        cache_dir: str | Path,
        session: requests.Session | None = None,
        timeout: float = 30.0,
    ) -> None:
        super().__init__(cache_dir, session=session, timeout=timeout, default_ext=AUDIO_DEFAULT_EXT)

    def cached_location(
        self,
        url: str,
        media_type: MediaType = MediaType.AUDIO,
        hint: str | None = None,
        fmt: str | None = None,
    ) -> str:
        """Local path for playable audio, otherwise the URL unchanged."""
        if media_type != MediaType.AUDIO or is_passthrough(url, fmt):
            return url
        return self.resolve(url, hint)


@dataclass
class _MemCacheItem:
    key: str
    image: QImage


class _LRUCache:
    def __init__(self, capacity: int) -> None:
        self._cap = max(1, int(capacity or 1))
        self._data: OrderedDict[str, _MemCacheItem] = OrderedDict()

    def __len__(self) -> int:
        return len(self._data)

    def get(self, key: str) -> QImage | None:
        """Return cached QImage for key, moving it to the MRU position."""
        item = self._data.get(key)
        if not item:
            return None
        self._data.move_to_end(key)
        return item.image

    def put(self, key: str, image: QImage) -> None:
        """Insert or update `key` with `image`, evicting LRU when over capacity."""
        if key in self._data:
            self._data.move_to_end(key)
        self._data[key] = _MemCacheItem(key, image)
        while len(self._data) > self._cap:
            self._data.popitem(last=False)


def _decode_image(data: bytes) -> QImage | None:
    img = QImage.fromData(data)
    if img is None or img.isNull():
        return None
    return img


class ImageCache(FetchCache):
    """Image cache with a count-bounded memory layer of decoded images."""

    def __init__(
        self,
        cache_dir: str | Path,
        session: requests.Session | None = None,
        timeout: float = 30.0,
        memory_count: int = 200,
    ) -> None:
        super().__init__(cache_dir, session=session, timeout=timeout, default_ext=IMAGE_DEFAULT_EXT)
        self._mem_lock = threading.Lock()
        self._mem_cache = _LRUCache(memory_count)

    @property
    def memory_size(self) -> int:
        with self._mem_lock:
            return len(self._mem_cache)

    def image(self, url: str) -> QImage | None:
        """Decoded image for `url` from memory, disk or network; None on failure."""
        with self._mem_lock:
            img = self._mem_cache.get(url)
        if img is not None:
            return img

        location = self.resolve(url)
        if location == url:
            return None

        path = Path(location)
        try:
            img = _decode_image(path.read_bytes())
        except OSError as ex:
            logger.debug("Read cached image failed for {}: {}", path, ex)
            return None
        if img is None:
            # Drop undecodable files so the next call downloads again
            logger.warning("Discarding undecodable cached image {}", path.name)
            try:
                path.unlink()
            except OSError as ex:
                logger.debug("Remove cached image failed for {}: {}", path, ex)
            return None

        with self._mem_lock:
            self._mem_cache.put(url, img)
        return img

    def _validate(self, url: str, path: Path) -> None:
        if _decode_image(path.read_bytes()) is None:
            raise FetchError(url, "not a decodable image")
