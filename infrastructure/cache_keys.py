"""Content-addressed naming for cached remote resources.

File names depend only on the URL string as given; query order, case and
percent-encoding are not normalized, so equivalent URLs spelled differently
get separate entries.
"""

from __future__ import annotations

import hashlib
import posixpath
import re
from urllib.parse import unquote, urlsplit

AUDIO_DEFAULT_EXT = "bin"
IMAGE_DEFAULT_EXT = "img"
FALLBACK_EXT = "unknown"

_SAFE_EXT = re.compile(r"[A-Za-z0-9]{1,16}")


def path_extension(url: str) -> str:
    """Extension of the URL's last path segment, case preserved, or ""."""
    try:
        path = urlsplit(url).path
    except ValueError:
        return ""
    last = unquote(path.rstrip("/").rsplit("/", 1)[-1])
    return posixpath.splitext(last)[1][1:]


def url_digest(url: str) -> str:
    """Hex SHA-256 of the UTF-8 bytes of `url`."""
    return hashlib.sha256(url.encode("utf-8")).hexdigest()


def file_name_for(url: str, default_ext: str = FALLBACK_EXT) -> str:
    """Disk-safe `<sha256-hex>.<ext>` name for `url`.

    Extensions that are not short and alphanumeric are replaced by `default_ext`.
    """
    ext = path_extension(url)
    if not _SAFE_EXT.fullmatch(ext):
        ext = default_ext
    return f"{url_digest(url)}.{ext}"


def cache_key(url: str, hint: str | None = None) -> str:
    """In-flight table key: the URL, salted by a caller-supplied logical id."""
    if hint:
        return f"{hint}-{url}"
    return url
