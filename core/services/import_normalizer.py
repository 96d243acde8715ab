"""Field normalization for bulk media imports.

Parsers hand over raw rows as dicts keyed by normalized column names. Values
may be strings, numbers, booleans or, for tags, lists. `normalize_row` turns one
row into a `MediaRecord` or raises `RowRejected`; it never touches the catalog.
"""

from __future__ import annotations

import math
import posixpath
import re
from typing import Any
from urllib.parse import quote, unquote, urlsplit

from core.models import MediaRecord, MediaType

URL_ALIASES = ("url", "media_url", "source_url")
TITLE_ALIASES = ("title", "name")
TYPE_ALIASES = ("type", "media_type", "kind")
DURATION_MS_ALIASES = ("duration_ms", "durationms")
DURATION_ALIASES = ("duration", "duration_s", "duration_sec", "duration_seconds", "length")
THUMB_ALIASES = ("thumb_url", "thumburl", "thumb", "thumbnail", "thumbnail_url", "cover_url")
SUBTITLE_ALIASES = ("subtitle", "artist", "author", "creator")
TAG_ALIASES = ("tags", "tag")
FORMAT_ALIASES = ("format", "ext")
STATUS_ALIASES = ("status",)

VIDEO_EXTENSIONS = frozenset({"mp4", "mov", "mkv", "webm", "m4v"})
AUDIO_EXTENSIONS = frozenset({"mp3", "m4a", "aac", "flac", "wav", "ogg"})

DEFAULT_STATUS = "ready"
UNTITLED = "Untitled"

_TAG_SPLIT = re.compile(r"[,;|]")
_SCHEME = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*$")
_URL_SAFE = ":/?#[]@!$&'()*+,;=%~"
_URL_FORBIDDEN = set('"<>\\^`{|}')


class RowRejected(ValueError):
    """A single import row cannot become a `MediaRecord`."""


def normalize_key(key: str) -> str:
    """Normalize a column or field name: strip BOM, lowercase, `-`/space to `_`."""
    return key.lstrip("\ufeff").strip().lower().replace("-", "_").replace(" ", "_")


def coerce_text(value: Any) -> str | None:
    """Decode a loosely typed scalar into text.

    Accepts str, int, float and bool. Integral floats drop their fraction so
    `5000.0` reads as `"5000"`. Anything else (None, lists, objects) is None.
    """
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return str(int(value))
        return repr(value)
    return None


def _first_text(row: dict[str, Any], aliases: tuple[str, ...]) -> str | None:
    """Return the first non-blank value among `aliases`, as stripped text."""
    for alias in aliases:
        text = coerce_text(row.get(alias))
        if text is not None and text.strip():
            return text.strip()
    return None


def _is_absolute_url(text: str) -> bool:
    if not text or any(ch.isspace() or ord(ch) > 126 or ch in _URL_FORBIDDEN for ch in text):
        return False
    try:
        parts = urlsplit(text)
    except ValueError:
        return False
    if not parts.scheme or not _SCHEME.match(parts.scheme):
        return False
    if parts.netloc:
        return True
    return parts.scheme.lower() == "file" and bool(parts.path)


def canonical_url(text: str) -> str | None:
    """Return `text` as an absolute URL, percent-escaping once if needed."""
    candidate = text.strip()
    if not candidate:
        return None
    if _is_absolute_url(candidate):
        return candidate
    escaped = quote(candidate, safe=_URL_SAFE)
    if _is_absolute_url(escaped):
        return escaped
    return None


def _last_path_segment(url: str) -> str:
    path = urlsplit(url).path.rstrip("/")
    return unquote(path.rsplit("/", 1)[-1])


def extension_of(url: str) -> str:
    """Lowercased path extension of `url` without the dot, or ""."""
    return posixpath.splitext(_last_path_segment(url))[1][1:].lower()


def fallback_title(url: str) -> str:
    """Last path segment with its extension removed, else `Untitled`."""
    stem = posixpath.splitext(_last_path_segment(url))[0].strip()
    return stem or UNTITLED


def resolve_media_type(explicit: str | None, url: str) -> MediaType:
    """Pick a media type from an explicit hint, then the URL extension.

    Defaults to audio when neither is conclusive.
    """
    if explicit:
        hint = explicit.strip().lower()
        if "video" in hint or hint == "v":
            return MediaType.VIDEO
        if "audio" in hint or "music" in hint or hint == "a":
            return MediaType.AUDIO
    ext = extension_of(url)
    if ext in VIDEO_EXTENSIONS:
        return MediaType.VIDEO
    if ext in AUDIO_EXTENSIONS:
        return MediaType.AUDIO
    return MediaType.AUDIO


def parse_duration_ms(text: str | None, *, milliseconds: bool = False) -> int | None:
    """Parse a duration into milliseconds.

    Accepts plain numbers (seconds, or milliseconds when `milliseconds` is set)
    and `MM:SS` / `H:MM:SS` text. Negative results clamp to 0. Returns None when
    the text cannot be parsed.
    """
    if text is None:
        return None
    s = text.strip()
    if not s:
        return None
    if ":" in s:
        parts = s.split(":")
        if len(parts) not in (2, 3):
            return None
        try:
            numbers = [float(p) for p in parts]
        except ValueError:
            return None
        seconds = 0.0
        for n in numbers:
            seconds = seconds * 60 + n
        if not math.isfinite(seconds):
            return None
        return max(0, int(round(seconds * 1000)))
    try:
        value = float(s)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    ms = value if milliseconds else value * 1000
    return max(0, int(round(ms)))


def resolve_duration_ms(row: dict[str, Any]) -> int:
    """Millisecond columns win over second columns; unparseable means 0."""
    ms = parse_duration_ms(_first_text(row, DURATION_MS_ALIASES), milliseconds=True)
    if ms is not None:
        return ms
    seconds = parse_duration_ms(_first_text(row, DURATION_ALIASES))
    return seconds if seconds is not None else 0


def parse_tags(value: Any) -> list[str] | None:
    """Split tags from a list or a `,` `;` `|` delimited string.

    Tags are trimmed and de-duplicated case-sensitively, keeping first-seen
    order. Returns None when nothing is left.
    """
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        raw = [coerce_text(v) for v in value]
    else:
        text = coerce_text(value)
        if text is None:
            return None
        raw = _TAG_SPLIT.split(text)
    tags = list(dict.fromkeys(t.strip() for t in raw if t and t.strip()))
    return tags or None


def _first_raw(row: dict[str, Any], aliases: tuple[str, ...]) -> Any:
    for alias in aliases:
        if row.get(alias) is not None:
            return row[alias]
    return None


def normalize_row(row: dict[str, Any]) -> MediaRecord:
    """Build a `MediaRecord` from one raw import row."""
    url_text = _first_text(row, URL_ALIASES)
    if not url_text:
        raise RowRejected("missing source URL")
    url = canonical_url(url_text)
    if url is None:
        raise RowRejected(f"invalid URL: {url_text}")

    ext = extension_of(url)
    title = _first_text(row, TITLE_ALIASES) or fallback_title(url)
    fmt = (_first_text(row, FORMAT_ALIASES) or "").lower() or ext or "unknown"
    thumb_text = _first_text(row, THUMB_ALIASES)

    return MediaRecord(
        id=url,
        url=url,
        type=resolve_media_type(_first_text(row, TYPE_ALIASES), url),
        title=title,
        format=fmt,
        duration_ms=resolve_duration_ms(row),
        subtitle=_first_text(row, SUBTITLE_ALIASES),
        status=_first_text(row, STATUS_ALIASES) or DEFAULT_STATUS,
        tags=parse_tags(_first_raw(row, TAG_ALIASES)),
        thumb_url=canonical_url(thumb_text) if thumb_text else None,
    )
