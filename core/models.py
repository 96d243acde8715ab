"""Core domain models for media records, favorites, and read projections."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum


class MediaType(str, Enum):
    """Kind of playable media."""

    AUDIO = "audio"
    VIDEO = "video"


@dataclass
class MediaRecord:
    """A catalog entry keyed by the canonical absolute URL of its source."""

    id: str
    url: str
    type: MediaType
    title: str
    format: str
    duration_ms: int = 0
    subtitle: str | None = None
    status: str = "ready"
    tags: list[str] | None = None
    thumb_url: str | None = None


@dataclass
class FavoriteGroup:
    """Named favorites collection restricted to a single media type.

    `count` is filled in from the group's item list when listing and is never
    persisted.
    """

    id: str
    name: str
    media_type: MediaType
    count: int = 0


@dataclass
class FavoriteListItem:
    """Display-ready copy of a `MediaRecord` inside a favorites group."""

    id: str
    media_id: str
    media_type: MediaType
    title: str
    duration_ms: int
    subtitle: str | None = None
    thumb_url: str | None = None
    tags: list[str] | None = None


@dataclass
class MediaItem:
    """Row projection used by listings."""

    id: str
    type: MediaType
    title: str
    duration_ms: int
    status: str
    subtitle: str | None = None
    thumb_url: str | None = None
    tags: list[str] | None = None


@dataclass
class MediaSource:
    format: str
    quality: str
    url: str


@dataclass
class MediaDetail:
    """Full view of a single record including its playable sources."""

    id: str
    type: MediaType
    title: str
    duration_ms: int
    status: str
    subtitle: str | None = None
    thumb_url: str | None = None
    tags: list[str] | None = None
    sources: list[MediaSource] = field(default_factory=list)


@dataclass
class LibraryState:
    """The persisted aggregate: records, groups, and group item lists."""

    media_records: list[MediaRecord] = field(default_factory=list)
    favorite_groups: list[FavoriteGroup] = field(default_factory=list)
    favorite_items_by_group: dict[str, list[FavoriteListItem]] = field(default_factory=dict)


@dataclass
class DailyPlayback:
    id: str
    day: date
    seconds: int


@dataclass
class TagPlaylist:
    """Audio items sharing one tag."""

    tag: str
    items: list[MediaItem] = field(default_factory=list)
