"""Read-side helpers over catalog projections.

Filtering, pagination, and tag playlist grouping operate on already
materialized lists and never mutate their inputs.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TypeVar

from core.models import MediaItem, MediaRecord, MediaType, TagPlaylist
from core.services.interfaces import Page

T = TypeVar("T")

UNTAGGED = "Untagged"


def matches_keyword(record: MediaRecord, keyword: str) -> bool:
    """Case-insensitive substring match on title or subtitle."""
    needle = keyword.casefold()
    if needle in record.title.casefold():
        return True
    return bool(record.subtitle) and needle in record.subtitle.casefold()


def filter_records(
    records: Iterable[MediaRecord],
    media_type: MediaType | None = None,
    keyword: str | None = None,
) -> list[MediaRecord]:
    """Return records matching `media_type` and `keyword`, keeping order.

    A blank keyword does not filter.
    """
    needle = (keyword or "").strip()
    result: list[MediaRecord] = []
    for record in records:
        if media_type is not None and record.type != media_type:
            continue
        if needle and not matches_keyword(record, needle):
            continue
        result.append(record)
    return result


def paginate(items: list[T], page: int = 1, page_size: int = 20) -> Page[T]:
    """Slice `items` into a 1-based page. Out-of-range pages are empty."""
    page = max(1, int(page))
    page_size = max(1, int(page_size))
    start = (page - 1) * page_size
    return Page(
        page=page, page_size=page_size, total=len(items), items=items[start : start + page_size]
    )


def build_tag_playlists(items: Iterable[MediaItem]) -> list[TagPlaylist]:
    """Group items by tag; items without tags land in `Untagged`.

    An item with several tags appears in each of their playlists. Playlists
    are ordered by tag, case-insensitively.
    """
    grouped: dict[str, list[MediaItem]] = {}
    for item in items:
        tags = [t.strip() for t in (item.tags or []) if t and t.strip()]
        if not tags:
            grouped.setdefault(UNTAGGED, []).append(item)
            continue
        for tag in tags:
            grouped.setdefault(tag, []).append(item)

    return [TagPlaylist(tag=tag, items=grouped[tag]) for tag in sorted(grouped, key=str.casefold)]
