"""Favorites index maintenance.

Group item lists hold denormalized copies of catalog records. These helpers
build those copies and keep them in step with catalog changes; callers are
expected to persist the result in the same write as the catalog change.
"""

from __future__ import annotations

from collections.abc import Iterable

from core.models import FavoriteGroup, FavoriteListItem, MediaRecord


def build_favorite_item(record: MediaRecord) -> FavoriteListItem:
    """Project `record` into a display-ready favorites entry."""
    return FavoriteListItem(
        id=record.id,
        media_id=record.id,
        media_type=record.type,
        title=record.title,
        subtitle=record.subtitle,
        duration_ms=record.duration_ms,
        thumb_url=record.thumb_url,
        tags=list(record.tags) if record.tags else None,
    )


def group_with_count(group: FavoriteGroup, items: list[FavoriteListItem] | None) -> FavoriteGroup:
    """Copy of `group` whose count is the length of its item list."""
    return FavoriteGroup(
        id=group.id, name=group.name, media_type=group.media_type, count=len(items or [])
    )


def remove_media(items_by_group: dict[str, list[FavoriteListItem]], media_id: str) -> int:
    """Drop `media_id` from every group in place. Returns how many entries went."""
    removed = 0
    for group_id, items in items_by_group.items():
        kept = [it for it in items if it.media_id != media_id]
        removed += len(items) - len(kept)
        items_by_group[group_id] = kept
    return removed


def refresh_items(
    items_by_group: dict[str, list[FavoriteListItem]],
    groups: Iterable[FavoriteGroup],
    records: dict[str, MediaRecord],
) -> int:
    """Regenerate entries whose media id is in `records`, keeping positions.

    An entry whose refreshed media type no longer matches its group's type is
    dropped. Returns the number of entries regenerated.
    """
    group_types = {g.id: g.media_type for g in groups}
    refreshed = 0
    for group_id, items in items_by_group.items():
        group_type = group_types.get(group_id)
        updated: list[FavoriteListItem] = []
        for item in items:
            record = records.get(item.media_id)
            if record is None:
                updated.append(item)
                continue
            if record.type != group_type:
                continue
            updated.append(build_favorite_item(record))
            refreshed += 1
        items_by_group[group_id] = updated
    return refreshed
