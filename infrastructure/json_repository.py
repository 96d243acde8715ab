"""JSON persistence for the library document.

The whole `LibraryState` lives in one file with snake_case keys, written
pretty-printed with sorted keys and replaced atomically on every save.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from loguru import logger

from core.errors import PersistenceError
from core.models import FavoriteGroup, FavoriteListItem, LibraryState, MediaRecord, MediaType
from infrastructure.utils import atomic_write_bytes

DOCUMENT_VERSION = 1


def record_to_dict(record: MediaRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "url": record.url,
        "type": record.type.value,
        "title": record.title,
        "subtitle": record.subtitle,
        "status": record.status,
        "tags": list(record.tags) if record.tags else None,
        "format": record.format,
        "duration_ms": record.duration_ms,
        "thumb_url": record.thumb_url,
    }


def record_from_dict(data: dict[str, Any]) -> MediaRecord:
    return MediaRecord(
        id=str(data["id"]),
        url=str(data["url"]),
        type=MediaType(data["type"]),
        title=str(data["title"]),
        subtitle=data.get("subtitle"),
        status=str(data.get("status") or "ready"),
        tags=list(data["tags"]) if data.get("tags") else None,
        format=str(data.get("format") or "unknown"),
        duration_ms=max(0, int(data.get("duration_ms") or 0)),
        thumb_url=data.get("thumb_url"),
    )


def group_to_dict(group: FavoriteGroup) -> dict[str, Any]:
    return {"id": group.id, "name": group.name, "media_type": group.media_type.value}


def group_from_dict(data: dict[str, Any]) -> FavoriteGroup:
    return FavoriteGroup(
        id=str(data["id"]), name=str(data["name"]), media_type=MediaType(data["media_type"])
    )


def item_to_dict(item: FavoriteListItem) -> dict[str, Any]:
    return {
        "id": item.id,
        "media_id": item.media_id,
        "media_type": item.media_type.value,
        "title": item.title,
        "subtitle": item.subtitle,
        "duration_ms": item.duration_ms,
        "thumb_url": item.thumb_url,
        "tags": list(item.tags) if item.tags else None,
    }


def item_from_dict(data: dict[str, Any]) -> FavoriteListItem:
    return FavoriteListItem(
        id=str(data.get("id") or data["media_id"]),
        media_id=str(data["media_id"]),
        media_type=MediaType(data["media_type"]),
        title=str(data["title"]),
        subtitle=data.get("subtitle"),
        duration_ms=max(0, int(data.get("duration_ms") or 0)),
        thumb_url=data.get("thumb_url"),
        tags=list(data["tags"]) if data.get("tags") else None,
    )


def state_to_dict(state: LibraryState) -> dict[str, Any]:
    return {
        "version": DOCUMENT_VERSION,
        "media_records": [record_to_dict(r) for r in state.media_records],
        "favorite_groups": [group_to_dict(g) for g in state.favorite_groups],
        "favorite_items_by_group": {
            group_id: [item_to_dict(it) for it in items]
            for group_id, items in state.favorite_items_by_group.items()
        },
    }


def state_from_dict(data: dict[str, Any]) -> LibraryState:
    """Decode a library document, logging and skipping malformed entries."""
    state = LibraryState()
    for raw in data.get("media_records") or []:
        try:
            state.media_records.append(record_from_dict(raw))
        except (ValueError, TypeError, KeyError) as ex:
            logger.error("Library record error: {} | record={}", ex, raw)
    for raw in data.get("favorite_groups") or []:
        try:
            state.favorite_groups.append(group_from_dict(raw))
        except (ValueError, TypeError, KeyError) as ex:
            logger.error("Favorite group error: {} | group={}", ex, raw)
    items_by_group = data.get("favorite_items_by_group") or {}
    for group in state.favorite_groups:
        items: list[FavoriteListItem] = []
        for raw in items_by_group.get(group.id) or []:
            try:
                items.append(item_from_dict(raw))
            except (ValueError, TypeError, KeyError) as ex:
                logger.error("Favorite item error: {} | item={}", ex, raw)
        state.favorite_items_by_group[group.id] = items
    return state


class JsonLibraryRepository:
    """Load and save the library document at a fixed path."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> LibraryState | None:
        """Return the stored state, or None when no document exists yet."""
        if not self._path.is_file():
            return None
        try:
            with self._path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as ex:
            raise PersistenceError(f"library document unreadable: {self._path}: {ex}") from ex
        if not isinstance(data, dict):
            raise PersistenceError(f"library document is not an object: {self._path}")
        return state_from_dict(data)

    def save(self, state: LibraryState) -> None:
        """Atomically replace the document with `state`."""
        payload = json.dumps(state_to_dict(state), indent=2, sort_keys=True, ensure_ascii=False)
        try:
            atomic_write_bytes(self._path, (payload + "\n").encode("utf-8"))
        except OSError as ex:
            raise PersistenceError(f"write library document failed: {self._path}: {ex}") from ex
