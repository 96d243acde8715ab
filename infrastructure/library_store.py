"""Catalog store for media records, favorites groups, and bulk imports.

All reads and writes go through one re-entrant lock, so imports, deletes and
favorites edits never interleave their read-modify-write sequences. Every
mutation persists the whole document before returning; if the write fails the
in-memory state is rolled back and `PersistenceError` propagates.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
import copy
import json
from pathlib import Path
import threading
from typing import Any
import uuid

from loguru import logger

from core.errors import ConflictError, InvalidArgumentError, NotFoundError, UnreadableInputError
from core.models import (
    FavoriteGroup,
    FavoriteListItem,
    LibraryState,
    MediaDetail,
    MediaItem,
    MediaRecord,
    MediaSource,
    MediaType,
)
from core.services.favorites_service import (
    build_favorite_item,
    group_with_count,
    refresh_items,
    remove_media,
)
from core.services.import_normalizer import RowRejected, normalize_row
from core.services.interfaces import ImportReport, Page
from core.services.query_service import filter_records, paginate
from infrastructure.import_parsers import RawRow, read_csv_rows, read_json_rows
from infrastructure.json_repository import JsonLibraryRepository

LIBRARY_FILE_NAME = "library.json"
SOURCE_QUALITY = "original"

SEED_GROUPS = (
    FavoriteGroup(id="g_audio", name="My Audios", media_type=MediaType.AUDIO),
    FavoriteGroup(id="g_video", name="My Videos", media_type=MediaType.VIDEO),
)


def to_media_item(record: MediaRecord) -> MediaItem:
    return MediaItem(
        id=record.id,
        type=record.type,
        title=record.title,
        duration_ms=record.duration_ms,
        status=record.status,
        subtitle=record.subtitle,
        thumb_url=record.thumb_url,
        tags=list(record.tags) if record.tags else None,
    )


def to_media_detail(record: MediaRecord) -> MediaDetail:
    return MediaDetail(
        id=record.id,
        type=record.type,
        title=record.title,
        duration_ms=record.duration_ms,
        status=record.status,
        subtitle=record.subtitle,
        thumb_url=record.thumb_url,
        tags=list(record.tags) if record.tags else None,
        sources=[MediaSource(format=record.format, quality=SOURCE_QUALITY, url=record.url)],
    )


def to_export_dict(record: MediaRecord) -> dict[str, Any]:
    """Record in the shape `import_json` accepts."""
    return {
        "url": record.url,
        "type": record.type.value,
        "title": record.title,
        "subtitle": record.subtitle,
        "status": record.status,
        "tags": list(record.tags) if record.tags else [],
        "format": record.format,
        "duration_ms": record.duration_ms,
        "thumb_url": record.thumb_url,
    }


class LibraryStore:
    """Single source of truth for the media catalog and favorites."""

    def __init__(self, path: str | Path, repo: JsonLibraryRepository | None = None) -> None:
        """Load the document at `path`, seeding default groups on first run."""
        self._repo = repo or JsonLibraryRepository(path)
        self._lock = threading.RLock()
        self._index: dict[str, MediaRecord] = {}

        state = self._repo.load()
        if state is None:
            state = LibraryState(
                favorite_groups=[copy.copy(g) for g in SEED_GROUPS],
                favorite_items_by_group={g.id: [] for g in SEED_GROUPS},
            )
            self._repo.save(state)
            logger.info("Library created at {}", self._repo.path)
        self._state = state
        self._rebuild_index()
        logger.info(
            "Library loaded: {} records, {} groups",
            len(self._state.media_records),
            len(self._state.favorite_groups),
        )

    @classmethod
    def open(cls, data_dir: str | Path) -> LibraryStore:
        """Open the library document inside `data_dir`."""
        return cls(Path(data_dir) / LIBRARY_FILE_NAME)

    @property
    def path(self) -> Path:
        return self._repo.path

    # Internal helpers
    def _rebuild_index(self) -> None:
        self._index = {r.id: r for r in self._state.media_records}

    @contextmanager
    def _transaction(self) -> Iterator[LibraryState]:
        """Mutate state, then rebuild the index and persist; roll back on error."""
        snapshot = copy.deepcopy(self._state)
        try:
            yield self._state
            self._rebuild_index()
            self._repo.save(self._state)
        except Exception:
            self._state = snapshot
            self._rebuild_index()
            raise

    def _group(self, group_id: str) -> FavoriteGroup | None:
        for g in self._state.favorite_groups:
            if g.id == group_id:
                return g
        return None

    def _require_group(self, group_id: str) -> FavoriteGroup:
        group = self._group(group_id)
        if group is None:
            raise NotFoundError(f"favorite group not found: {group_id}")
        return group

    def _require_media(self, media_id: str) -> MediaRecord:
        record = self._index.get(media_id)
        if record is None:
            raise NotFoundError(f"media not found: {media_id}")
        return record

    def _new_group_id(self) -> str:
        while True:
            group_id = f"g_{uuid.uuid4().hex[:8]}"
            if self._group(group_id) is None:
                return group_id

    # Catalog
    def list_media(
        self, media_type: MediaType | None = None, keyword: str | None = None
    ) -> list[MediaItem]:
        """Records matching the filters, in catalog order."""
        with self._lock:
            records = filter_records(self._state.media_records, media_type, keyword)
            return [to_media_item(r) for r in records]

    def list_media_page(
        self,
        media_type: MediaType | None = None,
        keyword: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Page[MediaItem]:
        return paginate(self.list_media(media_type, keyword), page, page_size)

    def media_detail(self, media_id: str) -> MediaDetail:
        """Detail view of `media_id`; raises `NotFoundError` if unknown."""
        with self._lock:
            return to_media_detail(self._require_media(media_id))

    def delete_media(self, media_id: str) -> bool:
        """Remove a record and every favorites entry pointing at it.

        Unknown ids are ignored. Returns True if something was deleted.
        """
        with self._lock:
            if media_id not in self._index:
                return False
            with self._transaction() as state:
                state.media_records = [r for r in state.media_records if r.id != media_id]
                removed = remove_media(state.favorite_items_by_group, media_id)
            logger.info("Deleted media {} ({} favorite entries removed)", media_id, removed)
            return True

    # Favorites groups
    def list_groups(self) -> list[FavoriteGroup]:
        with self._lock:
            return [
                group_with_count(g, self._state.favorite_items_by_group.get(g.id))
                for g in self._state.favorite_groups
            ]

    def create_group(self, name: str, media_type: MediaType) -> FavoriteGroup:
        """Create a group at the front of the list.

        Raises `InvalidArgumentError` if `name` is blank.
        """
        clean = (name or "").strip()
        if not clean:
            raise InvalidArgumentError("group name must not be empty")
        with self._lock:
            group = FavoriteGroup(
                id=self._new_group_id(), name=clean, media_type=MediaType(media_type)
            )
            with self._transaction() as state:
                state.favorite_groups.insert(0, group)
                state.favorite_items_by_group[group.id] = []
            logger.info(
                "Created favorite group {} ({}, {})", group.id, clean, group.media_type.value
            )
            return group_with_count(group, [])

    def delete_group(self, group_id: str) -> bool:
        """Delete a group and its item list. Unknown ids are ignored."""
        with self._lock:
            if self._group(group_id) is None:
                return False
            with self._transaction() as state:
                state.favorite_groups = [g for g in state.favorite_groups if g.id != group_id]
                state.favorite_items_by_group.pop(group_id, None)
            logger.info("Deleted favorite group {}", group_id)
            return True

    # Favorites items
    def list_items(self, group_id: str) -> list[FavoriteListItem]:
        """Items of a group, most recently added first; empty for unknown groups."""
        with self._lock:
            return copy.deepcopy(self._state.favorite_items_by_group.get(group_id, []))

    def add_item(self, group_id: str, media_id: str) -> FavoriteListItem:
        """Prepend `media_id` to a group, or return the existing entry.

        Raises `NotFoundError` for an unknown group or media id and
        `ConflictError` when the media type differs from the group's.
        """
        with self._lock:
            group = self._require_group(group_id)
            record = self._require_media(media_id)
            if record.type != group.media_type:
                raise ConflictError(
                    f"cannot add {record.type.value} media to "
                    f"{group.media_type.value} group {group_id}"
                )
            for existing in self._state.favorite_items_by_group.get(group_id, []):
                if existing.media_id == media_id:
                    return copy.deepcopy(existing)

            item = build_favorite_item(record)
            with self._transaction() as state:
                state.favorite_items_by_group.setdefault(group_id, []).insert(0, item)
            logger.debug("Added {} to favorite group {}", media_id, group_id)
            return copy.deepcopy(item)

    def remove_item(self, group_id: str, media_id: str) -> bool:
        """Remove `media_id` from a group; absent entries are ignored."""
        with self._lock:
            items = self._state.favorite_items_by_group.get(group_id)
            if not items or not any(it.media_id == media_id for it in items):
                return False
            with self._transaction() as state:
                state.favorite_items_by_group[group_id] = [
                    it for it in state.favorite_items_by_group[group_id] if it.media_id != media_id
                ]
            logger.debug("Removed {} from favorite group {}", media_id, group_id)
            return True

    def is_favorite(self, media_id: str) -> str | None:
        """Id of the first group (in group order) containing `media_id`."""
        with self._lock:
            for group in self._state.favorite_groups:
                items = self._state.favorite_items_by_group.get(group.id, [])
                if any(it.media_id == media_id for it in items):
                    return group.id
            return None

    def move_item(self, media_id: str, from_group_id: str, to_group_id: str) -> FavoriteListItem:
        """Move an entry between groups in a single write.

        Validation matches `add_item` for the target group.
        """
        with self._lock:
            target = self._require_group(to_group_id)
            record = self._require_media(media_id)
            if record.type != target.media_type:
                raise ConflictError(
                    f"cannot move {record.type.value} media to "
                    f"{target.media_type.value} group {to_group_id}"
                )
            with self._transaction() as state:
                items_by_group = state.favorite_items_by_group
                if from_group_id in items_by_group:
                    items_by_group[from_group_id] = [
                        it for it in items_by_group[from_group_id] if it.media_id != media_id
                    ]
                target_items = items_by_group.setdefault(to_group_id, [])
                item = next((it for it in target_items if it.media_id == media_id), None)
                if item is None:
                    item = build_favorite_item(record)
                    target_items.insert(0, item)
            return copy.deepcopy(item)

    # Import / export
    def import_csv(self, data: bytes) -> ImportReport:
        """Merge a CSV payload into the catalog."""
        return self._merge(read_csv_rows(data), "csv")

    def import_json(self, data: bytes) -> ImportReport:
        """Merge a JSON payload (list or `{"items": [...]}`) into the catalog."""
        return self._merge(read_json_rows(data), "json")

    def import_file(self, path: str | Path) -> ImportReport:
        """Import a `.csv` or `.json` file, choosing the parser by suffix."""
        p = Path(path)
        try:
            data = p.read_bytes()
        except OSError as ex:
            raise UnreadableInputError(f"cannot read import file {p}: {ex}") from ex
        suffix = p.suffix.lower()
        if suffix == ".csv":
            return self.import_csv(data)
        if suffix == ".json":
            return self.import_json(data)
        raise UnreadableInputError(f"unsupported import file type: {p.name}")

    def export_json(self) -> bytes:
        """Catalog as a `{"items": [...]}` document that `import_json` accepts."""
        with self._lock:
            items = [to_export_dict(r) for r in self._state.media_records]
        payload = json.dumps({"items": items}, indent=2, sort_keys=True, ensure_ascii=False)
        return (payload + "\n").encode("utf-8")

    def _merge(self, rows: Iterable[tuple[int, RawRow | None]], source: str) -> ImportReport:
        report = ImportReport()
        batch: list[MediaRecord] = []
        seen: set[str] = set()
        for number, row in rows:
            if row is None:
                report.skip(number, "record is not an object")
                continue
            try:
                record = normalize_row(row)
            except RowRejected as ex:
                report.skip(number, str(ex))
                continue
            if record.id in seen:
                report.skip(number, f"duplicate URL in batch: {record.id}")
                continue
            seen.add(record.id)
            batch.append(record)

        with self._lock:
            if batch:
                with self._transaction() as state:
                    positions = {r.id: i for i, r in enumerate(state.media_records)}
                    touched: dict[str, MediaRecord] = {}
                    for record in batch:
                        pos = positions.get(record.id)
                        if pos is None:
                            positions[record.id] = len(state.media_records)
                            state.media_records.append(record)
                            report.inserted += 1
                        else:
                            state.media_records[pos] = record
                            report.updated += 1
                        touched[record.id] = record
                    refresh_items(state.favorite_items_by_group, state.favorite_groups, touched)

        for issue in report.issues:
            logger.debug("Import {} skipped row {}: {}", source, issue.row, issue.reason)
        logger.info("Import {}: {}", source, report.summary)
        return report
