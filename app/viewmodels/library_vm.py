"""ViewModel for browsing, importing, and pruning the media library."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from loguru import logger

from core.errors import LibraryError
from core.models import MediaItem, MediaType, TagPlaylist
from core.services.query_service import build_tag_playlists


class LibraryFilter(str, Enum):
    """Explore tabs and the media type each one shows."""

    ALL = "all"
    VIDEOS = "videos"
    MUSIC = "music"

    @property
    def media_type(self) -> MediaType | None:
        if self is LibraryFilter.VIDEOS:
            return MediaType.VIDEO
        if self is LibraryFilter.MUSIC:
            return MediaType.AUDIO
        return None


class LibraryVM:
    """Library browsing view-model.

    Mediates between a `LibraryStore` and a presentation layer. Errors from the
    store are turned into `error_message`; import results into
    `import_summary`.
    """

    def __init__(self, store) -> None:
        """Create a LibraryVM.

        Args:
            store: Object exposing the `LibraryStore` API.
        """
        self._store = store
        self.items: list[MediaItem] = []
        self.selected_filter = LibraryFilter.ALL
        self.search_text = ""
        self.error_message: str | None = None
        self.import_summary: str | None = None

    def load(self) -> None:
        """Refresh `items` for the current filter and search text."""
        self.error_message = None
        keyword = self.search_text.strip() or None
        try:
            self.items = self._store.list_media(self.selected_filter.media_type, keyword)
        except LibraryError as ex:
            logger.error("Load media failed: {}", ex)
            self.error_message = "Failed to load media."

    def refresh_for_filter(self, selected: LibraryFilter) -> None:
        self.selected_filter = selected
        self.load()

    def import_file(self, path: str | Path) -> None:
        """Import a CSV/JSON file and reload the unfiltered-by-keyword listing."""
        self.error_message = None
        self.import_summary = None
        try:
            report = self._store.import_file(path)
        except LibraryError as ex:
            logger.error("Import failed for {}: {}", path, ex)
            self.error_message = f"Failed to import {Path(path).name}: {ex}"
            return
        self.import_summary = report.summary
        if report.changed:
            self.items = self._store.list_media(self.selected_filter.media_type, None)

    def delete_media(self, item: MediaItem) -> None:
        self.error_message = None
        try:
            self._store.delete_media(item.id)
            self.items = self._store.list_media(self.selected_filter.media_type, None)
        except LibraryError as ex:
            logger.error("Delete failed for {}: {}", item.id, ex)
            self.error_message = "Failed to delete media."

    def tag_playlists(self) -> list[TagPlaylist]:
        """Audio items grouped by tag."""
        return build_tag_playlists(self._store.list_media(MediaType.AUDIO, None))

    @property
    def item_count(self) -> int:
        """Number of items currently listed."""
        return len(self.items)
