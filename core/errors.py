"""Error types raised by the library store, importers, and caches."""

from __future__ import annotations


class LibraryError(Exception):
    """Base class for all library errors."""


class NotFoundError(LibraryError):
    """Unknown media id or favorites group id."""


class ConflictError(LibraryError):
    """Media type does not match the favorites group's media type."""


class InvalidArgumentError(LibraryError):
    """Caller supplied an unusable argument, e.g. an empty group name."""


class UnreadableInputError(LibraryError):
    """Import payload is not decodable text or matches no accepted shape."""


class MissingColumnError(LibraryError):
    """CSV header lacks every accepted source URL column."""

    def __init__(self, accepted: tuple[str, ...]) -> None:
        super().__init__(f"CSV missing a source URL column (one of: {', '.join(accepted)})")
        self.accepted = accepted


class PersistenceError(LibraryError):
    """Writing the library document failed; in-memory state was rolled back."""


class FetchError(LibraryError):
    """Download failed. Recovered inside the cache, never raised to callers."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"fetch failed for {url}: {reason}")
        self.url = url
        self.reason = reason
