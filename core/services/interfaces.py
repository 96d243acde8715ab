"""Core service result types shared across the infrastructure and view layers.

This module defines simple dataclasses that describe import outcomes and
paginated listings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass
class ImportIssue:
    """Why a single import row was skipped.

    Attributes:
        row: 1-based data row (CSV, header excluded) or record position (JSON).
        reason: Human-readable cause.
    """

    row: int
    reason: str


@dataclass
class ImportReport:
    """Outcome of a bulk import.

    Attributes:
        inserted: Records that did not exist before the import.
        updated: Existing records overwritten by the import.
        skipped: Rows rejected or duplicated within the batch.
        issues: One entry per skipped row.
    """

    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    issues: list[ImportIssue] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        """True if the import touched at least one record."""
        return (self.inserted + self.updated) > 0

    @property
    def summary(self) -> str:
        """Single-line message suitable for the user."""
        return (
            f"Imported {self.inserted} new, updated {self.updated}, skipped {self.skipped}."
        )

    def skip(self, row: int, reason: str) -> None:
        """Count a skipped row and remember why."""
        self.skipped += 1
        self.issues.append(ImportIssue(row=row, reason=reason))


@dataclass
class Page(Generic[T]):
    """A 1-based page over a fully materialized result list.

    Attributes:
        page: Requested page number.
        page_size: Requested page size.
        total: Size of the unpaginated result.
        items: Items on this page.
    """

    page: int
    page_size: int
    total: int
    items: list[T]
