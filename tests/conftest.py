"""Shared fixtures for the test suite."""

from __future__ import annotations

import pytest

from infrastructure.library_store import LibraryStore


@pytest.fixture
def store(tmp_path) -> LibraryStore:
    return LibraryStore(tmp_path / "library.json")
