"""Tests for pagination and tag playlists."""

from core.models import MediaItem, MediaType
from core.services.query_service import build_tag_playlists, paginate


def _item(n, tags=None):
    return MediaItem(
        id=f"https://x.test/{n}.mp3",
        type=MediaType.AUDIO,
        title=str(n),
        duration_ms=0,
        status="ready",
        tags=tags,
    )


def test_paginate():
    items = list(range(45))
    page = paginate(items, page=3, page_size=20)
    assert (page.page, page.page_size, page.total, page.items) == (3, 20, 45, list(range(40, 45)))
    assert paginate(items, page=9, page_size=20).items == []
    assert paginate(items, page=0, page_size=0).items == [0]


def test_tag_playlists_group_and_sort():
    items = [_item(1, ["chill", "Live"]), _item(2), _item(3, ["  ", "alpha"]), _item(4, ["chill"])]
    playlists = build_tag_playlists(items)
    assert [p.tag for p in playlists] == ["alpha", "chill", "Live", "Untagged"]
    assert [i.title for i in playlists[1].items] == ["1", "4"]
    assert [i.title for i in playlists[3].items] == ["2"]
