"""Tests for the catalog store: queries, favorites, import merge, persistence."""

from concurrent.futures import ThreadPoolExecutor
import json

import pytest

from core.errors import (
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
    PersistenceError,
    UnreadableInputError,
)
from core.models import MediaType
from infrastructure.json_repository import JsonLibraryRepository
from infrastructure.library_store import LibraryStore

SONG = "https://media.example.com/audio/song-one.mp3"
CLIP = "https://media.example.com/video/clip.mp4"
PODCAST = "https://media.example.com/audio/episode"

CSV = (
    "url,title,subtitle,type,duration,tags\n"
    f"{SONG},Song One,Luna Echoes,,1:30,chill;live\n"
    f"{CLIP},Clip,,,90,4K\n"
    f'{PODCAST},"Episode, the ""first""",Ken Blast,audio,,\n'
).encode("utf-8")


def test_first_run_seeds_default_groups(store):
    groups = store.list_groups()
    assert [(g.id, g.name, g.media_type, g.count) for g in groups] == [
        ("g_audio", "My Audios", MediaType.AUDIO, 0),
        ("g_video", "My Videos", MediaType.VIDEO, 0),
    ]
    assert store.path.exists()


def test_reimport_is_idempotent(store):
    first = store.import_csv(CSV)
    second = store.import_csv(CSV)
    assert (first.inserted, first.updated, first.skipped) == (3, 0, 0)
    assert (second.inserted, second.updated, second.skipped) == (0, 3, 0)
    assert first.changed and second.changed
    assert len(store.list_media()) == 3


def test_same_url_in_later_import_is_an_update(store):
    store.import_csv(f"url,title\n{SONG},Old\n".encode())
    report = store.import_json(json.dumps([{"url": SONG, "title": "New"}]).encode())
    assert (report.inserted, report.updated) == (0, 1)
    assert [i.title for i in store.list_media()] == ["New"]


def test_duplicate_url_within_batch_is_skipped_first_wins(store):
    data = f"url,title\n{SONG},First\n{SONG},Second\nnot a url,Bad\n".encode()
    report = store.import_csv(data)
    assert (report.inserted, report.updated, report.skipped) == (1, 0, 2)
    assert [issue.row for issue in report.issues] == [2, 3]
    assert store.media_detail(SONG).title == "First"


def test_import_with_no_valid_rows_does_not_write(store):
    before = store.path.stat().st_mtime_ns
    report = store.import_csv(b"url,title\n,Nothing\n")
    assert (report.inserted, report.updated, report.skipped) == (0, 0, 1)
    assert not report.changed
    assert store.path.stat().st_mtime_ns == before


def test_parse_errors_abort_whole_import(store):
    with pytest.raises(UnreadableInputError):
        store.import_json(b'{"records": []}')
    assert store.list_media() == []


def test_list_filters_by_type_and_keyword(store):
    store.import_csv(CSV)
    assert [i.id for i in store.list_media(MediaType.VIDEO)] == [CLIP]
    assert [i.id for i in store.list_media(keyword="LUNA")] == [SONG]
    assert [i.id for i in store.list_media(MediaType.AUDIO, "episode")] == [PODCAST]
    assert len(store.list_media(keyword="   ")) == 3


def test_list_media_page(store):
    store.import_csv(CSV)
    page = store.list_media_page(page=2, page_size=2)
    assert page.total == 3
    assert [i.id for i in page.items] == [PODCAST]


def test_media_detail(store):
    store.import_csv(CSV)
    detail = store.media_detail(SONG)
    assert detail.duration_ms == 90000
    assert detail.tags == ["chill", "live"]
    assert detail.sources[0].url == SONG
    assert detail.sources[0].format == "mp3"
    assert store.media_detail(PODCAST).title == 'Episode, the "first"'
    with pytest.raises(NotFoundError):
        store.media_detail("https://media.example.com/missing.mp3")


def test_create_group_validates_and_prepends(store):
    with pytest.raises(InvalidArgumentError):
        store.create_group("   ", MediaType.AUDIO)
    group = store.create_group("  Road Trip ", MediaType.VIDEO)
    groups = store.list_groups()
    assert groups[0].id == group.id
    assert groups[0].name == "Road Trip"
    assert group.id.startswith("g_")


def test_delete_group_drops_items(store):
    store.import_csv(CSV)
    group = store.create_group("Mix", MediaType.AUDIO)
    store.add_item(group.id, SONG)
    assert store.delete_group(group.id) is True
    assert store.list_items(group.id) == []
    assert group.id not in [g.id for g in store.list_groups()]
    assert store.delete_group(group.id) is False


def test_add_item_guards_type_and_is_idempotent(store):
    store.import_csv(CSV)
    with pytest.raises(ConflictError):
        store.add_item("g_audio", CLIP)
    with pytest.raises(NotFoundError):
        store.add_item("g_missing", SONG)
    with pytest.raises(NotFoundError):
        store.add_item("g_audio", "https://media.example.com/none.mp3")

    first = store.add_item("g_audio", SONG)
    again = store.add_item("g_audio", SONG)
    assert first == again
    assert len(store.list_items("g_audio")) == 1


def test_new_items_are_prepended(store):
    store.import_csv(CSV)
    store.add_item("g_audio", SONG)
    store.add_item("g_audio", PODCAST)
    assert [i.media_id for i in store.list_items("g_audio")] == [PODCAST, SONG]
    assert store.list_groups()[0].count == 2


def test_remove_item_is_noop_when_absent(store):
    store.import_csv(CSV)
    store.add_item("g_audio", SONG)
    assert store.remove_item("g_audio", PODCAST) is False
    assert store.remove_item("g_audio", SONG) is True
    assert store.list_items("g_audio") == []


def test_delete_media_cascades_to_all_groups(store):
    store.import_csv(CSV)
    mix = store.create_group("Mix", MediaType.AUDIO)
    store.add_item("g_audio", SONG)
    store.add_item(mix.id, SONG)
    store.add_item(mix.id, PODCAST)

    assert store.delete_media(SONG) is True
    assert store.list_items("g_audio") == []
    assert [i.media_id for i in store.list_items(mix.id)] == [PODCAST]
    assert store.delete_media(SONG) is False


def test_import_refreshes_favorite_copies(store):
    store.import_csv(CSV)
    store.add_item("g_audio", SONG)
    payload = {"items": [{"url": SONG, "title": "Renamed", "duration_ms": 1000}]}
    store.import_json(json.dumps(payload).encode())
    items = store.list_items("g_audio")
    assert items[0].title == "Renamed"
    assert items[0].duration_ms == 1000


def test_import_changing_type_drops_mismatched_favorite(store):
    store.import_csv(CSV)
    store.add_item("g_audio", SONG)
    store.import_json(json.dumps([{"url": SONG, "type": "video"}]).encode())
    assert store.list_items("g_audio") == []


def test_is_favorite_and_move_item(store):
    store.import_csv(CSV)
    mix = store.create_group("Mix", MediaType.AUDIO)
    store.add_item("g_audio", SONG)
    assert store.is_favorite(SONG) == "g_audio"
    store.move_item(SONG, "g_audio", mix.id)
    assert store.is_favorite(SONG) == mix.id
    assert store.list_items("g_audio") == []
    with pytest.raises(ConflictError):
        store.move_item(SONG, mix.id, "g_video")
    assert store.is_favorite(CLIP) is None


def test_state_survives_reopen(tmp_path):
    path = tmp_path / "library.json"
    store = LibraryStore(path)
    store.import_csv(CSV)
    group = store.create_group("Road Trip", MediaType.VIDEO)
    store.add_item(group.id, CLIP)

    reopened = LibraryStore(path)
    assert [i.id for i in reopened.list_media()] == [SONG, CLIP, PODCAST]
    assert reopened.list_groups()[0].name == "Road Trip"
    assert [i.media_id for i in reopened.list_items(group.id)] == [CLIP]

    document = json.loads(path.read_text(encoding="utf-8"))
    assert set(document) >= {"media_records", "favorite_groups", "favorite_items_by_group"}
    assert "count" not in document["favorite_groups"][0]


class FailingRepository(JsonLibraryRepository):
    fail = False

    def save(self, state):
        if self.fail:
            raise PersistenceError("disk full")
        super().save(state)


def test_failed_write_rolls_back(tmp_path):
    repo = FailingRepository(tmp_path / "library.json")
    store = LibraryStore(repo.path, repo=repo)
    store.import_csv(CSV)

    repo.fail = True
    with pytest.raises(PersistenceError):
        store.create_group("Lost", MediaType.AUDIO)
    with pytest.raises(PersistenceError):
        store.delete_media(SONG)

    assert [g.name for g in store.list_groups()] == ["My Audios", "My Videos"]
    assert store.media_detail(SONG).title == "Song One"


def test_export_round_trips_through_import(tmp_path, store):
    store.import_csv(CSV)
    other = LibraryStore(tmp_path / "other.json")
    report = other.import_json(store.export_json())
    assert report.inserted == 3
    assert other.media_detail(SONG) == store.media_detail(SONG)


def test_import_file_dispatches_by_suffix(tmp_path, store):
    csv_path = tmp_path / "batch.csv"
    csv_path.write_bytes(CSV)
    assert store.import_file(csv_path).inserted == 3
    with pytest.raises(UnreadableInputError):
        store.import_file(tmp_path / "batch.txt")


def test_concurrent_imports_and_favorite_edits_lose_no_writes(tmp_path):
    path = tmp_path / "library.json"
    store = LibraryStore(path)
    base = [f"https://media.example.com/audio/base-{n}.mp3" for n in range(8)]
    store.import_json(json.dumps([{"url": url} for url in base]).encode())

    def run_import(batch):
        urls = [f"https://media.example.com/audio/batch{batch}-{n}.mp3" for n in range(5)]
        store.import_json(json.dumps([{"url": url, "title": "t"} for url in urls]).encode())

    def run_group(n):
        store.create_group(f"Group {n}", MediaType.AUDIO)

    with ThreadPoolExecutor(max_workers=8) as pool:
        futures = [pool.submit(run_import, b) for b in range(6)]
        futures += [pool.submit(run_group, n) for n in range(6)]
        futures += [pool.submit(store.add_item, "g_audio", url) for url in base[1:]]
        futures += [pool.submit(store.delete_media, base[0])]
        for future in futures:
            future.result()

    reopened = LibraryStore(path)
    ids = {item.id for item in reopened.list_media()}
    assert len(ids) == len(base) - 1 + 6 * 5
    assert base[0] not in ids
    names = {g.name for g in reopened.list_groups()}
    assert names >= {f"Group {n}" for n in range(6)}
    favorites = {item.media_id for item in reopened.list_items("g_audio")}
    assert favorites == set(base[1:])
