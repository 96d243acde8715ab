"""Tests for the library view-model."""

from app.viewmodels.library_vm import LibraryFilter, LibraryVM

CSV = (
    "url,title,tags\n"
    "https://x.test/a.mp3,Alpha,focus\n"
    "https://x.test/b.mp4,Beta,\n"
    "bogus,Gamma,\n"
).encode()


def test_import_sets_summary_and_reloads(tmp_path, store):
    path = tmp_path / "batch.csv"
    path.write_bytes(CSV)
    vm = LibraryVM(store)
    vm.import_file(path)
    assert vm.error_message is None
    assert vm.import_summary == "Imported 2 new, updated 0, skipped 1."
    assert vm.item_count == 2


def test_import_failure_sets_single_message(tmp_path, store):
    path = tmp_path / "batch.csv"
    path.write_bytes(b"title\nNo url column\n")
    vm = LibraryVM(store)
    vm.import_file(path)
    assert vm.import_summary is None
    assert vm.error_message.startswith("Failed to import batch.csv")


def test_filter_search_and_delete(tmp_path, store):
    store.import_csv(CSV)
    vm = LibraryVM(store)
    vm.refresh_for_filter(LibraryFilter.VIDEOS)
    assert [i.title for i in vm.items] == ["Beta"]

    vm.selected_filter = LibraryFilter.ALL
    vm.search_text = "  alp "
    vm.load()
    assert [i.title for i in vm.items] == ["Alpha"]

    vm.delete_media(vm.items[0])
    assert [i.title for i in vm.items] == ["Beta"]


def test_tag_playlists_cover_audio_only(store):
    store.import_csv(CSV)
    playlists = LibraryVM(store).tag_playlists()
    assert [(p.tag, [i.title for i in p.items]) for p in playlists] == [("focus", ["Alpha"])]
