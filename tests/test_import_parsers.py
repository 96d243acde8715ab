"""Tests for CSV and JSON import readers."""

import pytest

from core.errors import MissingColumnError, UnreadableInputError
from infrastructure.import_parsers import read_csv_rows, read_json_rows


def test_quoted_field_with_comma_and_newline_stays_one_field():
    data = b'url,title\r\nhttps://x.test/a.mp3,"a,b\nc"\r\nhttps://x.test/b.mp3,plain\n'
    rows = read_csv_rows(data)
    assert len(rows) == 2
    assert rows[0][1]["title"] == "a,b\nc"
    assert rows[1][1]["title"] == "plain"


def test_doubled_quotes_unescape():
    rows = read_csv_rows(b'url,title\nhttps://x.test/a.mp3,"say ""hi"""\n')
    assert rows[0][1]["title"] == 'say "hi"'


def test_header_normalization_and_bom():
    data = "\ufeffMedia-URL,Duration MS,Extra\nhttps://x.test/a.mp3,5000,ignored\n".encode("utf-8")
    rows = read_csv_rows(data)
    assert rows == [
        (1, {"media_url": "https://x.test/a.mp3", "duration_ms": "5000", "extra": "ignored"})
    ]


def test_blank_lines_are_ignored():
    rows = read_csv_rows(b"url\n\nhttps://x.test/a.mp3\n\n")
    assert [r[1]["url"] for r in rows] == ["https://x.test/a.mp3"]


def test_missing_url_column_fails_before_rows():
    with pytest.raises(MissingColumnError):
        read_csv_rows(b"title,type\nSong,audio\n")


def test_empty_csv_is_unreadable():
    with pytest.raises(UnreadableInputError):
        read_csv_rows(b"")


def test_non_utf8_is_unreadable():
    with pytest.raises(UnreadableInputError):
        read_csv_rows(b"url\n\xff\xfe\xfa\n")


def test_json_bare_list_and_items_wrapper():
    bare = read_json_rows(b'[{"URL": "https://x.test/a.mp3", "durationMS": 10}]')
    wrapped = read_json_rows(b'{"items": [{"url": "https://x.test/a.mp3"}, 3]}')
    assert bare == [(1, {"url": "https://x.test/a.mp3", "durationms": 10})]
    assert wrapped == [(1, {"url": "https://x.test/a.mp3"}), (2, None)]


@pytest.mark.parametrize("payload", [b'{"records": []}', b"42", b"{not json", b'{"items": "x"}'])
def test_json_wrong_shape_is_unreadable(payload):
    with pytest.raises(UnreadableInputError):
        read_json_rows(payload)
