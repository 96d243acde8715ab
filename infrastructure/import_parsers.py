"""Readers that turn bulk import payloads into raw rows.

CSV goes through the `csv` module, which handles quoted commas, newlines
inside quotes, doubled quotes, and both LF and CRLF terminators. Rows come
back keyed by normalized column names; interpreting the fields is left to
`core.services.import_normalizer`.

Both readers parse the whole payload before returning, so a malformed file
fails before any row reaches the catalog.
"""

from __future__ import annotations

import csv
import io
import json
from typing import Any

from loguru import logger

from core.errors import MissingColumnError, UnreadableInputError
from core.services.import_normalizer import URL_ALIASES, normalize_key

RawRow = dict[str, Any]


def _decode_text(data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as ex:
        raise UnreadableInputError(f"import file is not UTF-8 text: {ex}") from ex


def read_csv_rows(data: bytes) -> list[tuple[int, RawRow]]:
    """Parse CSV bytes into `(row_number, row)` pairs.

    The header row is mandatory and must contain one of `URL_ALIASES` after
    normalization. Blank lines are ignored; extra columns are kept but unused.
    """
    text = _decode_text(data)
    try:
        records = list(csv.reader(io.StringIO(text, newline="")))
    except csv.Error as ex:
        raise UnreadableInputError(f"malformed CSV: {ex}") from ex

    if not records or not any(cell.strip() for cell in records[0]):
        raise UnreadableInputError("CSV has no header row")

    columns = [normalize_key(h) for h in records[0]]
    if not any(c in URL_ALIASES for c in columns):
        raise MissingColumnError(URL_ALIASES)

    rows: list[tuple[int, RawRow]] = []
    for number, values in enumerate(records[1:], start=1):
        if not any(v.strip() for v in values):
            continue
        row: RawRow = {}
        for column, value in zip(columns, values):
            # Leftmost wins when two headers normalize to the same name
            if column and column not in row:
                row[column] = value
        rows.append((number, row))

    logger.debug("CSV parsed: {} columns, {} rows", len(columns), len(rows))
    return rows


def read_json_rows(data: bytes) -> list[tuple[int, RawRow | None]]:
    """Parse a JSON list of records, or an object wrapping one under `items`.

    Non-object entries come back as None so the caller can count them as
    skipped.
    """
    text = _decode_text(data).lstrip("\ufeff")
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as ex:
        raise UnreadableInputError(f"invalid JSON: {ex}") from ex

    if isinstance(payload, list):
        records = payload
    elif isinstance(payload, dict) and isinstance(payload.get("items"), list):
        records = payload["items"]
    else:
        raise UnreadableInputError(
            "JSON must be a list of records or an object with an 'items' list"
        )

    rows: list[tuple[int, RawRow | None]] = []
    for number, record in enumerate(records, start=1):
        if isinstance(record, dict):
            rows.append((number, {normalize_key(str(k)): v for k, v in record.items()}))
        else:
            rows.append((number, None))

    logger.debug("JSON parsed: {} records", len(rows))
    return rows
