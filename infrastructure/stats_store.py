"""Playback time statistics persisted as a small JSON document.

Seconds are accumulated per local calendar day under `YYYY-MM-DD` keys, plus a
running total.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
import json
from pathlib import Path
import threading

from loguru import logger

from core.errors import PersistenceError
from core.models import DailyPlayback
from infrastructure.utils import atomic_write_bytes, format_day_key, parse_day_key

STATS_FILE_NAME = "playback_stats.json"


class PlaybackStatsStore:
    """Accumulates listening/watching time and answers trend queries."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()
        self._total_seconds = 0
        self._daily_seconds: dict[str, int] = {}
        self._load()

    @classmethod
    def open(cls, data_dir: str | Path) -> PlaybackStatsStore:
        return cls(Path(data_dir) / STATS_FILE_NAME)

    def _load(self) -> None:
        if not self._path.is_file():
            return
        try:
            with self._path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as ex:
            logger.warning("Playback stats unreadable, starting empty: {} ({})", self._path, ex)
            return
        try:
            self._total_seconds = max(0, int(data.get("total_seconds", 0)))
            daily = data.get("daily_seconds") or {}
            self._daily_seconds = {
                str(k): int(v) for k, v in daily.items() if parse_day_key(str(k)) is not None
            }
        except (AttributeError, ValueError, TypeError) as ex:
            logger.warning("Playback stats malformed, starting empty: {}", ex)
            self._total_seconds = 0
            self._daily_seconds = {}

    def _persist(self) -> None:
        payload = {"total_seconds": self._total_seconds, "daily_seconds": self._daily_seconds}
        data = json.dumps(payload, indent=2, sort_keys=True).encode("utf-8")
        try:
            atomic_write_bytes(self._path, data)
        except OSError as ex:
            raise PersistenceError(f"write playback stats failed: {self._path}: {ex}") from ex

    @property
    def total_seconds(self) -> int:
        with self._lock:
            return self._total_seconds

    def daily_seconds(self) -> dict[str, int]:
        with self._lock:
            return dict(self._daily_seconds)

    def record_playback(self, seconds: int, at: datetime | date | None = None) -> None:
        """Add `seconds` to the total and to the day of `at` (default: now).

        Non-positive values are ignored.
        """
        if seconds <= 0:
            return
        key = format_day_key(at or datetime.now())
        with self._lock:
            previous_total = self._total_seconds
            previous_day = self._daily_seconds.get(key)
            self._total_seconds += seconds
            self._daily_seconds[key] = (previous_day or 0) + seconds
            try:
                self._persist()
            except PersistenceError:
                self._total_seconds = previous_total
                if previous_day is None:
                    self._daily_seconds.pop(key, None)
                else:
                    self._daily_seconds[key] = previous_day
                raise

    def daily_trend(
        self, days: int, ending_at: date | datetime | None = None
    ) -> list[DailyPlayback]:
        """One entry per day for the `days` days ending at `ending_at`, oldest first."""
        if days <= 0:
            return []
        end = ending_at or date.today()
        if isinstance(end, datetime):
            end = end.date()
        with self._lock:
            result: list[DailyPlayback] = []
            for offset in range(days - 1, -1, -1):
                day = end - timedelta(days=offset)
                key = format_day_key(day)
                seconds = self._daily_seconds.get(key, 0)
                result.append(DailyPlayback(id=key, day=day, seconds=seconds))
            return result

    def monthly_totals(self, year: int) -> dict[int, int]:
        """Seconds per month (1-12) within `year`; months without data are absent."""
        totals: dict[int, int] = {}
        with self._lock:
            for key, seconds in self._daily_seconds.items():
                day = parse_day_key(key)
                if day is None or day.year != year:
                    continue
                totals[day.month] = totals.get(day.month, 0) + seconds
        return totals

    def yearly_totals(self) -> dict[int, int]:
        """Seconds per calendar year."""
        totals: dict[int, int] = {}
        with self._lock:
            for key, seconds in self._daily_seconds.items():
                day = parse_day_key(key)
                if day is None:
                    continue
                totals[day.year] = totals.get(day.year, 0) + seconds
        return totals
