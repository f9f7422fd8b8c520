from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Iterable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Holiday:
    day: date
    name: str


class HolidayCalendar:
    """Per-year list of gazetted holidays, loaded from a JSON file."""

    def __init__(self, holidays: Iterable[Holiday]) -> None:
        self._by_year: dict[int, list[Holiday]] = {}
        for h in holidays:
            self._by_year.setdefault(h.day.year, []).append(h)
        for items in self._by_year.values():
            items.sort(key=lambda h: h.day)

    @classmethod
    def from_mapping(cls, raw: dict) -> "HolidayCalendar":
        items: list[Holiday] = []
        for _year, entries in (raw or {}).items():
            for entry in entries or []:
                items.append(Holiday(day=date.fromisoformat(entry["date"]), name=entry.get("name") or ""))
        return cls(items)

    @classmethod
    def from_file(cls, path: Path) -> "HolidayCalendar":
        if not path.exists():
            logger.warning("holiday_calendar_missing path=%s", path)
            return cls([])
        with path.open("r", encoding="utf-8") as fh:
            return cls.from_mapping(json.load(fh))

    def for_year(self, year: int) -> list[Holiday]:
        return list(self._by_year.get(year, []))

    def for_month(self, year: int, month: int) -> list[Holiday]:
        return [h for h in self.for_year(year) if h.day.month == month]


_cache: dict[str, tuple[float, HolidayCalendar]] = {}


def load_holiday_calendar(path: Optional[Path] = None) -> HolidayCalendar:
    """Load the configured calendar, re-reading the file when it changes."""
    from hrdesk.config import holidays_file

    p = path or holidays_file()
    key = str(p)
    mtime = p.stat().st_mtime if p.exists() else -1.0
    cached = _cache.get(key)
    if cached and cached[0] == mtime:
        return cached[1]
    cal = HolidayCalendar.from_file(p)
    _cache[key] = (mtime, cal)
    return cal
