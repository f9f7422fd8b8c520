"""Payroll arithmetic.

Pure functions over plain dicts so the month summary can be unit tested
without a database:

- effective window per employee (joining date aware)
- weekly offs / weekday holidays inside the window
- attendance counts and payable days (absence counts as LWP)
- variable pay score -> payout percentage
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, Mapping, Optional

from hrdesk.domain.holidays import HolidayCalendar
from hrdesk.utils import iter_days, month_bounds, parse_day


RATING_MIN = 0
RATING_MAX = 20
RATING_FIELDS = ("punctuality", "sincerity", "responsiveness", "assigned_task")

# inclusive lower bound -> payout %, checked after the >80 tier
_PAYOUT_BREAKPOINTS: tuple[tuple[float, int], ...] = (
    (60, 90),
    (50, 80),
    (40, 50),
    (30, 40),
)


@dataclass(frozen=True)
class EffectiveWindow:
    start: Optional[date]
    end: Optional[date]

    @property
    def total_days(self) -> int:
        if self.start is None or self.end is None:
            return 0
        return (self.end - self.start).days + 1

    def contains(self, day: date) -> bool:
        return self.start is not None and self.end is not None and self.start <= day <= self.end

    def days(self) -> list[date]:
        if self.start is None or self.end is None:
            return []
        return list(iter_days(self.start, self.end))


def effective_window(year: int, month: int, date_of_joining: Any = None) -> EffectiveWindow:
    """Days of the month an employee is on the books for."""
    first, last = month_bounds(year, month)
    if not date_of_joining:
        return EffectiveWindow(first, last)
    joined = parse_day(date_of_joining)
    if joined > last:
        return EffectiveWindow(None, None)
    if joined > first:
        return EffectiveWindow(joined, last)
    return EffectiveWindow(first, last)


def count_weekly_offs(window: EffectiveWindow) -> int:
    return sum(1 for d in window.days() if d.weekday() >= 5)


def count_holidays(window: EffectiveWindow, calendar: HolidayCalendar) -> int:
    """Holidays on a Saturday/Sunday are already weekly offs."""
    if window.start is None:
        return 0
    return sum(
        1
        for h in calendar.for_month(window.start.year, window.start.month)
        if window.contains(h.day) and h.day.weekday() < 5
    )


def count_statuses(rows: Iterable[Mapping[str, Any]], window: EffectiveWindow) -> dict[str, int]:
    counts = {"days_worked": 0, "days_absent": 0, "casual_leave": 0}
    for row in rows:
        day = parse_day(row.get("date"))
        if not window.contains(day):
            continue
        status = row.get("status")
        if status in ("present", "late"):
            counts["days_worked"] += 1
        elif status == "absent":
            counts["days_absent"] += 1
        elif status == "on-leave":
            counts["casual_leave"] += 1
    return counts


def summarize_employee_month(
    year: int,
    month: int,
    user: Mapping[str, Any],
    attendance_rows: Iterable[Mapping[str, Any]],
    calendar: HolidayCalendar,
) -> dict[str, Any]:
    employment = user.get("employment") or {}
    window = effective_window(year, month, employment.get("date_of_joining"))

    if window.total_days == 0:
        counts = {"days_worked": 0, "days_absent": 0, "casual_leave": 0}
        weekly_offs = holidays = 0
    else:
        counts = count_statuses(attendance_rows, window)
        weekly_offs = count_weekly_offs(window)
        holidays = count_holidays(window, calendar)

    lwp_days = counts["days_absent"]
    return {
        **counts,
        "weekly_offs": weekly_offs,
        "holidays": holidays,
        "lwp_days": lwp_days,
        "total_days": window.total_days,
        "payable_days": window.total_days - lwp_days,
    }


def validate_rating(value: Any, field: str) -> float:
    if value is None or value == "":
        return 0.0
    try:
        num = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{field} must be a number")
    if num < RATING_MIN or num > RATING_MAX:
        raise ValueError(f"{field} must be between {RATING_MIN} and {RATING_MAX}")
    return num


def variable_score(ratings: Mapping[str, Any], peer_rating: Any = 0) -> float:
    total = sum(validate_rating(ratings.get(f), f) for f in RATING_FIELDS)
    total += validate_rating(peer_rating, "peer_rating")
    return round(total, 2)


def payout_percentage(score: float) -> int:
    if score > 80:
        return 100
    for threshold, pct in _PAYOUT_BREAKPOINTS:
        if score >= threshold:
            return pct
    return 30


def variable_amount(max_remuneration: float, percentage: int) -> float:
    return round(max_remuneration * percentage / 100, 2)
