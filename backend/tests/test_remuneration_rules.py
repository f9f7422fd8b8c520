from __future__ import annotations

import json
from datetime import date

import pytest

from hrdesk.domain.holidays import HolidayCalendar, load_holiday_calendar
from hrdesk.domain.remuneration import (
    count_holidays,
    count_weekly_offs,
    effective_window,
    payout_percentage,
    summarize_employee_month,
    validate_rating,
    variable_amount,
    variable_score,
)

CALENDAR = HolidayCalendar.from_mapping(
    {
        "2025": [
            {"date": "2025-03-14", "name": "Holi"},
            {"date": "2025-03-31", "name": "Eid al-Fitr"},
            {"date": "2025-06-07", "name": "Eid al-Adha"},
        ]
    }
)


@pytest.mark.parametrize(
    "score,pct",
    [(85, 100), (80.5, 100), (80, 90), (60, 90), (55, 80), (50, 80), (45, 50), (30, 40), (29.99, 30), (25, 30), (0, 30)],
)
def test_payout_breakpoints(score: float, pct: int) -> None:
    assert payout_percentage(score) == pct


def test_variable_score_sums_all_components() -> None:
    ratings = {"punctuality": 20, "sincerity": 18, "responsiveness": 17, "assigned_task": 15}
    assert variable_score(ratings, 15) == 85
    assert variable_amount(10000, payout_percentage(85)) == 10000


def test_variable_amount_is_percentage_of_max() -> None:
    assert variable_amount(12000, 80) == 9600


def test_rating_out_of_range() -> None:
    with pytest.raises(ValueError):
        validate_rating(21, "punctuality")
    with pytest.raises(ValueError):
        validate_rating(-1, "sincerity")
    assert validate_rating(None, "sincerity") == 0


def test_full_month_window() -> None:
    window = effective_window(2025, 3)
    assert window.total_days == 31
    assert count_weekly_offs(window) == 10
    # Holi (Fri) and Eid (Mon) are weekdays
    assert count_holidays(window, CALENDAR) == 2


def test_mid_month_joiner_window() -> None:
    window = effective_window(2025, 3, "2025-03-20")
    assert window.start == date(2025, 3, 20)
    assert window.total_days == 12
    # only Eid on the 31st falls after the joining date
    assert count_holidays(window, CALENDAR) == 1


def test_weekend_holiday_not_double_counted() -> None:
    # 2025-06-07 is a Saturday
    assert count_holidays(effective_window(2025, 6), CALENDAR) == 0


def test_joined_after_month_has_empty_window() -> None:
    summary = summarize_employee_month(
        2025, 3, {"employment": {"date_of_joining": "2025-04-02"}}, [{"date": "2025-03-03", "status": "present"}], CALENDAR
    )
    assert summary["total_days"] == 0
    assert summary["payable_days"] == 0
    assert summary["days_worked"] == 0


def test_summary_counts_statuses_inside_window() -> None:
    rows = [
        {"date": "2025-03-03", "status": "present"},
        {"date": "2025-03-04", "status": "late"},
        {"date": "2025-03-05", "status": "absent"},
        {"date": "2025-03-06", "status": "on-leave"},
        {"date": "2025-03-07", "status": "half-day"},
        # before joining, ignored
        {"date": "2025-03-01", "status": "absent"},
    ]
    summary = summarize_employee_month(2025, 3, {"employment": {"date_of_joining": "2025-03-02"}}, rows, CALENDAR)
    assert summary["days_worked"] == 2
    assert summary["days_absent"] == 1
    assert summary["casual_leave"] == 1
    assert summary["lwp_days"] == 1
    assert summary["total_days"] == 30
    assert summary["payable_days"] == 29


def test_holiday_file_is_configurable(tmp_path, monkeypatch) -> None:
    path = tmp_path / "holidays.json"
    path.write_text(json.dumps({"2030": [{"date": "2030-01-01", "name": "New Year"}]}), encoding="utf-8")
    monkeypatch.setenv("HOLIDAYS_FILE", str(path))
    calendar = load_holiday_calendar()
    assert [h.name for h in calendar.for_month(2030, 1)] == ["New Year"]


def test_bundled_calendar_has_2025_holidays() -> None:
    calendar = load_holiday_calendar()
    assert len(calendar.for_year(2025)) == 15
