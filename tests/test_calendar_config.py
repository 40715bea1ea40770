from datetime import date

import pytest

from sequencing_engine.core.calendar.calendar_config import (
    DEFAULT_CALENDAR,
    CalendarConfigError,
    blocked_days_in,
    calendar_from_overrides,
    describe_calendar,
    is_working_day,
    load_and_merge_calendar,
    working_days_between,
)


def test_default_calendar_is_monday_to_friday():
    assert load_and_merge_calendar(None) is DEFAULT_CALENDAR
    assert is_working_day(date(2024, 1, 2), DEFAULT_CALENDAR)  # Tuesday
    assert not is_working_day(date(2024, 1, 1), DEFAULT_CALENDAR)  # New Year's Day
    assert not is_working_day(date(2024, 1, 6), DEFAULT_CALENDAR)  # Saturday
    assert not is_working_day(date(2024, 1, 7), DEFAULT_CALENDAR)  # Sunday
    assert DEFAULT_CALENDAR.overtime.authorized


def test_calendar_file_overrides_defaults():
    cal = load_and_merge_calendar("examples/calendar.yaml")
    assert cal.work_days == (1, 2, 3, 4, 5, 6)
    assert cal.work_hours == (6, 16)
    assert cal.holidays == frozenset({date(2024, 1, 8)})
    assert cal.shutdown_periods[0].reason == "Plant shutdown"
    assert cal.overtime.authorized is False
    assert cal.overtime.max_hours_per_day == 12


def test_working_days_skip_weekends_holidays_and_shutdowns():
    cal = load_and_merge_calendar("examples/calendar.yaml")
    assert working_days_between(date(2024, 1, 1), date(2024, 1, 15), cal) == 9
    assert blocked_days_in(date(2024, 1, 1), date(2024, 1, 15), cal) == [
        date(2024, 1, 8),
        date(2024, 1, 10),
        date(2024, 1, 11),
    ]


def test_blocked_days_ignore_weekend_holidays():
    cal = calendar_from_overrides({"holidays": ["2024-01-06", "2024-01-03"]})
    assert blocked_days_in(date(2024, 1, 1), date(2024, 1, 8), cal) == [date(2024, 1, 3)]


def test_invalid_work_days_rejected():
    with pytest.raises(CalendarConfigError):
        load_and_merge_calendar("examples/calendar-invalid.yaml")


@pytest.mark.parametrize(
    "overrides",
    [
        {"work_hours": {"start": 17, "end": 7}},
        {"holidays": ["someday"]},
        {"shutdown_periods": [{"start": "2024-02-02", "end": "2024-02-01"}]},
        {"overtime": "yes"},
    ],
)
def test_invalid_overrides_rejected(overrides):
    with pytest.raises(CalendarConfigError):
        calendar_from_overrides(overrides)


def test_calendar_file_must_be_mapping(tmp_path):
    p = tmp_path / "cal.yaml"
    p.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(CalendarConfigError):
        load_and_merge_calendar(str(p))


def test_describe_calendar():
    lines = describe_calendar(DEFAULT_CALENDAR)
    assert lines[0] == "Work days: Mon, Tue, Wed, Thu, Fri"
    assert "Work hours: 07:00-17:00" in lines
    assert "Holidays: 2024-01-01, 2024-07-04, 2024-12-25" in lines
    assert lines[-1].startswith("Overtime: authorized")


def test_holiday_override_replaces_defaults():
    cal = calendar_from_overrides({"holidays": []})
    assert cal.holidays == frozenset()
    assert is_working_day(date(2024, 1, 1), cal)
    assert "Holidays: none" in describe_calendar(cal)
