"""Working-day calendar shared by every component of a scheduling run.

The calendar is an immutable value. It is loaded once (defaults merged with an
optional YAML file) and passed explicitly to the components that need it.
"""
from __future__ import annotations

from dataclasses import replace
from datetime import date
from pathlib import Path
from typing import Any

import yaml

from sequencing_engine.core.dates import add_days, parse_date
from sequencing_engine.core.model import OvertimePolicy, ResourceCalendar, ShutdownPeriod


DEFAULT_CALENDAR = ResourceCalendar(
    work_days=(1, 2, 3, 4, 5),  # Monday-Friday
    work_hours=(7, 17),
    holidays=frozenset({date(2024, 1, 1), date(2024, 7, 4), date(2024, 12, 25)}),
    shutdown_periods=(),
    overtime=OvertimePolicy(
        authorized=True,
        max_hours_per_day=12,
        max_hours_per_week=60,
        cost_multiplier=1.5,
    ),
)


class CalendarConfigError(ValueError):
    pass


def load_calendar_file(path: str | Path) -> dict[str, Any]:
    """Load calendar overrides from a YAML file.

    Format (every key optional):
      work_days: [1, 2, 3, 4, 5]
      work_hours: {start: 7, end: 17}
      holidays: [2024-07-04, 2024-12-25]
      shutdown_periods: [{start: 2024-08-01, end: 2024-08-05, reason: Plant shutdown}]
      overtime: {authorized: true, max_hours_per_day: 12, max_hours_per_week: 60, cost_multiplier: 1.5}
    """
    p = Path(path)
    raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise CalendarConfigError("calendar file must be a mapping")
    return raw


def calendar_from_overrides(overrides: dict[str, Any], base: ResourceCalendar = DEFAULT_CALENDAR) -> ResourceCalendar:
    cal = base

    if "work_days" in overrides:
        days = overrides["work_days"]
        if not isinstance(days, list) or not all(isinstance(d, int) and 0 <= d <= 6 for d in days):
            raise CalendarConfigError("work_days must be a list of integers 0-6 (Sunday-Saturday)")
        cal = replace(cal, work_days=tuple(sorted(set(days))))

    if "work_hours" in overrides:
        hours = overrides["work_hours"]
        if not isinstance(hours, dict):
            raise CalendarConfigError("work_hours must be a mapping with start/end")
        start, end = hours.get("start"), hours.get("end")
        if not isinstance(start, int) or not isinstance(end, int) or not 0 <= start < end <= 24:
            raise CalendarConfigError("work_hours start/end must be integers with 0 <= start < end <= 24")
        cal = replace(cal, work_hours=(start, end))

    if "holidays" in overrides:
        raw_holidays = overrides["holidays"] or []
        if not isinstance(raw_holidays, list):
            raise CalendarConfigError("holidays must be a list of dates")
        holidays: set[date] = set()
        for h in raw_holidays:
            d = parse_date(h)
            if d is None:
                raise CalendarConfigError(f"invalid holiday date: {h!r}")
            holidays.add(d)
        cal = replace(cal, holidays=frozenset(holidays))

    if "shutdown_periods" in overrides:
        raw_periods = overrides["shutdown_periods"] or []
        if not isinstance(raw_periods, list):
            raise CalendarConfigError("shutdown_periods must be a list")
        periods: list[ShutdownPeriod] = []
        for sp in raw_periods:
            if not isinstance(sp, dict):
                raise CalendarConfigError("shutdown period must be a mapping with start/end")
            start_d, end_d = parse_date(sp.get("start")), parse_date(sp.get("end"))
            if start_d is None or end_d is None or end_d < start_d:
                raise CalendarConfigError("shutdown period needs start <= end dates")
            periods.append(ShutdownPeriod(start=start_d, end=end_d, reason=str(sp.get("reason", ""))))
        cal = replace(cal, shutdown_periods=tuple(periods))

    if "overtime" in overrides:
        ot = overrides["overtime"]
        if not isinstance(ot, dict):
            raise CalendarConfigError("overtime must be a mapping")
        policy = cal.overtime
        try:
            policy = OvertimePolicy(
                authorized=bool(ot.get("authorized", policy.authorized)),
                max_hours_per_day=int(ot.get("max_hours_per_day", policy.max_hours_per_day)),
                max_hours_per_week=int(ot.get("max_hours_per_week", policy.max_hours_per_week)),
                cost_multiplier=float(ot.get("cost_multiplier", policy.cost_multiplier)),
            )
        except (TypeError, ValueError) as e:
            raise CalendarConfigError(f"invalid overtime policy: {e}") from e
        cal = replace(cal, overtime=policy)

    return cal


def load_and_merge_calendar(calendar_file: str | None) -> ResourceCalendar:
    if not calendar_file:
        return DEFAULT_CALENDAR
    return calendar_from_overrides(load_calendar_file(calendar_file))


def _weekday_index(day: date) -> int:
    # date.weekday() is Monday=0; the calendar uses Sunday=0.
    return (day.weekday() + 1) % 7


def in_shutdown(day: date, calendar: ResourceCalendar) -> bool:
    return any(sp.start <= day <= sp.end for sp in calendar.shutdown_periods)


def is_working_day(day: date, calendar: ResourceCalendar) -> bool:
    if _weekday_index(day) not in calendar.work_days:
        return False
    if day in calendar.holidays:
        return False
    return not in_shutdown(day, calendar)


def working_days_between(start: date, end: date, calendar: ResourceCalendar) -> int:
    """Count working days in [start, end)."""
    count = 0
    day = start
    while day < end:
        if is_working_day(day, calendar):
            count += 1
        day = add_days(day, 1)
    return count


def blocked_days_in(start: date, end: date, calendar: ResourceCalendar) -> list[date]:
    """Holidays and shutdown days falling on otherwise working weekdays in [start, end)."""
    out: list[date] = []
    day = start
    while day < end:
        if _weekday_index(day) in calendar.work_days and (day in calendar.holidays or in_shutdown(day, calendar)):
            out.append(day)
        day = add_days(day, 1)
    return out


def describe_calendar(calendar: ResourceCalendar) -> list[str]:
    names = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
    lines = [
        "Work days: " + ", ".join(names[d] for d in calendar.work_days),
        f"Work hours: {calendar.work_hours[0]:02d}:00-{calendar.work_hours[1]:02d}:00",
        "Holidays: " + (", ".join(d.isoformat() for d in sorted(calendar.holidays)) or "none"),
    ]
    if calendar.shutdown_periods:
        for sp in calendar.shutdown_periods:
            lines.append(f"Shutdown: {sp.start.isoformat()}..{sp.end.isoformat()} {sp.reason}".rstrip())
    else:
        lines.append("Shutdown: none")
    ot = calendar.overtime
    lines.append(
        f"Overtime: {'authorized' if ot.authorized else 'not authorized'} "
        f"(max {ot.max_hours_per_day}h/day, {ot.max_hours_per_week}h/week, x{ot.cost_multiplier})"
    )
    return lines
