from datetime import date

import pytest

from sequencing_engine.core.calendar.calendar_config import calendar_from_overrides
from sequencing_engine.core.dependencies.rules_config import DependencyRule
from sequencing_engine.core.model import ActivityConstraint, LaborLine, WorkItem
from sequencing_engine.core.optimize.objectives import (
    DEFAULT_OBJECTIVES,
    ObjectivesConfigError,
    OptimizationObjectives,
    load_objectives,
    objectives_from_dict,
)
from sequencing_engine.core.optimize.optimize_schedule import (
    compress_schedule,
    optimize_schedule,
    optimize_schedule_with_report,
    overtime_duration,
)
from sequencing_engine.core.schedule.create_schedule import create_schedule

START = date(2024, 1, 1)
CHAIN_RULES = [DependencyRule("Alpha", "Bravo", "FS", 0), DependencyRule("Bravo", "Charlie", "FS", 2)]


def _schedule(**kwargs):
    items = [
        WorkItem(id="A", name="Alpha", category="General", duration_days=10, labor=[LaborLine("Carpenter", 80)]),
        WorkItem(id="B", name="Bravo", category="General", duration_days=20),
        WorkItem(id="C", name="Charlie", category="General", duration_days=5),
    ]
    return create_schedule(items, START, rules=CHAIN_RULES, **kwargs)


def _flagged():
    carpenter = [LaborLine("Carpenter", 40)]
    items = [
        WorkItem(id="A", name="Alpha", category="General", duration_days=5, labor=carpenter),
        WorkItem(id="B", name="Bravo", category="General", duration_days=5, labor=carpenter),
        WorkItem(id="C", name="Charlie", category="General", duration_days=0),
    ]
    constraints = [ActivityConstraint("finish_no_later_than", date(2024, 1, 3), "Inspection", "Alpha")]
    return create_schedule(items, START, constraints, rules=[])


def _codes(schedule):
    return sorted(d.code for d in schedule.diagnostics)


FLAGGED_CODES = ["W_CONSTRAINT_VIOLATED", "W_CRITICAL_RESOURCE_CONFLICT", "W_ZERO_DURATION"]


@pytest.mark.parametrize("duration,expected", [(10, 9), (20, 18), (5, 5), (1, 1), (0, 0), (11, 10)])
def test_overtime_duration_rounds_up(duration, expected):
    assert overtime_duration(duration) == expected


def test_default_optimization_applies_overtime_and_buffer():
    schedule = _schedule()
    assert schedule.total_duration == 37

    optimized = optimize_schedule(schedule)

    assert [a.duration for a in optimized.activities] == [9, 18, 5]
    assert optimized.buffer_days == 9
    assert optimized.forecast_finish == date(2024, 2, 13)
    assert optimized.planned_finish == optimized.forecast_finish
    assert optimized.total_duration == 43
    assert optimized.critical_path == ["activity-1", "activity-2", "activity-3"]
    for a in optimized.activities:
        assert (a.early_finish - a.early_start).days == a.duration


def test_optimization_returns_a_new_schedule():
    schedule = _schedule()
    optimized = optimize_schedule(schedule)
    assert optimized is not schedule
    assert [a.duration for a in schedule.activities] == [10, 20, 5]
    assert schedule.forecast_finish == date(2024, 2, 7)
    assert schedule.buffer_days == 0


def test_overtime_can_be_disabled():
    optimized = optimize_schedule(_schedule(), OptimizationObjectives(allow_overtime=False))
    assert [a.duration for a in optimized.activities] == [10, 20, 5]
    assert optimized.forecast_finish == date(2024, 2, 16)


def test_overtime_requires_calendar_authorization():
    calendar = calendar_from_overrides({"overtime": {"authorized": False}})
    optimized = optimize_schedule(_schedule(calendar=calendar))
    assert [a.duration for a in optimized.activities] == [10, 20, 5]
    assert "W_OVERTIME_NOT_AUTHORIZED" in [d.code for d in optimized.diagnostics]


def test_report_lists_crash_candidates():
    _, report = optimize_schedule_with_report(_schedule())
    assert report.crash_candidates == ["activity-1"]
    assert report.overtime_savings == {"activity-1": 1, "activity-2": 2}
    assert report.buffer_days == 9


def test_compress_schedule_does_not_change_durations():
    schedule = _schedule()
    assert compress_schedule(schedule.activities) == ["activity-1"]
    assert [a.duration for a in schedule.activities] == [10, 20, 5]


def test_load_objectives_file():
    objectives = load_objectives("examples/objectives.yaml")
    assert objectives.allow_overtime is False
    assert objectives.weather_buffer_days == 2
    assert objectives.quality_buffer == 0.0
    assert objectives.risk_buffer == 10.0
    assert objectives.allow_resource_leveling is True
    assert load_objectives(None) is DEFAULT_OBJECTIVES


@pytest.mark.parametrize(
    "raw",
    [{"speed": True}, {"allow_overtime": "yes"}, {"weather_buffer_days": -1}, {"risk_buffer": "high"}],
)
def test_invalid_objectives_rejected(raw):
    with pytest.raises(ObjectivesConfigError):
        objectives_from_dict(raw)


def test_optimize_schedule_with_warnings():
    schedule = _flagged()
    assert _codes(schedule) == FLAGGED_CODES

    optimized = optimize_schedule(schedule)

    assert _codes(optimized) == FLAGGED_CODES
    assert optimized.diagnostics is not schedule.diagnostics
    violated = [d for d in optimized.diagnostics if d.code == "W_CONSTRAINT_VIOLATED"]
    assert violated == [d for d in schedule.diagnostics if d.code == "W_CONSTRAINT_VIOLATED"]


def test_repeated_optimization_does_not_duplicate_warnings():
    calendar = calendar_from_overrides({"overtime": {"authorized": False}})
    items = [WorkItem(id="A", name="Alpha", category="General", duration_days=5)]
    once = optimize_schedule(create_schedule(items, START, calendar=calendar))
    twice = optimize_schedule(once)
    assert _codes(once) == ["W_OVERTIME_NOT_AUTHORIZED"]
    assert _codes(twice) == ["W_OVERTIME_NOT_AUTHORIZED"]

    flagged = optimize_schedule(optimize_schedule(_flagged()))
    assert _codes(flagged) == FLAGGED_CODES
