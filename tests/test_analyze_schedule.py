from datetime import date

import pytest

from sequencing_engine.core.analyze.analyze_schedule import analyze_schedule, assess_risks, run_what_if
from sequencing_engine.core.calendar.calendar_config import calendar_from_overrides
from sequencing_engine.core.dependencies.rules_config import DependencyRule
from sequencing_engine.core.model import LaborLine, WorkItem
from sequencing_engine.core.schedule.create_schedule import create_schedule

START = date(2024, 1, 1)
CHAIN_RULES = [DependencyRule("Alpha", "Bravo", "FS", 0), DependencyRule("Bravo", "Charlie", "FS", 2)]


def _chain(**kwargs):
    items = [
        WorkItem(id="A", name="Alpha", category="General", duration_days=5),
        WorkItem(id="B", name="Bravo", category="General", duration_days=3),
        WorkItem(id="C", name="Charlie", category="General", duration_days=2),
    ]
    return create_schedule(items, START, rules=CHAIN_RULES, **kwargs)


def test_chain_analysis():
    schedule = _chain(calendar=calendar_from_overrides({"holidays": []}))
    analysis = analyze_schedule(schedule)
    assert analysis.project_id == schedule.project_id
    assert analysis.critical_path_length == 10
    assert analysis.critical_path_working_days == 8
    assert analysis.total_float == 0
    assert analysis.resource_utilization == []
    assert [b.kind for b in analysis.bottlenecks] == ["activity"]
    assert analysis.bottlenecks[0].affected_activities == schedule.critical_path
    assert [r.title for r in analysis.recommendations] == ["Fast-track the critical path"]


def test_default_holidays_reach_the_analysis():
    analysis = analyze_schedule(_chain())
    assert analysis.critical_path_working_days == 7
    assert [b.kind for b in analysis.bottlenecks] == ["activity", "constraint"]
    assert analysis.bottlenecks[1].affected_activities == ["activity-1"]
    assert "Plan around non-working days" in [r.title for r in analysis.recommendations]


def test_analysis_of_schedule_with_warnings():
    items = [
        WorkItem(id="A", name="Alpha", category="General", duration_days=5),
        WorkItem(id="B", name="Bravo", category="General", duration_days=0),
    ]
    schedule = create_schedule(items, START, rules=[])
    assert [d.code for d in schedule.diagnostics] == ["W_ZERO_DURATION"]

    analysis = analyze_schedule(schedule)

    scenarios = {s.name: s for s in analysis.what_if_scenarios}
    assert scenarios["fast-track"].new_finish == date(2024, 1, 4)
    assert [d.code for d in schedule.diagnostics] == ["W_ZERO_DURATION"]


def test_risk_assessment_from_default_mitigations():
    risk = assess_risks(_chain())
    assert risk.expected_delay_days == 4.1
    assert risk.probability_of_delay == 58.0
    assert risk.overall_risk == "high"
    assert risk.mitigation_effectiveness == 100.0
    assert risk.schedule_variance == 34.2
    assert [r.risk_id for r in risk.key_risks] == ["material-delays", "weather-delays"]


def test_risk_assessment_without_risks():
    risk = assess_risks(create_schedule([], START, risk_mitigations=[]))
    assert risk.overall_risk == "low"
    assert risk.expected_delay_days == 0
    assert risk.schedule_variance == 0.0


def test_what_if_scenarios_use_longest_critical_activity():
    schedule = _chain()
    scenarios = {s.name: s for s in analyze_schedule(schedule).what_if_scenarios}
    assert scenarios["fast-track"].adjustments == {"activity-1": -2}
    assert scenarios["fast-track"].finish_variance_days == -2
    assert scenarios["fast-track"].new_finish == date(2024, 1, 11)
    assert scenarios["critical-slip"].finish_variance_days == 5
    assert schedule.activities[0].duration == 5


def test_run_what_if_reports_new_critical_path():
    schedule = _chain()
    scenario = run_what_if(schedule, "shrink", {"activity-2": -3, "activity-3": -5})
    assert scenario.finish_variance_days == -5
    assert scenario.new_finish == date(2024, 1, 8)
    assert schedule.baseline_finish == date(2024, 1, 13)


def test_run_what_if_rejects_unknown_activity():
    with pytest.raises(ValueError):
        run_what_if(_chain(), "ghost", {"activity-9": 1})


def test_overallocated_critical_resource_is_a_bottleneck():
    carpenter = [LaborLine("Carpenter", 24)]
    items = [
        WorkItem(id="A", name="Alpha", category="General", duration_days=3, labor=carpenter),
        WorkItem(id="B", name="Bravo", category="General", duration_days=3, labor=carpenter),
    ]
    schedule = create_schedule(items, START, rules=[])
    assert "W_CRITICAL_RESOURCE_CONFLICT" in [d.code for d in schedule.diagnostics]

    analysis = analyze_schedule(schedule)
    usage = analysis.resource_utilization[0]
    assert (usage.resource_kind, usage.resource_id) == ("labor", "Carpenter")
    assert usage.peak_concurrent == 2
    assert usage.peak_utilization == 200.0
    assert [(p.start, p.end, p.concurrent) for p in usage.overallocation_periods] == [
        (date(2024, 1, 1), date(2024, 1, 4), 2)
    ]
    resource = next(b for b in analysis.bottlenecks if b.kind == "resource")
    assert resource.impact_days == 3
    assert resource.affected_activities == ["activity-1", "activity-2"]
    assert any(r.category == "resources" for r in analysis.recommendations)


def test_holidays_inside_critical_work_are_bottlenecks():
    calendar = calendar_from_overrides({"holidays": ["2024-01-03"]})
    analysis = analyze_schedule(_chain(calendar=calendar))
    constraint = [b for b in analysis.bottlenecks if b.kind == "constraint"]
    assert len(constraint) == 1
    assert constraint[0].affected_activities == ["activity-1"]
    assert constraint[0].impact_days == 1


def test_weather_dependent_critical_work_is_a_bottleneck():
    items = [WorkItem(id="F", name="Foundation Pour", category="Concrete", duration_days=5)]
    analysis = analyze_schedule(create_schedule(items, START))
    weather = [b for b in analysis.bottlenecks if b.kind == "weather"]
    assert len(weather) == 1
    assert weather[0].impact_days == 5
    assert any(r.category == "risk" for r in analysis.recommendations)
