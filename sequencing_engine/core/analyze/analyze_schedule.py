from __future__ import annotations

import logging
from copy import deepcopy
from dataclasses import dataclass, field
from datetime import date
from typing import Literal, Optional

from sequencing_engine.core.adjust.buffers import applies_to
from sequencing_engine.core.calendar.calendar_config import blocked_days_in, working_days_between
from sequencing_engine.core.dates import add_days, days_between
from sequencing_engine.core.level.level_resources import group_by_resource
from sequencing_engine.core.model import Activity, RiskMitigation, Schedule
from sequencing_engine.core.schedule.create_schedule import refresh_schedule_timing

logger = logging.getLogger(__name__)


BottleneckKind = Literal["resource", "activity", "constraint", "weather"]
Level = Literal["low", "medium", "high", "critical"]

# Each resource id is treated as a single crew / unit when measuring allocation.
RESOURCE_CAPACITY = 1

# What-if defaults: pull the longest critical activity in, or let it slip.
FAST_TRACK_DAYS = -2
SLIP_DAYS = 5


@dataclass(frozen=True)
class OverallocationPeriod:
    start: date
    end: date  # exclusive
    concurrent: int


@dataclass
class ResourceUtilization:
    resource_kind: str
    resource_id: str
    peak_concurrent: int
    average_concurrent: float
    peak_utilization: float  # percent of capacity
    average_utilization: float
    overallocation_periods: list[OverallocationPeriod] = field(default_factory=list)
    activity_ids: list[str] = field(default_factory=list)


@dataclass
class Bottleneck:
    kind: BottleneckKind
    description: str
    impact_days: int
    affected_activities: list[str]
    recommendations: list[str]
    severity: Level


@dataclass
class Recommendation:
    category: Literal["sequencing", "resources", "risk", "optimization"]
    priority: Literal["low", "medium", "high"]
    title: str
    description: str


@dataclass
class RiskAssessment:
    overall_risk: Level
    expected_delay_days: float
    probability_of_delay: float  # percent
    schedule_variance: float  # expected delay as percent of total duration
    mitigation_effectiveness: float  # percent of expected delay covered by contingency
    key_risks: list[RiskMitigation] = field(default_factory=list)


@dataclass
class WhatIfScenario:
    name: str
    description: str
    adjustments: dict[str, int]
    new_finish: date
    finish_variance_days: int
    critical_path: list[str]


@dataclass
class ScheduleAnalysis:
    project_id: str
    critical_path_length: int
    critical_path_working_days: int  # excludes weekends, holidays and shutdowns
    total_float: int
    resource_utilization: list[ResourceUtilization]
    bottlenecks: list[Bottleneck]
    recommendations: list[Recommendation]
    risk_assessment: RiskAssessment
    what_if_scenarios: list[WhatIfScenario]


def analyze_schedule(schedule: Schedule) -> ScheduleAnalysis:
    """Read-only analysis of a scheduled project. The schedule is not modified."""
    utilization = analyze_resource_utilization(schedule.activities)
    bottlenecks = identify_bottlenecks(schedule, utilization)
    analysis = ScheduleAnalysis(
        project_id=schedule.project_id,
        critical_path_length=sum(a.duration for a in schedule.activities if a.critical),
        critical_path_working_days=critical_working_days(schedule),
        total_float=sum(a.float_days for a in schedule.activities),
        resource_utilization=utilization,
        bottlenecks=bottlenecks,
        recommendations=generate_recommendations(bottlenecks),
        risk_assessment=assess_risks(schedule),
        what_if_scenarios=generate_what_if_scenarios(schedule),
    )
    logger.info(
        "analysis %s: %d bottleneck(s), %d overallocated resource(s), risk %s",
        schedule.project_id,
        len(bottlenecks),
        sum(1 for u in utilization if u.overallocation_periods),
        analysis.risk_assessment.overall_risk,
    )
    return analysis


def critical_working_days(schedule: Schedule) -> int:
    return sum(
        working_days_between(a.early_start, a.early_finish, schedule.calendar)
        for a in schedule.activities
        if a.critical and a.early_start is not None and a.early_finish is not None
    )


def _daily_load(members: list[Activity]) -> dict[date, list[str]]:
    load: dict[date, list[str]] = {}
    for a in members:
        if a.early_start is None:
            continue
        for offset in range(a.duration):
            load.setdefault(add_days(a.early_start, offset), []).append(a.id)
    return load


def _overallocation_periods(load: dict[date, list[str]]) -> list[OverallocationPeriod]:
    periods: list[OverallocationPeriod] = []
    run_start: Optional[date] = None
    run_end: Optional[date] = None
    run_peak = 0
    for day in sorted(d for d, ids in load.items() if len(ids) > RESOURCE_CAPACITY):
        if run_end is not None and day == run_end:
            run_end = add_days(day, 1)
            run_peak = max(run_peak, len(load[day]))
            continue
        if run_start is not None and run_end is not None:
            periods.append(OverallocationPeriod(run_start, run_end, run_peak))
        run_start, run_end, run_peak = day, add_days(day, 1), len(load[day])
    if run_start is not None and run_end is not None:
        periods.append(OverallocationPeriod(run_start, run_end, run_peak))
    return periods


def analyze_resource_utilization(activities: list[Activity]) -> list[ResourceUtilization]:
    """Concurrent demand per (kind, resource id) over the early-start schedule."""
    out: list[ResourceUtilization] = []
    for (kind, resource_id), members in sorted(group_by_resource(activities).items()):
        load = _daily_load(members)
        peak = max((len(ids) for ids in load.values()), default=0)
        average = sum(len(ids) for ids in load.values()) / len(load) if load else 0.0
        out.append(
            ResourceUtilization(
                resource_kind=kind,
                resource_id=resource_id,
                peak_concurrent=peak,
                average_concurrent=round(average, 2),
                peak_utilization=round(peak / RESOURCE_CAPACITY * 100, 1),
                average_utilization=round(average / RESOURCE_CAPACITY * 100, 1),
                overallocation_periods=_overallocation_periods(load),
                activity_ids=[a.id for a in members],
            )
        )
    return out


def identify_bottlenecks(schedule: Schedule, utilization: list[ResourceUtilization]) -> list[Bottleneck]:
    bottlenecks: list[Bottleneck] = []
    critical = [a for a in schedule.activities if a.critical]

    if schedule.critical_path:
        bottlenecks.append(
            Bottleneck(
                kind="activity",
                description="Critical path activities with no float",
                impact_days=0,
                affected_activities=list(schedule.critical_path),
                recommendations=["Monitor critical activities closely", "Consider fast-tracking options"],
                severity="high",
            )
        )

    critical_ids = {a.id for a in critical}
    for u in utilization:
        if not u.overallocation_periods:
            continue
        involved = [i for i in u.activity_ids if i in critical_ids]
        if not involved:
            continue
        overlap_days = sum(days_between(p.start, p.end) for p in u.overallocation_periods)
        bottlenecks.append(
            Bottleneck(
                kind="resource",
                description=f"{u.resource_kind} '{u.resource_id}' is over-allocated on the critical path (peak {u.peak_concurrent})",
                impact_days=overlap_days,
                affected_activities=involved,
                recommendations=[f"Add a second {u.resource_id} crew or unit", "Re-sequence the overlapping activities"],
                severity="critical" if u.peak_concurrent > RESOURCE_CAPACITY + 1 else "high",
            )
        )

    for a in critical:
        if a.early_start is None or a.early_finish is None:
            continue
        blocked = blocked_days_in(a.early_start, a.early_finish, schedule.calendar)
        if blocked:
            bottlenecks.append(
                Bottleneck(
                    kind="constraint",
                    description=f"{a.name} spans {len(blocked)} holiday/shutdown day(s)",
                    impact_days=len(blocked),
                    affected_activities=[a.id],
                    recommendations=["Move the activity clear of the shutdown", "Plan weekend or overtime recovery"],
                    severity="medium",
                )
            )

    for a in critical:
        if not a.weather_dependent:
            continue
        exposure = sum(c.buffer_days for c in schedule.weather_constraints if applies_to(c, a))
        bottlenecks.append(
            Bottleneck(
                kind="weather",
                description=f"{a.name} is weather-dependent and on the critical path",
                impact_days=exposure,
                affected_activities=[a.id],
                recommendations=["Track the forecast ahead of the start date", "Prepare temporary protection"],
                severity="medium" if exposure else "low",
            )
        )

    return bottlenecks


def generate_recommendations(bottlenecks: list[Bottleneck]) -> list[Recommendation]:
    recs: list[Recommendation] = []
    kinds = {b.kind for b in bottlenecks}

    if "activity" in kinds:
        recs.append(
            Recommendation(
                category="sequencing",
                priority="high",
                title="Fast-track the critical path",
                description="Overlap critical activities where the work allows it, or authorize overtime on them",
            )
        )
    for b in bottlenecks:
        if b.kind == "resource":
            recs.append(
                Recommendation(
                    category="resources",
                    priority="high",
                    title="Relieve over-allocated critical resource",
                    description=f"{b.description}; affects {', '.join(b.affected_activities)}",
                )
            )
    if "constraint" in kinds:
        days = sum(b.impact_days for b in bottlenecks if b.kind == "constraint")
        recs.append(
            Recommendation(
                category="optimization",
                priority="medium",
                title="Plan around non-working days",
                description=f"Critical work crosses {days} holiday/shutdown day(s)",
            )
        )
    if "weather" in kinds:
        recs.append(
            Recommendation(
                category="risk",
                priority="medium",
                title="Protect weather-dependent critical work",
                description="Schedule weather-sensitive critical activities outside their restricted seasons where possible",
            )
        )
    return recs


def _risk_level(probability_percent: float) -> Level:
    if probability_percent < 25:
        return "low"
    if probability_percent < 50:
        return "medium"
    if probability_percent < 75:
        return "high"
    return "critical"


def assess_risks(schedule: Schedule) -> RiskAssessment:
    risks = schedule.risk_mitigations
    expected = sum(r.probability * r.impact_days for r in risks)
    no_delay = 1.0
    for r in risks:
        no_delay *= 1 - r.probability
    probability = (1 - no_delay) * 100
    contingency = sum(r.contingency_buffer for r in risks)
    effectiveness = min(100.0, contingency / expected * 100) if expected > 0 else 100.0
    variance = expected / schedule.total_duration * 100 if schedule.total_duration > 0 else 0.0
    return RiskAssessment(
        overall_risk=_risk_level(probability),
        expected_delay_days=round(expected, 2),
        probability_of_delay=round(probability, 1),
        schedule_variance=round(variance, 1),
        mitigation_effectiveness=round(effectiveness, 1),
        key_risks=sorted(risks, key=lambda r: r.probability * r.impact_days, reverse=True),
    )


def run_what_if(
    schedule: Schedule,
    name: str,
    adjustments: dict[str, int],
    description: str = "",
) -> WhatIfScenario:
    """Apply duration changes (days, may be negative) to a copy and re-run CPM.

    Durations never drop below zero. Unknown activity ids raise ValueError.
    """
    trial = deepcopy(schedule)
    for activity_id, delta in adjustments.items():
        activity = trial.activity(activity_id)
        if activity is None:
            raise ValueError(f"what-if '{name}' references unknown activity: {activity_id}")
        activity.duration = max(0, activity.duration + delta)
    refresh_schedule_timing(trial)
    variance = days_between(schedule.planned_finish, trial.planned_finish)
    logger.debug("what-if %s: finish %s (%+d days)", name, trial.planned_finish.isoformat(), variance)
    return WhatIfScenario(
        name=name,
        description=description,
        adjustments=dict(adjustments),
        new_finish=trial.planned_finish,
        finish_variance_days=variance,
        critical_path=trial.critical_path,
    )


def generate_what_if_scenarios(schedule: Schedule) -> list[WhatIfScenario]:
    critical = [a for a in schedule.activities if a.critical and a.duration > 0]
    if not critical:
        return []
    longest = max(critical, key=lambda a: a.duration)
    return [
        run_what_if(
            schedule,
            "fast-track",
            {longest.id: FAST_TRACK_DAYS},
            f"Shorten {longest.name} by {-FAST_TRACK_DAYS} days with added crew",
        ),
        run_what_if(
            schedule,
            "critical-slip",
            {longest.id: SLIP_DAYS},
            f"{longest.name} slips {SLIP_DAYS} days",
        ),
    ]
