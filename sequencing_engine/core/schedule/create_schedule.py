from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from sequencing_engine.core.adjust.buffers import (
    DEFAULT_RISK_MITIGATIONS,
    DEFAULT_WEATHER_CONSTRAINTS,
    apply_weather_constraints,
)
from sequencing_engine.core.build.activities import build_activities
from sequencing_engine.core.build.phases import PhaseTemplate, create_phases
from sequencing_engine.core.calendar.calendar_config import DEFAULT_CALENDAR
from sequencing_engine.core.cpm.critical_path import CPMResult, calculate_critical_path
from sequencing_engine.core.dates import add_days, days_between
from sequencing_engine.core.dependencies.resolve import resolve_dependencies
from sequencing_engine.core.dependencies.rules_config import DependencyRule
from sequencing_engine.core.level.level_resources import level_resources
from sequencing_engine.core.model import (
    Activity,
    ActivityConstraint,
    Phase,
    ResourceCalendar,
    RiskMitigation,
    Schedule,
    WeatherConstraint,
    WorkItem,
    WorkItemSet,
)
from sequencing_engine.core.progress.milestones import create_milestones

logger = logging.getLogger(__name__)


def create_schedule(
    work_items: list[WorkItem],
    start_date: date,
    constraints: Optional[list[ActivityConstraint]] = None,
    *,
    calendar: ResourceCalendar = DEFAULT_CALENDAR,
    rules: Optional[list[DependencyRule]] = None,
    phase_templates: Optional[list[PhaseTemplate]] = None,
    weather_constraints: Optional[list[WeatherConstraint]] = None,
    risk_mitigations: Optional[list[RiskMitigation]] = None,
    known_resources: Optional[dict[str, set[str]]] = None,
    drop_unmapped: bool = False,
    project_id: Optional[str] = None,
    project_name: Optional[str] = None,
) -> Schedule:
    """Build a time-phased, levelled activity network from estimator work items.

    Pipeline: phases -> activities -> dependencies (cycle check) -> CPM ->
    resource leveling -> weather buffers -> CPM refresh -> milestones.

    Raises ScheduleConfigError for fatal configuration problems; recoverable
    issues are collected on Schedule.diagnostics.
    """
    weather = list(DEFAULT_WEATHER_CONSTRAINTS if weather_constraints is None else weather_constraints)
    risks = list(DEFAULT_RISK_MITIGATIONS if risk_mitigations is None else risk_mitigations)

    phases = create_phases(start_date, phase_templates)
    activities, diagnostics = build_activities(
        work_items,
        phases,
        constraints,
        known_resources=known_resources,
        drop_unmapped=drop_unmapped,
    )
    diagnostics += resolve_dependencies(activities, rules)

    calculate_critical_path(activities, start_date)
    _, leveling_diagnostics = level_resources(activities)
    diagnostics += leveling_diagnostics

    apply_weather_constraints(activities, weather)
    cpm = calculate_critical_path(activities, start_date)
    diagnostics += cpm.diagnostics

    rebaseline_activities(activities)
    mark_critical_phases(phases, activities)
    milestones = create_milestones(phases)

    for d in diagnostics:
        logger.warning("%s", d)

    schedule = Schedule(
        project_id=project_id or f"PROJ-SCHED-{start_date.strftime('%Y%m%d')}",
        project_name=project_name or "Construction Project",
        baseline_start=start_date,
        baseline_finish=cpm.project_finish,
        forecast_start=start_date,
        forecast_finish=cpm.project_finish,
        planned_finish=cpm.project_finish,
        total_duration=cpm.duration,
        phases=phases,
        activities=activities,
        critical_path=cpm.critical_path,
        milestones=milestones,
        calendar=calendar,
        weather_constraints=weather,
        risk_mitigations=risks,
        diagnostics=list(diagnostics),
    )
    logger.info(
        "schedule %s: %d activities, %d critical, %s -> %s",
        schedule.project_id,
        len(activities),
        len(cpm.critical_path),
        start_date.isoformat(),
        cpm.project_finish.isoformat(),
    )
    return schedule


def create_schedule_from_set(
    work_item_set: WorkItemSet,
    start_date: Optional[date] = None,
    **kwargs,
) -> Schedule:
    """create_schedule for a validated estimator export; start_date overrides the file's."""
    start = start_date or work_item_set.start_date
    if start is None:
        raise ValueError("a start date is required (none in the input and none given)")
    return create_schedule(
        work_item_set.work_items,
        start,
        work_item_set.constraints,
        known_resources=work_item_set.known_resources,
        project_id=work_item_set.project_id,
        project_name=work_item_set.project_name,
        **kwargs,
    )


def rebaseline_activities(activities: list[Activity]) -> None:
    """Replace provisional nominal dates with the CPM early dates."""
    for a in activities:
        if a.early_start is not None and a.early_finish is not None:
            a.start_date = a.early_start
            a.end_date = a.early_finish


def mark_critical_phases(phases: list[Phase], activities: list[Activity]) -> None:
    critical_phase_ids = {a.phase_id for a in activities if a.critical}
    for phase in phases:
        phase.critical = phase.id in critical_phase_ids


def refresh_schedule_timing(schedule: Schedule) -> CPMResult:
    """Re-run CPM on a schedule and sync critical path, dates and plan finish."""
    cpm = calculate_critical_path(schedule.activities, schedule.forecast_start)
    schedule.critical_path = cpm.critical_path
    rebaseline_activities(schedule.activities)
    mark_critical_phases(schedule.phases, schedule.activities)
    schedule.planned_finish = add_days(cpm.project_finish, schedule.buffer_days)
    schedule.total_duration = days_between(schedule.forecast_start, schedule.planned_finish)
    return cpm
