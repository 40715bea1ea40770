from __future__ import annotations

import logging
from copy import deepcopy
from dataclasses import dataclass, field

from sequencing_engine.core.adjust.buffers import apply_schedule_buffers
from sequencing_engine.core.errors import ScheduleDiagnostic
from sequencing_engine.core.level.level_resources import LevelingShift, level_resources
from sequencing_engine.core.model import Activity, Schedule
from sequencing_engine.core.optimize.objectives import DEFAULT_OBJECTIVES, OptimizationObjectives
from sequencing_engine.core.progress.track_progress import recalculate_forecast
from sequencing_engine.core.schedule.create_schedule import refresh_schedule_timing

logger = logging.getLogger(__name__)


# Overtime acceleration: critical durations become ceil(duration * 9 / 10).
OVERTIME_NUMERATOR = 9
OVERTIME_DENOMINATOR = 10

# Codes re-emitted by stages the optimizer runs again.
LEVELING_CODES = frozenset({"W_CRITICAL_RESOURCE_CONFLICT"})
CPM_CODES = frozenset({"W_CONSTRAINT_VIOLATED"})
OVERTIME_CODES = frozenset({"W_OVERTIME_NOT_AUTHORIZED"})


@dataclass
class OptimizationReport:
    leveling_shifts: list[LevelingShift] = field(default_factory=list)
    crash_candidates: list[str] = field(default_factory=list)
    overtime_savings: dict[str, int] = field(default_factory=dict)
    buffer_days: int = 0


def overtime_duration(duration: int) -> int:
    return -(-duration * OVERTIME_NUMERATOR // OVERTIME_DENOMINATOR)


def compress_schedule(activities: list[Activity]) -> list[str]:
    """Identify crashing candidates: critical activities with labor that can absorb more crew.

    Durations are not changed here; overtime is the only acceleration applied.
    """
    candidates = [
        a.id
        for a in activities
        if a.critical and a.duration > 1 and any(r.kind == "labor" for r in a.resources)
    ]
    logger.info("compression: %d crash candidate(s) on the critical path", len(candidates))
    return candidates


def apply_overtime(activities: list[Activity]) -> dict[str, int]:
    """Shorten every critical activity by 10% (rounded up). Returns id -> days saved."""
    saved: dict[str, int] = {}
    for a in activities:
        if not a.critical:
            continue
        new_duration = overtime_duration(a.duration)
        if new_duration < a.duration:
            saved[a.id] = a.duration - new_duration
            a.duration = new_duration
    if saved:
        logger.info("overtime: %d activities shortened by %d day(s) total", len(saved), sum(saved.values()))
    return saved


def _replace_diagnostics(schedule: Schedule, codes: frozenset[str], fresh: list[ScheduleDiagnostic]) -> None:
    schedule.diagnostics = [d for d in schedule.diagnostics if d.code not in codes] + list(fresh)


def optimize_schedule(
    schedule: Schedule,
    objectives: OptimizationObjectives = DEFAULT_OBJECTIVES,
) -> Schedule:
    """One optimization pass. Returns a new schedule; the input is left untouched.

    Order: leveling -> compression -> overtime -> whole-schedule buffer -> CPM.
    """
    optimized, _ = optimize_schedule_with_report(schedule, objectives)
    return optimized


def optimize_schedule_with_report(
    schedule: Schedule,
    objectives: OptimizationObjectives = DEFAULT_OBJECTIVES,
) -> tuple[Schedule, OptimizationReport]:
    result = deepcopy(schedule)
    report = OptimizationReport()

    if objectives.allow_resource_leveling:
        report.leveling_shifts, diagnostics = level_resources(result.activities)
        _replace_diagnostics(result, LEVELING_CODES, diagnostics)

    if objectives.prioritize_finish_date:
        report.crash_candidates = compress_schedule(result.activities)

    if objectives.allow_overtime:
        if result.calendar.overtime.authorized:
            report.overtime_savings = apply_overtime(result.activities)
        else:
            message = "overtime requested but the resource calendar does not authorize it"
            logger.warning(message)
            _replace_diagnostics(
                result,
                OVERTIME_CODES,
                [ScheduleDiagnostic(code="W_OVERTIME_NOT_AUTHORIZED", message=message, path="objectives")],
            )

    report.buffer_days = apply_schedule_buffers(result, objectives)

    cpm = refresh_schedule_timing(result)
    _replace_diagnostics(result, CPM_CODES, cpm.diagnostics)
    recalculate_forecast(result)

    logger.info(
        "optimized %s: finish %s (was %s), buffer %d day(s)",
        result.project_id,
        result.forecast_finish.isoformat(),
        schedule.forecast_finish.isoformat(),
        report.buffer_days,
    )
    return result, report
