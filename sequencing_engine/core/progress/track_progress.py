from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, Optional

from sequencing_engine.core.dates import add_days, days_between
from sequencing_engine.core.errors import ScheduleDiagnostic
from sequencing_engine.core.model import ProgressUpdate, Schedule

logger = logging.getLogger(__name__)


def update_progress(
    schedule: Schedule,
    updates: Iterable[ProgressUpdate],
    *,
    as_of: Optional[date] = None,
) -> Schedule:
    """Apply actual progress, then re-forecast phases, milestones and the finish date.

    Mutates and returns the same schedule. Bad updates (unknown activity,
    completion outside 0-100) are skipped and recorded on schedule.diagnostics;
    the rest of the batch still applies.
    """
    today = as_of or date.today()
    by_id = {a.id: a for a in schedule.activities}
    applied = 0

    for i, update in enumerate(updates):
        activity = by_id.get(update.activity_id)
        if activity is None:
            _warn(schedule, "W_UNKNOWN_ACTIVITY", f"progress update references unknown activity: {update.activity_id}", i, update.activity_id)
            continue
        if not 0 <= update.completion_percentage <= 100:
            _warn(
                schedule,
                "W_INVALID_COMPLETION",
                f"completion for {update.activity_id} must be within 0-100, got {update.completion_percentage}",
                i,
                update.activity_id,
            )
            continue

        activity.completion_percentage = update.completion_percentage
        if update.actual_start:
            activity.actual_start = update.actual_start
        if update.actual_finish:
            activity.actual_finish = update.actual_finish

        if update.completion_percentage == 100:
            activity.status = "completed"
        elif update.completion_percentage > 0:
            activity.status = "in_progress"
        applied += 1

    recalculate_forecast(schedule)
    update_phase_progress(schedule, today)
    update_milestone_status(schedule, today)
    logger.info("progress: %d update(s) applied, forecast finish %s", applied, schedule.forecast_finish.isoformat())
    return schedule


def _warn(schedule: Schedule, code: str, message: str, index: int, activity_id: str) -> None:
    logger.warning(message)
    schedule.diagnostics.append(
        ScheduleDiagnostic(code=code, message=message, path=f"updates[{index}]", entities=(activity_id,))
    )


def recalculate_forecast(schedule: Schedule) -> int:
    """Forecast finish = planned finish + late days of completed activities. Returns the delay."""
    total_delay = 0
    for activity in schedule.activities:
        if activity.status != "completed" or activity.actual_finish is None:
            continue
        if activity.actual_finish > activity.end_date:
            total_delay += days_between(activity.end_date, activity.actual_finish)
    schedule.forecast_finish = add_days(schedule.planned_finish, total_delay)
    return total_delay


def update_phase_progress(schedule: Schedule, today: date) -> None:
    for phase in schedule.phases:
        members = [a for a in schedule.activities if a.phase_id == phase.id]
        if not members:
            continue
        completed = sum(1 for a in members if a.status == "completed")
        phase.completion_percentage = completed / len(members) * 100

        if phase.completion_percentage == 100:
            phase.status = "completed"
        elif today > phase.end_date:
            phase.status = "delayed"
        elif phase.completion_percentage > 0 or any(a.status == "in_progress" for a in members):
            phase.status = "in_progress"


def update_milestone_status(schedule: Schedule, today: date) -> None:
    by_id = {a.id: a for a in schedule.activities}
    for milestone in schedule.milestones:
        dependents = [by_id[i] for i in milestone.dependencies if i in by_id]
        if not dependents:
            continue
        if all(a.status == "completed" for a in dependents):
            if milestone.status != "achieved":
                milestone.status = "achieved"
                milestone.achieved_date = today
        elif any(a.status != "not_started" for a in dependents) and today > milestone.target_date:
            milestone.status = "at_risk"
