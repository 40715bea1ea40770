from __future__ import annotations

import logging
import math
from datetime import date

from sequencing_engine.core.dates import add_days
from sequencing_engine.core.model import Activity, RiskMitigation, Schedule, WeatherConstraint
from sequencing_engine.core.optimize.objectives import OptimizationObjectives

logger = logging.getLogger(__name__)


DEFAULT_WEATHER_CONSTRAINTS: list[WeatherConstraint] = [
    WeatherConstraint(kind="no_rain", buffer_days=3, seasonal_restriction=(11, 3)),
    WeatherConstraint(kind="temperature_above", buffer_days=2, threshold=32),
]

DEFAULT_RISK_MITIGATIONS: list[RiskMitigation] = [
    RiskMitigation(
        risk_id="weather-delays",
        description="Weather-related construction delays",
        probability=0.4,
        impact_days=5,
        mitigation="Build weather buffer into critical activities",
        contingency_buffer=3,
        trigger_conditions=("Extended precipitation forecast", "Temperature below freezing"),
    ),
    RiskMitigation(
        risk_id="material-delays",
        description="Long-lead material delivery delays",
        probability=0.3,
        impact_days=7,
        mitigation="Order materials with lead time buffer",
        contingency_buffer=5,
        trigger_conditions=("Supplier delay notification", "Supply chain disruption"),
    ),
]


def in_season(constraint: WeatherConstraint, day: date) -> bool:
    """True when the constraint's seasonal window (inclusive, may wrap the year) covers day."""
    if constraint.seasonal_restriction is None:
        return True
    start_month, end_month = constraint.seasonal_restriction
    if start_month <= end_month:
        return start_month <= day.month <= end_month
    return day.month >= start_month or day.month <= end_month


def applies_to(constraint: WeatherConstraint, activity: Activity) -> bool:
    if not activity.weather_dependent:
        return False
    if constraint.activity_ids and activity.id not in constraint.activity_ids:
        return False
    return in_season(constraint, activity.early_start or activity.start_date)


def apply_weather_constraints(activities: list[Activity], constraints: list[WeatherConstraint]) -> dict[str, int]:
    """Inflate weather-dependent durations. Returns activity id -> buffer days added."""
    added: dict[str, int] = {}
    for activity in activities:
        extra = sum(c.buffer_days for c in constraints if applies_to(c, activity))
        if extra <= 0:
            continue
        activity.duration += extra
        activity.end_date = add_days(activity.start_date, activity.duration)
        added[activity.id] = extra
    if added:
        logger.info("weather buffers added to %d activities (%d days total)", len(added), sum(added.values()))
    return added


def schedule_buffer_days(total_duration: int, objectives: OptimizationObjectives) -> int:
    return (
        objectives.weather_buffer_days
        + math.ceil(total_duration * objectives.quality_buffer / 100)
        + math.ceil(total_duration * objectives.risk_buffer / 100)
    )


def apply_schedule_buffers(schedule: Schedule, objectives: OptimizationObjectives) -> int:
    """Add the whole-schedule buffer to the forecast and the total duration."""
    buffer = schedule_buffer_days(schedule.total_duration, objectives)
    schedule.forecast_finish = add_days(schedule.forecast_finish, buffer)
    schedule.planned_finish = add_days(schedule.planned_finish, buffer)
    schedule.total_duration += buffer
    schedule.buffer_days += buffer
    logger.info("schedule buffer: %d day(s)", buffer)
    return buffer
