from __future__ import annotations

import logging
from typing import Optional

from sequencing_engine.core.build.phases import phase_for_category
from sequencing_engine.core.dates import add_days
from sequencing_engine.core.errors import ScheduleConfigError, ScheduleDiagnostic
from sequencing_engine.core.model import (
    Activity,
    ActivityConstraint,
    Phase,
    QualityCheckpoint,
    ResourceDemand,
    WorkItem,
)

logger = logging.getLogger(__name__)


# Order matters: the first keyword set that matches wins.
PHASE_KEYWORDS: list[tuple[tuple[str, ...], str]] = [
    (("foundation", "footing"), "foundation"),
    (("structural", "frame"), "structure"),
    (("rough",), "mep"),
    (("finish", "trim"), "finishes"),
    (("envelope", "roofing"), "envelope"),
    (("site", "excavation"), "sitework"),
    (("permit", "design"), "planning"),
    (("commission",), "commissioning"),
    (("closeout", "punch"), "closeout"),
]
DEFAULT_PHASE_CATEGORY = "mep"

WEATHER_SENSITIVE_KEYWORDS: tuple[str, ...] = (
    "foundation",
    "concrete",
    "roofing",
    "siding",
    "exterior",
    "site work",
    "excavation",
)
CRITICAL_LABOR_KEYWORDS: tuple[str, ...] = ("electrician",)
CRITICAL_EQUIPMENT_KEYWORDS: tuple[str, ...] = ("lift",)
HOURS_PER_CREW_DAY = 8


def classify_work_item(item: WorkItem) -> str:
    """Map a work item onto a phase category (name first, then category)."""
    for text in (item.name.lower(), item.category.lower()):
        for keywords, category in PHASE_KEYWORDS:
            if any(k in text for k in keywords):
                return category
    return DEFAULT_PHASE_CATEGORY


def is_weather_dependent(item: WorkItem) -> bool:
    name, category = item.name.lower(), item.category.lower()
    return any(k in name or k in category for k in WEATHER_SENSITIVE_KEYWORDS)


def resource_demands(item: WorkItem) -> list[ResourceDemand]:
    demands: list[ResourceDemand] = []
    for labor in item.labor:
        demands.append(
            ResourceDemand(
                kind="labor",
                resource_id=labor.trade,
                quantity=labor.hours / HOURS_PER_CREW_DAY,
                unit="crew-days",
                cost=labor.total_cost,
                critical=any(k in labor.trade.lower() for k in CRITICAL_LABOR_KEYWORDS),
            )
        )
    for material in item.materials:
        demands.append(
            ResourceDemand(
                kind="material",
                resource_id=material.id,
                quantity=material.quantity,
                unit="units",
                cost=material.total_cost,
            )
        )
    for equipment in item.equipment:
        demands.append(
            ResourceDemand(
                kind="equipment",
                resource_id=equipment.id,
                quantity=equipment.duration_days,
                unit="days",
                cost=equipment.total_cost,
                critical=any(k in equipment.id.lower() for k in CRITICAL_EQUIPMENT_KEYWORDS),
            )
        )
    return demands


def quality_checkpoints(item: WorkItem) -> list[QualityCheckpoint]:
    if item.category.lower() != "electrical":
        return []
    checkpoints = [
        QualityCheckpoint(
            id=f"qc-{item.id}-1",
            name="Rough Electrical Inspection",
            description="Verify electrical rough-in meets code requirements",
            inspector="Electrical Inspector",
        )
    ]
    name = item.name.lower()
    if "finish" in name or "trim" in name:
        checkpoints.append(
            QualityCheckpoint(
                id=f"qc-{item.id}-2",
                name="Final Electrical Inspection",
                description="Final electrical inspection and testing",
                inspector="Electrical Inspector",
            )
        )
    return checkpoints


def constraints_for(name: str, constraints: Optional[list[ActivityConstraint]]) -> list[ActivityConstraint]:
    if not constraints:
        return []
    lowered = name.lower()
    return [c for c in constraints if not c.applies_to or c.applies_to.lower() in lowered]


def build_activities(
    items: list[WorkItem],
    phases: list[Phase],
    constraints: Optional[list[ActivityConstraint]] = None,
    *,
    known_resources: Optional[dict[str, set[str]]] = None,
    drop_unmapped: bool = False,
) -> tuple[list[Activity], list[ScheduleDiagnostic]]:
    """Create one Activity per work item and attach it to its phase.

    Raises ScheduleConfigError for items whose phase does not exist, unless
    drop_unmapped is set, in which case they are reported and skipped.
    """
    activities: list[Activity] = []
    diagnostics: list[ScheduleDiagnostic] = []
    unmapped: list[str] = []

    for index, item in enumerate(items):
        category = classify_work_item(item)
        phase = phase_for_category(phases, category)
        if phase is None:
            unmapped.append(item.id)
            if drop_unmapped:
                diagnostics.append(
                    ScheduleDiagnostic(
                        code="W_UNMAPPED_WORK_ITEM",
                        message=f"work item '{item.name}' maps to phase '{category}', which is not in the schedule; dropped",
                        path=f"work_items[{index}]",
                        entities=(item.id,),
                    )
                )
            continue

        activity_id = f"activity-{index + 1}"
        if item.duration_days < 0:
            raise ScheduleConfigError(
                code="E_NEGATIVE_DURATION",
                message=f"work item '{item.name}' has a negative duration: {item.duration_days}",
                path=f"work_items[{index}].duration_days",
                entities=(item.id,),
            )
        end = add_days(phase.start_date, item.duration_days)
        demands = resource_demands(item)

        if item.duration_days == 0:
            diagnostics.append(
                ScheduleDiagnostic(
                    code="W_ZERO_DURATION",
                    message=f"work item '{item.name}' has zero duration",
                    path=f"work_items[{index}].duration_days",
                    entities=(activity_id,),
                )
            )
        diagnostics.extend(_resource_diagnostics(activity_id, index, demands, known_resources))

        activity = Activity(
            id=activity_id,
            name=item.name,
            description=f"{item.name} - {item.category}" if item.category else item.name,
            phase_id=phase.id,
            duration=item.duration_days,
            start_date=phase.start_date,
            end_date=end,
            resources=demands,
            constraints=constraints_for(item.name, constraints),
            early_start=phase.start_date,
            early_finish=end,
            late_start=phase.start_date,
            late_finish=end,
            weather_dependent=is_weather_dependent(item),
            quality_checkpoints=quality_checkpoints(item),
        )
        activities.append(activity)
        phase.activity_ids.append(activity_id)
        logger.debug("work item %s -> %s in %s (%s)", item.id, activity_id, phase.id, category)

    if unmapped and not drop_unmapped:
        raise ScheduleConfigError(
            code="E_UNMAPPED_WORK_ITEM",
            message=f"{len(unmapped)} work item(s) map to a phase that is not in the schedule",
            path="work_items",
            entities=tuple(unmapped),
        )

    return activities, diagnostics


def _resource_diagnostics(
    activity_id: str,
    index: int,
    demands: list[ResourceDemand],
    known_resources: Optional[dict[str, set[str]]],
) -> list[ScheduleDiagnostic]:
    out: list[ScheduleDiagnostic] = []
    for demand in demands:
        if not demand.resource_id.strip():
            out.append(
                ScheduleDiagnostic(
                    code="W_EMPTY_RESOURCE_ID",
                    message=f"{demand.kind} demand has an empty resource id",
                    path=f"work_items[{index}]",
                    entities=(activity_id,),
                )
            )
        elif known_resources is not None and demand.resource_id not in known_resources.get(demand.kind, set()):
            out.append(
                ScheduleDiagnostic(
                    code="W_UNKNOWN_RESOURCE",
                    message=f"unknown {demand.kind} resource: {demand.resource_id}",
                    path=f"work_items[{index}]",
                    entities=(activity_id, demand.resource_id),
                )
            )
    return out
