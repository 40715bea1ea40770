"""Heuristic resource leveling.

Demands are grouped by (resource kind, resource id). Inside a group the
critical activities keep their dates; non-critical activities are placed one
at a time, in early-start order, at the earliest start on or after their
current early start that does not overlap anything already placed in the
group (a serial schedule generation scheme). This is not optimal.

Known failure mode: an activity that appears in several groups is shifted
group by group, so a later group's shift can re-open a conflict in a group
that was already levelled. Successors are not pushed here either; re-run
the CPM engine afterwards, which honours the recorded ``leveled_start``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from sequencing_engine.core.dates import add_days, days_between
from sequencing_engine.core.errors import ScheduleDiagnostic
from sequencing_engine.core.model import Activity

logger = logging.getLogger(__name__)


ResourceKey = tuple[str, str]


@dataclass(frozen=True)
class LevelingShift:
    activity_id: str
    resource: ResourceKey
    delay_days: int


def group_by_resource(activities: list[Activity]) -> dict[ResourceKey, list[Activity]]:
    """(kind, resource id) -> activities demanding it, in input order, without repeats."""
    groups: dict[ResourceKey, list[Activity]] = {}
    for activity in activities:
        for demand in activity.resources:
            key = (demand.kind, demand.resource_id)
            members = groups.setdefault(key, [])
            if all(m.id != activity.id for m in members):
                members.append(activity)
    return groups


def _overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    return a_start < b_end and b_start < a_end


def _earliest_free_start(start: int, duration: int, placed: list[tuple[int, int]]) -> int:
    candidate = start
    moved = True
    while moved:
        moved = False
        for p_start, p_end in sorted(placed):
            if _overlaps(candidate, candidate + duration, p_start, p_end):
                candidate = p_end
                moved = True
    return candidate


def level_resources(activities: list[Activity]) -> tuple[list[LevelingShift], list[ScheduleDiagnostic]]:
    """Shift non-critical activities so no two share a resource over overlapping days.

    Requires CPM timing to be populated. Mutates early_start/early_finish and
    records leveled_start on shifted activities.
    """
    shifts: list[LevelingShift] = []
    diagnostics: list[ScheduleDiagnostic] = []
    timed = [a for a in activities if a.early_start is not None and a.early_finish is not None]
    if not timed:
        return shifts, diagnostics
    origin = min(a.early_start for a in timed)  # type: ignore[type-var]

    def span(a: Activity) -> tuple[int, int]:
        start = days_between(origin, a.early_start)  # type: ignore[arg-type]
        return start, start + a.duration

    for key, members in group_by_resource(timed).items():
        if len(members) < 2:
            continue
        ordered = sorted(members, key=lambda a: (a.early_start, a.id))
        fixed = [a for a in ordered if a.critical]
        placed: list[tuple[int, int]] = []

        for i, a in enumerate(fixed):
            a_span = span(a)
            for b in fixed[i + 1 :]:
                if _overlaps(*a_span, *span(b)):
                    diagnostics.append(
                        ScheduleDiagnostic(
                            code="W_CRITICAL_RESOURCE_CONFLICT",
                            message=f"critical activities {a.id} and {b.id} overlap on {key[0]} '{key[1]}'",
                            path="resources",
                            entities=(a.id, b.id, key[1]),
                        )
                    )
            placed.append(a_span)

        for a in ordered:
            if a.critical:
                continue
            start, _ = span(a)
            new_start = _earliest_free_start(start, a.duration, placed)
            if new_start != start:
                delay = new_start - start
                a.early_start = add_days(origin, new_start)
                a.early_finish = add_days(a.early_start, a.duration)
                a.leveled_start = a.early_start
                shifts.append(LevelingShift(activity_id=a.id, resource=key, delay_days=delay))
                logger.info("leveling: %s delayed %d day(s) on %s '%s'", a.id, delay, key[0], key[1])
            placed.append((new_start, new_start + a.duration))

    return shifts, diagnostics
