"""Critical Path Method: forward pass, backward pass, float and critical path.

All arithmetic is in whole calendar days. Timing is computed on integer
offsets from the project start and converted back to dates at the end, so
results do not depend on the order activities are listed in.
"""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from datetime import date

from sequencing_engine.core.dates import add_days, days_between
from sequencing_engine.core.dependencies.cycles import ensure_acyclic
from sequencing_engine.core.errors import ScheduleConfigError, ScheduleDiagnostic
from sequencing_engine.core.model import Activity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CPMResult:
    critical_path: list[str]
    project_start: date
    project_finish: date
    diagnostics: list[ScheduleDiagnostic]

    @property
    def duration(self) -> int:
        return days_between(self.project_start, self.project_finish)


def topological_order(activities: list[Activity]) -> list[Activity]:
    """Kahn's algorithm; ties broken by input position for determinism."""
    by_id = {a.id: a for a in activities}
    position = {a.id: i for i, a in enumerate(activities)}

    indegree: dict[str, int] = {a.id: 0 for a in activities}
    dependents: dict[str, list[str]] = {a.id: [] for a in activities}
    for a in activities:
        for pred in a.predecessors:
            if pred.activity_id not in by_id:
                raise ScheduleConfigError(
                    code="E_UNKNOWN_PREDECESSOR",
                    message=f"{a.id} references unknown predecessor: {pred.activity_id}",
                    path=f"{a.id}.predecessors",
                    entities=(a.id, pred.activity_id),
                )
            indegree[a.id] += 1
            dependents[pred.activity_id].append(a.id)

    ready = deque(sorted((i for i, d in indegree.items() if d == 0), key=position.__getitem__))
    order: list[Activity] = []
    while ready:
        cur = ready.popleft()
        order.append(by_id[cur])
        released = []
        for nxt in dependents[cur]:
            indegree[nxt] -= 1
            if indegree[nxt] == 0:
                released.append(nxt)
        ready.extend(sorted(released, key=position.__getitem__))

    if len(order) != len(activities):
        ensure_acyclic(activities)
        raise ScheduleConfigError(  # pragma: no cover
            code="E_DEPENDENCY_CYCLE",
            message="dependency graph is not acyclic",
            path="dependencies",
        )
    return order


def _start_bound(activity: Activity, origin: date) -> int:
    """Lowest early-start offset allowed by constraints and leveling."""
    bound = 0
    if activity.leveled_start is not None:
        bound = max(bound, days_between(origin, activity.leveled_start))
    for c in activity.constraints:
        offset = days_between(origin, c.date)
        if c.kind in ("must_start_on", "start_no_earlier_than"):
            bound = max(bound, offset)
        elif c.kind in ("must_finish_on", "finish_no_earlier_than"):
            bound = max(bound, offset - activity.duration)
    return bound


def _constraint_violations(activity: Activity) -> list[ScheduleDiagnostic]:
    out: list[ScheduleDiagnostic] = []
    assert activity.early_start is not None and activity.early_finish is not None
    for c in activity.constraints:
        late = (
            (c.kind in ("start_no_later_than", "must_start_on") and activity.early_start > c.date)
            or (c.kind in ("finish_no_later_than", "must_finish_on") and activity.early_finish > c.date)
        )
        if late:
            out.append(
                ScheduleDiagnostic(
                    code="W_CONSTRAINT_VIOLATED",
                    message=f"{activity.name} cannot satisfy {c.kind} {c.date.isoformat()} ({c.reason or 'no reason given'})",
                    path=f"{activity.id}.constraints",
                    entities=(activity.id,),
                )
            )
    return out


def forward_pass(order: list[Activity], project_start: date) -> dict[str, tuple[int, int]]:
    early: dict[str, tuple[int, int]] = {}
    for a in order:
        es = _start_bound(a, project_start)
        for pred in a.predecessors:
            p_es, p_ef = early[pred.activity_id]
            if pred.relationship == "FS":
                candidate = p_ef + pred.lag
            elif pred.relationship == "SS":
                candidate = p_es + pred.lag
            elif pred.relationship == "FF":
                candidate = p_ef + pred.lag - a.duration
            else:  # SF
                candidate = p_es + pred.lag - a.duration
            es = max(es, candidate)
        early[a.id] = (es, es + a.duration)
        logger.debug("forward %s: ES=%d EF=%d", a.id, es, es + a.duration)
    return early


def backward_pass(order: list[Activity], early: dict[str, tuple[int, int]]) -> dict[str, tuple[int, int]]:
    project_finish = max((ef for _, ef in early.values()), default=0)
    # successor id -> edges that reference each predecessor
    incoming: dict[str, list[tuple[str, str, int]]] = {a.id: [] for a in order}
    for a in order:
        for pred in a.predecessors:
            incoming[pred.activity_id].append((a.id, pred.relationship, pred.lag))

    late: dict[str, tuple[int, int]] = {}
    for a in reversed(order):
        lf = project_finish
        for succ_id, relationship, lag in incoming[a.id]:
            s_ls, s_lf = late[succ_id]
            if relationship == "FS":
                candidate = s_ls - lag
            elif relationship == "SS":
                candidate = s_ls - lag + a.duration
            elif relationship == "FF":
                candidate = s_lf - lag
            else:  # SF
                candidate = s_lf - lag + a.duration
            lf = min(lf, candidate)
        late[a.id] = (lf - a.duration, lf)
    return late


def calculate_critical_path(activities: list[Activity], project_start: date) -> CPMResult:
    """Run both passes, write timing onto the activities, return the critical path.

    Raises ScheduleConfigError on cycles or dangling predecessor references.
    """
    if not activities:
        return CPMResult(critical_path=[], project_start=project_start, project_finish=project_start, diagnostics=[])

    order = topological_order(activities)
    early = forward_pass(order, project_start)
    late = backward_pass(order, early)

    diagnostics: list[ScheduleDiagnostic] = []
    critical: list[str] = []
    for a in order:
        es, ef = early[a.id]
        ls, lf = late[a.id]
        a.early_start = add_days(project_start, es)
        a.early_finish = add_days(project_start, ef)
        a.late_start = add_days(project_start, ls)
        a.late_finish = add_days(project_start, lf)
        a.float_days = max(0, ls - es)
        a.critical = a.float_days == 0
        if a.critical:
            critical.append(a.id)
        diagnostics.extend(_constraint_violations(a))

    project_finish = add_days(project_start, max(ef for _, ef in early.values()))
    logger.info(
        "CPM: %d activities, %d critical, finish %s",
        len(activities),
        len(critical),
        project_finish.isoformat(),
    )
    return CPMResult(
        critical_path=critical,
        project_start=project_start,
        project_finish=project_finish,
        diagnostics=diagnostics,
    )
