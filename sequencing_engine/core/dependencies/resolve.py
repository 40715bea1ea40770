from __future__ import annotations

import logging
from typing import Optional

from sequencing_engine.core.dependencies.cycles import ensure_acyclic
from sequencing_engine.core.dependencies.rules_config import (
    ALLOWED_RELATIONSHIPS,
    DEFAULT_RULES,
    DependencyRule,
)
from sequencing_engine.core.errors import ScheduleConfigError, ScheduleDiagnostic
from sequencing_engine.core.model import Activity, Predecessor

logger = logging.getLogger(__name__)


def add_dependency(successor: Activity, predecessor: Activity, relationship: str, lag: int = 0) -> bool:
    """Wire predecessor -> successor. Returns False when the exact edge already exists."""
    if relationship not in ALLOWED_RELATIONSHIPS:
        raise ScheduleConfigError(
            code="E_INVALID_RELATIONSHIP",
            message=f"relationship must be one of {sorted(ALLOWED_RELATIONSHIPS)}, got {relationship!r}",
            path=f"{successor.id}.predecessors",
            entities=(predecessor.id, successor.id),
        )
    if predecessor.id == successor.id:
        raise ScheduleConfigError(
            code="E_SELF_DEPENDENCY",
            message=f"activity cannot depend on itself: {successor.id}",
            path=f"{successor.id}.predecessors",
            entities=(successor.id,),
        )
    edge = Predecessor(activity_id=predecessor.id, relationship=relationship, lag=lag)  # type: ignore[arg-type]
    if edge in successor.predecessors:
        return False
    successor.predecessors.append(edge)
    if successor.id not in predecessor.successors:
        predecessor.successors.append(successor.id)
    return True


def resolve_dependencies(
    activities: list[Activity],
    rules: Optional[list[DependencyRule]] = None,
) -> list[ScheduleDiagnostic]:
    """Apply name-pattern rules to every (predecessor, successor) pair.

    Matching is a case-insensitive substring test on activity names. Exact
    duplicate edges are skipped; a second, different edge between the same
    pair is kept (the tighter one drives CPM) and reported. The resulting
    graph is checked for cycles before returning.
    """
    diagnostics: list[ScheduleDiagnostic] = []
    rule_list = DEFAULT_RULES if rules is None else rules
    wired: dict[tuple[str, str], DependencyRule] = {}
    added = 0

    for rule in rule_list:
        src, dst = rule.from_name.lower(), rule.to_name.lower()
        for successor in activities:
            if dst not in successor.name.lower():
                continue
            for predecessor in activities:
                if predecessor.id == successor.id or src not in predecessor.name.lower():
                    continue
                pair = (predecessor.id, successor.id)
                if not add_dependency(successor, predecessor, rule.relationship, rule.lag):
                    continue
                added += 1
                if pair in wired:
                    diagnostics.append(
                        ScheduleDiagnostic(
                            code="W_DUPLICATE_EDGE",
                            message=(
                                f"{predecessor.id} -> {successor.id} wired by both "
                                f"'{wired[pair].describe()}' and '{rule.describe()}'"
                            ),
                            path=f"{successor.id}.predecessors",
                            entities=pair,
                        )
                    )
                else:
                    wired[pair] = rule

    logger.info("resolved %d dependency edge(s) across %d activities", added, len(activities))
    ensure_acyclic(activities)
    return diagnostics
