from __future__ import annotations

from sequencing_engine.core.model import Milestone, Phase


CRITICAL_MILESTONE_PHASES: set[str] = {"foundation", "commissioning"}


def create_milestones(phases: list[Phase]) -> list[Milestone]:
    """One milestone per milestone phase, due at the phase end."""
    milestones: list[Milestone] = []
    for index, phase in enumerate([p for p in phases if p.milestone], start=1):
        milestones.append(
            Milestone(
                id=f"milestone-{index}",
                name=f"{phase.name} Complete",
                description=f"Completion of {phase.name} phase",
                target_date=phase.end_date,
                dependencies=list(phase.activity_ids),
                importance="critical" if phase.category in CRITICAL_MILESTONE_PHASES else "high",
            )
        )
    return milestones
