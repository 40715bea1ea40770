from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from sequencing_engine.core.dates import add_days
from sequencing_engine.core.model import Phase, PhaseCategory


PHASE_CATEGORIES: tuple[str, ...] = (
    "planning",
    "sitework",
    "foundation",
    "structure",
    "envelope",
    "mep",
    "finishes",
    "commissioning",
    "closeout",
)


@dataclass(frozen=True)
class PhaseTemplate:
    name: str
    category: PhaseCategory
    duration: int
    milestone: bool


# Keep this stable: phase ids and milestone ids are derived from position.
PHASE_TEMPLATES: list[PhaseTemplate] = [
    PhaseTemplate("Pre-Construction", "planning", 14, True),
    PhaseTemplate("Site Preparation", "sitework", 7, False),
    PhaseTemplate("Foundation Work", "foundation", 10, True),
    PhaseTemplate("Structural Systems", "structure", 21, True),
    PhaseTemplate("Building Envelope", "envelope", 14, False),
    PhaseTemplate("MEP Rough-In", "mep", 18, True),
    PhaseTemplate("Interior Finishes", "finishes", 16, False),
    PhaseTemplate("MEP Trim & Testing", "mep", 12, False),
    PhaseTemplate("Commissioning", "commissioning", 7, True),
    PhaseTemplate("Project Closeout", "closeout", 5, True),
]


def create_phases(start_date: date, templates: Optional[list[PhaseTemplate]] = None) -> list[Phase]:
    """Stack the phase templates back to back from start_date."""
    phases: list[Phase] = []
    current = start_date
    for index, template in enumerate(templates or PHASE_TEMPLATES):
        end = add_days(current, template.duration)
        phases.append(
            Phase(
                id=f"phase-{index + 1}",
                name=template.name,
                description=f"{template.name} phase of construction",
                category=template.category,
                start_date=current,
                end_date=end,
                duration=template.duration,
                sequence=index + 1,
                prerequisites=[f"phase-{index}"] if index > 0 else [],
                milestone=template.milestone,
            )
        )
        current = end
    return phases


def phase_for_category(phases: list[Phase], category: str) -> Optional[Phase]:
    """First phase (by sequence) with the given category."""
    for phase in phases:
        if phase.category == category:
            return phase
    return None
