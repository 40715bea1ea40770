from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Literal, Optional

from sequencing_engine.core.errors import ScheduleDiagnostic


PhaseCategory = Literal[
    "planning",
    "sitework",
    "foundation",
    "structure",
    "envelope",
    "mep",
    "finishes",
    "commissioning",
    "closeout",
]
PhaseStatus = Literal["not_started", "in_progress", "completed", "delayed", "on_hold"]
ActivityStatus = Literal["not_started", "in_progress", "completed", "delayed"]
Relationship = Literal["FS", "SS", "FF", "SF"]
ResourceKind = Literal["labor", "material", "equipment"]
ConstraintKind = Literal[
    "must_start_on",
    "must_finish_on",
    "start_no_earlier_than",
    "start_no_later_than",
    "finish_no_earlier_than",
    "finish_no_later_than",
]
MilestoneStatus = Literal["upcoming", "achieved", "missed", "at_risk"]
Importance = Literal["low", "medium", "high", "critical"]
WeatherKind = Literal["no_rain", "temperature_above", "temperature_below", "wind_below", "no_snow"]


# Estimator input


@dataclass(frozen=True)
class LaborLine:
    trade: str
    hours: float
    total_cost: float = 0.0


@dataclass(frozen=True)
class MaterialLine:
    id: str
    quantity: float
    total_cost: float = 0.0


@dataclass(frozen=True)
class EquipmentLine:
    id: str
    duration_days: int
    total_cost: float = 0.0


@dataclass(frozen=True)
class WorkItem:
    id: str
    name: str
    category: str
    duration_days: int
    labor: list[LaborLine] = field(default_factory=list)
    materials: list[MaterialLine] = field(default_factory=list)
    equipment: list[EquipmentLine] = field(default_factory=list)


@dataclass(frozen=True)
class ActivityConstraint:
    kind: ConstraintKind
    date: date
    reason: str = ""
    applies_to: Optional[str] = None  # name substring; None applies to every activity


@dataclass(frozen=True)
class WorkItemSet:
    project_id: Optional[str]
    project_name: Optional[str]
    start_date: Optional[date]
    work_items: list[WorkItem]
    constraints: list[ActivityConstraint]
    known_resources: Optional[dict[str, set[str]]] = None


# Calendar / declarative records


@dataclass(frozen=True)
class OvertimePolicy:
    authorized: bool = True
    max_hours_per_day: int = 12
    max_hours_per_week: int = 60
    cost_multiplier: float = 1.5


@dataclass(frozen=True)
class ShutdownPeriod:
    start: date
    end: date
    reason: str = ""


@dataclass(frozen=True)
class ResourceCalendar:
    work_days: tuple[int, ...]  # 0-6, Sunday-Saturday
    work_hours: tuple[int, int]
    holidays: frozenset[date] = frozenset()
    shutdown_periods: tuple[ShutdownPeriod, ...] = ()
    overtime: OvertimePolicy = OvertimePolicy()


@dataclass(frozen=True)
class WeatherConstraint:
    kind: WeatherKind
    buffer_days: int
    activity_ids: tuple[str, ...] = ()
    threshold: Optional[float] = None
    seasonal_restriction: Optional[tuple[int, int]] = None  # (start_month, end_month)


@dataclass(frozen=True)
class RiskMitigation:
    risk_id: str
    description: str
    probability: float
    impact_days: int
    mitigation: str
    contingency_buffer: int
    trigger_conditions: tuple[str, ...] = ()


# Schedule graph


@dataclass(frozen=True)
class Predecessor:
    activity_id: str
    relationship: Relationship
    lag: int = 0


@dataclass(frozen=True)
class ResourceDemand:
    kind: ResourceKind
    resource_id: str
    quantity: float
    unit: str
    cost: float
    critical: bool = False


@dataclass
class QualityCheckpoint:
    id: str
    name: str
    description: str
    inspector: str
    required: bool = True
    status: str = "pending"


@dataclass
class Activity:
    id: str
    name: str
    description: str
    phase_id: str
    duration: int
    start_date: date
    end_date: date
    predecessors: list[Predecessor] = field(default_factory=list)
    successors: list[str] = field(default_factory=list)
    resources: list[ResourceDemand] = field(default_factory=list)
    constraints: list[ActivityConstraint] = field(default_factory=list)
    status: ActivityStatus = "not_started"
    completion_percentage: float = 0.0
    early_start: Optional[date] = None
    early_finish: Optional[date] = None
    late_start: Optional[date] = None
    late_finish: Optional[date] = None
    float_days: int = 0
    critical: bool = False
    weather_dependent: bool = False
    quality_checkpoints: list[QualityCheckpoint] = field(default_factory=list)
    actual_start: Optional[date] = None
    actual_finish: Optional[date] = None
    leveled_start: Optional[date] = None


@dataclass
class Phase:
    id: str
    name: str
    description: str
    category: PhaseCategory
    start_date: date
    end_date: date
    duration: int
    sequence: int
    prerequisites: list[str] = field(default_factory=list)
    activity_ids: list[str] = field(default_factory=list)
    milestone: bool = False
    status: PhaseStatus = "not_started"
    completion_percentage: float = 0.0
    critical: bool = False


@dataclass
class Milestone:
    id: str
    name: str
    description: str
    target_date: date
    dependencies: list[str]
    importance: Importance
    status: MilestoneStatus = "upcoming"
    achieved_date: Optional[date] = None


@dataclass
class Schedule:
    project_id: str
    project_name: str
    baseline_start: date
    baseline_finish: date
    forecast_start: date
    forecast_finish: date
    planned_finish: date
    total_duration: int
    phases: list[Phase]
    activities: list[Activity]
    critical_path: list[str]
    milestones: list[Milestone]
    calendar: ResourceCalendar
    weather_constraints: list[WeatherConstraint]
    risk_mitigations: list[RiskMitigation]
    buffer_days: int = 0
    diagnostics: list[ScheduleDiagnostic] = field(default_factory=list)

    def activity(self, activity_id: str) -> Optional[Activity]:
        for a in self.activities:
            if a.id == activity_id:
                return a
        return None


@dataclass(frozen=True)
class ProgressUpdate:
    activity_id: str
    completion_percentage: float
    actual_start: Optional[date] = None
    actual_finish: Optional[date] = None
