from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml


@dataclass(frozen=True)
class OptimizationObjectives:
    prioritize_finish_date: bool = True
    prioritize_cost: bool = False
    allow_overtime: bool = True
    allow_resource_leveling: bool = True
    weather_buffer_days: int = 5
    quality_buffer: float = 3.0  # percent of total duration
    risk_buffer: float = 5.0  # percent of total duration


DEFAULT_OBJECTIVES = OptimizationObjectives()


class ObjectivesConfigError(ValueError):
    pass


def objectives_from_dict(raw: dict[str, Any], base: OptimizationObjectives = DEFAULT_OBJECTIVES) -> OptimizationObjectives:
    known = {f.name: f for f in fields(OptimizationObjectives)}
    updates: dict[str, Any] = {}
    for key, value in raw.items():
        if key not in known:
            raise ObjectivesConfigError(f"unknown objective: {key} (choose from: {', '.join(sorted(known))})")
        default = getattr(base, key)
        if isinstance(default, bool):
            if not isinstance(value, bool):
                raise ObjectivesConfigError(f"{key} must be true/false")
        elif isinstance(default, int):
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ObjectivesConfigError(f"{key} must be a non-negative integer")
        else:
            if not isinstance(value, (int, float)) or isinstance(value, bool) or value < 0:
                raise ObjectivesConfigError(f"{key} must be a non-negative number")
            value = float(value)
        updates[key] = value
    return replace(base, **updates)


def load_objectives(path: str | Path | None) -> OptimizationObjectives:
    """Load objectives from YAML; missing keys keep DEFAULT_OBJECTIVES values."""
    if not path:
        return DEFAULT_OBJECTIVES
    raw = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    if raw is None:
        return DEFAULT_OBJECTIVES
    if not isinstance(raw, dict):
        raise ObjectivesConfigError("objectives file must be a mapping")
    return objectives_from_dict(raw)
