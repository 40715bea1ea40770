from __future__ import annotations

import json
from dataclasses import asdict
from datetime import date
from pathlib import Path
from typing import Any

import yaml

from sequencing_engine.core.analyze.analyze_schedule import ScheduleAnalysis
from sequencing_engine.core.errors import ScheduleError
from sequencing_engine.core.model import Schedule


def _plain(value: Any) -> Any:
    """Dates -> ISO strings, sets/tuples -> sorted/plain lists, recursively."""
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (set, frozenset)):
        return sorted(_plain(v) for v in value)
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def error_to_dict(e: ScheduleError) -> dict[str, Any]:
    return {
        "code": e.code,
        "message": e.message,
        "file": e.file,
        "path": e.path,
        "entities": list(e.entities),
        "severity": getattr(e, "severity", "error"),
    }


def schedule_to_dict(schedule: Schedule) -> dict[str, Any]:
    data = {
        "project_id": schedule.project_id,
        "project_name": schedule.project_name,
        "baseline_start": schedule.baseline_start,
        "baseline_finish": schedule.baseline_finish,
        "forecast_start": schedule.forecast_start,
        "forecast_finish": schedule.forecast_finish,
        "planned_finish": schedule.planned_finish,
        "total_duration": schedule.total_duration,
        "buffer_days": schedule.buffer_days,
        "critical_path": schedule.critical_path,
        "phases": [asdict(p) for p in schedule.phases],
        "activities": [asdict(a) for a in schedule.activities],
        "milestones": [asdict(m) for m in schedule.milestones],
        "calendar": asdict(schedule.calendar),
        "weather_constraints": [asdict(w) for w in schedule.weather_constraints],
        "risk_mitigations": [asdict(r) for r in schedule.risk_mitigations],
        "diagnostics": [error_to_dict(d) for d in schedule.diagnostics],
    }
    return _plain(data)


def analysis_to_dict(analysis: ScheduleAnalysis) -> dict[str, Any]:
    return _plain(asdict(analysis))


def dump_document(data: dict[str, Any], path: str) -> None:
    """Write JSON for a .json path, YAML otherwise; parent directories are created."""
    p = Path(path)
    if str(p.parent) not in (".", ""):
        p.parent.mkdir(parents=True, exist_ok=True)
    with open(p, "w", encoding="utf-8") as f:
        if p.suffix.lower() == ".json":
            json.dump(data, f, indent=2, sort_keys=True)
        else:
            yaml.safe_dump(data, f, sort_keys=False, default_flow_style=False, allow_unicode=True)


def summarize_schedule(schedule: Schedule) -> str:
    lines = [
        f"Project: {schedule.project_id} ({schedule.project_name})",
        f"Start: {schedule.forecast_start.isoformat()}  Finish: {schedule.forecast_finish.isoformat()}  "
        f"Duration: {schedule.total_duration} days",
    ]
    if schedule.buffer_days:
        lines.append(f"Buffer: {schedule.buffer_days} days")
    if schedule.forecast_finish != schedule.planned_finish:
        lines.append(f"Planned finish: {schedule.planned_finish.isoformat()}")
    lines.append("Critical path: " + (" -> ".join(schedule.critical_path) or "none"))
    lines.append("Activities:")
    for a in schedule.activities:
        start = a.early_start.isoformat() if a.early_start else "-"
        finish = a.early_finish.isoformat() if a.early_finish else "-"
        flag = " *" if a.critical else ""
        lines.append(f"- {a.id}: {a.name} [{a.phase_id}] {start}..{finish} float={a.float_days}{flag}")
    if schedule.milestones:
        lines.append("Milestones:")
        for m in schedule.milestones:
            lines.append(f"- {m.id}: {m.name} {m.target_date.isoformat()} ({m.status})")
    if schedule.diagnostics:
        lines.append("Diagnostics:")
        for d in schedule.diagnostics:
            lines.append(f"- {d}")
    return "\n".join(lines)


def summarize_analysis(analysis: ScheduleAnalysis) -> str:
    risk = analysis.risk_assessment
    lines = [
        f"Project: {analysis.project_id}",
        f"Critical path length: {analysis.critical_path_length} days ({analysis.critical_path_working_days} working)",
        f"Total float: {analysis.total_float} days",
        f"Risk: {risk.overall_risk} (expected delay {risk.expected_delay_days} days, "
        f"probability {risk.probability_of_delay}%)",
    ]
    overallocated = [u for u in analysis.resource_utilization if u.overallocation_periods]
    lines.append(f"Over-allocated resources: {len(overallocated)}")
    for u in overallocated:
        lines.append(f"- {u.resource_kind} {u.resource_id}: peak {u.peak_concurrent}")
    lines.append("Bottlenecks:")
    for b in analysis.bottlenecks:
        lines.append(f"- [{b.severity}] {b.kind}: {b.description}")
    lines.append("Recommendations:")
    for r in analysis.recommendations:
        lines.append(f"- ({r.priority}) {r.title}")
    for s in analysis.what_if_scenarios:
        lines.append(f"What-if {s.name}: finish {s.new_finish.isoformat()} ({s.finish_variance_days:+d} days)")
    return "\n".join(lines)
