from __future__ import annotations

from typing import Any, Iterable, Optional, cast

from sequencing_engine.core.dates import parse_date
from sequencing_engine.core.errors import ScheduleInputError
from sequencing_engine.core.model import (
    ActivityConstraint,
    ConstraintKind,
    EquipmentLine,
    LaborLine,
    MaterialLine,
    ProgressUpdate,
    WorkItem,
    WorkItemSet,
)


ALLOWED_CONSTRAINT_KINDS: set[str] = {
    "must_start_on",
    "must_finish_on",
    "start_no_earlier_than",
    "start_no_later_than",
    "finish_no_earlier_than",
    "finish_no_later_than",
}
RESOURCE_KINDS: tuple[str, ...] = ("labor", "material", "equipment")


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def validate_work_items(doc: dict[str, Any]) -> tuple[Optional[WorkItemSet], list[ScheduleInputError]]:
    """Validate an estimator export.

    Returns (work_item_set, errors). The set is None when errors exist.
    """

    file = cast(Optional[str], doc.get("__file__"))
    errors: list[ScheduleInputError] = []

    def err(code: str, message: str, path: str) -> None:
        errors.append(ScheduleInputError(code=code, message=message, file=file, path=path))

    project = doc.get("project")
    project_id: Optional[str] = None
    project_name: Optional[str] = None
    if project is not None:
        if not isinstance(project, dict):
            err("E_INVALID_TYPE", "project must be an object", "project")
        else:
            pid, pname = project.get("id"), project.get("name")
            if pid is not None and not isinstance(pid, str):
                err("E_INVALID_TYPE", "project.id must be a string", "project.id")
            if pname is not None and not isinstance(pname, str):
                err("E_INVALID_TYPE", "project.name must be a string", "project.name")
            project_id = pid if isinstance(pid, str) else None
            project_name = pname if isinstance(pname, str) else None

    start_raw = doc.get("start_date")
    start_date = parse_date(start_raw) if start_raw is not None else None
    if start_raw is not None and start_date is None:
        err("E_INVALID_DATE", "start_date must be an ISO date (YYYY-MM-DD)", "start_date")

    raw_items = doc.get("work_items")
    if not isinstance(raw_items, list):
        err("E_REQUIRED_FIELD", "work_items is required and must be an array", "work_items")
        return None, _sorted(errors)

    items: list[WorkItem] = []
    seen_ids: set[str] = set()
    for i, raw in enumerate(raw_items):
        item_path = f"work_items[{i}]"
        if not isinstance(raw, dict):
            err("E_INVALID_TYPE", "work item must be an object", item_path)
            continue

        wid = raw.get("id", f"WI-{i + 1}")
        if not isinstance(wid, str) or not wid.strip():
            err("E_INVALID_TYPE", "id must be a non-empty string", f"{item_path}.id")
            continue
        if wid in seen_ids:
            err("E_DUPLICATE_ID", f"duplicate work item id: {wid}", f"{item_path}.id")
            continue

        name = raw.get("name")
        if not isinstance(name, str) or not name.strip():
            err("E_REQUIRED_FIELD", "name is required and must be a non-empty string", f"{item_path}.name")
            continue

        category = raw.get("category", "")
        if not isinstance(category, str):
            err("E_INVALID_TYPE", "category must be a string", f"{item_path}.category")
            continue

        duration = raw.get("duration_days")
        if not isinstance(duration, int) or isinstance(duration, bool):
            err("E_INVALID_TYPE", "duration_days must be an integer", f"{item_path}.duration_days")
            continue
        if duration < 0:
            err("E_NEGATIVE_DURATION", "duration_days must be >= 0", f"{item_path}.duration_days")
            continue

        labor = _labor_lines(raw.get("labor"), f"{item_path}.labor", err)
        materials = _material_lines(raw.get("materials"), f"{item_path}.materials", err)
        equipment = _equipment_lines(raw.get("equipment"), f"{item_path}.equipment", err)
        if labor is None or materials is None or equipment is None:
            continue

        seen_ids.add(wid)
        items.append(
            WorkItem(
                id=wid,
                name=name,
                category=category,
                duration_days=duration,
                labor=labor,
                materials=materials,
                equipment=equipment,
            )
        )

    constraints = _constraints(doc.get("constraints"), err)
    known_resources = _known_resources(doc.get("known_resources"), err)

    if errors:
        return None, _sorted(errors)

    return (
        WorkItemSet(
            project_id=project_id,
            project_name=project_name,
            start_date=start_date,
            work_items=items,
            constraints=constraints,
            known_resources=known_resources,
        ),
        [],
    )


def _labor_lines(raw: Any, path: str, err) -> Optional[list[LaborLine]]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        err("E_INVALID_TYPE", "labor must be an array", path)
        return None
    out: list[LaborLine] = []
    for j, line in enumerate(raw):
        if (
            not isinstance(line, dict)
            or not isinstance(line.get("trade"), str)
            or not _is_number(line.get("hours"))
            or not _is_number(line.get("total_cost", 0))
        ):
            err("E_INVALID_TYPE", "labor lines need trade (string), hours and total_cost (numbers)", f"{path}[{j}]")
            return None
        out.append(LaborLine(trade=line["trade"], hours=float(line["hours"]), total_cost=float(line.get("total_cost", 0))))
    return out


def _material_lines(raw: Any, path: str, err) -> Optional[list[MaterialLine]]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        err("E_INVALID_TYPE", "materials must be an array", path)
        return None
    out: list[MaterialLine] = []
    for j, line in enumerate(raw):
        if (
            not isinstance(line, dict)
            or not isinstance(line.get("id"), str)
            or not _is_number(line.get("quantity"))
            or not _is_number(line.get("total_cost", 0))
        ):
            err("E_INVALID_TYPE", "material lines need id (string), quantity and total_cost (numbers)", f"{path}[{j}]")
            return None
        out.append(MaterialLine(id=line["id"], quantity=float(line["quantity"]), total_cost=float(line.get("total_cost", 0))))
    return out


def _equipment_lines(raw: Any, path: str, err) -> Optional[list[EquipmentLine]]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        err("E_INVALID_TYPE", "equipment must be an array", path)
        return None
    out: list[EquipmentLine] = []
    for j, line in enumerate(raw):
        if (
            not isinstance(line, dict)
            or not isinstance(line.get("id"), str)
            or not isinstance(line.get("duration_days"), int)
            or not _is_number(line.get("total_cost", 0))
        ):
            err(
                "E_INVALID_TYPE",
                "equipment lines need id (string), duration_days (integer) and total_cost (number)",
                f"{path}[{j}]",
            )
            return None
        out.append(
            EquipmentLine(id=line["id"], duration_days=line["duration_days"], total_cost=float(line.get("total_cost", 0)))
        )
    return out


def _constraints(raw: Any, err) -> list[ActivityConstraint]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        err("E_INVALID_TYPE", "constraints must be an array", "constraints")
        return []
    out: list[ActivityConstraint] = []
    for i, c in enumerate(raw):
        path = f"constraints[{i}]"
        if not isinstance(c, dict):
            err("E_INVALID_TYPE", "constraint must be an object", path)
            continue
        kind = c.get("kind")
        if kind not in ALLOWED_CONSTRAINT_KINDS:
            err("E_INVALID_ENUM", f"kind must be one of {sorted(ALLOWED_CONSTRAINT_KINDS)}", f"{path}.kind")
            continue
        when = parse_date(c.get("date"))
        if when is None:
            err("E_INVALID_DATE", "date must be an ISO date (YYYY-MM-DD)", f"{path}.date")
            continue
        applies_to = c.get("applies_to")
        if applies_to is not None and not isinstance(applies_to, str):
            err("E_INVALID_TYPE", "applies_to must be a string", f"{path}.applies_to")
            continue
        out.append(
            ActivityConstraint(
                kind=cast(ConstraintKind, kind),
                date=when,
                reason=str(c.get("reason", "")),
                applies_to=applies_to,
            )
        )
    return out


def _known_resources(raw: Any, err) -> Optional[dict[str, set[str]]]:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        err("E_INVALID_TYPE", "known_resources must be a mapping of kind -> [ids]", "known_resources")
        return None
    out: dict[str, set[str]] = {k: set() for k in RESOURCE_KINDS}
    for kind, ids in raw.items():
        if kind not in RESOURCE_KINDS:
            err("E_INVALID_ENUM", f"resource kind must be one of {list(RESOURCE_KINDS)}", f"known_resources.{kind}")
            continue
        if not isinstance(ids, list) or not all(isinstance(x, str) for x in ids):
            err("E_INVALID_TYPE", "resource ids must be an array of strings", f"known_resources.{kind}")
            continue
        out[kind] = set(ids)
    return out


def parse_progress_updates(raw: list[Any], file: Optional[str] = None) -> tuple[list[ProgressUpdate], list[ScheduleInputError]]:
    updates: list[ProgressUpdate] = []
    errors: list[ScheduleInputError] = []
    for i, u in enumerate(raw):
        path = f"updates[{i}]"
        if not isinstance(u, dict) or not isinstance(u.get("activity_id"), str):
            errors.append(
                ScheduleInputError(code="E_INVALID_TYPE", message="update needs an activity_id string", file=file, path=path)
            )
            continue
        pct = u.get("completion_percentage")
        if not _is_number(pct):
            errors.append(
                ScheduleInputError(
                    code="E_INVALID_TYPE",
                    message="completion_percentage must be a number",
                    file=file,
                    path=f"{path}.completion_percentage",
                )
            )
            continue
        actuals = {}
        for key in ("actual_start", "actual_finish"):
            if u.get(key) is None:
                actuals[key] = None
                continue
            actuals[key] = parse_date(u.get(key))
            if actuals[key] is None:
                errors.append(
                    ScheduleInputError(
                        code="E_INVALID_DATE", message=f"{key} must be an ISO date", file=file, path=f"{path}.{key}"
                    )
                )
        updates.append(
            ProgressUpdate(
                activity_id=u["activity_id"],
                completion_percentage=float(pct),
                actual_start=actuals["actual_start"],
                actual_finish=actuals["actual_finish"],
            )
        )
    if errors:
        return [], _sorted(errors)
    return updates, []


def _sorted(errors: Iterable[ScheduleInputError]) -> list[ScheduleInputError]:
    return sorted(
        list(errors),
        key=lambda e: (
            e.file or "",
            e.path or "",
            e.code,
        ),
    )
