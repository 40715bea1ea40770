from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from sequencing_engine.core.errors import ScheduleLoadError


def load_document(path: str) -> Any:
    """Read a YAML/JSON file and return the parsed document (any shape)."""

    p = Path(path)
    if not p.exists():
        raise ScheduleLoadError(
            code="E_FILE_NOT_FOUND",
            message="file does not exist",
            file=str(p),
        )

    suffix = p.suffix.lower()
    try:
        raw_text = p.read_text(encoding="utf-8")
    except Exception as e:  # pragma: no cover
        raise ScheduleLoadError(code="E_FILE_READ", message=str(e), file=str(p)) from e

    try:
        if suffix in {".yaml", ".yml"}:
            return yaml.safe_load(raw_text)
        if suffix == ".json":
            return json.loads(raw_text)
        raise ScheduleLoadError(
            code="E_UNSUPPORTED_FORMAT",
            message="supported formats are .yaml/.yml and .json",
            file=str(p),
        )
    except ScheduleLoadError:
        raise
    except Exception as e:
        code = "E_YAML_PARSE" if suffix in {".yaml", ".yml"} else "E_JSON_PARSE"
        raise ScheduleLoadError(code=code, message=str(e), file=str(p)) from e


def load_work_items(path: str) -> dict[str, Any]:
    """Load an estimator export (work items + optional constraints).

    Returns a dict with keys: project, start_date, work_items, constraints,
    known_resources. Does not coerce types; the validator owns shape checking.
    """

    data = load_document(path)
    if not isinstance(data, dict):
        raise ScheduleLoadError(
            code="E_INVALID_TOP_LEVEL",
            message="top-level document must be a mapping/object",
            file=path,
        )

    normalized: dict[str, Any] = {
        "project": data.get("project"),
        "start_date": data.get("start_date"),
        "work_items": data.get("work_items"),
        "constraints": data.get("constraints"),
        "known_resources": data.get("known_resources"),
    }
    normalized["__file__"] = str(Path(path))
    return normalized


def load_progress_updates(path: str) -> list[Any]:
    """Load a list of progress updates; accepts a bare list or {updates: [...]}."""

    data = load_document(path)
    if isinstance(data, dict):
        data = data.get("updates")
    if not isinstance(data, list):
        raise ScheduleLoadError(
            code="E_INVALID_TOP_LEVEL",
            message="progress file must be a list of updates or a mapping with an 'updates' list",
            file=path,
        )
    return data
