from __future__ import annotations

import json
import logging
import os
from typing import Any, NoReturn, Optional

import typer
import yaml

from sequencing_engine.core.analyze.analyze_schedule import analyze_schedule
from sequencing_engine.core.calendar.calendar_config import (
    CalendarConfigError,
    describe_calendar,
    load_and_merge_calendar,
)
from sequencing_engine.core.dates import parse_date
from sequencing_engine.core.dependencies.rules_config import RulesConfigError, load_and_merge_rules
from sequencing_engine.core.errors import (
    ScheduleConfigError,
    ScheduleError,
    ScheduleInputError,
    ScheduleLoadError,
    sort_errors,
)
from sequencing_engine.core.io.dump_schedule import (
    analysis_to_dict,
    dump_document,
    error_to_dict,
    schedule_to_dict,
    summarize_analysis,
    summarize_schedule,
)
from sequencing_engine.core.io.load_work_items import load_progress_updates, load_work_items
from sequencing_engine.core.model import Schedule
from sequencing_engine.core.optimize.objectives import ObjectivesConfigError, load_objectives
from sequencing_engine.core.optimize.optimize_schedule import optimize_schedule_with_report
from sequencing_engine.core.progress.track_progress import update_progress
from sequencing_engine.core.schedule.create_schedule import create_schedule_from_set
from sequencing_engine.core.validate.validate_work_items import parse_progress_updates, validate_work_items

app = typer.Typer(add_completion=False, no_args_is_help=True)

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"


@app.callback()
def _callback(
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="DEBUG|INFO|WARNING|ERROR (default: $SEQUENCING_LOG_LEVEL or WARNING)",
    ),
) -> None:
    """Construction sequencing CLI."""
    level_name = (log_level or os.getenv("SEQUENCING_LOG_LEVEL") or "WARNING").upper()
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        _print_errors(
            [
                ScheduleInputError(
                    code="E_UNKNOWN_LOG_LEVEL",
                    message=f"unknown log level: {level_name}",
                    path="log_level",
                )
            ]
        )
        raise typer.Exit(code=2)
    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)


def _fail(command: str, format: str, errors: list[ScheduleError], exit_code: int) -> NoReturn:
    if format == "json":
        _emit_json(command, False, errors=errors, exit_code=exit_code)
    _print_errors(errors)
    raise typer.Exit(code=exit_code)


def _emit_json(command: str, ok: bool, *, errors: list[ScheduleError], exit_code: int, **extra: Any) -> NoReturn:
    payload = {
        "tool": "sequencing",
        "command": command,
        "ok": ok,
        "error_count": len(errors),
        "errors": [_to_item(e) for e in sort_errors(errors)],
    }
    payload.update(extra)
    typer.echo(json.dumps(payload, indent=2, sort_keys=True))
    raise typer.Exit(code=exit_code)


def _to_item(e: ScheduleError) -> dict:
    item = error_to_dict(e)
    item["source"] = "load" if isinstance(e, ScheduleLoadError) else "config" if isinstance(e, ScheduleConfigError) else "validate"
    return item


def _check_format(format: str) -> None:
    if format not in ("text", "json"):
        err = ScheduleInputError(
            code="E_UNKNOWN_FORMAT",
            message=f"unknown format: {format} (choose one of: text, json)",
            path="format",
        )
        _print_errors([err])
        raise typer.Exit(code=2)


def _parse_date_option(command: str, format: str, value: Optional[str], option: str):
    if value is None:
        return None
    parsed = parse_date(value)
    if parsed is None:
        _fail(
            command,
            format,
            [ScheduleInputError(code="E_INVALID_DATE", message=f"{option} must be an ISO date (YYYY-MM-DD), got {value!r}", path=option.lstrip("-"))],
            2,
        )
    return parsed


def _config_error(kind: str, option: str, e: Exception, file: Optional[str]) -> tuple[ScheduleError, int]:
    if isinstance(e, FileNotFoundError):
        return (
            ScheduleLoadError(
                code=f"E_{kind}_FILE_NOT_FOUND",
                message=f"{kind.lower()} file not found: {file}",
                path=option,
            ),
            1,
        )
    return (
        ScheduleInputError(code=f"E_{kind}_FILE_INVALID", message=str(e), file=file, path=option),
        2,
    )


def _build_schedule(
    command: str,
    format: str,
    path: str,
    start: Optional[str],
    calendar_file: Optional[str],
    rules_file: Optional[str],
    drop_unmapped: bool,
) -> Schedule:
    start_date = _parse_date_option(command, format, start, "--start")

    try:
        calendar = load_and_merge_calendar(calendar_file)
    except (FileNotFoundError, CalendarConfigError, yaml.YAMLError) as e:
        err, code = _config_error("CALENDAR", "calendar_file", e, calendar_file)
        _fail(command, format, [err], code)

    try:
        rules = load_and_merge_rules(rules_file)
    except (FileNotFoundError, RulesConfigError, yaml.YAMLError) as e:
        err, code = _config_error("RULES", "rules_file", e, rules_file)
        _fail(command, format, [err], code)

    try:
        doc = load_work_items(path)
    except ScheduleLoadError as e:
        _fail(command, format, [e], 1)

    work_item_set, errors = validate_work_items(doc)
    if errors or work_item_set is None:
        _fail(command, format, list(errors), 2)

    if start_date is None and work_item_set.start_date is None:
        _fail(
            command,
            format,
            [
                ScheduleInputError(
                    code="E_MISSING_START_DATE",
                    message="no start_date in the input; pass --start",
                    file=doc.get("__file__"),
                    path="start_date",
                )
            ],
            2,
        )

    try:
        return create_schedule_from_set(
            work_item_set,
            start_date,
            calendar=calendar,
            rules=rules,
            drop_unmapped=drop_unmapped,
        )
    except ScheduleConfigError as e:
        _fail(command, format, [e], 2)


def _finish(command: str, format: str, result: Schedule, out: Optional[str], text: str, **extra: Any) -> None:
    if out:
        dump_document(schedule_to_dict(result), out)
    if format == "json":
        _emit_json(command, True, errors=[], exit_code=0, diagnostics=[error_to_dict(d) for d in result.diagnostics], **extra)
    typer.echo(text)
    if out:
        typer.echo(f"OK: wrote schedule to {out}")


@app.command("schedule")
def schedule_cmd(
    path: str = typer.Argument(..., help="Path to a work-items file (.yaml/.yml/.json)"),
    start: Optional[str] = typer.Option(None, "--start", help="Project start date (YYYY-MM-DD); overrides the file"),
    calendar_file: Optional[str] = typer.Option(None, "--calendar", help="Optional YAML file overriding the resource calendar"),
    rules_file: Optional[str] = typer.Option(None, "--rules", help="Optional YAML file adding/replacing dependency rules"),
    drop_unmapped: bool = typer.Option(False, "--drop-unmapped", help="Skip work items whose phase is missing instead of failing"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
    out: Optional[str] = typer.Option(None, "--out", help="Write the full schedule to this file (.json or YAML)"),
) -> None:
    """Build a critical-path schedule from estimator work items."""
    _check_format(format)
    schedule = _build_schedule("schedule", format, path, start, calendar_file, rules_file, drop_unmapped)
    _finish("schedule", format, schedule, out, summarize_schedule(schedule), schedule=schedule_to_dict(schedule))


@app.command("analyze")
def analyze_cmd(
    path: str = typer.Argument(..., help="Path to a work-items file (.yaml/.yml/.json)"),
    start: Optional[str] = typer.Option(None, "--start", help="Project start date (YYYY-MM-DD); overrides the file"),
    calendar_file: Optional[str] = typer.Option(None, "--calendar", help="Optional YAML file overriding the resource calendar"),
    rules_file: Optional[str] = typer.Option(None, "--rules", help="Optional YAML file adding/replacing dependency rules"),
    drop_unmapped: bool = typer.Option(False, "--drop-unmapped", help="Skip work items whose phase is missing instead of failing"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Analyze a schedule: bottlenecks, resource use, risk and what-if scenarios."""
    _check_format(format)
    schedule = _build_schedule("analyze", format, path, start, calendar_file, rules_file, drop_unmapped)
    analysis = analyze_schedule(schedule)
    _finish("analyze", format, schedule, None, summarize_analysis(analysis), analysis=analysis_to_dict(analysis))


@app.command("optimize")
def optimize_cmd(
    path: str = typer.Argument(..., help="Path to a work-items file (.yaml/.yml/.json)"),
    objectives_file: Optional[str] = typer.Option(None, "--objectives", help="Optional YAML file overriding optimization objectives"),
    start: Optional[str] = typer.Option(None, "--start", help="Project start date (YYYY-MM-DD); overrides the file"),
    calendar_file: Optional[str] = typer.Option(None, "--calendar", help="Optional YAML file overriding the resource calendar"),
    rules_file: Optional[str] = typer.Option(None, "--rules", help="Optional YAML file adding/replacing dependency rules"),
    drop_unmapped: bool = typer.Option(False, "--drop-unmapped", help="Skip work items whose phase is missing instead of failing"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
    out: Optional[str] = typer.Option(None, "--out", help="Write the optimized schedule to this file (.json or YAML)"),
) -> None:
    """Level resources, apply overtime and buffers, then re-run CPM."""
    _check_format(format)
    try:
        objectives = load_objectives(objectives_file)
    except (FileNotFoundError, ObjectivesConfigError, yaml.YAMLError) as e:
        err, code = _config_error("OBJECTIVES", "objectives_file", e, objectives_file)
        _fail("optimize", format, [err], code)

    schedule = _build_schedule("optimize", format, path, start, calendar_file, rules_file, drop_unmapped)
    optimized, report = optimize_schedule_with_report(schedule, objectives)
    text = "\n".join(
        [
            summarize_schedule(optimized),
            f"Baseline finish: {schedule.forecast_finish.isoformat()}",
            f"Leveling shifts: {len(report.leveling_shifts)}",
            f"Overtime savings: {sum(report.overtime_savings.values())} days",
        ]
    )
    _finish(
        "optimize",
        format,
        optimized,
        out,
        text,
        schedule=schedule_to_dict(optimized),
        baseline_finish=schedule.forecast_finish.isoformat(),
        buffer_days=report.buffer_days,
        crash_candidates=report.crash_candidates,
    )


@app.command("progress")
def progress_cmd(
    path: str = typer.Argument(..., help="Path to a work-items file (.yaml/.yml/.json)"),
    updates_file: str = typer.Option(..., "--updates", help="YAML/JSON list of progress updates"),
    as_of: Optional[str] = typer.Option(None, "--as-of", help="Status date (YYYY-MM-DD); defaults to today"),
    start: Optional[str] = typer.Option(None, "--start", help="Project start date (YYYY-MM-DD); overrides the file"),
    calendar_file: Optional[str] = typer.Option(None, "--calendar", help="Optional YAML file overriding the resource calendar"),
    rules_file: Optional[str] = typer.Option(None, "--rules", help="Optional YAML file adding/replacing dependency rules"),
    drop_unmapped: bool = typer.Option(False, "--drop-unmapped", help="Skip work items whose phase is missing instead of failing"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
    out: Optional[str] = typer.Option(None, "--out", help="Write the updated schedule to this file (.json or YAML)"),
) -> None:
    """Apply progress updates and re-forecast the finish date."""
    _check_format(format)
    status_date = _parse_date_option("progress", format, as_of, "--as-of")

    try:
        raw_updates = load_progress_updates(updates_file)
    except ScheduleLoadError as e:
        _fail("progress", format, [e], 1)
    updates, errors = parse_progress_updates(raw_updates, updates_file)
    if errors:
        _fail("progress", format, list(errors), 2)

    schedule = _build_schedule("progress", format, path, start, calendar_file, rules_file, drop_unmapped)
    baseline_finish = schedule.forecast_finish
    update_progress(schedule, updates, as_of=status_date)
    text = "\n".join(
        [
            summarize_schedule(schedule),
            f"Baseline finish: {baseline_finish.isoformat()}  Forecast finish: {schedule.forecast_finish.isoformat()}",
        ]
    )
    _finish(
        "progress",
        format,
        schedule,
        out,
        text,
        schedule=schedule_to_dict(schedule),
        baseline_finish=baseline_finish.isoformat(),
        forecast_finish=schedule.forecast_finish.isoformat(),
    )


@app.command("calendar")
def calendar_cmd(
    calendar_file: Optional[str] = typer.Option(None, "--calendar", help="Optional YAML file overriding the resource calendar"),
) -> None:
    """Print the effective resource calendar."""
    try:
        calendar = load_and_merge_calendar(calendar_file)
    except (FileNotFoundError, CalendarConfigError, yaml.YAMLError) as e:
        err, code = _config_error("CALENDAR", "calendar_file", e, calendar_file)
        _print_errors([err])
        raise typer.Exit(code=code)

    typer.echo("Calendar:")
    for line in describe_calendar(calendar):
        typer.echo(f"- {line}")


@app.command("rules")
def rules_cmd(
    rules_file: Optional[str] = typer.Option(None, "--rules", help="Optional YAML file adding/replacing dependency rules"),
) -> None:
    """List the effective dependency rules, in the order they are applied."""
    try:
        rules = load_and_merge_rules(rules_file)
    except (FileNotFoundError, RulesConfigError, yaml.YAMLError) as e:
        err, code = _config_error("RULES", "rules_file", e, rules_file)
        _print_errors([err])
        raise typer.Exit(code=code)

    typer.echo("Rules:")
    for rule in rules:
        typer.echo(f"- {rule.describe()}")


def _print_errors(errors: list[ScheduleError]) -> None:
    for e in sort_errors(errors):
        typer.echo(str(e), err=True)


def main() -> None:
    app(prog_name="sequencing")


cli = typer.main.get_command(app)

if __name__ == "__main__":
    main()
