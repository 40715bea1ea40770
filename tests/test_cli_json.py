import json

from typer.testing import CliRunner

from sequencing_engine.cli import app

runner = CliRunner()


def test_schedule_json_success():
    r = runner.invoke(
        app,
        ["schedule", "examples/three-activities.json", "--rules", "examples/rules-chain.yaml", "--format", "json"],
    )
    assert r.exit_code == 0, r.stdout + r.stderr
    payload = json.loads(r.stdout)
    assert payload["tool"] == "sequencing"
    assert payload["command"] == "schedule"
    assert payload["ok"] is True
    assert payload["error_count"] == 0
    assert payload["errors"] == []
    assert payload["diagnostics"] == []
    schedule = payload["schedule"]
    assert schedule["project_id"] == "P-ABC-JSON"
    assert schedule["baseline_finish"] == "2024-01-13"
    assert schedule["critical_path"] == ["activity-1", "activity-2", "activity-3"]
    assert schedule["activities"][2]["early_start"] == "2024-01-11"
    assert schedule["activities"][1]["predecessors"] == [{"activity_id": "activity-1", "relationship": "FS", "lag": 0}]


def test_schedule_json_failure_contains_codes():
    r = runner.invoke(app, ["schedule", "examples/invalid-negative-duration.yaml", "--format", "json"])
    assert r.exit_code == 2
    payload = json.loads(r.stdout)
    assert payload["ok"] is False
    assert payload["error_count"] == 1
    assert payload["errors"][0]["code"] == "E_NEGATIVE_DURATION"
    assert payload["errors"][0]["source"] == "validate"


def test_schedule_json_load_error():
    r = runner.invoke(app, ["schedule", "examples/nope.yaml", "--format", "json"])
    assert r.exit_code == 1
    payload = json.loads(r.stdout)
    assert payload["errors"][0]["code"] == "E_FILE_NOT_FOUND"
    assert payload["errors"][0]["source"] == "load"


def test_schedule_json_cycle_lists_entities():
    r = runner.invoke(
        app,
        ["schedule", "examples/three-activities.yaml", "--rules", "examples/rules-cycle.yaml", "--format", "json"],
    )
    assert r.exit_code == 2
    payload = json.loads(r.stdout)
    err = payload["errors"][0]
    assert err["code"] == "E_DEPENDENCY_CYCLE"
    assert err["source"] == "config"
    assert sorted(err["entities"]) == ["activity-1", "activity-2"]


def test_analyze_json():
    r = runner.invoke(
        app,
        ["--log-level", "ERROR", "analyze", "examples/basic-work-items.yaml", "--format", "json"],
    )
    assert r.exit_code == 0, r.stdout + r.stderr
    payload = json.loads(r.stdout)
    analysis = payload["analysis"]
    assert analysis["project_id"] == "P-GROW-01"
    assert analysis["risk_assessment"]["overall_risk"] == "high"
    assert {b["kind"] for b in analysis["bottlenecks"]} >= {"activity"}
    assert len(analysis["what_if_scenarios"]) == 2


def test_optimize_json():
    r = runner.invoke(
        app,
        ["optimize", "examples/three-activities.yaml", "--rules", "examples/rules-chain.yaml", "--format", "json"],
    )
    assert r.exit_code == 0, r.stdout + r.stderr
    payload = json.loads(r.stdout)
    assert payload["baseline_finish"] == "2024-01-13"
    assert payload["buffer_days"] == 7
    assert payload["schedule"]["forecast_finish"] == "2024-01-20"


def test_progress_json_reports_diagnostics():
    r = runner.invoke(
        app,
        [
            "--log-level",
            "ERROR",
            "progress",
            "examples/three-activities.yaml",
            "--updates",
            "examples/progress-unknown.yaml",
            "--format",
            "json",
        ],
    )
    assert r.exit_code == 0, r.stdout + r.stderr
    payload = json.loads(r.stdout)
    assert payload["ok"] is True
    codes = [d["code"] for d in payload["diagnostics"]]
    assert codes == ["W_UNKNOWN_ACTIVITY", "W_INVALID_COMPLETION"]
    assert payload["diagnostics"][0]["severity"] == "warning"


FLAGGED_CODES = ["W_CONSTRAINT_VIOLATED", "W_CRITICAL_RESOURCE_CONFLICT", "W_ZERO_DURATION"]


def _invoke_json(*args):
    r = runner.invoke(app, ["--log-level", "ERROR", *args, "examples/flagged-work-items.yaml", "--format", "json"])
    assert r.exit_code == 0, r.stdout + r.stderr
    return json.loads(r.stdout)


def test_warnings_do_not_block_schedule_optimize_or_analyze():
    scheduled = _invoke_json("schedule")
    assert sorted(d["code"] for d in scheduled["diagnostics"]) == FLAGGED_CODES

    optimized = _invoke_json("optimize")
    assert optimized["ok"] is True
    assert sorted(d["code"] for d in optimized["diagnostics"]) == FLAGGED_CODES
    assert optimized["baseline_finish"] == "2024-01-06"

    analyzed = _invoke_json("analyze")
    assert len(analyzed["analysis"]["what_if_scenarios"]) == 2
    assert "resource" in {b["kind"] for b in analyzed["analysis"]["bottlenecks"]}
