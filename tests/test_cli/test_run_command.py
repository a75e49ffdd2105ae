from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from histeval.cli import main


def _write_inputs(tmp_path: Path, *, evaluator_ids: tuple[str, ...] = ("config-1",)) -> dict[str, Path]:
    job_path = tmp_path / "job.yaml"
    evaluators = "\n".join(
        f"    - evaluatorConfigId: {evaluator_id}\n      evaluatorName: name-{evaluator_id}"
        for evaluator_id in evaluator_ids
    )
    job_path.write_text(
        f"""
project_id: project-1
batch_action_id: batch-42
query:
  searchQuery: refund
config:
  evaluators:
{evaluators}
""".lstrip(),
        encoding="utf-8",
    )
    configs_path = tmp_path / "evaluators.yaml"
    configs_path.write_text(
        """
configs:
  - id: config-1
    project_id: project-1
    eval_template_id: template-1
    score_name: quality
    sampling: 0.0
""".lstrip(),
        encoding="utf-8",
    )
    rows_path = tmp_path / "rows.jsonl"
    rows = [
        {"id": "obs-1", "trace_id": "trace-1", "usage_details": {"input": "3"}},
        {"id": "obs-2", "trace_id": "trace-2", "total_cost": 0.5},
        {"id": "obs-3"},
    ]
    rows_path.write_text(
        "\n".join(json.dumps(row) for row in rows) + "\n{not json\n",
        encoding="utf-8",
    )
    return {"job": job_path, "configs": configs_path, "rows": rows_path}


def test_run_schedules_rows_and_writes_job_record(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    paths = _write_inputs(tmp_path)
    output = tmp_path / "scheduled.jsonl"
    record = tmp_path / "record.json"

    exit_code = main(
        [
            "run",
            "--job",
            str(paths["job"]),
            "--configs",
            str(paths["configs"]),
            "--rows",
            str(paths["rows"]),
            "--output",
            str(output),
            "--job-record",
            str(record),
            "--batch-size",
            "2",
        ]
    )

    assert exit_code == 0
    scheduled = [json.loads(line) for line in output.read_text(encoding="utf-8").splitlines()]
    # sampling=0.0 would drop everything on the live path; batch runs bypass it.
    assert [entry["observation"]["span_id"] for entry in scheduled] == ["obs-1", "obs-2"]
    assert scheduled[0]["observation"]["usage_details"] == {"input": 3}
    assert scheduled[1]["observation"]["cost_details"] == {"total": 0.5}

    payload = json.loads(record.read_text(encoding="utf-8"))
    assert payload["id"] == "batch-42"
    assert payload["status"] == "PARTIAL"
    assert payload["total_count"] == 4
    assert payload["processed_count"] == 2
    assert payload["failed_count"] == 2
    assert payload["config"]["evaluators"][0]["evaluatorConfigId"] == "config-1"
    assert "Row 3: Events table row is missing required identifiers" in payload["log"]
    assert "Row 4: Invalid events table row" in payload["log"]


def test_run_reports_invalid_evaluators(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    paths = _write_inputs(tmp_path, evaluator_ids=("config-1", "config-missing"))

    exit_code = main(
        [
            "run",
            "--job",
            str(paths["job"]),
            "--configs",
            str(paths["configs"]),
            "--rows",
            str(paths["rows"]),
            "--output",
            str(tmp_path / "scheduled.jsonl"),
        ]
    )

    assert exit_code == 2
    assert not (tmp_path / "scheduled.jsonl").exists()


def test_rejected_run_keeps_previous_output(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    paths = _write_inputs(tmp_path, evaluator_ids=("config-missing",))
    output = tmp_path / "scheduled.jsonl"
    output.write_text('{"evaluator_config_id": "config-1"}\n', encoding="utf-8")

    exit_code = main(
        [
            "run",
            "--job",
            str(paths["job"]),
            "--configs",
            str(paths["configs"]),
            "--rows",
            str(paths["rows"]),
            "--output",
            str(output),
        ]
    )

    assert exit_code == 2
    assert output.read_text(encoding="utf-8") == '{"evaluator_config_id": "config-1"}\n'


def test_run_rejects_unknown_log_level(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    paths = _write_inputs(tmp_path)

    with pytest.raises(SystemExit) as excinfo:
        main(
            [
                "run",
                "--job",
                str(paths["job"]),
                "--configs",
                str(paths["configs"]),
                "--rows",
                str(paths["rows"]),
                "--log-level",
                "LOUD",
            ]
        )

    assert excinfo.value.code == 2


def test_run_reads_settings_from_env_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(os, "environ", {k: v for k, v in os.environ.items() if not k.startswith("HISTEVAL_")})
    paths = _write_inputs(tmp_path)
    env_file = tmp_path / "worker.env"
    env_file.write_text("HISTEVAL_MAX_ERROR_LOG_LINES=1\n", encoding="utf-8")
    record = tmp_path / "record.json"

    exit_code = main(
        [
            "run",
            "--job",
            str(paths["job"]),
            "--configs",
            str(paths["configs"]),
            "--rows",
            str(paths["rows"]),
            "--output",
            str(tmp_path / "scheduled.jsonl"),
            "--job-record",
            str(record),
            "--env-file",
            str(env_file),
        ]
    )

    assert exit_code == 0
    log_lines = json.loads(record.read_text(encoding="utf-8"))["log"].splitlines()
    assert log_lines[0].startswith("2 observations failed")
    assert len(log_lines) == 2


def test_run_rejects_missing_job_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    with pytest.raises(SystemExit) as excinfo:
        main(["run", "--job", "nope.yaml", "--configs", "nope.yaml", "--rows", "rows.jsonl"])

    assert excinfo.value.code == 2


def test_status_prints_saved_record(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("COLUMNS", "200")
    paths = _write_inputs(tmp_path)
    record = tmp_path / "record.json"
    main(
        [
            "run",
            "--job",
            str(paths["job"]),
            "--configs",
            str(paths["configs"]),
            "--rows",
            str(paths["rows"]),
            "--output",
            str(tmp_path / "scheduled.jsonl"),
            "--job-record",
            str(record),
        ]
    )
    capsys.readouterr()

    exit_code = main(["status", str(record)])

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "batch-42" in out
    assert "PARTIAL" in out


def test_no_arguments_prints_help(capsys: pytest.CaptureFixture[str]) -> None:
    assert main([]) == 0
    assert "usage: histeval" in capsys.readouterr().out
