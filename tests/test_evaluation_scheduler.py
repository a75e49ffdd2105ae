import asyncio
import json
from pathlib import Path

import pytest

from histeval.evaluation.scheduler import JsonlEvaluationScheduler
from histeval.evaluation.types import EvaluatorConfig, ObservationForEval


def _configs() -> list[EvaluatorConfig]:
    return [
        EvaluatorConfig(id="c1", project_id="p", eval_template_id="t1", score_name="quality", sampling=0.0),
        EvaluatorConfig(id="c2", project_id="p", eval_template_id="t2", score_name="tone", sampling=1.0),
    ]


def _observation() -> ObservationForEval:
    return ObservationForEval(span_id="obs-1", trace_id="trace-1", project_id="p")


@pytest.mark.asyncio
async def test_ignoring_targeting_schedules_every_evaluator(tmp_path: Path) -> None:
    path = tmp_path / "out" / "scheduled.jsonl"
    scheduler = JsonlEvaluationScheduler(path, rng=lambda: 0.5)
    scheduler.reset()

    await scheduler.schedule(_observation(), _configs(), ignore_config_targeting=True)

    lines = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert [line["evaluator_config_id"] for line in lines] == ["c1", "c2"]
    assert lines[0]["observation"]["span_id"] == "obs-1"
    assert "metadata" not in lines[0]["observation"]
    assert scheduler.scheduled == 2


@pytest.mark.asyncio
async def test_live_targeting_applies_sampling(tmp_path: Path) -> None:
    path = tmp_path / "scheduled.jsonl"
    scheduler = JsonlEvaluationScheduler(path, rng=lambda: 0.5)
    scheduler.reset()

    await scheduler.schedule(_observation(), _configs(), ignore_config_targeting=False)

    lines = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert [line["evaluator_config_id"] for line in lines] == ["c2"]
    assert scheduler.skipped == 1


@pytest.mark.asyncio
async def test_concurrent_schedules_write_whole_lines(tmp_path: Path) -> None:
    path = tmp_path / "scheduled.jsonl"
    scheduler = JsonlEvaluationScheduler(path)
    scheduler.reset()
    observations = [
        ObservationForEval(span_id=f"obs-{index}", trace_id="trace-1", project_id="p") for index in range(20)
    ]

    await asyncio.gather(
        *(scheduler.schedule(observation, _configs(), ignore_config_targeting=True) for observation in observations)
    )

    lines = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert len(lines) == 40
    assert {line["observation"]["span_id"] for line in lines} == {f"obs-{index}" for index in range(20)}
