"""Job and evaluator-config files for running batch evaluations locally."""

from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path
from typing import Any, AsyncIterator

from pydantic import BaseModel, Field, ValidationError

from histeval.batch.schemas import BatchActionQuery, BatchJob, RunEvaluationConfig
from histeval.config import load_mapping
from histeval.evaluation.types import EvaluatorConfig

logger = logging.getLogger(__name__)


class JobFile(BaseModel):
    """Schema for a batch evaluation job file."""

    project_id: str = Field(..., min_length=1)
    batch_action_id: str | None = None
    user_id: str | None = None
    query: BatchActionQuery = Field(default_factory=BatchActionQuery)
    config: RunEvaluationConfig

    def to_job(self) -> BatchJob:
        return BatchJob(
            id=self.batch_action_id or uuid.uuid4().hex,
            project_id=self.project_id,
            user_id=self.user_id,
            query=self.query,
            config=self.config,
        )


class EvaluatorConfigFile(BaseModel):
    configs: list[EvaluatorConfig] = Field(default_factory=list)


def load_job_file(path: Path) -> JobFile:
    payload = load_mapping(path)
    try:
        return JobFile.model_validate(payload)
    except ValidationError as exc:
        raise ValueError(f"Invalid job file: {path}\n{exc}") from exc


def load_evaluator_configs(path: Path) -> list[EvaluatorConfig]:
    payload = load_mapping(path)
    try:
        return EvaluatorConfigFile.model_validate(payload).configs
    except ValidationError as exc:
        raise ValueError(f"Invalid evaluator config file: {path}\n{exc}") from exc


async def stream_jsonl_rows(path: Path) -> AsyncIterator[Any]:
    """Yield decoded rows one at a time; undecodable lines are yielded as raw text."""
    # Blocking line reads are short; the event loop regains control at each yield.
    with path.open("r", encoding="utf-8") as handle:
        for line_number, raw_line in enumerate(handle, start=1):
            line = raw_line.strip()
            if not line:
                continue
            try:
                yield json.loads(line)
            except json.JSONDecodeError as exc:
                logger.warning("Undecodable JSON at %s:%d: %s", path, line_number, exc.msg)
                yield line


def write_job_record(path: Path, job: BatchJob) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(job.model_dump_json(indent=2, by_alias=True), encoding="utf-8")


__all__ = [
    "EvaluatorConfigFile",
    "JobFile",
    "load_evaluator_configs",
    "load_job_file",
    "stream_jsonl_rows",
    "write_job_record",
]
