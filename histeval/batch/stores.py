"""Storage and exception-tracking collaborators for batch evaluation runs."""

from __future__ import annotations

import logging
from typing import Any, Collection, Iterable, Mapping, Protocol

from histeval.batch.schemas import BatchJob
from histeval.batch.state import ensure_transition
from histeval.evaluation.types import EvalTargetObject, EvaluatorConfig, JobConfigStatus

logger = logging.getLogger(__name__)

JOB_UPDATE_FIELDS = frozenset({"status", "total_count", "processed_count", "failed_count", "log", "finished_at"})


class EvaluatorConfigStore(Protocol):
    async def find_configs(
        self,
        project_id: str,
        *,
        ids: Collection[str] | None,
        target_objects: Collection[EvalTargetObject],
        status: JobConfigStatus,
        require_time_scope_new: bool = False,
    ) -> list[EvaluatorConfig]: ...


class JobStore(Protocol):
    async def update(self, job_id: str, fields: Mapping[str, Any]) -> None: ...


class ExceptionTracker(Protocol):
    def capture(self, exc: BaseException, **context: Any) -> None: ...


class LoggingExceptionTracker:
    """Report captured exceptions through the logging system."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logging.getLogger("histeval.exceptions")

    def capture(self, exc: BaseException, **context: Any) -> None:
        details = " ".join(f"{key}={value}" for key, value in sorted(context.items()))
        self._log.error("Captured %s: %s %s", type(exc).__name__, exc, details, exc_info=exc)


class InMemoryEvaluatorConfigStore:
    def __init__(self, configs: Iterable[EvaluatorConfig] = ()) -> None:
        self._configs: dict[str, EvaluatorConfig] = {config.id: config for config in configs}
        self.queries = 0

    def add(self, config: EvaluatorConfig) -> None:
        self._configs[config.id] = config

    async def find_configs(
        self,
        project_id: str,
        *,
        ids: Collection[str] | None,
        target_objects: Collection[EvalTargetObject],
        status: JobConfigStatus,
        require_time_scope_new: bool = False,
    ) -> list[EvaluatorConfig]:
        self.queries += 1
        wanted = set(ids) if ids is not None else None
        allowed_targets = set(target_objects)
        found: list[EvaluatorConfig] = []
        for config in self._configs.values():
            if wanted is not None and config.id not in wanted:
                continue
            if config.project_id != project_id:
                continue
            if config.target_object not in allowed_targets or config.status is not status:
                continue
            if require_time_scope_new and "NEW" not in config.time_scope:
                continue
            found.append(config)
        return found


class InMemoryJobStore:
    """Job records keyed by id; updates are validated against the status lifecycle."""

    def __init__(self, jobs: Iterable[BatchJob] = ()) -> None:
        self._jobs: dict[str, BatchJob] = {job.id: job for job in jobs}
        self.updates: list[tuple[str, dict[str, Any]]] = []

    def add(self, job: BatchJob) -> None:
        self._jobs[job.id] = job

    def get(self, job_id: str) -> BatchJob:
        try:
            return self._jobs[job_id]
        except KeyError:
            raise KeyError(f"Unknown batch job: {job_id}") from None

    async def update(self, job_id: str, fields: Mapping[str, Any]) -> None:
        unknown = set(fields) - JOB_UPDATE_FIELDS
        if unknown:
            raise ValueError(f"Unsupported job fields: {', '.join(sorted(unknown))}")
        current = self.get(job_id)
        payload = current.model_dump()
        payload.update(fields)
        updated = BatchJob.model_validate(payload)
        if "status" in fields:
            ensure_transition(current.status, updated.status)
        self._jobs[job_id] = updated
        self.updates.append((job_id, dict(fields)))


__all__ = [
    "EvaluatorConfigStore",
    "ExceptionTracker",
    "InMemoryEvaluatorConfigStore",
    "InMemoryJobStore",
    "JOB_UPDATE_FIELDS",
    "JobStore",
    "LoggingExceptionTracker",
]
