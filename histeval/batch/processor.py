"""Streaming batch processor for historical observation evaluation."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterable, Sequence

from histeval.batch.normalize import EventsTableNormalizer, RecordNormalizer
from histeval.batch.schemas import RunEvaluationConfig
from histeval.batch.state import BatchActionStatus, build_error_summary, final_status, format_error_line
from histeval.batch.stores import ExceptionTracker, JobStore, LoggingExceptionTracker
from histeval.config import WorkerSettings
from histeval.evaluation.scheduler import EvaluationScheduler
from histeval.evaluation.types import EvaluatorConfig

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _error_message(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


@dataclass
class BatchProgress:
    total_count: int = 0
    processed_count: int = 0
    failed_count: int = 0
    error_lines: list[str] = field(default_factory=list)

    def counters(self) -> dict[str, int]:
        return {
            "total_count": self.total_count,
            "processed_count": self.processed_count,
            "failed_count": self.failed_count,
        }


class BatchStreamProcessor:
    """Drive normalization and evaluation scheduling over a lazy row stream.

    Rows are buffered into batches of ``settings.batch_size``. Each batch fans
    out under a semaphore of ``settings.concurrency_limit`` and fully settles
    before the next one starts; counters are persisted once per batch. A
    failing row is counted and reported but never stops its siblings or the
    stream.
    """

    def __init__(
        self,
        job_store: JobStore,
        scheduler: EvaluationScheduler,
        *,
        exception_tracker: ExceptionTracker | None = None,
        settings: WorkerSettings | None = None,
    ) -> None:
        self._job_store = job_store
        self._scheduler = scheduler
        self._exception_tracker = exception_tracker or LoggingExceptionTracker()
        self._settings = settings or WorkerSettings()

    async def run(
        self,
        *,
        project_id: str,
        batch_action_id: str,
        config: RunEvaluationConfig,
        evaluators: Sequence[EvaluatorConfig],
        observation_stream: AsyncIterable[Any],
        normalizer: RecordNormalizer | None = None,
    ) -> None:
        row_normalizer = normalizer or EventsTableNormalizer()
        semaphore = asyncio.Semaphore(self._settings.concurrency_limit)
        progress = BatchProgress()

        # Restarting always begins from a clean slate.
        await self._job_store.update(
            batch_action_id,
            {
                "status": BatchActionStatus.PROCESSING,
                "total_count": 0,
                "processed_count": 0,
                "failed_count": 0,
                "log": None,
            },
        )
        logger.info(
            "Starting observation-run-evaluation action %s for project %s with %d evaluator(s).",
            batch_action_id,
            project_id,
            len(evaluators),
        )

        async def process_record(record: Any) -> None:
            async with semaphore:
                observation = row_normalizer.normalize(record, project_id)
                await self._scheduler.schedule(observation, evaluators, ignore_config_targeting=True)

        async def process_batch(batch: list[Any]) -> None:
            offset = progress.total_count - len(batch)
            results = await asyncio.gather(*(process_record(record) for record in batch), return_exceptions=True)
            for index, result in enumerate(results):
                if not isinstance(result, BaseException):
                    progress.processed_count += 1
                    continue
                if not isinstance(result, Exception):
                    raise result
                progress.failed_count += 1
                row_number = offset + index + 1
                self._exception_tracker.capture(result, batch_action_id=batch_action_id, row=row_number)
                if len(progress.error_lines) < self._settings.max_error_log_lines:
                    progress.error_lines.append(format_error_line(row_number, _error_message(result)))
            await self._job_store.update(batch_action_id, progress.counters())
            logger.debug(
                "Batch action %s progress: total=%d processed=%d failed=%d",
                batch_action_id,
                progress.total_count,
                progress.processed_count,
                progress.failed_count,
            )

        buffer: list[Any] = []
        async for record in observation_stream:
            buffer.append(record)
            progress.total_count += 1
            if len(buffer) >= self._settings.batch_size:
                await process_batch(buffer)
                buffer = []

        if buffer:
            await process_batch(buffer)

        status = final_status(processed_count=progress.processed_count, failed_count=progress.failed_count)
        summary = build_error_summary(
            failed_count=progress.failed_count,
            evaluator_names=config.evaluator_names,
            error_lines=progress.error_lines,
        )
        await self._job_store.update(
            batch_action_id,
            {
                "status": status,
                "finished_at": _utcnow(),
                **progress.counters(),
                "log": summary,
            },
        )
        logger.info(
            "Completed observation-run-evaluation action %s: status=%s total=%d processed=%d failed=%d evaluators=%s",
            batch_action_id,
            status.value,
            progress.total_count,
            progress.processed_count,
            progress.failed_count,
            config.evaluator_ids,
        )


async def process_batched_observation_eval(
    *,
    project_id: str,
    batch_action_id: str,
    config: RunEvaluationConfig,
    evaluators: Sequence[EvaluatorConfig],
    observation_stream: AsyncIterable[Any],
    job_store: JobStore,
    scheduler: EvaluationScheduler,
    exception_tracker: ExceptionTracker | None = None,
    normalizer: RecordNormalizer | None = None,
    settings: WorkerSettings | None = None,
) -> None:
    """Run one historical evaluation job; the outcome is only visible on the job record."""
    processor = BatchStreamProcessor(
        job_store,
        scheduler,
        exception_tracker=exception_tracker,
        settings=settings,
    )
    await processor.run(
        project_id=project_id,
        batch_action_id=batch_action_id,
        config=config,
        evaluators=evaluators,
        observation_stream=observation_stream,
        normalizer=normalizer,
    )


__all__ = ["BatchProgress", "BatchStreamProcessor", "process_batched_observation_eval"]
