"""Command line entry point for running historical batch evaluations."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Sequence

from dotenv import load_dotenv
from rich.console import Console

from histeval.batch.cache import InMemoryNegativeConfigCache
from histeval.batch.normalize import NORMALIZERS, get_normalizer
from histeval.batch.processor import BatchStreamProcessor
from histeval.batch.resolver import EvaluatorConfigResolver, EvaluatorValidationError
from histeval.batch.schemas import BatchJob
from histeval.batch.state import BatchActionStatus
from histeval.batch.stores import InMemoryEvaluatorConfigStore, InMemoryJobStore
from histeval.cli.dashboard import print_job
from histeval.cli.jobs import load_evaluator_configs, load_job_file, stream_jsonl_rows, write_job_record
from histeval.config import ConfigFormatError, settings_from_env
from histeval.evaluation.scheduler import JsonlEvaluationScheduler
from histeval.utils.logging import ensure_root_logging

logger = logging.getLogger(__name__)

RUN_COMMAND = "run"
STATUS_COMMAND = "status"
EXIT_VALIDATION_ERROR = 2


def build_run_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="histeval run",
        description="Schedule evaluators against an exported set of historical observations.",
    )
    parser.add_argument("--job", required=True, type=Path, help="Job file (YAML/JSON) with project_id and evaluators.")
    parser.add_argument("--rows", required=True, type=Path, help="JSONL export of observation rows.")
    parser.add_argument(
        "--configs",
        required=True,
        type=Path,
        help="Evaluator config file (YAML/JSON) with a top-level 'configs' list.",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("scheduled_evaluations.jsonl"),
        help="Where scheduled evaluations are written (default: scheduled_evaluations.jsonl).",
    )
    parser.add_argument("--job-record", type=Path, default=None, help="Write the final job record as JSON.")
    parser.add_argument(
        "--source",
        choices=sorted(NORMALIZERS),
        default="events",
        help="Shape of the exported rows (default: events).",
    )
    parser.add_argument("--env-file", type=Path, default=None, help="Dotenv file with HISTEVAL_* settings.")
    parser.add_argument("--batch-size", type=int, default=None, help="Rows per processing batch.")
    parser.add_argument("--concurrency", type=int, default=None, help="Maximum in-flight record evaluations.")
    parser.add_argument("--log-level", default=None, help="Logging level (default: INFO).")
    return parser


def build_status_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="histeval status", description="Show a saved batch job record.")
    parser.add_argument("job_record", type=Path, help="Job record JSON written by 'histeval run --job-record'.")
    return parser


def _print_general_help() -> None:
    print("usage: histeval {run,status} [options]")
    print()
    print("  run     Schedule evaluators against exported observation rows.")
    print("  status  Show a saved batch job record.")


def main(argv: Sequence[str] | None = None) -> int:
    args_list = list(argv) if argv is not None else sys.argv[1:]
    if not args_list or args_list[0] in {"-h", "--help"}:
        _print_general_help()
        return 0
    if args_list[0] == RUN_COMMAND:
        return _run_mode(args_list[1:])
    if args_list[0] == STATUS_COMMAND:
        return _status_mode(args_list[1:])
    _print_general_help()
    return EXIT_VALIDATION_ERROR


def _run_mode(argv: Sequence[str]) -> int:
    parser = build_run_parser()
    args = parser.parse_args(argv)

    env_file = args.env_file or Path(".env")
    if env_file.exists():
        load_dotenv(env_file, override=False)
    try:
        settings = settings_from_env(
            batch_size=args.batch_size,
            concurrency_limit=args.concurrency,
            log_level=args.log_level,
        )
        job_file = load_job_file(args.job)
        configs = load_evaluator_configs(args.configs)
    except (ConfigFormatError, FileNotFoundError, ValueError) as exc:
        parser.error(str(exc))
    if not args.rows.exists():
        parser.error(f"Rows file not found: {args.rows}")
    ensure_root_logging(settings.log_level)

    job = job_file.to_job()
    job_store = InMemoryJobStore([job])
    resolver = EvaluatorConfigResolver(
        InMemoryEvaluatorConfigStore(configs),
        InMemoryNegativeConfigCache(ttl_s=settings.negative_cache_ttl_s),
    )
    scheduler = JsonlEvaluationScheduler(args.output)
    processor = BatchStreamProcessor(job_store, scheduler, settings=settings)

    async def _execute() -> None:
        evaluators = await resolver.fetch_and_validate(job.project_id, job.config.evaluator_ids)
        # Earlier output survives a rejected run.
        scheduler.reset()
        await processor.run(
            project_id=job.project_id,
            batch_action_id=job.id,
            config=job.config,
            evaluators=evaluators,
            observation_stream=stream_jsonl_rows(args.rows),
            normalizer=get_normalizer(args.source),
        )

    try:
        asyncio.run(_execute())
    except EvaluatorValidationError as exc:
        logger.error("%s", exc)
        return EXIT_VALIDATION_ERROR
    except KeyboardInterrupt:
        logger.warning("Batch evaluation interrupted; job %s left in PROCESSING.", job.id)
        return 1

    final = job_store.get(job.id)
    if args.job_record is not None:
        write_job_record(args.job_record, final)
    print_job(final)
    logger.info("Wrote %d scheduled evaluation(s) to %s.", scheduler.scheduled, args.output)
    return 1 if final.status is BatchActionStatus.FAILED else 0


def _status_mode(argv: Sequence[str]) -> int:
    parser = build_status_parser()
    args = parser.parse_args(argv)
    if not args.job_record.exists():
        parser.error(f"Job record not found: {args.job_record}")
    try:
        job = BatchJob.model_validate(json.loads(args.job_record.read_text(encoding="utf-8")))
    except ValueError as exc:
        parser.error(f"Invalid job record {args.job_record}: {exc}")
    print_job(job, console=Console(highlight=False))
    return 0


__all__ = ["build_run_parser", "build_status_parser", "main"]
