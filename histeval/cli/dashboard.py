"""Rich rendering of batch job records."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable

from rich.console import Console
from rich.table import Table
from rich.text import Text

from histeval.batch.schemas import BatchJob
from histeval.batch.state import BatchActionStatus

STATUS_STYLES: dict[BatchActionStatus, str] = {
    BatchActionStatus.QUEUED: "dim",
    BatchActionStatus.PROCESSING: "yellow",
    BatchActionStatus.COMPLETED: "green",
    BatchActionStatus.PARTIAL: "bold yellow",
    BatchActionStatus.FAILED: "bold red",
}


def _format_elapsed(started_at: datetime, finished_at: datetime | None) -> str:
    end = finished_at or datetime.now(timezone.utc)
    total_seconds = max(0, int((end - started_at).total_seconds()))
    minutes, seconds = divmod(total_seconds, 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h{minutes:02d}m"
    if minutes:
        return f"{minutes}m{seconds:02d}s"
    return f"{seconds}s"


def build_table(jobs: Iterable[BatchJob], *, caption: str | None = None) -> Table:
    table = Table(title=Text("Batch evaluations", style="bold cyan"), caption=caption, expand=True)
    table.add_column("Job", no_wrap=True, style="bold")
    table.add_column("Project", no_wrap=True, style="dim")
    table.add_column("Status", no_wrap=True)
    table.add_column("Total", justify="right")
    table.add_column("Processed", justify="right", style="green")
    table.add_column("Failed", justify="right", style="red")
    table.add_column("Elapsed", no_wrap=True, style="dim")
    table.add_column("Evaluators")
    for job in jobs:
        table.add_row(
            Text(job.id),
            Text(job.project_id, style="dim"),
            Text(job.status.value, style=STATUS_STYLES.get(job.status, "")),
            str(job.total_count),
            str(job.processed_count),
            str(job.failed_count),
            _format_elapsed(job.created_at, job.finished_at),
            ", ".join(job.config.evaluator_names),
        )
    return table


def print_job(job: BatchJob, *, console: Console | None = None) -> None:
    """Print the status table and, when present, the failure log."""
    out = console or Console(highlight=False)
    out.print(build_table([job]))
    if job.log:
        out.print(Text(job.log, style="red"))


__all__ = ["STATUS_STYLES", "build_table", "print_job"]
