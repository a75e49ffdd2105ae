"""Status tracking for historical batch evaluation jobs."""

from __future__ import annotations

from enum import Enum
from typing import Sequence


class BatchActionStatus(str, Enum):
    QUEUED = "QUEUED"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    PARTIAL = "PARTIAL"


TERMINAL_STATES = frozenset({BatchActionStatus.COMPLETED, BatchActionStatus.FAILED, BatchActionStatus.PARTIAL})

# Processing -> Processing covers a duplicate trigger restarting the run from zero.
_ALLOWED_TRANSITIONS: dict[BatchActionStatus, frozenset[BatchActionStatus]] = {
    BatchActionStatus.QUEUED: frozenset({BatchActionStatus.PROCESSING}),
    BatchActionStatus.PROCESSING: frozenset({BatchActionStatus.PROCESSING} | TERMINAL_STATES),
    BatchActionStatus.COMPLETED: frozenset(),
    BatchActionStatus.FAILED: frozenset(),
    BatchActionStatus.PARTIAL: frozenset(),
}


class InvalidStatusTransition(ValueError):
    """Raised when a job would move backwards through its lifecycle."""


def is_terminal(status: BatchActionStatus) -> bool:
    return status in TERMINAL_STATES


def ensure_transition(current: BatchActionStatus, new: BatchActionStatus) -> None:
    if new not in _ALLOWED_TRANSITIONS[current]:
        raise InvalidStatusTransition(f"Cannot move batch job from {current.value} to {new.value}.")


def final_status(*, processed_count: int, failed_count: int) -> BatchActionStatus:
    """Terminal status for a finished run.

    Completed when nothing failed, Failed when nothing succeeded, Partial for a mix.
    """
    if failed_count == 0:
        return BatchActionStatus.COMPLETED
    if processed_count == 0:
        return BatchActionStatus.FAILED
    return BatchActionStatus.PARTIAL


def format_error_line(row_number: int, message: str) -> str:
    return f"Row {row_number}: {message}"


def build_error_summary(
    *,
    failed_count: int,
    evaluator_names: Sequence[str],
    error_lines: Sequence[str],
) -> str | None:
    if failed_count == 0:
        return None
    header = (
        f"{failed_count} observations failed while scheduling {len(evaluator_names)} evaluator(s): "
        f"{', '.join(evaluator_names)}."
    )
    return "\n".join([header, *error_lines])


__all__ = [
    "BatchActionStatus",
    "InvalidStatusTransition",
    "TERMINAL_STATES",
    "build_error_summary",
    "ensure_transition",
    "final_status",
    "format_error_line",
    "is_terminal",
]
