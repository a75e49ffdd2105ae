"""Pydantic schemas for historical batch evaluation requests and job records."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from histeval.batch.state import BatchActionStatus

SearchType = Literal["id", "content", "input", "output"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EvaluatorSelection(BaseModel):
    """One evaluator picked by the caller for a batch run."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    evaluator_config_id: str = Field(..., alias="evaluatorConfigId")
    evaluator_name: str = Field(..., alias="evaluatorName", min_length=1)


class RunEvaluationConfig(BaseModel):
    """Ordered evaluator selection persisted with the job."""

    evaluators: list[EvaluatorSelection] = Field(..., min_length=1)

    @field_validator("evaluators")
    @classmethod
    def validate_unique_ids(cls, value: list[EvaluatorSelection]) -> list[EvaluatorSelection]:
        seen: set[str] = set()
        duplicates: list[str] = []
        for entry in value:
            if entry.evaluator_config_id in seen and entry.evaluator_config_id not in duplicates:
                duplicates.append(entry.evaluator_config_id)
            seen.add(entry.evaluator_config_id)
        if duplicates:
            raise ValueError(f"Duplicate evaluator config ids: {', '.join(duplicates)}")
        return value

    @property
    def evaluator_ids(self) -> list[str]:
        return [entry.evaluator_config_id for entry in self.evaluators]

    @property
    def evaluator_names(self) -> list[str]:
        return [entry.evaluator_name for entry in self.evaluators]


class FilterCondition(BaseModel):
    """Single filter predicate applied by the query engine."""

    model_config = ConfigDict(populate_by_name=True)

    column: str = Field(..., min_length=1)
    type: str = "string"
    operator: str = "="
    value: Any = None
    key: str | None = None


class BatchActionQuery(BaseModel):
    """Row selection: filter predicates plus optional full-text search."""

    model_config = ConfigDict(populate_by_name=True)

    filter: list[FilterCondition] = Field(default_factory=list)
    search_query: str | None = Field(None, alias="searchQuery")
    search_type: list[SearchType] | None = Field(None, alias="searchType")

    @model_validator(mode="after")
    def default_search_type(self) -> "BatchActionQuery":
        if self.search_query and not self.search_type:
            self.search_type = ["id"]
        return self


class BatchJob(BaseModel):
    """Persisted record of one historical evaluation run."""

    id: str = Field(..., min_length=1)
    project_id: str = Field(..., min_length=1)
    user_id: str | None = None
    query: BatchActionQuery = Field(default_factory=BatchActionQuery)
    config: RunEvaluationConfig
    status: BatchActionStatus = BatchActionStatus.QUEUED
    total_count: int = Field(0, ge=0)
    processed_count: int = Field(0, ge=0)
    failed_count: int = Field(0, ge=0)
    log: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    finished_at: datetime | None = None

    @model_validator(mode="after")
    def validate_counters(self) -> "BatchJob":
        if self.status is not BatchActionStatus.QUEUED and self.processed_count + self.failed_count > self.total_count:
            raise ValueError(
                f"processed_count + failed_count ({self.processed_count} + {self.failed_count}) "
                f"exceeds total_count ({self.total_count})."
            )
        return self


__all__ = [
    "BatchActionQuery",
    "BatchJob",
    "EvaluatorSelection",
    "FilterCondition",
    "RunEvaluationConfig",
    "SearchType",
]
