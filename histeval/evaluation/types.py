"""Evaluator configuration and canonical observation records."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class EvalTargetObject(str, Enum):
    TRACE = "trace"
    DATASET = "dataset"
    EVENT = "event"
    EXPERIMENT = "experiment"


class JobConfigStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class EvaluatorConfig(BaseModel):
    """A stored evaluator: scoring template, target scope and live-traffic targeting."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    project_id: str = Field(..., min_length=1)
    # Live-traffic targeting; ignored by historical batch runs.
    filter: list[dict[str, Any]] = Field(default_factory=list)
    sampling: float = Field(1.0, ge=0.0, le=1.0)
    eval_template_id: str
    score_name: str
    target_object: EvalTargetObject = EvalTargetObject.EVENT
    variable_mapping: list[dict[str, Any]] = Field(default_factory=list)
    status: JobConfigStatus = JobConfigStatus.ACTIVE
    time_scope: list[str] = Field(default_factory=lambda: ["NEW"])


class ObservationForEval(BaseModel):
    """Canonical observation record handed to the evaluation scheduler.

    ``metadata`` is only part of the payload when it was set explicitly; a row
    without metadata yields a record whose ``metadata`` key is absent rather
    than ``null``.
    """

    span_id: str = Field(..., min_length=1)
    trace_id: str = Field(..., min_length=1)
    project_id: str = Field(..., min_length=1)
    parent_span_id: str | None = None
    type: str | None = None
    name: str = ""
    environment: str = "default"
    version: str | None = None
    level: str | None = None
    status_message: str | None = None
    trace_name: str | None = None
    user_id: str | None = None
    session_id: str | None = None
    tags: list[str] = Field(default_factory=list)
    release: str | None = None
    provided_model_name: str | None = None
    model_parameters: Any = None
    prompt_id: str | None = None
    prompt_name: str | None = None
    prompt_version: int | float | str | None = None
    provided_usage_details: dict[str, float | int | None] = Field(default_factory=dict)
    provided_cost_details: dict[str, float | int | None] = Field(default_factory=dict)
    usage_details: dict[str, float | int | None] = Field(default_factory=dict)
    cost_details: dict[str, float | int | None] = Field(default_factory=dict)
    # Not carried by historical exports; tool-dependent variables resolve to empty values.
    tool_definitions: dict[str, Any] = Field(default_factory=dict)
    tool_calls: list[Any] = Field(default_factory=list)
    tool_call_names: list[str] = Field(default_factory=list)
    experiment_id: str | None = None
    experiment_name: str | None = None
    experiment_description: str | None = None
    experiment_dataset_id: str | None = None
    experiment_item_id: str | None = None
    experiment_item_expected_output: Any = None
    experiment_item_root_span_id: str | None = None
    input: Any = None
    output: Any = None
    metadata: dict[str, Any] | None = None

    def to_payload(self) -> dict[str, Any]:
        payload = self.model_dump(mode="json")
        if "metadata" not in self.model_fields_set:
            payload.pop("metadata", None)
        return payload


__all__ = ["EvalTargetObject", "EvaluatorConfig", "JobConfigStatus", "ObservationForEval"]
