"""Normalization of exported observation rows into evaluation inputs.

Historical rows come from more than one export shape (the snake_case events
table and the camelCase observations view). Each shape gets a normalizer
that names every recognized source field; anything not listed is dropped.
All normalizers produce the same :class:`ObservationForEval`.
"""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping, Protocol

from histeval.evaluation.types import ObservationForEval

NumericRecord = dict[str, int | float | None]


class RowShapeError(ValueError):
    """Raised when a raw row cannot be turned into an observation."""


class RecordNormalizer(Protocol):
    def normalize(self, row: Any, project_id: str) -> ObservationForEval: ...


def parse_number(value: str) -> int | float | None:
    """Parse numeric-looking text; ``None`` when the text is not a finite number."""
    text = value.strip()
    if not text or not text.isascii() or "_" in text:
        return None
    try:
        return int(text)
    except ValueError:
        pass
    try:
        parsed = float(text)
    except ValueError:
        return None
    if math.isnan(parsed):
        return None
    return parsed


def _native_number(value: Any) -> int | float | None:
    """Plain ``int``/``float`` for driver-native numbers such as ``Decimal``; bools are not numbers here."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, Decimal):
        return None if value.is_nan() else float(value)
    if isinstance(value, numbers.Integral):
        return int(value)
    if isinstance(value, numbers.Real):
        return float(value)
    return None


def to_numeric_record(value: Any) -> NumericRecord:
    """Coerce a usage/cost map: numbers and nulls kept, numeric text parsed, the rest dropped."""
    if not isinstance(value, Mapping):
        return {}
    record: NumericRecord = {}
    for key, raw in value.items():
        if raw is None:
            record[str(key)] = None
        elif isinstance(raw, str):
            parsed = parse_number(raw)
            if parsed is not None:
                record[str(key)] = parsed
        else:
            number = _native_number(raw)
            if number is not None:
                record[str(key)] = number
    return record


def to_string_list(value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if isinstance(item, str)]


def to_object_record(value: Any) -> dict[str, Any] | None:
    if not isinstance(value, Mapping):
        return None
    return dict(value)


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def _total_cost(value: Any) -> int | float | None:
    if isinstance(value, str):
        return parse_number(value)
    return _native_number(value)


def _with_total(details: NumericRecord, total: int | float | None) -> NumericRecord:
    if total is None:
        return details
    return {**details, "total": total}


@dataclass(frozen=True)
class RowFields:
    """Source column names for each semantic field of one export shape.

    Tuples are tried in order; the first key present with a non-null value wins.
    """

    id: tuple[str, ...]
    trace_id: tuple[str, ...]
    parent_span_id: tuple[str, ...]
    type: tuple[str, ...]
    name: tuple[str, ...]
    environment: tuple[str, ...]
    version: tuple[str, ...]
    level: tuple[str, ...]
    status_message: tuple[str, ...]
    trace_name: tuple[str, ...]
    user_id: tuple[str, ...]
    session_id: tuple[str, ...]
    tags: tuple[str, ...]
    release: tuple[str, ...]
    provided_model_name: tuple[str, ...]
    model_parameters: tuple[str, ...]
    prompt_id: tuple[str, ...]
    prompt_name: tuple[str, ...]
    prompt_version: tuple[str, ...]
    provided_usage_details: tuple[str, ...]
    usage_details: tuple[str, ...]
    provided_cost_details: tuple[str, ...]
    cost_details: tuple[str, ...]
    total_cost: tuple[str, ...]
    tool_definitions: tuple[str, ...]
    tool_calls: tuple[str, ...]
    tool_call_names: tuple[str, ...]
    input: tuple[str, ...]
    output: tuple[str, ...]
    metadata: tuple[str, ...]


EVENTS_TABLE_FIELDS = RowFields(
    id=("id",),
    trace_id=("trace_id",),
    parent_span_id=("parent_observation_id",),
    type=("type",),
    name=("name",),
    environment=("environment",),
    version=("version",),
    level=("level",),
    status_message=("status_message",),
    trace_name=("trace_name",),
    user_id=("user_id",),
    session_id=("session_id",),
    tags=("tags",),
    release=("release",),
    provided_model_name=("provided_model_name",),
    model_parameters=("model_parameters",),
    prompt_id=("prompt_id",),
    prompt_name=("prompt_name",),
    prompt_version=("prompt_version",),
    # The events table does not separate provided from computed details.
    provided_usage_details=("provided_usage_details", "usage_details"),
    usage_details=("usage_details",),
    provided_cost_details=("provided_cost_details", "cost_details"),
    cost_details=("cost_details",),
    total_cost=("total_cost",),
    tool_definitions=("tool_definitions",),
    tool_calls=("tool_calls",),
    tool_call_names=("tool_call_names",),
    input=("input",),
    output=("output",),
    metadata=("metadata",),
)

OBSERVATIONS_VIEW_FIELDS = RowFields(
    id=("id",),
    trace_id=("traceId",),
    parent_span_id=("parentObservationId",),
    type=("type",),
    name=("name",),
    environment=("environment",),
    version=("version",),
    level=("level",),
    status_message=("statusMessage",),
    trace_name=("traceName",),
    user_id=("userId",),
    session_id=("sessionId",),
    tags=("traceTags", "tags"),
    release=("release",),
    provided_model_name=("providedModelName", "model"),
    model_parameters=("modelParameters",),
    prompt_id=("promptId",),
    prompt_name=("promptName",),
    prompt_version=("promptVersion",),
    provided_usage_details=("providedUsageDetails", "usageDetails"),
    usage_details=("usageDetails",),
    provided_cost_details=("providedCostDetails", "costDetails"),
    cost_details=("costDetails",),
    total_cost=("totalCost", "calculatedTotalCost"),
    tool_definitions=("toolDefinitions",),
    tool_calls=("toolCalls",),
    tool_call_names=("toolCallNames",),
    input=("input",),
    output=("output",),
    metadata=("metadata",),
)


class FieldMapNormalizer:
    """Normalize rows whose shape is described by a :class:`RowFields` map."""

    def __init__(self, fields: RowFields, *, source_label: str) -> None:
        self._fields = fields
        self.source_label = source_label

    def normalize(self, row: Any, project_id: str) -> ObservationForEval:
        if not isinstance(row, Mapping):
            raise RowShapeError(f"Invalid {self.source_label} row")
        fields = self._fields

        def pick(keys: tuple[str, ...]) -> Any:
            for key in keys:
                value = row.get(key)
                if value is not None:
                    return value
            return None

        span_id = pick(fields.id)
        trace_id = pick(fields.trace_id)
        if not span_id or not trace_id:
            raise RowShapeError(f"{self.source_label.capitalize()} row is missing required identifiers")

        total_cost = _total_cost(pick(fields.total_cost))
        prompt_version = pick(fields.prompt_version)
        if isinstance(prompt_version, bool) or not isinstance(prompt_version, (int, float, str)):
            prompt_version = None
        tool_calls = pick(fields.tool_calls)

        observation: dict[str, Any] = {
            "span_id": str(span_id),
            "trace_id": str(trace_id),
            "project_id": project_id,
            "parent_span_id": _optional_str(pick(fields.parent_span_id)),
            "type": _optional_str(pick(fields.type)),
            "name": _optional_str(pick(fields.name)) or "",
            "environment": _optional_str(pick(fields.environment)) or "default",
            "version": _optional_str(pick(fields.version)),
            "level": _optional_str(pick(fields.level)),
            "status_message": _optional_str(pick(fields.status_message)),
            "trace_name": _optional_str(pick(fields.trace_name)),
            "user_id": _optional_str(pick(fields.user_id)),
            "session_id": _optional_str(pick(fields.session_id)),
            "tags": to_string_list(pick(fields.tags)),
            "release": _optional_str(pick(fields.release)),
            "provided_model_name": _optional_str(pick(fields.provided_model_name)),
            "model_parameters": pick(fields.model_parameters),
            "prompt_id": _optional_str(pick(fields.prompt_id)),
            "prompt_name": _optional_str(pick(fields.prompt_name)),
            "prompt_version": prompt_version,
            "provided_usage_details": to_numeric_record(pick(fields.provided_usage_details)),
            "usage_details": to_numeric_record(pick(fields.usage_details)),
            "provided_cost_details": _with_total(to_numeric_record(pick(fields.provided_cost_details)), total_cost),
            "cost_details": _with_total(to_numeric_record(pick(fields.cost_details)), total_cost),
            "tool_definitions": to_object_record(pick(fields.tool_definitions)) or {},
            "tool_calls": list(tool_calls) if isinstance(tool_calls, (list, tuple)) else [],
            "tool_call_names": to_string_list(pick(fields.tool_call_names)),
            "input": pick(fields.input),
            "output": pick(fields.output),
        }
        metadata = to_object_record(pick(fields.metadata))
        if metadata is not None:
            observation["metadata"] = metadata
        return ObservationForEval.model_validate(observation)


class EventsTableNormalizer(FieldMapNormalizer):
    def __init__(self) -> None:
        super().__init__(EVENTS_TABLE_FIELDS, source_label="events table")


class ObservationsViewNormalizer(FieldMapNormalizer):
    def __init__(self) -> None:
        super().__init__(OBSERVATIONS_VIEW_FIELDS, source_label="observations view")


NORMALIZERS: dict[str, type[FieldMapNormalizer]] = {
    "events": EventsTableNormalizer,
    "observations": ObservationsViewNormalizer,
}


def get_normalizer(source: str) -> FieldMapNormalizer:
    try:
        return NORMALIZERS[source]()
    except KeyError:
        choices = ", ".join(sorted(NORMALIZERS))
        raise ValueError(f"Unknown row source '{source}' (expected one of: {choices}).") from None


__all__ = [
    "EVENTS_TABLE_FIELDS",
    "EventsTableNormalizer",
    "FieldMapNormalizer",
    "NORMALIZERS",
    "OBSERVATIONS_VIEW_FIELDS",
    "ObservationsViewNormalizer",
    "RecordNormalizer",
    "RowFields",
    "RowShapeError",
    "get_normalizer",
    "parse_number",
    "to_numeric_record",
    "to_object_record",
    "to_string_list",
]
