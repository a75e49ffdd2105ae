from .cache import EVENT_BASED_MODE, InMemoryNegativeConfigCache, NegativeConfigCache
from .normalize import EventsTableNormalizer, ObservationsViewNormalizer, RecordNormalizer, RowShapeError
from .processor import BatchStreamProcessor, process_batched_observation_eval
from .resolver import EvaluatorConfigResolver, EvaluatorValidationError
from .schemas import BatchActionQuery, BatchJob, EvaluatorSelection, RunEvaluationConfig
from .state import BatchActionStatus, InvalidStatusTransition, final_status
from .stores import (
    EvaluatorConfigStore,
    ExceptionTracker,
    InMemoryEvaluatorConfigStore,
    InMemoryJobStore,
    JobStore,
    LoggingExceptionTracker,
)

__all__ = [
    "BatchActionQuery",
    "BatchActionStatus",
    "BatchJob",
    "BatchStreamProcessor",
    "EVENT_BASED_MODE",
    "EvaluatorConfigResolver",
    "EvaluatorConfigStore",
    "EvaluatorSelection",
    "EvaluatorValidationError",
    "EventsTableNormalizer",
    "ExceptionTracker",
    "InMemoryEvaluatorConfigStore",
    "InMemoryJobStore",
    "InMemoryNegativeConfigCache",
    "InvalidStatusTransition",
    "JobStore",
    "LoggingExceptionTracker",
    "NegativeConfigCache",
    "ObservationsViewNormalizer",
    "RecordNormalizer",
    "RowShapeError",
    "RunEvaluationConfig",
    "final_status",
    "process_batched_observation_eval",
]
