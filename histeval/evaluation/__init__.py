from .scheduler import EvaluationScheduler, JsonlEvaluationScheduler
from .types import EvalTargetObject, EvaluatorConfig, JobConfigStatus, ObservationForEval

__all__ = [
    "EvalTargetObject",
    "EvaluationScheduler",
    "EvaluatorConfig",
    "JobConfigStatus",
    "JsonlEvaluationScheduler",
    "ObservationForEval",
]
