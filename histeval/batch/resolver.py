"""Resolution of evaluator configurations for batch and event-based evaluation."""

from __future__ import annotations

import logging
from typing import Sequence

from histeval.batch.cache import EVENT_BASED_MODE, NegativeConfigCache
from histeval.batch.stores import EvaluatorConfigStore
from histeval.evaluation.types import EvalTargetObject, EvaluatorConfig, JobConfigStatus

logger = logging.getLogger(__name__)


class EvaluatorValidationError(ValueError):
    """Raised when requested evaluators are missing, inactive, or not event-scoped."""

    def __init__(self, missing_ids: Sequence[str]) -> None:
        self.missing_ids = list(missing_ids)
        if self.missing_ids:
            message = (
                f"Evaluators [{', '.join(self.missing_ids)}] are missing, inactive, or not event-scoped "
                "for historical event evaluation."
            )
        else:
            message = "Selected evaluators are missing, inactive, or not event-scoped for historical event evaluation."
        super().__init__(message)


def _dedupe(values: Sequence[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        ordered.append(value)
    return ordered


class EvaluatorConfigResolver:
    """Look up evaluator configs, consulting the negative cache where allowed."""

    def __init__(self, store: EvaluatorConfigStore, cache: NegativeConfigCache) -> None:
        self._store = store
        self._cache = cache

    async def fetch_and_validate(self, project_id: str, evaluator_ids: Sequence[str]) -> list[EvaluatorConfig]:
        """Return every requested evaluator, in request order, or raise.

        Eligibility is re-checked here even though the request layer already did
        so: configs can be deactivated or deleted between job creation and the
        worker picking the job up. Either all requested evaluators resolve or
        :class:`EvaluatorValidationError` names each one that did not.
        """
        requested = _dedupe(evaluator_ids)
        if not requested:
            raise ValueError("At least one evaluator must be requested.")
        found = await self._store.find_configs(
            project_id,
            ids=requested,
            target_objects=(EvalTargetObject.EVENT,),
            status=JobConfigStatus.ACTIVE,
        )
        by_id = {config.id: config for config in found}
        missing = [evaluator_id for evaluator_id in requested if evaluator_id not in by_id]
        unexpected = sorted(set(by_id) - set(requested))
        if unexpected:
            logger.debug("Ignoring unrequested evaluator configs returned by store: %s", unexpected)
        if missing:
            logger.warning(
                "Evaluator validation failed for project %s: %d of %d missing (%s).",
                project_id,
                len(missing),
                len(requested),
                ", ".join(missing),
            )
            raise EvaluatorValidationError(missing)
        return [by_id[evaluator_id] for evaluator_id in requested]

    async def fetch_observation_eval_configs(
        self,
        project_id: str,
        *,
        require_time_scope_new: bool = False,
    ) -> list[EvaluatorConfig]:
        """Active event- or experiment-scoped configs for a project, possibly empty."""
        if await self._cache.has(project_id, EVENT_BASED_MODE):
            logger.debug("Negative config cache hit for project %s (%s).", project_id, EVENT_BASED_MODE)
            return []
        configs = await self._store.find_configs(
            project_id,
            ids=None,
            target_objects=(EvalTargetObject.EVENT, EvalTargetObject.EXPERIMENT),
            status=JobConfigStatus.ACTIVE,
            require_time_scope_new=require_time_scope_new,
        )
        if not configs:
            logger.debug("No eligible evaluator configs for project %s; caching negative result.", project_id)
            await self._cache.set(project_id, EVENT_BASED_MODE)
        return list(configs)


__all__ = ["EvaluatorConfigResolver", "EvaluatorValidationError"]
