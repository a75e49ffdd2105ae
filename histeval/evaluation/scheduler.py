"""Evaluation scheduling seam between the batch pipeline and evaluator execution."""

from __future__ import annotations

import json
import logging
import random
from pathlib import Path
from typing import Callable, Protocol, Sequence

from histeval.evaluation.types import EvaluatorConfig, ObservationForEval

logger = logging.getLogger(__name__)


class EvaluationScheduler(Protocol):
    async def schedule(
        self,
        observation: ObservationForEval,
        configs: Sequence[EvaluatorConfig],
        *,
        ignore_config_targeting: bool,
    ) -> None: ...


class JsonlEvaluationScheduler:
    """Append one JSON line per (observation, evaluator) pair to ``path``.

    When ``ignore_config_targeting`` is false the evaluator's sampling rate is
    applied, as it would be for live traffic. Filter matching is left to the
    live ingestion path and is not evaluated here.
    """

    def __init__(self, path: Path, *, rng: Callable[[], float] | None = None) -> None:
        self._path = path
        self._rng = rng or random.random
        self.scheduled = 0
        self.skipped = 0

    def reset(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text("", encoding="utf-8")
        self.scheduled = 0
        self.skipped = 0

    async def schedule(
        self,
        observation: ObservationForEval,
        configs: Sequence[EvaluatorConfig],
        *,
        ignore_config_targeting: bool,
    ) -> None:
        lines: list[str] = []
        for config in configs:
            if not ignore_config_targeting and self._rng() >= config.sampling:
                self.skipped += 1
                logger.debug("Sampled out observation %s for evaluator %s.", observation.span_id, config.id)
                continue
            lines.append(
                json.dumps(
                    {
                        "evaluator_config_id": config.id,
                        "eval_template_id": config.eval_template_id,
                        "score_name": config.score_name,
                        "variable_mapping": config.variable_mapping,
                        "observation": observation.to_payload(),
                    },
                    sort_keys=True,
                )
            )
        if not lines:
            return
        # No await between open and write, so concurrent calls never interleave lines.
        with self._path.open("a", encoding="utf-8") as handle:
            for line in lines:
                handle.write(line + "\n")
        self.scheduled += len(lines)


__all__ = ["EvaluationScheduler", "JsonlEvaluationScheduler"]
