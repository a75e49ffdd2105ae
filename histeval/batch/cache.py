"""Negative cache for projects known to have no eligible evaluator configs."""

from __future__ import annotations

import time
from typing import Callable, Protocol

EVENT_BASED_MODE = "eventBased"
DEFAULT_NEGATIVE_CACHE_TTL_S = 600.0


class NegativeConfigCache(Protocol):
    async def has(self, project_id: str, mode: str) -> bool: ...

    async def set(self, project_id: str, mode: str) -> None: ...


class InMemoryNegativeConfigCache:
    """Process-local marker map with per-entry expiry."""

    def __init__(
        self,
        *,
        ttl_s: float = DEFAULT_NEGATIVE_CACHE_TTL_S,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl_s = ttl_s
        self._clock = clock
        self._expires_at: dict[tuple[str, str], float] = {}

    async def has(self, project_id: str, mode: str) -> bool:
        key = (project_id, mode)
        expires_at = self._expires_at.get(key)
        if expires_at is None:
            return False
        if self._clock() >= expires_at:
            self._expires_at.pop(key, None)
            return False
        return True

    async def set(self, project_id: str, mode: str) -> None:
        if self._ttl_s <= 0:
            return
        self._expires_at[(project_id, mode)] = self._clock() + self._ttl_s

    async def clear(self, project_id: str, mode: str | None = None) -> None:
        """Drop markers for a project, e.g. after an evaluator config is created."""
        for key in list(self._expires_at):
            if key[0] == project_id and (mode is None or key[1] == mode):
                self._expires_at.pop(key, None)


__all__ = [
    "DEFAULT_NEGATIVE_CACHE_TTL_S",
    "EVENT_BASED_MODE",
    "InMemoryNegativeConfigCache",
    "NegativeConfigCache",
]
