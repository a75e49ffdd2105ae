"""Worker settings and configuration file loading."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Mapping

from omegaconf import OmegaConf
from pydantic import BaseModel, Field, ValidationError, field_validator

ENV_PREFIX = "HISTEVAL_"


class WorkerSettings(BaseModel):
    """Tunables for the batch evaluation worker."""

    batch_size: int = Field(100, ge=1)
    concurrency_limit: int = Field(50, ge=1)
    max_error_log_lines: int = Field(20, ge=0)
    negative_cache_ttl_s: float = Field(600.0, ge=0)
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level


class ConfigFormatError(ValueError):
    """Raised when a configuration file cannot be interpreted as a mapping."""


def settings_from_env(environ: Mapping[str, str] | None = None, **overrides: Any) -> WorkerSettings:
    """Build settings from ``HISTEVAL_*`` variables; explicit non-None overrides win."""
    source = os.environ if environ is None else environ
    values: dict[str, Any] = {}
    for name in WorkerSettings.model_fields:
        raw = source.get(f"{ENV_PREFIX}{name.upper()}")
        if raw is not None and raw.strip():
            values[name] = raw.strip()
    values.update({key: value for key, value in overrides.items() if value is not None})
    try:
        return WorkerSettings(**values)
    except ValidationError as exc:
        raise ValueError(f"Invalid worker settings: {exc}") from exc


def load_mapping(path: Path) -> Mapping[str, Any]:
    resolved = path.expanduser().resolve()
    if not resolved.exists():
        raise FileNotFoundError(f"Config not found: {resolved}")
    if resolved.suffix not in {".yaml", ".yml", ".json"}:
        raise ValueError(f"Unsupported config format: {resolved} (expected .yaml/.yml/.json)")
    try:
        data = OmegaConf.to_container(OmegaConf.load(resolved), resolve=True)
    except Exception as exc:  # pragma: no cover - OmegaConf error types vary
        raise ConfigFormatError(f"Failed to load config: {resolved}") from exc
    if not isinstance(data, Mapping):
        raise ConfigFormatError(f"Config must be a mapping at top level: {resolved}")
    return data


__all__ = ["ConfigFormatError", "ENV_PREFIX", "WorkerSettings", "load_mapping", "settings_from_env"]
