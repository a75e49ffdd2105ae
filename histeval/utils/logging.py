"""Root logging setup shared by command line entry points."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_LOGGING_INITIALIZED = False


def ensure_root_logging(level: str) -> None:
    """Configure root logging once while allowing level updates."""
    global _LOGGING_INITIALIZED
    root_logger = logging.getLogger()
    level = level.upper()
    if not _LOGGING_INITIALIZED:
        handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
            log_time_format="[%Y-%m-%d %H:%M:%S]",
        )
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        root_logger.addHandler(handler)
        _LOGGING_INITIALIZED = True
    root_logger.setLevel(level)
    for handler in root_logger.handlers:
        handler.setLevel(level)


__all__ = ["ensure_root_logging"]
