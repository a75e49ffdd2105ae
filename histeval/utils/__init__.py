from .logging import ensure_root_logging

__all__ = ["ensure_root_logging"]
