"""Historical batch evaluation of observability events."""

__version__ = "0.1.0"
