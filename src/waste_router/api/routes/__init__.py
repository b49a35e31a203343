"""Route group exports."""

from . import health, imports, routes

__all__ = ["routes", "health", "imports"]
