"""Combined menu planner: weekly menu grid, repetition detection and company menu projection."""

from .app_factory import create_app

__version__ = "0.1.0"

__all__ = ["create_app"]
