"""HTTP adapter for the taskboard engine."""

from .api import create_app

__all__ = ["create_app"]
