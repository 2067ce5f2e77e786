"""Core package for the personal to-do list service."""

from __future__ import annotations

from typing import Any

from .database import Database, resolve_database_path
from .memory import MemoryDatabase


def create_app(*args: Any, **kwargs: Any):
    """Factory function for the JSON API application."""

    from .service import create_app as _create_app

    return _create_app(*args, **kwargs)


def create_application(*args: Any, **kwargs: Any):
    """Factory function for the configured application mounted under ``/api``."""

    from .application import create_application as _create_application

    return _create_application(*args, **kwargs)


__all__ = [
    "Database",
    "MemoryDatabase",
    "resolve_database_path",
    "create_app",
    "create_application",
]
