"""Shared utilities and infrastructure.

This module contains common utilities used throughout the application.
"""

from __future__ import annotations

from dbnbook.utils.events import Event, EventBus, EventHandler, EventType, emit_event
from dbnbook.utils.exceptions import (
    ConfigurationError,
    DBNBookError,
    ExecutionError,
    PersistenceError,
    ValidationError,
)
from dbnbook.utils.logging_config import get_logger, setup_logging
from dbnbook.utils.tasks import BackgroundTaskGroup

__all__ = [
    "BackgroundTaskGroup",
    # Exceptions
    "ConfigurationError",
    "DBNBookError",
    # Events
    "Event",
    "EventBus",
    "EventHandler",
    "EventType",
    "ExecutionError",
    "PersistenceError",
    "ValidationError",
    "emit_event",
    # Logging
    "get_logger",
    "setup_logging",
]
