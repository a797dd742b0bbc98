"""Notebook session state and per-query lifecycle."""

from __future__ import annotations

from dbnbook.session.lifecycle import QueryLifecycle
from dbnbook.session.state import (
    INVALID_URI_MESSAGE,
    UNSUPPORTED_BACKEND_MESSAGE,
    SessionState,
)

__all__ = [
    "INVALID_URI_MESSAGE",
    "UNSUPPORTED_BACKEND_MESSAGE",
    "QueryLifecycle",
    "SessionState",
]
