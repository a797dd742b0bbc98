"""Exception hierarchy for dbnbook.

Provides the exception hierarchy shared by the registry, the executor,
the session layer and persistence.
"""

from __future__ import annotations

from typing import Any


class DBNBookError(Exception):
    """Base exception for all dbnbook errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize dbnbook error."""
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class ValidationError(DBNBookError):
    """Data validation errors."""


class ConfigurationError(ValidationError):
    """Configuration validation errors."""


class InvalidURIError(ValidationError):
    """Connection URI cannot be parsed by its backend adapter."""


class UnsupportedBackendError(ValidationError):
    """Connection URI does not route to any registered backend."""


class ExecutionError(DBNBookError):
    """Query execution errors."""


class ExecutionStateError(ExecutionError):
    """Invalid query lifecycle transition."""


class UnknownQueryError(ExecutionError):
    """Query id not present in the session."""


class PersistenceError(DBNBookError):
    """Base notebook persistence exception."""


class NotebookLoadError(PersistenceError):
    """Notebook file could not be read or parsed."""


class NotebookSaveError(PersistenceError):
    """Notebook file could not be written."""
