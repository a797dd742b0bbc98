"""Pydantic models for dbnbook.

Provides validated data models for configuration, query lifecycle state
and the persisted notebook document.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

FALLBACK_QUERY = "SELECT 1;"
RUNNING_PLACEHOLDER = "Executing query..."


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class BackendKind(str, Enum):
    """Database families a connection URI can be routed to."""

    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"
    CLICKHOUSE = "clickhouse"
    REDIS = "redis"
    MYSQL = "mysql"


class QueryStatus(str, Enum):
    """Lifecycle states of a single query."""

    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"


class IdAllocation(str, Enum):
    """Strategies for numbering newly added queries."""

    COUNT = "count"
    MONOTONIC = "monotonic"


class QueryExecutionState(BaseModel):
    """Snapshot of one query's execution status and last result."""

    status: QueryStatus = Field(default=QueryStatus.IDLE, description="Status")
    result: str = Field(default="", description="Last result text")


class NotebookDocument(BaseModel):
    """On-disk notebook document.

    Unknown fields are ignored. ``queries`` accepts either an object keyed
    by query id or a JSON array, which is numbered from 1.
    """

    model_config = ConfigDict(extra="ignore")

    connection_uri: str | None = Field(None, description="Database connection URI")
    db_type: str | None = Field(None, description="Detected backend (informational)")
    queries: dict[int, str] | None = Field(
        None,
        description="Query text keyed by query id",
    )

    @field_validator("db_type", mode="before")
    @classmethod
    def _ignore_malformed_db_type(cls, value: Any) -> Any:
        # Recomputed from the URI on load, so a bad value is dropped
        return value if isinstance(value, str) else None

    @field_validator("queries", mode="before")
    @classmethod
    def _normalize_query_keys(cls, value: Any) -> Any:
        if isinstance(value, list):
            return {index: text for index, text in enumerate(value, start=1)}
        if isinstance(value, dict):
            seen: dict[int, Any] = {}
            for key in value:
                try:
                    query_id = int(key)
                except (TypeError, ValueError):
                    continue
                if query_id in seen:
                    msg = f"Duplicate query id {query_id} (keys {seen[query_id]!r} and {key!r})"
                    raise ValueError(msg)
                seen[query_id] = key
        return value

    @field_validator("queries")
    @classmethod
    def _check_query_ids(cls, value: dict[int, str] | None) -> dict[int, str] | None:
        if value is None:
            return value
        for query_id in value:
            if query_id < 1:
                msg = f"Query ids must be positive, got {query_id}"
                raise ValueError(msg)
        return value


class ObservabilityConfig(BaseModel):
    """Observability configuration."""

    log_level: LogLevel = Field(default=LogLevel.WARNING, description="Log level")
    log_file: str | None = Field(None, description="Log file path")
    structured_logging: bool = Field(
        default=True,
        description="Use structured JSON logging for the log file",
    )
    log_correlation_id: bool = Field(
        default=True,
        description="Include correlation IDs",
    )


class ExecutionConfig(BaseModel):
    """External process execution configuration."""

    encoding: str = Field(
        default="utf-8",
        description="Encoding used to decode process output",
    )
    log_commands: bool = Field(
        default=True,
        description="Log every command line before it is executed",
    )
    shell: str | None = Field(
        None,
        description="Shell executable used to run commands (default: system shell)",
    )

    @field_validator("encoding")
    @classmethod
    def _check_encoding(cls, value: str) -> str:
        import codecs

        try:
            codecs.lookup(value)
        except LookupError as e:
            msg = f"Unknown encoding: {value}"
            raise ValueError(msg) from e
        return value


class NotebookConfig(BaseModel):
    """Notebook session defaults."""

    default_connection_uri: str = Field(
        default="sqlite:///tmp/foo.db",
        description="Connection URI of a brand new notebook",
    )
    fallback_connection_uri: str = Field(
        default="sqlite://:memory:",
        description="Connection URI used when a loaded file has none",
    )
    default_state_filename: str = Field(
        default="database-notebook-state.json",
        description="Suggested file name when saving a notebook for the first time",
    )
    id_allocation: IdAllocation = Field(
        default=IdAllocation.COUNT,
        description="How ids are assigned to added queries",
    )


class Config(BaseModel):
    """Main configuration model."""

    observability: ObservabilityConfig = Field(
        default_factory=ObservabilityConfig,
        description="Observability configuration",
    )
    execution: ExecutionConfig = Field(
        default_factory=ExecutionConfig,
        description="Process execution configuration",
    )
    notebook: NotebookConfig = Field(
        default_factory=NotebookConfig,
        description="Notebook defaults",
    )
