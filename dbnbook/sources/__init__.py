"""Backend source adapters and the registry that routes URIs to them."""

from __future__ import annotations

from dbnbook.sources.base import Source, shell_quote
from dbnbook.sources.clickhouse import ClickHouseSource
from dbnbook.sources.mysql import MySQLSource
from dbnbook.sources.postgresql import PostgreSQLSource
from dbnbook.sources.redis import RedisSource
from dbnbook.sources.registry import (
    SourceRegistry,
    default_query,
    detect,
    get,
    get_registry,
)
from dbnbook.sources.sqlite import SQLiteSource

__all__ = [
    "ClickHouseSource",
    "MySQLSource",
    "PostgreSQLSource",
    "RedisSource",
    "SQLiteSource",
    "Source",
    "SourceRegistry",
    "default_query",
    "detect",
    "get",
    "get_registry",
    "shell_quote",
]
