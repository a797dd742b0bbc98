"""Source registry: ordered table of backend adapters.

Detection walks the adapters in registration order and the first match
wins, because scheme predicates are not mutually exclusive (the
PostgreSQL predicate is a bare ``postgres`` prefix).
"""

from __future__ import annotations

from typing import Iterator

from dbnbook.models import FALLBACK_QUERY, BackendKind
from dbnbook.sources.base import Source
from dbnbook.sources.clickhouse import ClickHouseSource
from dbnbook.sources.mysql import MySQLSource
from dbnbook.sources.postgresql import PostgreSQLSource
from dbnbook.sources.redis import RedisSource
from dbnbook.sources.sqlite import SQLiteSource


class SourceRegistry:
    """Registry for backend source adapters."""

    def __init__(self, sources: list[Source] | None = None):
        """Initialize source registry.

        Args:
            sources: Adapters in detection order. Defaults to the canonical
                order: sqlite, clickhouse, postgresql, redis, mysql.

        """
        self._sources: list[Source] = []
        self._by_name: dict[BackendKind, Source] = {}
        for source in sources if sources is not None else default_sources():
            self.register(source)

    def register(self, source: Source) -> None:
        """Append an adapter to the end of the detection order.

        Raises:
            ValueError: If an adapter for the same backend is already registered

        """
        if source.name in self._by_name:
            msg = f"Source already registered for backend: {source.name.value}"
            raise ValueError(msg)
        self._sources.append(source)
        self._by_name[source.name] = source

    def detect(self, uri: object) -> BackendKind | None:
        """Return the backend of the first adapter matching ``uri``.

        Returns None for empty or non-string input and for URIs no adapter
        recognizes.
        """
        if not isinstance(uri, str) or not uri:
            return None

        for source in self._sources:
            if source.matches(uri):
                return source.name

        return None

    def get(self, kind: BackendKind | str | None) -> Source | None:
        """Get the adapter registered for ``kind``."""
        if kind is None:
            return None
        try:
            return self._by_name.get(BackendKind(kind))
        except ValueError:
            return None

    def default_query(self, kind: BackendKind | str | None) -> str:
        """Get the sample query for ``kind``, or ``SELECT 1;`` if unknown."""
        source = self.get(kind)
        if source is not None and source.default_query:
            return source.default_query
        return FALLBACK_QUERY

    def names(self) -> list[BackendKind]:
        """List backends in detection order."""
        return [source.name for source in self._sources]

    def __iter__(self) -> Iterator[Source]:
        """Iterate adapters in detection order."""
        return iter(list(self._sources))

    def __len__(self) -> int:
        """Return the number of registered adapters."""
        return len(self._sources)


def default_sources() -> list[Source]:
    """Create the built-in adapters in canonical detection order."""
    return [
        SQLiteSource(),
        ClickHouseSource(),
        PostgreSQLSource(),
        RedisSource(),
        MySQLSource(),
    ]


# Global registry instance
_registry: SourceRegistry | None = None


def get_registry() -> SourceRegistry:
    """Get the global source registry."""
    global _registry
    if _registry is None:
        _registry = SourceRegistry()
    return _registry


def detect(uri: object) -> BackendKind | None:
    """Detect the backend for ``uri`` using the global registry."""
    return get_registry().detect(uri)


def get(kind: BackendKind | str | None) -> Source | None:
    """Get an adapter from the global registry."""
    return get_registry().get(kind)


def default_query(kind: BackendKind | str | None) -> str:
    """Get the sample query for ``kind`` from the global registry."""
    return get_registry().default_query(kind)
