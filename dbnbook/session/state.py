"""Live notebook session: connection, queries and per-query execution state.

All mutation happens on the event loop thread. Every change bumps
``version``, calls the subscribed listeners and, when an event bus is
attached, publishes a typed event.
"""

from __future__ import annotations

import asyncio
from types import MappingProxyType
from typing import TYPE_CHECKING, Callable, Mapping

from dbnbook.executor.base import CompletionCallback
from dbnbook.executor.runner import JobRunner
from dbnbook.models import (
    BackendKind,
    IdAllocation,
    NotebookConfig,
    QueryExecutionState,
)
from dbnbook.session.lifecycle import QueryLifecycle
from dbnbook.sources.base import CommandBuild
from dbnbook.sources.registry import SourceRegistry, get_registry
from dbnbook.utils.events import (
    ConnectionChangedEvent,
    Event,
    QueryAddedEvent,
    QueryCompletedEvent,
    QueryStartedEvent,
    QueryUpdatedEvent,
)
from dbnbook.utils.exceptions import (
    InvalidURIError,
    UnknownQueryError,
    UnsupportedBackendError,
    ValidationError,
)
from dbnbook.utils.logging_config import get_logger, log_exception

if TYPE_CHECKING:  # pragma: no cover
    from dbnbook.executor.base import JobResult
    from dbnbook.utils.events import EventBus

INVALID_URI_MESSAGE = "Invalid database URI"
UNSUPPORTED_BACKEND_MESSAGE = "Unsupported database type"

SessionListener = Callable[["SessionState"], None]


class SessionState:
    """Root aggregate of an open notebook."""

    def __init__(
        self,
        connection_uri: str | None = None,
        queries: Mapping[int, str] | None = None,
        *,
        registry: SourceRegistry | None = None,
        runner: JobRunner | None = None,
        config: NotebookConfig | None = None,
        event_bus: EventBus | None = None,
    ):
        """Initialize session state.

        Args:
            connection_uri: Target URI. Defaults to the configured URI of a
                brand new notebook.
            queries: Query text keyed by id. Defaults to a single query with
                the detected backend's sample query.
            registry: Source registry used for routing
            runner: Job runner used for execution
            config: Notebook defaults (default URI, id allocation)
            event_bus: Optional bus that receives session events

        Raises:
            ValidationError: If a query id is not a positive integer

        """
        self.config = config or NotebookConfig()
        self.registry = registry or get_registry()
        self.runner = runner or JobRunner()
        self.event_bus = event_bus
        self.logger = get_logger(__name__)

        if connection_uri is None:
            connection_uri = self.config.default_connection_uri
        self._connection_uri = connection_uri
        self._backend_kind = self.registry.detect(connection_uri)

        if queries is None:
            queries = {1: self.registry.default_query(self._backend_kind)}
        for query_id in queries:
            if isinstance(query_id, bool) or not isinstance(query_id, int) or query_id < 1:
                msg = f"Query ids must be positive integers, got {query_id!r}"
                raise ValidationError(msg, {"query_id": query_id})
        self._queries: dict[int, str] = dict(queries)
        self._lifecycles: dict[int, QueryLifecycle] = {}
        self._listeners: list[SessionListener] = []
        self.version = 0

    @property
    def connection_uri(self) -> str:
        """Current connection URI."""
        return self._connection_uri

    @property
    def backend_kind(self) -> BackendKind | None:
        """Backend detected from the connection URI (None if unknown)."""
        return self._backend_kind

    @property
    def queries(self) -> Mapping[int, str]:
        """Read-only view of query text keyed by id."""
        return MappingProxyType(self._queries)

    @property
    def execution_states(self) -> dict[int, QueryExecutionState]:
        """Snapshots of every query that has been run or rejected."""
        return {
            query_id: lifecycle.snapshot()
            for query_id, lifecycle in self._lifecycles.items()
        }

    def query_ids(self) -> list[int]:
        """Query ids in ascending order."""
        return sorted(self._queries)

    def status(self, query_id: int) -> QueryExecutionState:
        """Get the execution state of ``query_id`` (Idle if never run)."""
        lifecycle = self._lifecycles.get(query_id)
        if lifecycle is None:
            return QueryExecutionState()
        return lifecycle.snapshot()

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Call ``listener`` with the session after every change.

        Returns:
            A callable that removes the listener

        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def update_connection(self, new_uri: str) -> None:
        """Replace the connection URI and re-detect the backend."""
        if new_uri == self._connection_uri:
            return
        self._connection_uri = new_uri
        self._backend_kind = self.registry.detect(new_uri)
        self.logger.debug(
            "Connection changed (backend=%s)",
            self._backend_kind.value if self._backend_kind else None,
        )
        self._notify(
            ConnectionChangedEvent(
                source="session",
                connection_uri=new_uri,
                backend=self._backend_kind.value if self._backend_kind else None,
            ),
        )

    def update_query_text(self, query_id: int, text: str) -> None:
        """Replace the stored text of ``query_id``.

        Raises:
            UnknownQueryError: If the session has no such query

        """
        self._require_query(query_id)
        if self._queries[query_id] == text:
            return
        self._queries[query_id] = text
        self._notify(QueryUpdatedEvent(source="session", query_id=query_id, text=text))

    def add_query(self, text: str | None = None) -> int:
        """Append a query and return its id.

        Without ``text`` the detected backend's sample query is inserted.
        """
        if self.config.id_allocation is IdAllocation.MONOTONIC:
            query_id = max(self._queries, default=0) + 1
        else:
            query_id = len(self._queries) + 1
            if query_id in self._queries:
                self.logger.warning(
                    "Query id %s is already taken, replacing its text",
                    query_id,
                )

        if text is None:
            text = self.registry.default_query(self._backend_kind)
        self._queries[query_id] = text
        self._notify(QueryAddedEvent(source="session", query_id=query_id, text=text))
        return query_id

    def build_command(self, query_id: int, text: str | None = None) -> str:
        """Return the command line that would run ``query_id``.

        Raises:
            UnknownQueryError: If the session has no such query
            InvalidURIError: If the connection URI is empty or malformed
            UnsupportedBackendError: If no backend handles the connection URI

        """
        self._require_query(query_id)
        if text is None:
            text = self._queries[query_id]
        command, error = self._resolve_command(text)
        if error is not None:
            details = {"connection_uri": self._connection_uri}
            if error == UNSUPPORTED_BACKEND_MESSAGE:
                raise UnsupportedBackendError(error, details)
            raise InvalidURIError(error, details)
        assert command is not None
        return command

    def execute_query(
        self,
        query_id: int,
        text: str | None = None,
        on_complete: CompletionCallback | None = None,
    ) -> asyncio.Task[JobResult] | None:
        """Run ``text`` (default: the stored text) as query ``query_id``.

        Must be called from the event loop. When no command can be built the
        query goes straight to Error, ``on_complete(False, message)`` is
        called before returning and None is returned. Otherwise the query
        enters Running and the returned task resolves when the process exits;
        the lifecycle is updated before ``on_complete`` is called.

        Raises:
            UnknownQueryError: If the session has no such query

        """
        self._require_query(query_id)
        if text is None:
            text = self._queries[query_id]
        lifecycle = self._lifecycles.setdefault(query_id, QueryLifecycle(query_id))

        command, error = self._resolve_command(text)
        if error is not None:
            self.logger.warning("Query %s not executed: %s", query_id, error)
            lifecycle.fail(error)
            self._notify(
                QueryCompletedEvent(
                    source="session",
                    query_id=query_id,
                    success=False,
                    result=error,
                ),
            )
            if on_complete is not None:
                on_complete(False, error)
            return None

        assert command is not None
        lifecycle.start()
        self._notify(
            QueryStartedEvent(
                source="session",
                query_id=query_id,
                backend=self._backend_kind.value if self._backend_kind else None,
            ),
        )

        def _complete(success: bool, output: str) -> None:
            lifecycle.complete(success, output)
            self._notify(
                QueryCompletedEvent(
                    source="session",
                    query_id=query_id,
                    success=success,
                    result=output,
                ),
            )
            if on_complete is not None:
                on_complete(success, output)

        return self.runner.submit(command, _complete)

    async def wait(self) -> None:
        """Wait for every query started in this session to complete."""
        await self.runner.wait()

    async def close(self) -> None:
        """Kill running queries and release the runner."""
        await self.runner.shutdown()

    def _resolve_command(self, text: str) -> CommandBuild:
        if not self._connection_uri:
            return None, INVALID_URI_MESSAGE
        source = self.registry.get(self._backend_kind)
        if source is None:
            return None, UNSUPPORTED_BACKEND_MESSAGE
        return source.build_command(self._connection_uri, text)

    def _require_query(self, query_id: int) -> None:
        if query_id not in self._queries:
            msg = f"Query {query_id} does not exist"
            raise UnknownQueryError(msg, {"query_id": query_id})

    def _notify(self, event: Event) -> None:
        """Record a change and tell listeners and the event bus about it."""
        self.version += 1
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                log_exception(self.logger, e, "Session listener failed")
        if self.event_bus is not None:
            self.event_bus.publish(event)

    def __repr__(self) -> str:
        """Return a short representation of the session."""
        backend = self._backend_kind.value if self._backend_kind else "unknown"
        return (
            f"<SessionState {backend} queries={len(self._queries)} "
            f"version={self.version}>"
        )
