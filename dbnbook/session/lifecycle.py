"""Per-query execution state machine."""

from __future__ import annotations

from dbnbook.models import RUNNING_PLACEHOLDER, QueryExecutionState, QueryStatus
from dbnbook.utils.exceptions import ExecutionStateError


class QueryLifecycle:
    """Tracks the status and last result of one query id.

    Idle -> Running -> Success | Error, and back to Running on every re-run.
    Completions are accepted while Running and also after a previous
    completion, so when two runs of the same query overlap the one that
    finishes last decides the stored result.
    """

    __slots__ = ("query_id", "result", "runs", "status")

    def __init__(self, query_id: int):
        """Initialize an idle lifecycle for ``query_id``."""
        self.query_id = query_id
        self.status = QueryStatus.IDLE
        self.result = ""
        self.runs = 0

    @property
    def is_running(self) -> bool:
        """Whether a run has started and not completed yet."""
        return self.status is QueryStatus.RUNNING

    def start(self) -> None:
        """Enter Running and show the placeholder result."""
        self.status = QueryStatus.RUNNING
        self.result = RUNNING_PLACEHOLDER
        self.runs += 1

    def complete(self, success: bool, output: str) -> None:
        """Record a run's outcome.

        Raises:
            ExecutionStateError: If the query was never started

        """
        if self.status is QueryStatus.IDLE:
            msg = f"Query {self.query_id} completed without being started"
            raise ExecutionStateError(msg, {"query_id": self.query_id})
        self.status = QueryStatus.SUCCESS if success else QueryStatus.ERROR
        self.result = output

    def fail(self, message: str) -> None:
        """Record a run that was rejected before anything was spawned."""
        self.status = QueryStatus.ERROR
        self.result = message

    def snapshot(self) -> QueryExecutionState:
        """Return an immutable copy of the current state."""
        return QueryExecutionState(status=self.status, result=self.result)

    def __repr__(self) -> str:
        """Return a short representation with id and status."""
        return f"<QueryLifecycle {self.query_id} {self.status.value}>"
