"""dbnbook - database notebooks: routed, asynchronous query execution."""

from __future__ import annotations

__version__ = "0.1.0"

from dbnbook.models import BackendKind, QueryExecutionState, QueryStatus
from dbnbook.notebook import Notebook
from dbnbook.session import QueryLifecycle, SessionState
from dbnbook.sources import SourceRegistry, detect
from dbnbook.storage import NotebookStore, deserialize, serialize

__all__ = [
    "BackendKind",
    "Notebook",
    "NotebookStore",
    "QueryExecutionState",
    "QueryLifecycle",
    "QueryStatus",
    "SessionState",
    "SourceRegistry",
    "__version__",
    "deserialize",
    "detect",
    "serialize",
]
