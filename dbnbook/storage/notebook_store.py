"""Notebook persistence.

A notebook file is a JSON object with exactly three keys::

    {"connection_uri": "...", "db_type": "sqlite", "queries": {"1": "..."}}

Execution state is never written. ``db_type`` is informational: it is
recomputed from the URI on load.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from dbnbook.models import NotebookConfig, NotebookDocument
from dbnbook.session.state import SessionState
from dbnbook.utils.exceptions import NotebookLoadError, NotebookSaveError
from dbnbook.utils.logging_config import get_logger

logger = get_logger(__name__)


def serialize(session: SessionState) -> dict[str, Any]:
    """Convert a session to its document form (query ids ascending)."""
    kind = session.backend_kind
    return {
        "connection_uri": session.connection_uri,
        "db_type": kind.value if kind else None,
        "queries": {
            str(query_id): session.queries[query_id]
            for query_id in session.query_ids()
        },
    }


def dumps(session: SessionState) -> str:
    """Serialize a session to indented JSON text."""
    return json.dumps(serialize(session), indent=2, ensure_ascii=False)


def parse(document: dict[str, Any] | str | bytes) -> NotebookDocument:
    """Validate a notebook document given as a dict or JSON text.

    Raises:
        NotebookLoadError: If the document is not valid JSON or does not
            have the notebook shape

    """
    if isinstance(document, (str, bytes)):
        try:
            document = json.loads(document)
        except ValueError as e:
            msg = f"Notebook is not valid JSON: {e}"
            raise NotebookLoadError(msg) from e

    if not isinstance(document, dict):
        msg = f"Notebook root must be an object, got {type(document).__name__}"
        raise NotebookLoadError(msg)

    try:
        return NotebookDocument.model_validate(document)
    except PydanticValidationError as e:
        msg = f"Invalid notebook document: {e.error_count()} validation error(s)"
        raise NotebookLoadError(msg, {"errors": e.errors(include_url=False)}) from e


def build_session(document: NotebookDocument, **session_kwargs: Any) -> SessionState:
    """Create a session from a validated document.

    A missing URI falls back to ``notebook.fallback_connection_uri`` and
    missing queries to one sample query for the detected backend.
    """
    config: NotebookConfig = session_kwargs.get("config") or NotebookConfig()
    uri = document.connection_uri
    if uri is None:
        uri = config.fallback_connection_uri

    session = SessionState(uri, document.queries, **session_kwargs)
    kind = session.backend_kind
    if document.db_type is not None and document.db_type != (kind.value if kind else None):
        logger.debug(
            "Ignoring stored db_type %r, detected %s",
            document.db_type,
            kind.value if kind else None,
        )
    return session


def deserialize(
    document: dict[str, Any] | str | bytes,
    **session_kwargs: Any,
) -> SessionState | None:
    """Rebuild a session from a document, or return None if it is invalid.

    Args:
        document: Parsed document or JSON text
        **session_kwargs: Passed to SessionState (registry, runner, config,
            event_bus)

    """
    try:
        parsed = parse(document)
    except NotebookLoadError as e:
        logger.debug("Cannot deserialize notebook: %s", e)
        return None
    return build_session(parsed, **session_kwargs)


class NotebookStore:
    """Reads and writes notebook files."""

    def __init__(self, **session_kwargs: Any):
        """Initialize notebook store.

        Args:
            **session_kwargs: Passed to every SessionState created on load

        """
        self.session_kwargs = session_kwargs
        self.logger = get_logger(__name__)

    def load_strict(self, path: str | Path) -> SessionState:
        """Load a notebook file.

        Raises:
            NotebookLoadError: If the file cannot be read or is not a notebook

        """
        path = Path(path)
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            msg = f"Failed to read notebook {path}: {e}"
            raise NotebookLoadError(msg, {"path": str(path)}) from e

        session = build_session(parse(content), **self.session_kwargs)
        self.logger.debug("Loaded notebook from %s", path)
        return session

    def load(self, path: str | Path) -> SessionState | None:
        """Load a notebook file, returning None if it is missing or invalid."""
        try:
            return self.load_strict(path)
        except NotebookLoadError as e:
            self.logger.warning("Could not load notebook: %s", e.message)
            return None

    def save(self, session: SessionState, path: str | Path) -> Path:
        """Write ``session`` to ``path``.

        Returns:
            Path of the written file

        Raises:
            NotebookSaveError: If the file cannot be written

        """
        path = Path(path)
        content = dumps(session)
        try:
            with open(path, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            self.logger.error("Failed to save notebook to %s: %s", path, e)
            msg = f"Failed to open file for writing: {path}"
            raise NotebookSaveError(msg, {"path": str(path), "error": str(e)}) from e

        self.logger.info("State saved to: %s", path)
        return path
