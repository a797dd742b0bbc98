"""Rich logging integration for dbnbook.

Provides Rich-based logging handlers and formatters.
"""

from __future__ import annotations

import logging
from typing import Any

from rich.console import Console
from rich.highlighter import RegexHighlighter
from rich.logging import RichHandler
from rich.theme import Theme


class NotebookHighlighter(RegexHighlighter):
    """Highlight query ids, lifecycle states and backend names in log lines."""

    base_style = "dbnbook."
    highlights = [  # noqa: RUF012
        r"(?P<query>\bquery \d+\b)",
        r"(?P<success>\bsuccess\b)",
        r"(?P<error>\berror\b)",
        r"(?P<running>\brunning\b)",
        r"(?P<backend>\b(?:sqlite|postgresql|clickhouse|redis|mysql)\b)",
    ]


NOTEBOOK_THEME = Theme(
    {
        "dbnbook.query": "bold bright_cyan",
        "dbnbook.success": "green",
        "dbnbook.error": "bold red",
        "dbnbook.running": "yellow",
        "dbnbook.backend": "magenta",
    }
)


class CorrelationRichHandler(RichHandler):
    """RichHandler with correlation ID support.

    Messages are rendered without markup processing: query text and shell
    commands routinely contain square brackets.
    """

    def __init__(
        self,
        *args: Any,
        console: Console | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize handler, defaulting to a stderr console."""
        if console is None:
            console = Console(stderr=True, theme=NOTEBOOK_THEME)
        kwargs.setdefault("markup", False)
        kwargs.setdefault("highlighter", NotebookHighlighter())
        super().__init__(*args, console=console, **kwargs)

    def emit(self, record: logging.LogRecord) -> None:
        """Emit a log record, attaching the current correlation ID."""
        if not hasattr(record, "correlation_id"):
            from dbnbook.utils.logging_config import correlation_id

            record.correlation_id = correlation_id.get() or "no-correlation-id"
        super().emit(record)


def create_rich_handler(
    console: Console | None = None,
    level: int | str = logging.INFO,
    show_path: bool = False,
    rich_tracebacks: bool = True,
) -> logging.Handler:
    """Create a RichHandler with correlation ID support.

    Args:
        console: Optional Rich Console instance (defaults to stderr)
        level: Log level
        show_path: Whether to show file paths in log output
        rich_tracebacks: Whether to use rich tracebacks

    Returns:
        Configured RichHandler instance

    """
    return CorrelationRichHandler(
        console=console,
        level=level,
        show_path=show_path,
        rich_tracebacks=rich_tracebacks,
    )
