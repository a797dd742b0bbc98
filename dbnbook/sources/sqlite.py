"""SQLite source adapter (``sqlite3`` CLI with JSON output)."""

from __future__ import annotations

import re

from dbnbook.models import BackendKind
from dbnbook.sources.base import CommandBuild, Source, shell_quote

_URI_RE = re.compile(r"sqlite://(?P<path>.+)", re.DOTALL)


class SQLiteSource(Source):
    """``sqlite://<path>`` or ``sqlite://:memory:``."""

    name = BackendKind.SQLITE
    label = "SQLite"
    default_query = 'SELECT * FROM sqlite_master WHERE type="table";'
    scheme_pattern = re.compile(r"sqlite://")

    def build_command(self, uri: str, query: str) -> CommandBuild:
        match = _URI_RE.fullmatch(uri)
        if not match:
            return None, self.invalid_uri_message

        return (
            f"sqlite3 -json {shell_quote(match['path'])} {shell_quote(query)}",
            None,
        )
