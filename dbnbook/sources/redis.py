"""Redis source adapter (``redis-cli``)."""

from __future__ import annotations

import re

from dbnbook.models import BackendKind
from dbnbook.sources.base import CommandBuild, Source, shell_quote

_URI_RE = re.compile(
    r"redis://(?:(?P<password>[^@]+)@)?(?P<host>[^:@]+):(?P<port>\d+)/(?P<db>\d+)"
)


class RedisSource(Source):
    """``redis://[password@]host:port/db``.

    The query is handed to ``redis-cli`` as one quoted argument.
    """

    name = BackendKind.REDIS
    label = "Redis"
    default_query = "KEYS *"
    scheme_pattern = re.compile(r"redis://")

    def build_command(self, uri: str, query: str) -> CommandBuild:
        match = _URI_RE.fullmatch(uri)
        if not match:
            return None, self.invalid_uri_message

        parts = [
            "redis-cli",
            "-h",
            shell_quote(match["host"]),
            "-p",
            shell_quote(match["port"]),
        ]
        if match["password"] is not None:
            parts += ["-a", shell_quote(match["password"])]
        parts += ["-n", shell_quote(match["db"]), shell_quote(query)]
        return " ".join(parts), None
