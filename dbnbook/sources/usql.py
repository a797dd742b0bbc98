"""Sources that run through the ``usql`` universal SQL client.

``usql`` understands the connection URI natively, so the URI is only
validated here and then handed over whole.
"""

from __future__ import annotations

import re
from typing import ClassVar

from dbnbook.sources.base import CommandBuild, Source, shell_quote

# user[:password]@host[:port]/database[?params]
_AUTHORITY = (
    r"(?P<user>[^:@/]+)(?::(?P<password>[^@]*))?@(?P<host>[^:/?#]+)"
    r"(?::(?P<port>\d+))?/(?P<database>[^?#]+)(?:\?(?P<params>.*))?"
)


class UsqlSource(Source):
    """Base for backends executed with ``usql <uri> -J -c <query>``."""

    uri_pattern: ClassVar[re.Pattern[str]]

    def build_command(self, uri: str, query: str) -> CommandBuild:
        if not self.uri_pattern.fullmatch(uri):
            return None, self.invalid_uri_message

        return f"usql {shell_quote(uri)} -J -c {shell_quote(query)}", None


def usql_uri_pattern(scheme: str) -> re.Pattern[str]:
    """Compile the strict URI matcher for a usql backend scheme regex."""
    return re.compile(f"(?:{scheme})://{_AUTHORITY}", re.DOTALL)
