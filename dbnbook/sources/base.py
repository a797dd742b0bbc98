"""Base class for backend source adapters.

A source turns a connection URI plus query text into a single shell
command line for the backend's command line client.
"""

from __future__ import annotations

import re
import shlex
from abc import ABC, abstractmethod
from typing import ClassVar

from dbnbook.models import BackendKind

CommandBuild = tuple[str | None, str | None]


def shell_quote(value: str) -> str:
    """Quote one value for safe interpolation into a shell command line."""
    return shlex.quote(value)


class Source(ABC):
    """Backend adapter: scheme predicate, command builder and sample query.

    Subclasses are stateless; one instance per backend is shared by the
    registry.
    """

    name: ClassVar[BackendKind]
    default_query: ClassVar[str]
    scheme_pattern: ClassVar[re.Pattern[str]]
    # Display label used in error messages ("Invalid <label> URI format")
    label: ClassVar[str]

    def matches(self, uri: str) -> bool:
        """Return True if ``uri`` uses this backend's scheme."""
        return bool(self.scheme_pattern.match(uri))

    @property
    def invalid_uri_message(self) -> str:
        """Error message reported for URIs this adapter cannot parse."""
        return f"Invalid {self.label} URI format"

    @abstractmethod
    def build_command(self, uri: str, query: str) -> CommandBuild:
        """Build the command line that runs ``query`` against ``uri``.

        Returns:
            ``(command, None)`` on success, ``(None, error_message)`` when the
            URI cannot be parsed. Never raises for malformed input.

        """

    def __repr__(self) -> str:
        """Return a short representation naming the backend."""
        return f"<{type(self).__name__} {self.name.value}>"
