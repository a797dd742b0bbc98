"""PostgreSQL source adapter."""

from __future__ import annotations

import re

from dbnbook.models import BackendKind
from dbnbook.sources.usql import UsqlSource, usql_uri_pattern


class PostgreSQLSource(UsqlSource):
    """``postgres[ql]://user:password@host:port/database``.

    Detection is a loose ``postgres`` prefix match, which is why this
    adapter is registered after the more specific schemes.
    """

    name = BackendKind.POSTGRESQL
    label = "PostgreSQL"
    default_query = "SELECT * FROM information_schema.tables LIMIT 10;"
    scheme_pattern = re.compile(r"postgres")
    uri_pattern = usql_uri_pattern(r"postgres(?:ql)?")
