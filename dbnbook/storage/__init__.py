"""Notebook file persistence."""

from __future__ import annotations

from dbnbook.storage.notebook_store import (
    NotebookStore,
    deserialize,
    dumps,
    parse,
    serialize,
)

__all__ = [
    "NotebookStore",
    "deserialize",
    "dumps",
    "parse",
    "serialize",
]
