"""Command line interface for dbnbook."""

from dbnbook.cli.main import cli, main

__all__ = [
    "cli",
    "main",
]
