"""External command execution."""

from __future__ import annotations

from dbnbook.executor.base import JobResult, interpret_output
from dbnbook.executor.runner import JobRunner

__all__ = [
    "JobResult",
    "JobRunner",
    "interpret_output",
]
