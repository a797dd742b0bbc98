"""Result types for external command execution."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

ERROR_PREFIX = "Error: "

CompletionCallback = Callable[[bool, str], None]


@dataclass
class JobResult:
    """Typed result container for one external process run.

    Args:
        success: Whether the run is reported as successful
        output: Standard output on success, ``"Error: " + stderr`` on failure
        returncode: Process exit code (None if the process never started)
        duration: Wall-clock seconds from spawn to exit
        metadata: Additional metadata about the execution

    """

    success: bool
    output: str
    returncode: int | None = None
    duration: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)


def interpret_output(stdout: str, stderr: str) -> tuple[bool, str]:
    """Decide success from the captured streams.

    Any standard-error content means failure, whatever the exit code, since
    the supported CLIs do not agree on exit code conventions. Otherwise the
    run succeeded and its result is standard output, possibly empty.
    """
    if stderr:
        return False, ERROR_PREFIX + stderr
    return True, stdout
