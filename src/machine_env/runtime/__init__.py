"""Runtime module for subprocess management.

This module runs one external process at a time with both output streams
drained concurrently, bounded waits and reliable termination.
"""

from __future__ import annotations

from .process_runner import ProcessRunner, ProcessSpec, run_process
from .sink import DiagnosticSink

__all__ = [
    "DiagnosticSink",
    "ProcessRunner",
    "ProcessSpec",
    "run_process",
]
