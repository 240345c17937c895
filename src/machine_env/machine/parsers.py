"""Line handlers for the status and env subcommands.

machine-env machine module v0.1.0

Each collector is a small stateful object whose ``__call__`` is used as a
Command's line handler. A fresh collector is created per execution.
"""

from __future__ import annotations

import logging

from ..errors import UnrecognizedStatusError
from ..types import Status

__all__ = [
    "SET_PREFIX",
    "StatusCollector",
    "EnvironmentCollector",
    "parse_status_line",
    "parse_env_line",
]

logger = logging.getLogger(__name__)

SET_PREFIX = "SET "

_KNOWN_STATUS = {
    "Running": Status.RUNNING,
    "Stopped": Status.STOPPED,
}


def parse_status_line(line: str) -> Status | None:
    """Classify one status line; None when the text is not a known status."""
    return _KNOWN_STATUS.get(line)


def parse_env_line(line: str) -> tuple[str, str] | None:
    """Parse ``SET NAME=VALUE`` into (NAME, VALUE).

    The value may be empty. Returns None for lines without the marker or
    without an ``=`` after it.
    """
    if not line.startswith(SET_PREFIX):
        return None
    name, sep, value = line[len(SET_PREFIX):].partition("=")
    if not sep:
        return None
    return name, value


class StatusCollector:
    """Collects the machine status from ``<tool> status <name>`` output.

    Empty lines are skipped; any other line must match a status exactly,
    surrounding whitespace included. Unknown text is remembered and reported
    by ``result()`` once the command has completed.
    """

    def __init__(self, machine: str) -> None:
        self.machine = machine
        self.status: Status | None = None
        self.unrecognized: str | None = None

    def __call__(self, line: str) -> None:
        if not line:
            return
        logger.info(f'Docker machine "{self.machine}" is {line.lower()}')
        status = parse_status_line(line)
        if status is None:
            self.unrecognized = line
        else:
            self.status = status

    def result(self) -> Status:
        """Return the collected status.

        Raises:
            UnrecognizedStatusError: Unknown text was seen, or nothing at all
        """
        if self.unrecognized is not None:
            raise UnrecognizedStatusError(self.unrecognized, machine=self.machine)
        if self.status is None:
            raise UnrecognizedStatusError("<no output>", machine=self.machine)
        return self.status


class EnvironmentCollector:
    """Collects ``SET NAME=VALUE`` lines; later duplicates win."""

    def __init__(self) -> None:
        self.environment: dict[str, str] = {}

    def __call__(self, line: str) -> None:
        parsed = parse_env_line(line)
        if parsed is None:
            logger.debug(f"env: {line}")
            return
        name, value = parsed
        logger.debug(f"{name}={value}")
        self.environment[name] = value
