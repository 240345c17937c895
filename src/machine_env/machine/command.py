"""Command abstraction.

machine-env machine module v0.1.0

A Command is a plain value: how to build the argument vector, what to do
with each stdout line, and two optional hooks bracketing the run.
``execute_command`` is the one function that runs any of them.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from ..errors import CommandFailedError, RunnerError
from ..runtime.process_runner import Hook, LineCallback, ProcessRunner, ProcessSpec
from ..types import ExitOutcome, MachineConfig

__all__ = [
    "ArgvBuilder",
    "Command",
    "execute_command",
    "run_command",
    "timed_hooks",
]

logger = logging.getLogger(__name__)

ArgvBuilder = Callable[[MachineConfig], list[str]]


@dataclass(frozen=True)
class Command:
    """One invocation of the tool.

    Attributes:
        action: Subcommand name used in log and error messages
        build_argv: Pure function of the machine config
        on_line: Stdout line handler (accumulates whatever state the
            concrete command needs)
        on_start: Hook called before the process starts
        on_end: Hook called after the attempt, on every exit path
    """

    action: str
    build_argv: ArgvBuilder
    on_line: LineCallback | None = None
    on_start: Hook | None = None
    on_end: Hook | None = None


async def run_command(
    command: Command,
    config: MachineConfig,
    runner: ProcessRunner,
) -> ExitOutcome:
    """Run the command and return its outcome without judging the exit code.

    Runner errors are re-raised with the action and machine name attached.
    """
    argv = command.build_argv(config)
    logger.debug(f"Executing: {' '.join(argv)}")
    try:
        return await runner.run(
            ProcessSpec(argv=argv),
            on_line=command.on_line,
            on_start=command.on_start,
            on_end=command.on_end,
        )
    except RunnerError as e:
        e.add_context(command.action, config.name)
        raise


async def execute_command(
    command: Command,
    config: MachineConfig,
    runner: ProcessRunner,
) -> ExitOutcome:
    """Run the command and fail on a non-zero exit code.

    Raises:
        CommandFailedError: The process exited non-zero or was killed
        SpawnError, StreamError, CommandTimeoutError: from the runner, with
            action and machine filled in
    """
    outcome = await run_command(command, config, runner)
    if outcome.exit_code != 0:
        raise CommandFailedError(
            outcome.exit_code,
            outcome.diagnostics,
            action=command.action,
            machine=config.name,
        )
    return outcome


def timed_hooks(
    on_started: Callable[[], None],
    on_finished: Callable[[int], None],
) -> tuple[Hook, Hook]:
    """Build a start/end hook pair that measures elapsed whole seconds.

    on_finished receives the seconds elapsed since the start hook ran.
    """
    started_at = 0.0

    def start() -> None:
        nonlocal started_at
        started_at = time.monotonic()
        on_started()

    def end() -> None:
        on_finished(int(time.monotonic() - started_at))

    return start, end
