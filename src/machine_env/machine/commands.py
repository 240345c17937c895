"""Concrete tool commands: status, env, create, start.

machine-env machine module v0.1.0
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from functools import partial

from ..types import MachineConfig
from .command import Command, timed_hooks
from .parsers import EnvironmentCollector, StatusCollector

__all__ = [
    "status_argv",
    "env_argv",
    "create_argv",
    "start_argv",
    "status_command",
    "env_command",
    "create_command",
    "start_command",
]

logger = logging.getLogger(__name__)


# =============================================================================
# Argument vectors
# =============================================================================


def status_argv(tool: Sequence[str], config: MachineConfig) -> list[str]:
    return [*tool, "status", config.name]


def env_argv(tool: Sequence[str], config: MachineConfig) -> list[str]:
    return [*tool, "env", config.name, "--shell", "cmd"]


def create_argv(tool: Sequence[str], config: MachineConfig) -> list[str]:
    """``<tool> create --key [value]... <name>`` in create-options order."""
    args = [*tool, "create"]
    for key, value in config.create_options.items():
        args.append(f"--{key}")
        if value:
            args.append(value)
    args.append(config.name)
    return args


def start_argv(tool: Sequence[str], config: MachineConfig) -> list[str]:
    return [*tool, "start", config.name]


# =============================================================================
# Command factories
# =============================================================================


def status_command(
    tool: Sequence[str], config: MachineConfig
) -> tuple[Command, StatusCollector]:
    collector = StatusCollector(config.name)
    command = Command(
        action="status",
        build_argv=partial(status_argv, tuple(tool)),
        on_line=collector,
    )
    return command, collector


def env_command(
    tool: Sequence[str], config: MachineConfig
) -> tuple[Command, EnvironmentCollector]:
    collector = EnvironmentCollector()
    command = Command(
        action="env",
        build_argv=partial(env_argv, tuple(tool)),
        on_line=collector,
    )
    return command, collector


def create_command(tool: Sequence[str], config: MachineConfig) -> Command:
    options = dict(config.create_options)

    def started() -> None:
        logger.info(f'Creating docker machine "{config.name}" with args {options}')
        logger.info("This might take a while ...")

    def finished(seconds: int) -> None:
        logger.info(f'Created docker machine "{config.name}" in {seconds} seconds')

    on_start, on_end = timed_hooks(started, finished)
    return Command(
        action="create",
        build_argv=partial(create_argv, tuple(tool)),
        on_line=_verbose,
        on_start=on_start,
        on_end=on_end,
    )


def start_command(tool: Sequence[str], config: MachineConfig) -> Command:
    def started() -> None:
        logger.info(f'Starting docker machine "{config.name}"')

    def finished(seconds: int) -> None:
        logger.info(f'Started docker machine "{config.name}" in {seconds} seconds')

    on_start, on_end = timed_hooks(started, finished)
    return Command(
        action="start",
        build_argv=partial(start_argv, tuple(tool)),
        on_line=_verbose,
        on_start=on_start,
        on_end=on_end,
    )


def _verbose(line: str) -> None:
    logger.debug(line)
