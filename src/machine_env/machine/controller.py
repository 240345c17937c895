"""Machine controller: bring a machine to Running, then read its environment.

machine-env machine module v0.1.0

Usage:
    machine = await DockerMachine.open(MachineConfig(name="default", auto_create=True))
    env = await machine.get_environment()

From synchronous code (build tooling):
    env = get_environment_sync(MachineConfig(name="default"))
"""

from __future__ import annotations

import logging
from typing import Any

import anyio

from ..config import Config, get_config
from ..errors import CommandFailedError, ConfigError, MachineError
from ..runtime.process_runner import ProcessRunner
from ..types import MachineConfig, Status
from .command import Command, execute_command
from .commands import create_command, env_command, start_command, status_command

__all__ = [
    "DockerMachine",
    "get_environment_sync",
    "DOES_NOT_EXIST_EXIT_CODE",
]

logger = logging.getLogger(__name__)

# status exits with this code when the machine is unknown to the tool
DOES_NOT_EXIST_EXIT_CODE = 1


class DockerMachine:
    """Controller for one named machine.

    Construction does no I/O; ``open()`` constructs and runs the
    ensure-running transition once. Commands are executed one at a time.
    """

    def __init__(
        self,
        config: MachineConfig,
        *,
        settings: Config | None = None,
        runner: ProcessRunner | None = None,
    ) -> None:
        self.config = config
        self.settings = settings or get_config()
        self.runner = runner or ProcessRunner(
            drain_timeout=self.settings.drain_timeout,
            exit_timeout=self.settings.exit_timeout,
            warn_stderr=self.settings.warn_stderr,
        )
        self.status: Status | None = None

    @classmethod
    async def open(cls, config: MachineConfig, **kwargs: Any) -> DockerMachine:
        """Create a controller and make sure the machine is running."""
        machine = cls(config, **kwargs)
        await machine.ensure_running()
        return machine

    @property
    def tool(self) -> tuple[str, ...]:
        return self.settings.tool

    async def _execute(self, command: Command) -> None:
        await execute_command(command, self.config, self.runner)

    async def get_status(self) -> Status:
        """Query the tool for the current status.

        An exit code of 1 means the machine does not exist; stdout is ignored
        in that case.

        Raises:
            UnrecognizedStatusError: The tool printed an unknown status
            CommandFailedError: Any other non-zero exit code
        """
        command, collector = status_command(self.tool, self.config)
        try:
            await self._execute(command)
        except CommandFailedError as e:
            if e.exit_code != DOES_NOT_EXIST_EXIT_CODE:
                raise
            logger.info(f'Docker machine "{self.config.name}" does not exist')
            return Status.DOES_NOT_EXIST
        return collector.result()

    async def ensure_running(self) -> Status:
        """Start or create the machine as needed.

        Running: nothing to do. Stopped: start. Missing: create when
        auto_create is set, otherwise fail. After a start or create the
        machine is taken to be running without another status query, unless
        the verify_after_transition setting asks for one.

        Raises:
            ConfigError: The machine is missing and auto_create is off
        """
        status = await self.get_status()
        action: str | None = None

        if status is Status.STOPPED:
            action = "start"
            await self._execute(start_command(self.tool, self.config))
        elif status is Status.DOES_NOT_EXIST:
            if not self.config.auto_create:
                raise ConfigError(self.config.name)
            action = "create"
            await self._execute(create_command(self.tool, self.config))

        if action and self.settings.verify_after_transition:
            status = await self.get_status()
            if status is not Status.RUNNING:
                raise MachineError(
                    f"{self.config.name} is {status.value} after {action}"
                )

        self.status = Status.RUNNING
        return self.status

    async def get_environment(self) -> dict[str, str]:
        """Run ``env --shell cmd`` and return the exported variables."""
        command, collector = env_command(self.tool, self.config)
        await self._execute(command)
        return collector.environment


def get_environment_sync(
    config: MachineConfig,
    *,
    settings: Config | None = None,
) -> dict[str, str]:
    """Ensure the machine is running and return its environment (blocking)."""

    async def _run() -> dict[str, str]:
        machine = await DockerMachine.open(config, settings=settings)
        return await machine.get_environment()

    return anyio.run(_run)
