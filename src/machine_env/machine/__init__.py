"""机器管理模块。

提供 status/env/create/start 四个命令，以及保证机器处于 Running 状态的控制器。

基础用法:
    from machine_env.machine import DockerMachine
    from machine_env.types import MachineConfig

    machine = await DockerMachine.open(MachineConfig(name="default", auto_create=True))
    env = await machine.get_environment()
"""

from __future__ import annotations

from .command import Command, execute_command, run_command, timed_hooks
from .commands import (
    create_argv,
    create_command,
    env_argv,
    env_command,
    start_argv,
    start_command,
    status_argv,
    status_command,
)
from .controller import DockerMachine, get_environment_sync
from .parsers import (
    EnvironmentCollector,
    StatusCollector,
    parse_env_line,
    parse_status_line,
)

__all__ = [
    # 命令抽象
    "Command",
    "execute_command",
    "run_command",
    "timed_hooks",
    # 具体命令
    "status_argv",
    "env_argv",
    "create_argv",
    "start_argv",
    "status_command",
    "env_command",
    "create_command",
    "start_command",
    # 解析器
    "StatusCollector",
    "EnvironmentCollector",
    "parse_status_line",
    "parse_env_line",
    # 控制器
    "DockerMachine",
    "get_environment_sync",
]
