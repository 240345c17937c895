"""machine-env - 启动并查询容器虚拟机，获取连接环境变量。

环境变量:
    DMENV_TOOL: 机器管理工具命令 (默认 docker-machine)
    DMENV_DRAIN_TIMEOUT: stderr 读取等待时间 (默认 2.0s)
    DMENV_EXIT_TIMEOUT: 进程退出等待时间 (默认 10.0s)

用法:
    uvx machine-env default --auto-create
"""

__version__ = "0.1.0"

from .errors import (
    CommandFailedError,
    CommandTimeoutError,
    ConfigError,
    MachineError,
    RunnerError,
    SpawnError,
    StreamError,
    UnrecognizedStatusError,
)
from .machine import DockerMachine, get_environment_sync
from .types import ExitOutcome, MachineConfig, Status, TerminationCause

__all__ = [
    "__version__",
    "DockerMachine",
    "get_environment_sync",
    "MachineConfig",
    "Status",
    "ExitOutcome",
    "TerminationCause",
    "MachineError",
    "RunnerError",
    "SpawnError",
    "StreamError",
    "CommandTimeoutError",
    "CommandFailedError",
    "UnrecognizedStatusError",
    "ConfigError",
]
