"""machine-env 异常类。

machine-env v0.1.0

所有异常都直接抛给调用方，内部不做重试。
"""

from __future__ import annotations

from collections.abc import Sequence

__all__ = [
    "MachineError",
    "RunnerError",
    "SpawnError",
    "StreamError",
    "CommandTimeoutError",
    "CommandFailedError",
    "UnrecognizedStatusError",
    "ConfigError",
]


class MachineError(Exception):
    """machine-env 基础异常。"""
    pass


def _target(action: str, machine: str) -> str:
    return " ".join(part for part in (action, machine) if part)


class RunnerError(MachineError):
    """执行子进程时发生的错误（启动、读取、超时）。

    runner 本身不知道命令和机器，execute_command 会通过 add_context 补充。

    Attributes:
        detail: 不含上下文的错误描述
        action: 执行的动作（status/env/create/start）
        machine: 机器名称
    """

    def __init__(self, detail: str, *, action: str = "", machine: str = "") -> None:
        self.detail = detail
        self.action = action
        self.machine = machine
        super().__init__(self._compose())

    def _compose(self) -> str:
        target = _target(self.action, self.machine)
        return f"{target}: {self.detail}" if target else self.detail

    def add_context(self, action: str, machine: str) -> RunnerError:
        """补充动作和机器名称，并更新错误消息。"""
        self.action = action
        self.machine = machine
        self.args = (self._compose(),)
        return self


class SpawnError(RunnerError):
    """进程无法启动（可执行文件不存在、无权限等）。

    Attributes:
        argv: 尝试启动的命令行
    """

    def __init__(self, argv: Sequence[str], reason: str, **context: str) -> None:
        self.argv = list(argv)
        executable = self.argv[0] if self.argv else "<empty>"
        super().__init__(f"failed to start {executable}: {reason}", **context)


class StreamError(RunnerError):
    """读取子进程输出流失败，进程已被终止。

    Attributes:
        stream: 出错的流名称（stdout/stderr）
    """

    def __init__(self, stream: str, reason: str, **context: str) -> None:
        self.stream = stream
        super().__init__(f"failed to read {stream}: {reason}", **context)


class CommandTimeoutError(RunnerError, TimeoutError):
    """等待 stderr 读取完成超时。

    Attributes:
        timeout: 超时时间（秒）
    """

    def __init__(self, message: str, timeout: float, **context: str) -> None:
        self.timeout = timeout
        super().__init__(f"{message} (timeout {timeout:g}s)", **context)


class CommandFailedError(MachineError):
    """命令以非零退出码结束。

    Attributes:
        exit_code: 退出码
        diagnostics: 捕获的 stderr 文本（原样保留）
        action: 执行的动作（status/env/create/start）
        machine: 机器名称
    """

    def __init__(
        self,
        exit_code: int,
        diagnostics: str = "",
        action: str = "",
        machine: str = "",
    ) -> None:
        self.exit_code = exit_code
        self.diagnostics = diagnostics
        self.action = action
        self.machine = machine
        target = _target(action, machine) or "command"
        message = f"{target} exited with status {exit_code}"
        if diagnostics.strip():
            message += f":\n{diagnostics.rstrip()}"
        super().__init__(message)


class UnrecognizedStatusError(MachineError):
    """status 输出不是已知状态。

    Attributes:
        status_text: 工具输出的原始文本
        machine: 机器名称
    """

    def __init__(self, status_text: str, machine: str = "") -> None:
        self.status_text = status_text
        self.machine = machine
        prefix = f"{machine}: " if machine else ""
        super().__init__(f"{prefix}Unknown status - {status_text}")


class ConfigError(MachineError):
    """机器不存在且未开启自动创建。

    Attributes:
        machine: 机器名称
    """

    def __init__(self, machine: str) -> None:
        self.machine = machine
        super().__init__(f"{machine} does not exist and auto-create is disabled")
