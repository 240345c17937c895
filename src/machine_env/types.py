"""机器管理类型定义。

machine-env v0.1.0

定义机器描述、状态枚举和进程退出结果。
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType

__all__ = [
    "MachineConfig",
    "Status",
    "TerminationCause",
    "ExitOutcome",
    "FORCED_KILL_EXIT_CODE",
]

# 强制终止时使用的合成退出码
FORCED_KILL_EXIT_CODE = -1


class Status(str, Enum):
    """机器状态。

    封闭集合：工具输出的其他文本视为错误，而不是新状态。
    """

    DOES_NOT_EXIST = "DoesNotExist"
    RUNNING = "Running"
    STOPPED = "Stopped"


class TerminationCause(str, Enum):
    """进程终止原因。"""

    EXITED = "exited"
    FORCED_KILL = "forced-kill"


@dataclass(frozen=True)
class MachineConfig:
    """机器描述（调用方提供，整个会话内只读）。

    Attributes:
        name: 机器名称（必需）
        auto_create: 机器不存在时是否自动创建
        create_options: create 子命令的选项，按插入顺序原样传递；
            值为空或 None 时只传 ``--key``
    """

    name: str
    auto_create: bool = False
    create_options: Mapping[str, str | None] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("machine name is required")
        # 拷贝一份只读视图，调用方后续修改原字典不影响本实例
        object.__setattr__(
            self, "create_options", MappingProxyType(dict(self.create_options or {}))
        )


@dataclass(frozen=True)
class ExitOutcome:
    """一次进程执行的结果。

    Attributes:
        exit_code: 退出码（强制终止时为 FORCED_KILL_EXIT_CODE）
        diagnostics: 捕获的 stderr 文本
        cause: 终止原因
    """

    exit_code: int
    diagnostics: str = ""
    cause: TerminationCause = TerminationCause.EXITED

    @property
    def success(self) -> bool:
        return self.exit_code == 0 and self.cause is TerminationCause.EXITED
