"""machine-env 环境变量配置管理。

环境变量:
    DMENV_TOOL: 机器管理工具命令
        - 默认 docker-machine
        - 按 shell 规则拆分，例: "python3 /opt/fake_machine.py"

    DMENV_DRAIN_TIMEOUT: stdout 结束后等待 stderr 读完的时间（秒）
        - 默认 2.0，限制在 0.1-60 秒范围

    DMENV_EXIT_TIMEOUT: 等待进程退出的时间（秒），超时后强制终止
        - 默认 10.0，限制在 0.1-600 秒范围

    DMENV_WARN_STDERR: 是否把工具的 stderr 输出为 WARNING 日志
        - true/1/yes = 开启 (默认)
        - false/0/no = 关闭 (降为 DEBUG)

    DMENV_VERIFY_STATUS: create/start 成功后是否重新查询状态
        - true/1/yes = 开启
        - false/0/no = 关闭 (默认，直接视为 Running)

    DMENV_LOG_DEBUG: 日志调试模式
        - true/1/yes = 开启 (日志输出到临时文件)
        - false/0/no = 关闭 (默认，日志输出到 stderr)
"""

from __future__ import annotations

import os
import shlex
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

__all__ = ["Config", "load_config", "get_config", "reload_config", "DEFAULT_TOOL"]

DEFAULT_TOOL = ("docker-machine",)


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """解析布尔值环境变量。"""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_tool(value: str | None) -> tuple[str, ...]:
    """解析工具命令，空值或无法拆分时返回默认值。"""
    if not value or not value.strip():
        return DEFAULT_TOOL
    try:
        parts = shlex.split(value)
    except ValueError:
        return DEFAULT_TOOL
    return tuple(parts) or DEFAULT_TOOL


def _parse_seconds(
    value: str | None, default: float, minimum: float, maximum: float
) -> float:
    """解析秒数环境变量，无效值返回默认值，超出范围时截断。"""
    if not value:
        return default
    try:
        seconds = float(value)
    except ValueError:
        return default
    return max(minimum, min(seconds, maximum))


@dataclass
class Config:
    """machine-env 运行配置。

    Attributes:
        tool: 工具命令前缀
        drain_timeout: stderr 读取等待时间（秒）
        exit_timeout: 进程退出等待时间（秒）
        warn_stderr: stderr 是否输出为 WARNING
        verify_after_transition: create/start 后是否重新查询状态
        log_debug: 日志调试模式（输出到临时文件）
        log_file: 日志文件路径（当 log_debug=True 时自动设置）
    """

    tool: tuple[str, ...] = DEFAULT_TOOL
    drain_timeout: float = 2.0
    exit_timeout: float = 10.0
    warn_stderr: bool = True
    verify_after_transition: bool = False
    log_debug: bool = False
    log_file: str | None = None

    def __repr__(self) -> str:
        return (
            f"Config(tool={shlex.join(self.tool)}, "
            f"drain_timeout={self.drain_timeout}, "
            f"exit_timeout={self.exit_timeout}, "
            f"warn_stderr={self.warn_stderr}, "
            f"verify_after_transition={self.verify_after_transition}, "
            f"log_debug={self.log_debug}, "
            f"log_file={self.log_file})"
        )


def _generate_log_file_path() -> str:
    """生成日志文件路径（系统临时目录下的 machine-env 子目录）。"""
    log_dir = Path(tempfile.gettempdir()) / "machine-env"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"machine_env_debug_{timestamp}.log"

    return str(log_file.resolve())


def load_config() -> Config:
    """从环境变量加载配置。"""
    log_debug = _parse_bool(os.environ.get("DMENV_LOG_DEBUG"), default=False)
    log_file = _generate_log_file_path() if log_debug else None

    return Config(
        tool=_parse_tool(os.environ.get("DMENV_TOOL")),
        drain_timeout=_parse_seconds(
            os.environ.get("DMENV_DRAIN_TIMEOUT"), 2.0, 0.1, 60.0
        ),
        exit_timeout=_parse_seconds(
            os.environ.get("DMENV_EXIT_TIMEOUT"), 10.0, 0.1, 600.0
        ),
        warn_stderr=_parse_bool(os.environ.get("DMENV_WARN_STDERR"), default=True),
        verify_after_transition=_parse_bool(
            os.environ.get("DMENV_VERIFY_STATUS"), default=False
        ),
        log_debug=log_debug,
        log_file=log_file,
    )


# 全局配置实例（延迟加载）
_config: Config | None = None


def get_config() -> Config:
    """获取全局配置实例。"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """重新加载配置（用于测试）。"""
    global _config
    _config = load_config()
    return _config
