"""Pytest 配置和 fixtures。"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Callable

import pytest

# 项目根目录
PROJECT_ROOT = Path(__file__).parent.parent

# 添加 src 目录到 Python 路径
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

# 模拟 docker-machine 的脚本
FAKE_MACHINE_PATH = PROJECT_ROOT / "tests" / "fixtures" / "fake_machine.py"

from machine_env.config import Config  # noqa: E402


@pytest.fixture
def fake_tool() -> tuple[str, ...]:
    """调用模拟工具的命令前缀。"""
    return (sys.executable, str(FAKE_MACHINE_PATH))


@pytest.fixture
def machine_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Callable[..., Path]:
    """写入模拟工具的状态文件，并通过 FAKE_MACHINE_STATE 指向它。

    用法:
        state_file = machine_state(machines={"default": "Stopped"})
    """
    state_file = tmp_path / "machine_state.json"
    monkeypatch.setenv("FAKE_MACHINE_STATE", str(state_file))

    def write(**state: Any) -> Path:
        state.setdefault("machines", {})
        state_file.write_text(json.dumps(state), encoding="utf-8")
        return state_file

    return write


@pytest.fixture
def read_state() -> Callable[[Path], dict]:
    """读取模拟工具的状态文件。"""

    def read(state_file: Path) -> dict:
        return json.loads(state_file.read_text(encoding="utf-8"))

    return read


@pytest.fixture
def fake_settings(fake_tool: tuple[str, ...]) -> Config:
    """使用模拟工具的运行配置（较短的超时）。"""
    return Config(tool=fake_tool, drain_timeout=2.0, exit_timeout=10.0)
