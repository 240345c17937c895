"""命令抽象测试。

测试覆盖：
- 四个子命令的参数构建
- execute_command 的退出码判定
- 计时钩子
"""

from __future__ import annotations

import sys

import pytest

from machine_env.errors import CommandFailedError
from machine_env.machine.command import Command, execute_command, run_command, timed_hooks
from machine_env.machine.commands import (
    create_argv,
    create_command,
    env_argv,
    start_argv,
    start_command,
    status_argv,
)
from machine_env.runtime.process_runner import ProcessRunner
from machine_env.types import MachineConfig

TOOL = ("docker-machine",)


@pytest.fixture
def runner() -> ProcessRunner:
    return ProcessRunner(drain_timeout=2.0, exit_timeout=5.0, warn_stderr=False)


def python_command(code: str, action: str = "test", **kwargs) -> Command:
    return Command(
        action=action,
        build_argv=lambda config: [sys.executable, "-c", code],
        **kwargs,
    )


# =============================================================================
# 参数构建测试
# =============================================================================


class TestArgv:
    """命令行参数构建。"""

    def test_status(self):
        assert status_argv(TOOL, MachineConfig(name="default")) == [
            "docker-machine", "status", "default",
        ]

    def test_env(self):
        assert env_argv(TOOL, MachineConfig(name="default")) == [
            "docker-machine", "env", "default", "--shell", "cmd",
        ]

    def test_start(self):
        assert start_argv(TOOL, MachineConfig(name="vm1")) == ["docker-machine", "start", "vm1"]

    def test_create_without_options(self):
        assert create_argv(TOOL, MachineConfig(name="vm1")) == ["docker-machine", "create", "vm1"]

    def test_create_preserves_option_order(self):
        config = MachineConfig(
            name="vm1",
            create_options={
                "driver": "virtualbox",
                "virtualbox-no-share": None,
                "virtualbox-memory": "4096",
                "engine-insecure-registry": "",
            },
        )

        assert create_argv(TOOL, config) == [
            "docker-machine", "create",
            "--driver", "virtualbox",
            "--virtualbox-no-share",
            "--virtualbox-memory", "4096",
            "--engine-insecure-registry",
            "vm1",
        ]

    def test_tool_prefix(self):
        argv = status_argv(("python3", "fake.py"), MachineConfig(name="default"))

        assert argv == ["python3", "fake.py", "status", "default"]

    def test_command_builder_uses_tool(self):
        command = start_command(("/opt/bin/docker-machine",), MachineConfig(name="x"))

        assert command.action == "start"
        assert command.build_argv(MachineConfig(name="x")) == [
            "/opt/bin/docker-machine", "start", "x",
        ]


class TestMachineConfig:
    """MachineConfig 不可变性。"""

    def test_name_required(self):
        with pytest.raises(ValueError):
            MachineConfig(name="")

    def test_create_options_copied(self):
        options = {"driver": "virtualbox"}
        config = MachineConfig(name="vm1", create_options=options)
        options["extra"] = "1"

        assert dict(config.create_options) == {"driver": "virtualbox"}

    def test_create_options_read_only(self):
        config = MachineConfig(name="vm1", create_options={"driver": "virtualbox"})

        with pytest.raises(TypeError):
            config.create_options["driver"] = "other"  # type: ignore[index]


# =============================================================================
# 执行测试
# =============================================================================


class TestExecuteCommand:
    """execute_command 退出码判定。"""

    @pytest.mark.asyncio
    async def test_success_runs_line_handler(self, runner: ProcessRunner):
        lines: list[str] = []
        command = python_command("print('hello')", on_line=lines.append)

        outcome = await execute_command(command, MachineConfig(name="vm1"), runner)

        assert outcome.exit_code == 0
        assert lines == ["hello"]

    @pytest.mark.asyncio
    async def test_nonzero_exit_raises_with_diagnostics(self, runner: ProcessRunner):
        command = python_command(
            "import sys; sys.stderr.write('boom\\n'); sys.exit(2)", action="start"
        )

        with pytest.raises(CommandFailedError) as exc_info:
            await execute_command(command, MachineConfig(name="vm1"), runner)

        error = exc_info.value
        assert error.exit_code == 2
        assert "boom" in error.diagnostics
        assert error.action == "start"
        assert error.machine == "vm1"
        assert "start vm1 exited with status 2" in str(error)
        assert "boom" in str(error)

    @pytest.mark.asyncio
    async def test_run_command_does_not_raise(self, runner: ProcessRunner):
        command = python_command("import sys; sys.exit(5)")

        outcome = await run_command(command, MachineConfig(name="vm1"), runner)

        assert outcome.exit_code == 5

    @pytest.mark.asyncio
    async def test_hooks_bracket_failed_command(self, runner: ProcessRunner):
        events: list[str] = []
        command = python_command(
            "import sys; sys.exit(3)",
            on_start=lambda: events.append("start"),
            on_end=lambda: events.append("end"),
        )

        with pytest.raises(CommandFailedError):
            await execute_command(command, MachineConfig(name="vm1"), runner)

        assert events == ["start", "end"]


class TestTimedHooks:
    """计时钩子。"""

    def test_reports_elapsed_seconds(self):
        started: list[bool] = []
        finished: list[int] = []
        on_start, on_end = timed_hooks(lambda: started.append(True), finished.append)

        on_start()
        on_end()

        assert started == [True]
        assert finished == [0]

    def test_create_hooks_log_progress(self, caplog):
        config = MachineConfig(name="vm1", create_options={"driver": "virtualbox"})
        command = create_command(TOOL, config)

        with caplog.at_level("INFO", logger="machine_env"):
            command.on_start()
            command.on_end()

        assert 'Creating docker machine "vm1"' in caplog.text
        assert "virtualbox" in caplog.text
        assert "This might take a while" in caplog.text
        assert 'Created docker machine "vm1" in 0 seconds' in caplog.text

    def test_start_hooks_log_progress(self, caplog):
        command = start_command(TOOL, MachineConfig(name="vm1"))

        with caplog.at_level("INFO", logger="machine_env"):
            command.on_start()
            command.on_end()

        assert 'Starting docker machine "vm1"' in caplog.text
        assert 'Started docker machine "vm1" in 0 seconds' in caplog.text
