"""machine-env 命令行入口。

确保指定机器处于 Running 状态，然后输出其连接环境变量。

用法:
    machine-env default
    machine-env build-vm --auto-create -o driver=virtualbox -o virtualbox-no-share
    machine-env default --format json
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Mapping, Sequence

import anyio

from .config import Config, get_config
from .errors import MachineError
from .machine import DockerMachine
from .types import MachineConfig

__all__ = ["main", "build_parser", "format_environment", "configure_logging"]

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ("env", "json", "cmd")


def _parse_create_option(value: str) -> tuple[str, str | None]:
    """解析 KEY[=VALUE] 形式的 create 选项。"""
    key, sep, option_value = value.partition("=")
    key = key.strip().lstrip("-")
    if not key:
        raise argparse.ArgumentTypeError(f"invalid create option: {value!r}")
    return key, option_value if sep else None


def build_parser() -> argparse.ArgumentParser:
    """构建命令行解析器。"""
    parser = argparse.ArgumentParser(
        prog="machine-env",
        description="Ensure a docker machine is running and print its environment.",
    )
    parser.add_argument("name", help="Machine name")
    parser.add_argument(
        "--auto-create",
        action="store_true",
        help="Create the machine when it does not exist",
    )
    parser.add_argument(
        "-o",
        "--create-option",
        action="append",
        default=[],
        type=_parse_create_option,
        metavar="KEY[=VALUE]",
        help="Option passed to '<tool> create' as --KEY [VALUE] (repeatable, order kept)",
    )
    parser.add_argument(
        "--format",
        choices=OUTPUT_FORMATS,
        default="env",
        help="Output format (default: env)",
    )
    return parser


def format_environment(environment: Mapping[str, str], fmt: str = "env") -> str:
    """把环境变量格式化为输出文本。"""
    if fmt == "json":
        return json.dumps(dict(environment), ensure_ascii=False, indent=2)
    prefix = "SET " if fmt == "cmd" else ""
    return "\n".join(f"{prefix}{name}={value}" for name, value in environment.items())


def configure_logging(config: Config) -> None:
    """配置日志输出。

    默认输出到 stderr (INFO)；DMENV_LOG_DEBUG 开启时输出到临时文件 (DEBUG)。
    """
    log_handlers: list[logging.Handler] = []
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    if config.log_debug and config.log_file:
        file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        log_handlers.append(file_handler)
        log_level = logging.DEBUG
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(formatter)
        log_handlers.append(stderr_handler)
        log_level = logging.INFO

    # 第三方库保持 WARNING，减少噪音
    logging.basicConfig(level=logging.WARNING, handlers=log_handlers)
    # 只对 machine_env 命名空间启用详细日志
    logging.getLogger("machine_env").setLevel(log_level)


async def _run(machine_config: MachineConfig, config: Config) -> dict[str, str]:
    machine = await DockerMachine.open(machine_config, settings=config)
    return await machine.get_environment()


def main(argv: Sequence[str] | None = None) -> int:
    """主入口点，返回进程退出码。"""
    args = build_parser().parse_args(argv)
    config = get_config()
    configure_logging(config)
    logger.debug(f"Starting machine-env: {config}")

    try:
        machine_config = MachineConfig(
            name=args.name,
            auto_create=args.auto_create,
            create_options=dict(args.create_option),
        )
        environment = anyio.run(_run, machine_config, config)
    except (MachineError, ValueError) as e:
        print(f"machine-env: {e}", file=sys.stderr)
        return 1

    output = format_environment(environment, args.format)
    if output:
        print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
