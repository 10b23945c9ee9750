"""run-check 应用入口。

命令行解析、日志配置，以及监督器进程的退出码。
"""

from __future__ import annotations

import argparse
import logging
import sys

from . import __version__
from .config import Config, get_config
from .console import Console
from .errors import Interrupted, SupervisorError
from .runtime import ensure_tree_kill_available
from .signal_manager import SignalManager
from .supervisor import Supervisor

__all__ = ["build_parser", "configure_logging", "run_cli", "main"]

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="run-check",
        description=(
            "Run a long-lived command alongside a check command. "
            "A failing check or any exit of the run command stops both."
        ),
    )
    parser.add_argument(
        "--run",
        required=True,
        metavar="COMMAND_TO_RUN",
        help="command to run",
    )
    parser.add_argument(
        "--check",
        required=True,
        metavar="COMMAND_TO_CHECK",
        help="command to check",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def configure_logging(config: Config) -> None:
    """配置 run_check 命名空间的日志。

    调试模式下全部写入 config.log_file；否则只有警告和错误输出到 stderr，
    与转发的子进程输出交错。
    """
    log_handlers: list[logging.Handler] = []

    if config.log_debug and config.log_file:
        file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log_handlers.append(file_handler)
        log_level = logging.DEBUG
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log_handlers.append(stderr_handler)
        log_level = logging.WARNING

    # 根 logger（第三方库）保持 WARNING
    logging.basicConfig(
        level=logging.WARNING,
        handlers=log_handlers,
    )
    logging.getLogger("run_check").setLevel(log_level)


def run_cli(argv: list[str] | None = None, *, console: Console | None = None) -> int:
    """解析参数，监督两个命令，返回退出码。"""
    args = build_parser().parse_args(argv)
    config = get_config()
    console = console or Console(color=config.color)

    try:
        ensure_tree_kill_available()
        with SignalManager() as signals:
            supervisor = Supervisor(
                args.run,
                args.check,
                config=config,
                console=console,
                signal_manager=signals,
            )
            outcome = supervisor.run()
    except Interrupted as e:
        console.error(str(e))
        return e.exit_code
    except SupervisorError as e:
        logger.debug("Supervisor aborted", exc_info=True)
        console.error(str(e))
        return 1

    return outcome.code


def main() -> None:
    """命令行脚本入口。"""
    config = get_config()
    configure_logging(config)
    if config.log_file:
        logger.info(f"Debug log: {config.log_file}")
    sys.exit(run_cli())


if __name__ == "__main__":
    main()
