"""run-check 环境变量配置管理。

环境变量:
    SHELL: 运行两个命令所用的 POSIX shell
        - 默认 /bin/sh

    COMSPEC: 运行两个命令所用的 Windows 命令处理器
        - 默认 cmd.exe

    RUN_CHECK_COLOR: 前缀和状态行着色
        - auto = 输出流是终端时着色 (默认)
        - always / never
        - NO_COLOR（任意非空值）强制 never

    RUN_CHECK_POLL_INTERVAL: 退出竞争每轮之间的休眠时间（秒）
        - 默认 0.01，限制在 0-1
        - 0 = 紧密轮询

    RUN_CHECK_JOIN_TIMEOUT: teardown 等待每个工作线程的时间（秒）
        - 默认 10，限制在 0.1-300

    RUN_CHECK_DECODE_ERRORS: 子进程输出非法 UTF-8 时的处理
        - strict = 终止监督器 (默认)
        - replace = 记录警告，用替换字符转发该行

    RUN_CHECK_LOG_DEBUG: 日志调试模式
        - true/1/yes = 开启 (调试日志写入临时文件)
        - false/0/no = 关闭 (默认，仅警告，输出到 stderr)
"""

from __future__ import annotations

import os
import sys
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path

__all__ = [
    "ColorMode",
    "Config",
    "DecodeErrors",
    "get_config",
    "load_config",
    "reload_config",
]

IS_WINDOWS = sys.platform == "win32"

DEFAULT_POSIX_SHELL = "/bin/sh"
DEFAULT_WINDOWS_SHELL = "cmd.exe"
DEFAULT_POLL_INTERVAL = 0.01
DEFAULT_JOIN_TIMEOUT = 10.0


class ColorMode(Enum):
    """何时输出 ANSI 颜色码。"""

    AUTO = "auto"
    ALWAYS = "always"
    NEVER = "never"

    @classmethod
    def from_string(cls, value: str) -> "ColorMode":
        """解析模式字符串，未知值回退为 AUTO。"""
        value = value.lower().strip()
        for mode in cls:
            if mode.value == value:
                return mode
        return cls.AUTO


class DecodeErrors(Enum):
    """pump 遇到非法 UTF-8 行时的处理方式。"""

    STRICT = "strict"
    REPLACE = "replace"

    @classmethod
    def from_string(cls, value: str) -> "DecodeErrors":
        value = value.lower().strip()
        for mode in cls:
            if mode.value == value:
                return mode
        return cls.STRICT


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """解析布尔型环境变量。"""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_float(value: str | None, default: float, low: float, high: float) -> float:
    """解析浮点型环境变量，并限制在 [low, high] 内。"""
    if not value:
        return default
    try:
        number = float(value)
    except ValueError:
        return default
    return max(low, min(number, high))


def _parse_color_mode(value: str | None, no_color: str | None) -> ColorMode:
    # https://no-color.org: 非空值即禁用颜色
    if no_color:
        return ColorMode.NEVER
    if not value:
        return ColorMode.AUTO
    return ColorMode.from_string(value)


def _resolve_shell(env: Mapping[str, str]) -> str:
    """选择宿主 shell，遵循平台的覆盖变量。"""
    if IS_WINDOWS:
        return env.get("COMSPEC") or DEFAULT_WINDOWS_SHELL
    return env.get("SHELL") or DEFAULT_POSIX_SHELL


def _generate_log_file_path() -> str:
    """在系统临时目录下生成带时间戳的调试日志路径。"""
    log_dir = Path(tempfile.gettempdir()) / "run-check"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"run_check_debug_{timestamp}.log"

    return str(log_file.resolve())


@dataclass
class Config:
    """run-check 配置。

    Attributes:
        shell: 宿主 shell 可执行文件（POSIX 上兼容 sh，Windows 上为 cmd）
        color: 前缀和状态行的颜色模式
        poll_interval: 退出竞争每轮之间的休眠时间（秒）
        join_timeout: teardown 时每个工作线程的 join 超时（秒）
        decode_errors: 无法解码的子进程输出的处理方式
        log_debug: 是否将调试日志写入文件
        log_file: 调试日志路径（log_debug 开启时设置）
    """

    shell: str = DEFAULT_WINDOWS_SHELL if IS_WINDOWS else DEFAULT_POSIX_SHELL
    color: ColorMode = ColorMode.AUTO
    poll_interval: float = DEFAULT_POLL_INTERVAL
    join_timeout: float = DEFAULT_JOIN_TIMEOUT
    decode_errors: DecodeErrors = DecodeErrors.STRICT
    log_debug: bool = False
    log_file: str | None = None

    def __repr__(self) -> str:
        return (
            f"Config(shell={self.shell}, "
            f"color={self.color.value}, "
            f"poll_interval={self.poll_interval}, "
            f"join_timeout={self.join_timeout}, "
            f"decode_errors={self.decode_errors.value}, "
            f"log_debug={self.log_debug}, "
            f"log_file={self.log_file})"
        )


def load_config() -> Config:
    """从环境变量加载配置。"""
    env = os.environ
    log_debug = _parse_bool(env.get("RUN_CHECK_LOG_DEBUG"), default=False)
    log_file = _generate_log_file_path() if log_debug else None

    return Config(
        shell=_resolve_shell(env),
        color=_parse_color_mode(env.get("RUN_CHECK_COLOR"), env.get("NO_COLOR")),
        poll_interval=_parse_float(
            env.get("RUN_CHECK_POLL_INTERVAL"), DEFAULT_POLL_INTERVAL, 0.0, 1.0
        ),
        join_timeout=_parse_float(
            env.get("RUN_CHECK_JOIN_TIMEOUT"), DEFAULT_JOIN_TIMEOUT, 0.1, 300.0
        ),
        decode_errors=DecodeErrors.from_string(env.get("RUN_CHECK_DECODE_ERRORS", "")),
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
