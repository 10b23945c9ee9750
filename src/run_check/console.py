"""控制台输出：前缀、颜色和状态行。

ANSI 颜色方案：每个角色的 stdout 和 stderr 各用一种颜色，终端合并两个流时
仍能区分。
"""

from __future__ import annotations

import sys
import threading
from typing import TextIO

from .config import ColorMode
from .types import ExitOutcome, LineMessage, Role, StreamKind

__all__ = [
    "ANSI",
    "PREFIX_COLORS",
    "Console",
]

ANSI = {
    "reset": "\033[0m",
    "bold": "\033[1m",

    # 亮色
    "green": "\033[92m",
    "yellow": "\033[93m",
    "blue": "\033[94m",
    "red": "\033[91m",
}

# (角色, 流) -> 颜色名
PREFIX_COLORS = {
    (Role.RUN, StreamKind.STDOUT): "green",
    (Role.RUN, StreamKind.STDERR): "yellow",
    (Role.CHECK, StreamKind.STDOUT): "blue",
    (Role.CHECK, StreamKind.STDERR): "red",
}


def _wants_color(mode: ColorMode, stream: TextIO) -> bool:
    if mode is ColorMode.ALWAYS:
        return True
    if mode is ColorMode.NEVER:
        return False
    isatty = getattr(stream, "isatty", None)
    try:
        return bool(isatty and isatty())
    except ValueError:
        # 流已关闭
        return False


class Console:
    """将转发的子进程输出行和状态行写入宿主流。

    每个宿主流各有一把锁，主线程写入的状态行不会插入到 drain 线程正在
    写入的行中间。

    Args:
        stdout: 子进程 stdout 行和成功状态行的目标流
        stderr: 子进程 stderr 行和失败状态行的目标流
        color: 颜色模式
    """

    def __init__(
        self,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
        color: ColorMode = ColorMode.AUTO,
    ) -> None:
        self.stdout = stdout if stdout is not None else sys.stdout
        self.stderr = stderr if stderr is not None else sys.stderr
        self._color = {
            StreamKind.STDOUT: _wants_color(color, self.stdout),
            StreamKind.STDERR: _wants_color(color, self.stderr),
        }
        self._locks = {
            StreamKind.STDOUT: threading.Lock(),
            StreamKind.STDERR: threading.Lock(),
        }

    def _target(self, stream: StreamKind) -> TextIO:
        return self.stdout if stream is StreamKind.STDOUT else self.stderr

    def prefix(self, role: Role, stream: StreamKind) -> str:
        """转发行前面显示的角色标签。"""
        if not self._color[stream]:
            return f"[{role.label}]"
        color = ANSI[PREFIX_COLORS[(role, stream)]]
        return f"{ANSI['bold']}{color}{role.label}{ANSI['reset']}"

    def format_line(self, message: LineMessage) -> str:
        return f"{self.prefix(message.role, message.stream)} {message.text}"

    def _write(self, stream: StreamKind, text: str) -> None:
        target = self._target(stream)
        with self._locks[stream]:
            target.write(text + "\n")
            target.flush()

    def write_line(self, message: LineMessage) -> None:
        """将一行子进程输出转发到对应的宿主流。"""
        self._write(message.stream, self.format_line(message))

    def status(self, text: str, *, success: bool) -> None:
        """打印状态行：成功为 stdout 绿色，失败为 stderr 红色。"""
        stream = StreamKind.STDOUT if success else StreamKind.STDERR
        if self._color[stream]:
            color = ANSI["green"] if success else ANSI["red"]
            text = f"{color}{text}{ANSI['reset']}"
        self._write(stream, text)

    def report(self, outcome: ExitOutcome) -> None:
        """打印已结束子进程的状态行。"""
        self.status(outcome.describe(), success=outcome.is_success)

    def error(self, text: str) -> None:
        """将致命监督器错误打印到 stderr。"""
        self.status(f"run-check: {text}", success=False)
