"""监督器数据模型。

run-check v0.1.0

角色和流标签、从 pump 传给 multiplexer 的行消息，以及最终成为监督器
退出码的退出结果。
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

__all__ = [
    "Role",
    "StreamKind",
    "ExitKind",
    "LineMessage",
    "ExitOutcome",
    "SENTINEL_EXIT_CODE",
]

# 无法确定子进程状态时使用的退出码
SENTINEL_EXIT_CODE = 1


class Role(str, Enum):
    """进程属于两个受监督命令中的哪一个。"""

    RUN = "RUN"
    CHECK = "CHECK"

    @property
    def label(self) -> str:
        return self.value

    @property
    def command_name(self) -> str:
        """状态行中使用的小写名称（"run command ..."）。"""
        return self.value.lower()


class StreamKind(str, Enum):
    """行来自哪个输出流。"""

    STDOUT = "stdout"
    STDERR = "stderr"


class ExitKind(str, Enum):
    """已结束子进程的终止方式。"""

    CODE = "code"
    SIGNAL = "signal"
    UNKNOWN = "unknown"


class LineMessage(BaseModel):
    """一行子进程输出，带来源标签。

    Attributes:
        role: 产生该行的进程
        stream: 读取该行的流
        text: 去掉行结束符的内容
    """

    model_config = ConfigDict(frozen=True)

    role: Role
    stream: StreamKind
    text: str


class ExitOutcome(BaseModel):
    """退出竞争的结果。

    Attributes:
        role: 结束竞争的进程
        kind: 正常退出码、信号或无法确定
        code: 监督器自身使用的退出码
        returncode: 原始 returncode（不可用时为 None）
        signal: kind 为 SIGNAL 时的信号编号
    """

    model_config = ConfigDict(frozen=True)

    role: Role
    kind: ExitKind
    code: int
    returncode: int | None = None
    signal: int | None = None

    @property
    def is_success(self) -> bool:
        return self.kind is ExitKind.CODE and self.code == 0

    def describe(self) -> str:
        """可读的状态行。"""
        name = self.role.command_name
        if self.kind is ExitKind.CODE:
            return f"{name} command exited with code: {self.code}"
        if self.kind is ExitKind.SIGNAL:
            return f"{name} command exited with signal: {self.signal}"
        return f"error attempting to get exit code or signal from {name} command"
