"""监督器异常类。

run-check v0.1.0
"""

from __future__ import annotations

__all__ = [
    "SupervisorError",
    "SpawnError",
    "ReadDecodeError",
    "KillError",
    "JoinError",
    "StatusUnavailable",
    "Interrupted",
]


class SupervisorError(Exception):
    """所有致命监督器错误的基类。"""
    pass


class SpawnError(SupervisorError):
    """Shell 无法启动，或其某个管道未被捕获。

    Attributes:
        role: 正在启动的命令的角色标签
        command: 命令字符串
    """

    def __init__(self, role: str, command: str, reason: str) -> None:
        self.role = role
        self.command = command
        super().__init__(f"failed to spawn {role.lower()} command {command!r}: {reason}")


class ReadDecodeError(SupervisorError):
    """子进程输出了一行非法 UTF-8。

    Attributes:
        role: 子进程的角色标签
        stream: "stdout" 或 "stderr"
        line: 解码失败的原始字节
    """

    def __init__(self, role: str, stream: str, line: bytes) -> None:
        self.role = role
        self.stream = stream
        self.line = line
        super().__init__(f"failed to read line from {role.lower()} {stream}")


class KillError(SupervisorError):
    """无法终止子进程（或其进程树）。

    启动时进程树终止工具不可用也会抛出，此时 role 和 pid 为 None。
    """

    def __init__(self, message: str, *, role: str | None = None, pid: int | None = None) -> None:
        self.role = role
        self.pid = pid
        super().__init__(message)

    @classmethod
    def for_child(cls, role: str, pid: int, reason: str) -> "KillError":
        return cls(f"failed to kill {role.lower()} command (pid={pid}): {reason}", role=role, pid=pid)


class JoinError(SupervisorError):
    """工作线程未能正常结束。"""

    def __init__(self, worker: str, reason: str) -> None:
        self.worker = worker
        super().__init__(f"failed to join {worker} thread: {reason}")


class StatusUnavailable(SupervisorError):
    """无法从子进程取得退出码或信号。

    唯一可恢复的情况：监视器改用退出码 1。
    """

    def __init__(self, role: str, returncode: int | None) -> None:
        self.role = role
        self.returncode = returncode
        super().__init__(
            f"error attempting to get exit code or signal from {role.lower()} command"
        )


class Interrupted(SupervisorError):
    """监督器自身收到 SIGINT 或 SIGTERM。

    Attributes:
        signum: 信号编号
    """

    def __init__(self, signum: int) -> None:
        self.signum = signum
        super().__init__(f"interrupted by signal {signum}")

    @property
    def exit_code(self) -> int:
        return 128 + self.signum
