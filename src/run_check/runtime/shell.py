"""Shell 调用器：通过宿主 shell 运行命令字符串。

设计要点：
- POSIX: `<shell> -c <command>`，子进程使用新会话 (setsid)，teardown 时可
  终止整个进程组
- Windows: `<comspec> /d /s /c "<command>"`，子进程使用新进程组
- stdin 关闭 (DEVNULL)，stdout 和 stderr 通过管道读取
- 进程一创建，两个 pump 即开始工作
- POSIX 上 poll() 只观察退出（WNOWAIT），不回收子进程；pid 一直被占用，
  直到 teardown 终止进程组后才回收，进程组 ID 不会被其他进程复用
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
from dataclasses import dataclass
from typing import IO, Any

from ..config import Config
from ..errors import SpawnError
from ..types import Role, StreamKind
from .channel import Channel
from .pump import OutputPump

__all__ = [
    "IS_WINDOWS",
    "SupervisedProcess",
    "build_shell_invocation",
    "spawn_shell",
    "spawn_supervised",
]

logger = logging.getLogger(__name__)

IS_WINDOWS = sys.platform == "win32"

# 部分平台（如 macOS 的某些构建）没有 os.waitid
HAS_WAITID = not IS_WINDOWS and hasattr(os, "waitid")


def build_shell_invocation(
    shell: str,
    command: str,
    *,
    windows: bool = IS_WINDOWS,
) -> list[str] | str:
    """将命令字符串包装为一次 shell 调用。

    Windows 上返回预先加好引号的命令行：cmd.exe 的 `/s` 只去掉最外层一对
    引号，其余内容原样执行；list2cmdline 的反斜杠转义会破坏这一点。

    Args:
        shell: shell 可执行文件
        command: 命令字符串，原样传递
        windows: 生成 cmd.exe 形式而不是 POSIX 形式

    Returns:
        argv 列表（POSIX）或命令行字符串（Windows）
    """
    if windows:
        return f'"{shell}" /d /s /c "{command}"'
    return [shell, "-c", command]


def _build_popen_kwargs() -> dict[str, Any]:
    """subprocess.Popen 的平台相关隔离参数。"""
    kwargs: dict[str, Any] = {}
    if IS_WINDOWS:
        kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
    else:
        # 子进程成为进程组组长，killpg 可以覆盖其所有后代
        kwargs["start_new_session"] = True
    return kwargs


def spawn_shell(role: Role, command: str, shell: str) -> subprocess.Popen[bytes]:
    """通过 `shell` 启动 `command`，stdin 关闭，输出走管道。

    Raises:
        SpawnError: shell 无法启动
    """
    invocation = build_shell_invocation(shell, command)
    try:
        process = subprocess.Popen(
            invocation,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            **_build_popen_kwargs(),
        )
    except (OSError, ValueError) as e:
        raise SpawnError(role.label, command, str(e)) from e

    logger.debug(f"Started {role.command_name} command pid={process.pid} shell={shell}")
    return process


def _take_pipes(
    role: Role, command: str, process: subprocess.Popen[bytes]
) -> tuple[IO[bytes], IO[bytes]]:
    """取出子进程的 stdout/stderr 管道。

    Raises:
        SpawnError: 某个管道未被捕获（此时子进程已被终止并回收）
    """
    stdout, stderr = process.stdout, process.stderr
    if stdout is None or stderr is None:
        process.kill()
        process.wait()
        missing = "stdout" if stdout is None else "stderr"
        raise SpawnError(role.label, command, f"failed to open {missing}")
    return stdout, stderr


def _returncode_from_waitid(info: Any) -> int:
    """按 Popen 的约定换算 waitid 结果：信号 N 终止记为 -N。"""
    if info.si_code == os.CLD_EXITED:
        return info.si_status
    return -info.si_status


@dataclass
class SupervisedProcess:
    """以 run 或 check 角色启动的子进程。

    Attributes:
        role: RUN 或 CHECK
        command: 原始命令字符串
        process: OS 进程句柄
        stdout_pump: 转发子进程 stdout 的工作线程
        stderr_pump: 转发子进程 stderr 的工作线程
    """

    role: Role
    command: str
    process: subprocess.Popen[bytes]
    stdout_pump: OutputPump
    stderr_pump: OutputPump

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def pumps(self) -> tuple[OutputPump, OutputPump]:
        return (self.stdout_pump, self.stderr_pump)

    def poll(self) -> int | None:
        """零等待的状态检查。子进程已退出时返回 returncode。

        POSIX 上使用 WNOWAIT，子进程保持僵尸状态，由 teardown 回收。
        """
        if self.process.returncode is not None or not HAS_WAITID:
            return self.process.poll()
        try:
            info = os.waitid(os.P_PID, self.pid, os.WEXITED | os.WNOHANG | os.WNOWAIT)
        except ChildProcessError:
            # 已在别处回收
            return self.process.poll()
        if info is None:
            return None
        return _returncode_from_waitid(info)

    def pump_error(self) -> BaseException | None:
        """任一 pump 记录的第一个致命错误。"""
        for pump in self.pumps:
            if pump.error is not None:
                return pump.error
        return None


def spawn_supervised(
    role: Role,
    command: str,
    stdout_channel: Channel,
    stderr_channel: Channel,
    config: Config,
) -> SupervisedProcess:
    """启动命令，并开始转发它的两个输出流。

    Args:
        role: 新进程的角色
        command: 交给宿主 shell 的命令字符串
        stdout_channel: 通往监督器 stdout 的通道
        stderr_channel: 通往监督器 stderr 的通道
        config: 提供 shell 和解码错误策略

    Returns:
        SupervisedProcess，pump 已在运行

    Raises:
        SpawnError: shell 无法启动或管道缺失
    """
    process = spawn_shell(role, command, config.shell)
    stdout, stderr = _take_pipes(role, command, process)

    stdout_pump = OutputPump(
        role, StreamKind.STDOUT, stdout, stdout_channel.sender(), config.decode_errors
    )
    stderr_pump = OutputPump(
        role, StreamKind.STDERR, stderr, stderr_channel.sender(), config.decode_errors
    )
    stdout_pump.start()
    stderr_pump.start()

    return SupervisedProcess(
        role=role,
        command=command,
        process=process,
        stdout_pump=stdout_pump,
        stderr_pump=stderr_pump,
    )
