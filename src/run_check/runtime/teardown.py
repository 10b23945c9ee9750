"""Teardown 协调器：终止两个进程树，然后 join 所有工作线程。

终止策略：
- POSIX: 向子进程的进程组发送 SIGKILL（子进程是会话组长，pgid == pid）；
  无法向进程组发信号时改用 Popen.kill()
- Windows: `taskkill /F /T /PID <pid>`，遍历 shell 启动的整个进程树

子进程在此之前未被回收（见 shell.SupervisedProcess.poll），发出 killpg 时
其 pid 仍被占用。对已退出的子进程执行终止是空操作。两个子进程都回收后，
join 全部四个 pump，释放监督器自己持有的 sender，排空 multiplexer，然后
teardown 才返回。
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
from collections.abc import Iterable

from ..errors import JoinError, KillError, ReadDecodeError, SupervisorError
from .channel import Sender
from .multiplexer import Multiplexer
from .shell import IS_WINDOWS, SupervisedProcess

__all__ = [
    "TeardownCoordinator",
    "ensure_tree_kill_available",
    "kill_process_tree",
]

logger = logging.getLogger(__name__)


def ensure_tree_kill_available() -> None:
    """检查 Windows 的进程树终止工具能否启动。

    POSIX 上为空操作。

    Raises:
        KillError: taskkill 不可用
    """
    if not IS_WINDOWS:
        return
    try:
        subprocess.run(
            ["taskkill", "/?"],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=False,
        )
    except OSError as e:
        raise KillError(f"taskkill command must be available: {e}") from e


def _posix_kill_tree(child: SupervisedProcess) -> None:
    try:
        os.killpg(child.pid, signal.SIGKILL)
        logger.debug(f"Sent SIGKILL to process group pgid={child.pid}")
        return
    except ProcessLookupError:
        # 进程组已空
        logger.debug(f"Process group already gone pgid={child.pid}")
        return
    except OSError as e:
        logger.debug(f"killpg failed, falling back to kill: {e}")

    try:
        child.process.kill()
    except OSError as e:
        raise KillError.for_child(child.role.label, child.pid, str(e)) from e


def _windows_kill_tree(child: SupervisedProcess) -> None:
    try:
        result = subprocess.run(
            ["taskkill", "/F", "/T", "/PID", str(child.pid)],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=False,
        )
    except OSError as e:
        raise KillError.for_child(child.role.label, child.pid, str(e)) from e
    # 进程已退出时返回非 0
    logger.debug(f"taskkill pid={child.pid} returncode={result.returncode}")


def kill_process_tree(child: SupervisedProcess) -> None:
    """强制终止子进程及其启动的所有进程。

    Raises:
        KillError: 终止请求无法送达
    """
    if IS_WINDOWS:
        _windows_kill_tree(child)
    else:
        _posix_kill_tree(child)


class TeardownCoordinator:
    """只执行一次的监督运行收尾阶段。

    Args:
        children: 已启动的进程（零个、一个或两个）
        senders: 监督器自己持有的通道 sender
        multiplexer: 运行中的 multiplexer（如已启动）
        join_timeout: 每个工作线程的 join 超时（秒）
    """

    def __init__(
        self,
        children: Iterable[SupervisedProcess],
        senders: Iterable[Sender],
        multiplexer: Multiplexer | None,
        *,
        join_timeout: float = 10.0,
    ) -> None:
        self.children = list(children)
        self.senders = list(senders)
        self.multiplexer = multiplexer
        self.join_timeout = join_timeout
        self._done = False

    @property
    def done(self) -> bool:
        return self._done

    def _kill_and_reap(self, child: SupervisedProcess) -> None:
        kill_process_tree(child)
        try:
            returncode = child.process.wait(timeout=self.join_timeout)
        except subprocess.TimeoutExpired as e:
            raise KillError.for_child(child.role.label, child.pid, "process did not exit after kill") from e
        logger.debug(f"Reaped {child.role.command_name} command pid={child.pid} returncode={returncode}")

    def _join_pumps(self, child: SupervisedProcess) -> None:
        for pump in child.pumps:
            if not pump.join(self.join_timeout):
                raise JoinError(pump.name, f"still running after {self.join_timeout}s")
            # 解码错误由 Supervisor 抛出；其他错误都算 join 失败
            if pump.error is not None and not isinstance(pump.error, ReadDecodeError):
                raise JoinError(pump.name, repr(pump.error)) from pump.error

    def _join_multiplexer(self) -> None:
        if self.multiplexer is None:
            return
        if not self.multiplexer.join(self.join_timeout):
            raise JoinError("multiplexer", f"still running after {self.join_timeout}s")
        if self.multiplexer.errors:
            first = self.multiplexer.errors[0]
            raise JoinError("multiplexer", f"output relay failed: {first!r}") from first

    def teardown(self) -> None:
        """终止、回收、join、排空。所有步骤都执行完后，才抛出第一个错误。

        Raises:
            KillError: 子进程无法终止
            JoinError: pump 或 multiplexer 未能结束，或输出转发失败
        """
        if self._done:
            return
        self._done = True

        errors: list[SupervisorError] = []

        for child in self.children:
            try:
                self._kill_and_reap(child)
            except KillError as e:
                logger.error(str(e))
                errors.append(e)

        for child in self.children:
            try:
                self._join_pumps(child)
            except JoinError as e:
                logger.error(str(e))
                errors.append(e)

        for sender in self.senders:
            sender.close()

        try:
            self._join_multiplexer()
        except JoinError as e:
            logger.error(str(e))
            errors.append(e)

        logger.debug(f"Teardown finished with {len(errors)} error(s)")
        if errors:
            raise errors[0]
