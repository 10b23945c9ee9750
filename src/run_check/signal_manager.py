"""信号管理模块。

子进程运行在各自的会话/进程组中，终端的 Ctrl+C 只会送达监督器本身。
SIGINT 和 SIGTERM 在主线程中转换为 `Interrupted` 异常，沿调用栈展开进入
teardown，终止两个子进程：
- deferred(): 启动子进程期间收到的信号先记下，登记完成后再抛出
- shield(): teardown 开始后，后续信号只记录日志并忽略
"""

from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from types import FrameType
from typing import Any

from .errors import Interrupted

__all__ = ["SignalManager"]

logger = logging.getLogger(__name__)


class SignalManager:
    """在一次监督运行期间安装 SIGINT/SIGTERM 处理器。

    Example:
        ```python
        with SignalManager() as signals:
            supervisor = Supervisor(run, check, signal_manager=signals)
            outcome = supervisor.run()
        ```

    Attributes:
        received: 最近收到的信号编号（如有）
    """

    def __init__(self, signums: tuple[int, ...] = (signal.SIGINT, signal.SIGTERM)) -> None:
        self.signums = signums
        self.received: int | None = None
        self._shielded = False
        self._deferring = False
        self._pending: int | None = None
        self._original: dict[int, Any] = {}
        self._running = False

    @property
    def is_shielded(self) -> bool:
        return self._shielded

    def start(self) -> None:
        """安装信号处理器。必须在主线程调用。"""
        if self._running:
            logger.warning("SignalManager already running")
            return
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not in main thread, signal handlers not installed")
            return

        for signum in self.signums:
            self._original[signum] = signal.signal(signum, self._handle)
        self._running = True
        logger.debug(f"Signal handlers installed for {list(self.signums)}")

    def stop(self) -> None:
        """恢复原有的信号处理器。"""
        if not self._running:
            return
        self._running = False

        for signum, handler in self._original.items():
            try:
                signal.signal(signum, handler)
            except (OSError, ValueError) as e:
                logger.debug(f"Error restoring handler for signal {signum}: {e}")
        self._original.clear()
        logger.debug("Signal handlers removed")

    def shield(self) -> None:
        """teardown 开始时调用，此后不再因信号抛出异常。"""
        self._shielded = True

    @contextmanager
    def deferred(self) -> Iterator[None]:
        """延迟处理块内收到的信号。

        块正常结束后，如果期间收到过信号（且未 shield），抛出 Interrupted。
        块内抛出异常时，该异常照常传播，延迟的信号被丢弃。
        """
        self._deferring = True
        try:
            yield
        finally:
            self._deferring = False
            pending, self._pending = self._pending, None
        if pending is not None and not self._shielded:
            raise Interrupted(pending)

    def _handle(self, signum: int, frame: FrameType | None) -> None:
        self.received = signum
        if self._shielded:
            logger.warning(f"Signal {signum} received during teardown, ignoring")
            return
        if self._deferring:
            logger.info(f"Signal {signum} received while spawning, deferring")
            self._pending = signum
            return
        logger.info(f"Signal {signum} received, tearing down")
        raise Interrupted(signum)

    def __enter__(self) -> "SignalManager":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()
