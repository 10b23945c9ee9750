"""输出泵：每个子进程的每个流一个工作线程。

每个 pump 在管道上阻塞读取行，把每行包装成 LineMessage，交给对应宿主流
的通道。流关闭（通常是子进程退出或被终止）时线程结束，并释放 sender，
multiplexer 由此看到通道排空。
"""

from __future__ import annotations

import logging
import threading
from typing import IO

from ..config import DecodeErrors
from ..errors import ReadDecodeError
from ..types import LineMessage, Role, StreamKind
from .channel import Sender

__all__ = ["OutputPump", "strip_line_terminator"]

logger = logging.getLogger(__name__)


def strip_line_terminator(raw: bytes) -> bytes:
    """去掉末尾的 "\\n" 或 "\\r\\n"。"""
    if raw.endswith(b"\n"):
        raw = raw[:-1]
        if raw.endswith(b"\r"):
            raw = raw[:-1]
    return raw


class OutputPump:
    """在后台线程中把一个子进程管道的内容送入通道。

    pump 从构造起独占其管道和 sender，其他代码不会读该管道，也不会通过
    该句柄发送。

    Attributes:
        role: 被读取子进程的角色
        stream: 子进程的哪个流
        error: 使线程提前停止的异常（如有）
    """

    def __init__(
        self,
        role: Role,
        stream: StreamKind,
        pipe: IO[bytes],
        sender: Sender,
        decode_errors: DecodeErrors = DecodeErrors.STRICT,
    ) -> None:
        self.role = role
        self.stream = stream
        self.error: BaseException | None = None
        self._pipe = pipe
        self._sender = sender
        self._decode_errors = decode_errors
        self._thread = threading.Thread(
            target=self._run,
            name=f"pump-{role.command_name}-{stream.value}",
            daemon=True,
        )

    @property
    def name(self) -> str:
        return self._thread.name

    @property
    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def start(self) -> None:
        self._thread.start()

    def join(self, timeout: float | None = None) -> bool:
        """等待工作线程。已结束时返回 True。"""
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def _decode(self, raw: bytes) -> str:
        line = strip_line_terminator(raw)
        try:
            return line.decode("utf-8")
        except UnicodeDecodeError as e:
            if self._decode_errors is DecodeErrors.STRICT:
                raise ReadDecodeError(self.role.label, self.stream.value, line) from e
            logger.warning(
                f"Undecodable line from {self.role.command_name} {self.stream.value}, "
                f"relaying with replacement characters: {e}"
            )
            return line.decode("utf-8", errors="replace")

    def _run(self) -> None:
        count = 0
        try:
            for raw in iter(self._pipe.readline, b""):
                self._sender.send(
                    LineMessage(role=self.role, stream=self.stream, text=self._decode(raw))
                )
                count += 1
        except Exception as e:
            self.error = e
            logger.debug(f"{self.name} stopped with error: {e!r}")
        finally:
            try:
                self._pipe.close()
            except OSError as e:
                logger.debug(f"{self.name} failed to close pipe: {e}")
            self._sender.close()
            logger.debug(f"{self.name} finished after {count} line(s)")
