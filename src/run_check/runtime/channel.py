"""多生产者、单消费者的传递通道。

只要还有一个 sender 句柄未释放，通道就保持打开。最后一个 sender 释放后，
消费者取完已排队的消息即结束迭代。
"""

from __future__ import annotations

import queue
import threading
from collections.abc import Iterator

from ..types import LineMessage

__all__ = ["Channel", "Sender"]

_CLOSED = object()


class Channel:
    """带 sender 计数的无界 LineMessage 队列。

    Example:
        channel = Channel("stdout")
        with channel.sender() as tx:
            tx.send(message)
        for message in channel:
            ...
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._queue: queue.SimpleQueue[object] = queue.SimpleQueue()
        self._lock = threading.Lock()
        self._senders = 0
        self._closed = False

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def sender(self) -> "Sender":
        """创建新的 sender 句柄。通道关闭后调用会失败。"""
        with self._lock:
            if self._closed:
                raise RuntimeError(f"channel {self.name} is closed")
            self._senders += 1
        return Sender(self)

    def _put(self, message: LineMessage) -> None:
        self._queue.put(message)

    def _release(self) -> None:
        with self._lock:
            self._senders -= 1
            if self._senders == 0:
                self._closed = True
                self._queue.put(_CLOSED)

    def __iter__(self) -> Iterator[LineMessage]:
        """逐条产出消息，直到所有 sender 都已释放。"""
        while True:
            item = self._queue.get()
            if item is _CLOSED:
                return
            yield item  # type: ignore[misc]


class Sender:
    """Channel 的发送端。通过 close() 或 with 块释放。"""

    def __init__(self, channel: Channel) -> None:
        self._channel = channel
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def send(self, message: LineMessage) -> None:
        if self._released:
            raise RuntimeError(f"sender for channel {self._channel.name} already released")
        self._channel._put(message)

    def close(self) -> None:
        """释放该句柄。可重复调用。"""
        if self._released:
            return
        self._released = True
        self._channel._release()

    def __enter__(self) -> "Sender":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
