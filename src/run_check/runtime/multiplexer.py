"""Multiplexer：把两个通道排空到监督器自己的输出流。

每个通道一个 drain 线程。线程阻塞在通道上，消息一到就加上前缀写到控制台；
通道的最后一个 sender 释放后线程退出。控制台写入失败时记录到 errors，
剩余消息丢弃，由 teardown 作为错误报告。
"""

from __future__ import annotations

import logging
import threading

from ..console import Console
from .channel import Channel

__all__ = ["Multiplexer"]

logger = logging.getLogger(__name__)


class Multiplexer:
    """与退出竞争并行地转发子进程输出。

    Args:
        stdout_channel: 发往监督器 stdout 的消息
        stderr_channel: 发往监督器 stderr 的消息
        console: 写出带前缀的行
    """

    def __init__(self, stdout_channel: Channel, stderr_channel: Channel, console: Console) -> None:
        self._console = console
        self._threads = [
            threading.Thread(
                target=self._drain,
                args=(channel,),
                name=f"drain-{channel.name}",
                daemon=True,
            )
            for channel in (stdout_channel, stderr_channel)
        ]
        self.errors: list[BaseException] = []

    def start(self) -> None:
        for thread in self._threads:
            thread.start()

    @property
    def is_alive(self) -> bool:
        return any(thread.is_alive() for thread in self._threads)

    def join(self, timeout: float | None = None) -> bool:
        """等待两个 drain 线程。都已结束时返回 True。"""
        for thread in self._threads:
            thread.join(timeout)
        return not self.is_alive

    def _drain(self, channel: Channel) -> None:
        try:
            for message in channel:
                self._console.write_line(message)
        except Exception as e:
            # 控制台已损坏：丢弃剩余消息直到通道关闭
            self.errors.append(e)
            logger.error(f"Failed to relay {channel.name} output: {e}")
            for _ in channel:
                pass
        logger.debug(f"drain-{channel.name} finished")
