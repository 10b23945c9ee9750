"""进程监督运行时模块。

提供监督器使用的 shell 调用器、输出泵、multiplexer、退出竞争监视器和
teardown 协调器。
"""

from __future__ import annotations

from .channel import Channel, Sender
from .multiplexer import Multiplexer
from .pump import OutputPump
from .race import ExitRaceMonitor
from .shell import SupervisedProcess, spawn_supervised
from .teardown import TeardownCoordinator, ensure_tree_kill_available, kill_process_tree

__all__ = [
    "Channel",
    "ExitRaceMonitor",
    "Multiplexer",
    "OutputPump",
    "Sender",
    "SupervisedProcess",
    "TeardownCoordinator",
    "ensure_tree_kill_available",
    "kill_process_tree",
    "spawn_supervised",
]
