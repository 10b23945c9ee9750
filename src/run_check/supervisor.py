"""双进程监督器。

启动 run 和 check 两个命令，转发它们的输出，判定退出竞争，并在返回结果前
完成全部清理。

生命周期：
1. 创建 stdout/stderr 通道并启动 multiplexer
2. 先启动 run，再启动 check（pump 立即开始工作）
3. 轮询退出竞争直到有结果
4. Teardown，必定执行且只执行一次：终止两个进程树、回收、join pump、
   释放通道、join multiplexer
5. 任何 pump 记录了解码错误时抛出（strict 模式）
6. 报告胜出方的状态行
"""

from __future__ import annotations

import logging
from contextlib import AbstractContextManager, nullcontext

from .config import Config, get_config
from .console import Console
from .errors import ReadDecodeError
from .runtime import (
    Channel,
    ExitRaceMonitor,
    Multiplexer,
    SupervisedProcess,
    TeardownCoordinator,
    spawn_supervised,
)
from .signal_manager import SignalManager
from .types import ExitOutcome, Role

__all__ = ["Supervisor"]

logger = logging.getLogger(__name__)


class Supervisor:
    """监督一个 run 命令和一个 check 命令。

    Example:
        supervisor = Supervisor("npm run dev", "tsc --noEmit --watch")
        outcome = supervisor.run()
        sys.exit(outcome.code)

    Args:
        run_command: 长期运行的命令；它以任何方式退出都会结束监督器
        check_command: 辅助命令；只有失败退出才会结束监督器
        config: 配置（默认从环境变量读取）
        console: 输出目标（默认 sys.stdout/sys.stderr）
        signal_manager: 启动子进程期间延迟信号，teardown 开始时 shield
    """

    def __init__(
        self,
        run_command: str,
        check_command: str,
        *,
        config: Config | None = None,
        console: Console | None = None,
        signal_manager: SignalManager | None = None,
    ) -> None:
        self.run_command = run_command
        self.check_command = check_command
        self.config = config or get_config()
        self.console = console or Console(color=self.config.color)
        self.signal_manager = signal_manager
        self.children: dict[Role, SupervisedProcess] = {}

    def _on_check_passed(self, outcome: ExitOutcome) -> None:
        self.console.report(outcome)

    def _signals_deferred(self) -> AbstractContextManager[None]:
        if self.signal_manager is None:
            return nullcontext()
        return self.signal_manager.deferred()

    def _raise_decode_errors(self) -> None:
        for child in self.children.values():
            for pump in child.pumps:
                if isinstance(pump.error, ReadDecodeError):
                    raise pump.error

    def run(self) -> ExitOutcome:
        """运行两个命令直到退出竞争结束。

        Returns:
            胜出方的 ExitOutcome；其 `code` 即监督器的退出码

        Raises:
            SpawnError: 命令无法启动
            ReadDecodeError: 子进程输出无法解码（strict 模式）
            KillError: 子进程无法终止
            JoinError: 工作线程未能结束，或输出转发失败
            Interrupted: 监督器收到 SIGINT/SIGTERM
        """
        stdout_channel = Channel("stdout")
        stderr_channel = Channel("stderr")
        # 持有到 teardown，避免通道提前关闭
        own_senders = [stdout_channel.sender(), stderr_channel.sender()]

        multiplexer = Multiplexer(stdout_channel, stderr_channel, self.console)
        multiplexer.start()

        logger.debug(f"Supervisor starting: run={self.run_command!r} check={self.check_command!r} {self.config}")

        try:
            for role, command in ((Role.RUN, self.run_command), (Role.CHECK, self.check_command)):
                # 登记完成之前收到的信号延后处理，teardown 才能看到该子进程
                with self._signals_deferred():
                    self.children[role] = spawn_supervised(
                        role, command, stdout_channel, stderr_channel, self.config
                    )

            monitor = ExitRaceMonitor(
                self.children[Role.RUN],
                self.children[Role.CHECK],
                poll_interval=self.config.poll_interval,
                on_check_passed=self._on_check_passed,
            )
            outcome = monitor.wait()
        finally:
            if self.signal_manager is not None:
                self.signal_manager.shield()
            TeardownCoordinator(
                self.children.values(),
                own_senders,
                multiplexer,
                join_timeout=self.config.join_timeout,
            ).teardown()

        # 子进程可能在监视器看到 pump 错误之前就已退出
        self._raise_decode_errors()
        self.console.report(outcome)
        return outcome
