"""退出竞争监视器。

监视 run 和 check 两个进程，判定哪一个的终止结束监督器，以及使用哪个
退出码。

竞争规则：
- check 以 0 退出：不结束，run 单独继续运行
- check 以非 0（或因信号）退出：check 胜出，使用其退出码
- run 以任何方式退出：run 胜出，无论退出码是多少都使用它
- 因信号终止映射为 128 + 信号编号 (POSIX)
- 无法确定的状态映射为退出码 1
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from ..errors import ReadDecodeError, StatusUnavailable
from ..types import SENTINEL_EXIT_CODE, ExitKind, ExitOutcome, Role
from .shell import IS_WINDOWS, SupervisedProcess

__all__ = [
    "ExitRaceMonitor",
    "decode_returncode",
    "outcome_for",
    "ends_race",
]

logger = logging.getLogger(__name__)


def decode_returncode(role: Role, returncode: int | None, *, windows: bool = IS_WINDOWS) -> ExitOutcome:
    """将 Popen returncode 转换为 ExitOutcome。

    POSIX 上 Popen 把被信号 N 终止记为 -N。

    Raises:
        StatusUnavailable: 既取不到退出码也取不到信号
    """
    if returncode is None:
        raise StatusUnavailable(role.label, returncode)
    if returncode >= 0:
        return ExitOutcome(role=role, kind=ExitKind.CODE, code=returncode, returncode=returncode)
    if not windows:
        signum = -returncode
        return ExitOutcome(
            role=role,
            kind=ExitKind.SIGNAL,
            code=128 + signum,
            returncode=returncode,
            signal=signum,
        )
    raise StatusUnavailable(role.label, returncode)


def outcome_for(role: Role, returncode: int | None, *, windows: bool = IS_WINDOWS) -> ExitOutcome:
    """同 decode_returncode，但 StatusUnavailable 替换为哨兵退出码。"""
    try:
        return decode_returncode(role, returncode, windows=windows)
    except StatusUnavailable as e:
        logger.error(f"{e} (returncode={returncode!r}), using exit code {SENTINEL_EXIT_CODE}")
        return ExitOutcome(
            role=role,
            kind=ExitKind.UNKNOWN,
            code=SENTINEL_EXIT_CODE,
            returncode=returncode,
        )


def ends_race(outcome: ExitOutcome) -> bool:
    """该终止是否结束监督器。"""
    if outcome.role is Role.RUN:
        return True
    return not outcome.is_success


class ExitRaceMonitor:
    """轮询两个子进程，直到竞争有结果。

    每轮先查 check 再查 run，均不阻塞。check 通过后只报告一次，
    之后不再轮询。

    Args:
        run: run 进程
        check: check 进程
        poll_interval: 每轮之间的休眠时间（秒，0 = 紧密轮询）
        on_check_passed: check 以 0 退出时调用一次，参数为其结果
        sleep: 休眠函数（测试可注入）
    """

    def __init__(
        self,
        run: SupervisedProcess,
        check: SupervisedProcess,
        *,
        poll_interval: float = 0.0,
        on_check_passed: Callable[[ExitOutcome], None] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.run = run
        self.check = check
        self.poll_interval = poll_interval
        self._on_check_passed = on_check_passed
        self._sleep = sleep
        self._check_passed = False

    @property
    def check_passed(self) -> bool:
        return self._check_passed

    def _raise_pump_errors(self) -> None:
        for process in (self.check, self.run):
            error = process.pump_error()
            if isinstance(error, ReadDecodeError):
                raise error

    def poll_once(self) -> ExitOutcome | None:
        """对两个子进程做一轮零等待检查。

        Returns:
            竞争结果；尚未结束时为 None

        Raises:
            ReadDecodeError: strict 模式下 pump 遇到无法解码的输出
        """
        self._raise_pump_errors()

        if not self._check_passed:
            returncode = self.check.poll()
            if returncode is not None:
                outcome = outcome_for(Role.CHECK, returncode)
                if ends_race(outcome):
                    return outcome
                self._check_passed = True
                logger.debug("check command passed, monitoring run command only")
                if self._on_check_passed:
                    self._on_check_passed(outcome)

        returncode = self.run.poll()
        if returncode is not None:
            return outcome_for(Role.RUN, returncode)
        return None

    def wait(self) -> ExitOutcome:
        """轮询直到满足终止条件。没有超时。"""
        while True:
            outcome = self.poll_once()
            if outcome is not None:
                logger.debug(f"Exit race resolved: {outcome!r}")
                return outcome
            if self.poll_interval > 0:
                self._sleep(self.poll_interval)
