"""Pytest 配置和 fixtures。"""

from __future__ import annotations

import io
import os
import shlex
import sys
import time
from pathlib import Path

import pytest

# 项目根目录
PROJECT_ROOT = Path(__file__).parent.parent

# 添加 src 目录到 Python 路径
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from run_check import config as config_module  # noqa: E402
from run_check.config import ColorMode, Config  # noqa: E402
from run_check.console import Console  # noqa: E402

FIXTURES_DIR = PROJECT_ROOT / "tests" / "fixtures"
FAKE_CHILD_PATH = FIXTURES_DIR / "fake_child.py"

IS_WINDOWS = sys.platform == "win32"

posix_only = pytest.mark.skipif(IS_WINDOWS, reason="POSIX-specific test")


def fake_child_command(*args: str) -> str:
    """运行 tests/fixtures/fake_child.py 的 shell 命令行。"""
    return shlex.join([sys.executable, str(FAKE_CHILD_PATH), *args])


def is_running(pid: int) -> bool:
    """pid 是否存活（僵尸进程视为已退出）。"""
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    status = Path(f"/proc/{pid}/status")
    try:
        for line in status.read_text().splitlines():
            if line.startswith("State:"):
                return "Z" not in line.split(":", 1)[1]
    except OSError:
        pass
    return True


def wait_until_gone(pid: int, timeout: float = 3.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if not is_running(pid):
            return True
        time.sleep(0.05)
    return not is_running(pid)


@pytest.fixture(autouse=True)
def reset_global_config():
    """每个测试之后清除缓存的全局配置。"""
    yield
    config_module._config = None


@pytest.fixture
def config() -> Config:
    """POSIX shell、无颜色、较短超时。"""
    return Config(
        shell="/bin/sh",
        color=ColorMode.NEVER,
        poll_interval=0.005,
        join_timeout=5.0,
    )


@pytest.fixture
def streams() -> tuple[io.StringIO, io.StringIO]:
    return io.StringIO(), io.StringIO()


@pytest.fixture
def console(streams: tuple[io.StringIO, io.StringIO]) -> Console:
    stdout, stderr = streams
    return Console(stdout=stdout, stderr=stderr, color=ColorMode.NEVER)
