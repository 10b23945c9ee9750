"""run-check - 与 check 命令一起监督 run 命令。

环境变量:
    SHELL / COMSPEC: 宿主 shell 覆盖 (POSIX / Windows)
    RUN_CHECK_COLOR: auto | always | never（也遵循 NO_COLOR）
    RUN_CHECK_POLL_INTERVAL: 退出竞争轮询间隔（秒）
    RUN_CHECK_JOIN_TIMEOUT: teardown 时每个工作线程的 join 超时（秒）
    RUN_CHECK_DECODE_ERRORS: strict | replace
    RUN_CHECK_LOG_DEBUG: 调试日志写入临时文件

用法:
    run-check --run "npm run dev" --check "tsc --noEmit --watch"
"""

__version__ = "0.1.0"

from .app import main

__all__ = ["__version__", "main"]
