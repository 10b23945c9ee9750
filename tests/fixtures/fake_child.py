#!/usr/bin/env python3
"""Fake child process for integration testing.

Writes scripted lines to stdout/stderr, optionally sleeps, spawns a detached
grandchild, and exits with a chosen code or signal.

Usage:
    python fake_child.py [--out TEXT]... [--err TEXT]... [--count N]
                         [--raw-hex HEX] [--grandchild] [--sleep SECONDS]
                         [--exit-code CODE | --signal NAME]

Arguments:
    --out: Line to write to stdout (repeatable, written in order)
    --err: Line to write to stderr (repeatable, written in order)
    --count: Write N numbered lines "out-<i>" / "err-<i>" to each stream
    --raw-hex: Raw bytes (hex) written to stdout followed by a newline
    --grandchild: Start a long sleeping grandchild and print "grandchild=<pid>"
    --sleep: Seconds to sleep after writing
    --exit-code: Exit code (default 0)
    --signal: Kill itself with this signal instead of exiting
"""

from __future__ import annotations

import argparse
import os
import signal
import subprocess
import sys
import time
from typing import NoReturn


def write(stream, text: str) -> None:
    stream.write(text + "\n")
    stream.flush()


def main() -> NoReturn:
    parser = argparse.ArgumentParser(description="Fake child for testing")
    parser.add_argument("--out", action="append", default=[], help="stdout line")
    parser.add_argument("--err", action="append", default=[], help="stderr line")
    parser.add_argument("--count", type=int, default=0, help="numbered lines per stream")
    parser.add_argument("--raw-hex", type=str, default=None, help="raw stdout bytes")
    parser.add_argument("--grandchild", action="store_true", help="spawn a grandchild")
    parser.add_argument("--sleep", type=float, default=0.0, help="sleep before exit")
    parser.add_argument("--exit-code", type=int, default=0, help="exit code")
    parser.add_argument("--signal", type=str, default=None, help="die by signal")
    args = parser.parse_args()

    for text in args.out:
        write(sys.stdout, text)
    for text in args.err:
        write(sys.stderr, text)
    for i in range(args.count):
        write(sys.stdout, f"out-{i}")
        write(sys.stderr, f"err-{i}")

    if args.raw_hex is not None:
        sys.stdout.buffer.write(bytes.fromhex(args.raw_hex) + b"\n")
        sys.stdout.buffer.flush()

    if args.grandchild:
        grandchild = subprocess.Popen(
            [sys.executable, "-c", "import time; time.sleep(60)"],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
        write(sys.stdout, f"grandchild={grandchild.pid}")

    if args.sleep:
        time.sleep(args.sleep)

    if args.signal:
        os.kill(os.getpid(), getattr(signal, args.signal))
        time.sleep(5)

    sys.exit(args.exit_code)


if __name__ == "__main__":
    main()
