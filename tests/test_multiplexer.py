"""Multiplexer tests."""

from __future__ import annotations

import io

from run_check.config import ColorMode
from run_check.console import Console
from run_check.runtime.channel import Channel
from run_check.runtime.multiplexer import Multiplexer
from run_check.types import LineMessage, Role, StreamKind


def _msg(role: Role, stream: StreamKind, text: str) -> LineMessage:
    return LineMessage(role=role, stream=stream, text=text)


class TestMultiplexer:
    """Draining both channels to the host streams."""

    def test_routes_each_channel_to_its_stream(self, console: Console, streams):
        stdout, stderr = streams
        out_channel, err_channel = Channel("stdout"), Channel("stderr")
        out_tx, err_tx = out_channel.sender(), err_channel.sender()

        multiplexer = Multiplexer(out_channel, err_channel, console)
        multiplexer.start()

        out_tx.send(_msg(Role.RUN, StreamKind.STDOUT, "server up"))
        err_tx.send(_msg(Role.CHECK, StreamKind.STDERR, "type error"))
        out_tx.send(_msg(Role.CHECK, StreamKind.STDOUT, "checking"))
        out_tx.close()
        err_tx.close()

        assert multiplexer.join(5)
        assert stdout.getvalue().splitlines() == ["[RUN] server up", "[CHECK] checking"]
        assert stderr.getvalue().splitlines() == ["[CHECK] type error"]

    def test_keeps_draining_until_all_senders_released(self, console: Console, streams):
        stdout, _ = streams
        out_channel, err_channel = Channel("stdout"), Channel("stderr")
        out_tx, err_tx = out_channel.sender(), err_channel.sender()
        late_tx = out_channel.sender()

        multiplexer = Multiplexer(out_channel, err_channel, console)
        multiplexer.start()
        out_tx.close()
        err_tx.close()
        assert multiplexer.join(0.1) is False

        late_tx.send(_msg(Role.RUN, StreamKind.STDOUT, "late line"))
        late_tx.close()
        assert multiplexer.join(5)
        assert stdout.getvalue() == "[RUN] late line\n"

    def test_preserves_order(self, console: Console, streams):
        stdout, _ = streams
        out_channel, err_channel = Channel("stdout"), Channel("stderr")
        out_tx, err_tx = out_channel.sender(), err_channel.sender()
        multiplexer = Multiplexer(out_channel, err_channel, console)
        multiplexer.start()

        for i in range(100):
            out_tx.send(_msg(Role.RUN, StreamKind.STDOUT, str(i)))
        out_tx.close()
        err_tx.close()

        assert multiplexer.join(5)
        assert stdout.getvalue().splitlines() == [f"[RUN] {i}" for i in range(100)]

    def test_broken_console_still_drains(self):
        class Broken(io.StringIO):
            def write(self, text: str) -> int:
                raise BrokenPipeError("closed")

        console = Console(Broken(), io.StringIO(), color=ColorMode.NEVER)
        out_channel, err_channel = Channel("stdout"), Channel("stderr")
        out_tx, err_tx = out_channel.sender(), err_channel.sender()
        multiplexer = Multiplexer(out_channel, err_channel, console)
        multiplexer.start()

        for i in range(3):
            out_tx.send(_msg(Role.RUN, StreamKind.STDOUT, str(i)))
        out_tx.close()
        err_tx.close()

        assert multiplexer.join(5)
        assert len(multiplexer.errors) == 1
        assert isinstance(multiplexer.errors[0], BrokenPipeError)
