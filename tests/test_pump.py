"""OutputPump tests.

Pumps are fed from in-memory byte streams; they only need readline/close.
"""

from __future__ import annotations

import io
import logging

import pytest

from run_check.config import DecodeErrors
from run_check.errors import ReadDecodeError
from run_check.runtime.channel import Channel
from run_check.runtime.pump import OutputPump, strip_line_terminator
from run_check.types import Role, StreamKind


def _pump(data: bytes, *, stream: StreamKind = StreamKind.STDOUT, decode_errors=DecodeErrors.STRICT):
    channel = Channel(stream.value)
    pipe = io.BytesIO(data)
    pump = OutputPump(Role.CHECK, stream, pipe, channel.sender(), decode_errors)
    return pump, channel, pipe


class TestStripLineTerminator:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            (b"hello\n", b"hello"),
            (b"hello\r\n", b"hello"),
            (b"hello", b"hello"),
            (b"\n", b""),
            (b"a\rb\n", b"a\rb"),
            (b"tail\r", b"tail\r"),
        ],
    )
    def test_strip(self, raw: bytes, expected: bytes):
        assert strip_line_terminator(raw) == expected


class TestOutputPump:
    """Line forwarding and shutdown."""

    def test_forwards_labelled_lines(self):
        pump, channel, _ = _pump(b"one\ntwo\r\nthree", stream=StreamKind.STDERR)
        pump.start()
        messages = list(channel)
        assert pump.join(5)

        assert [m.text for m in messages] == ["one", "two", "three"]
        assert all(m.role is Role.CHECK for m in messages)
        assert all(m.stream is StreamKind.STDERR for m in messages)

    def test_empty_line_is_forwarded(self):
        pump, channel, _ = _pump(b"a\n\nb\n")
        pump.start()
        assert [m.text for m in channel] == ["a", "", "b"]

    def test_empty_stream_releases_sender(self):
        pump, channel, pipe = _pump(b"")
        pump.start()
        assert list(channel) == []
        assert pump.join(5)
        assert pump.error is None
        assert pipe.closed
        assert channel.closed

    def test_thread_name(self):
        pump, _, _ = _pump(b"")
        assert pump.name == "pump-check-stdout"

    def test_strict_decode_error_is_recorded(self):
        pump, channel, pipe = _pump(b"good\n\xff\xfe\nnever\n")
        pump.start()
        messages = list(channel)
        assert pump.join(5)

        assert [m.text for m in messages] == ["good"]
        assert isinstance(pump.error, ReadDecodeError)
        assert pump.error.role == "CHECK"
        assert pump.error.stream == "stdout"
        assert pump.error.line == b"\xff\xfe"
        assert pipe.closed
        assert channel.closed

    def test_replace_mode_relays_and_warns(self, caplog: pytest.LogCaptureFixture):
        pump, channel, _ = _pump(b"bad \xff byte\nok\n", decode_errors=DecodeErrors.REPLACE)
        with caplog.at_level(logging.WARNING, logger="run_check"):
            pump.start()
            messages = list(channel)
            assert pump.join(5)

        assert [m.text for m in messages] == ["bad \ufffd byte", "ok"]
        assert pump.error is None
        assert "Undecodable line from check stdout" in caplog.text

    def test_read_failure_is_recorded(self):
        class BrokenPipe(io.BytesIO):
            def readline(self, *args):
                raise OSError("read failed")

        channel = Channel("stdout")
        pump = OutputPump(Role.RUN, StreamKind.STDOUT, BrokenPipe(), channel.sender())
        pump.start()
        assert list(channel) == []
        assert pump.join(5)
        assert isinstance(pump.error, OSError)
