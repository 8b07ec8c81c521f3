"""Unit tests for line framing and the line-ready signal."""

import queue
import threading
import time

import pytest

from session.assembler import CHANNEL_CLOSED, LineAssembler, LineSignal


def _assembler(
    eol: list[int] | None = None,
) -> tuple[LineAssembler, "queue.Queue[int | None]", LineSignal, threading.Event, list[bytes]]:
    channel: queue.Queue[int | None] = queue.Queue()
    signal = LineSignal()
    cancel = threading.Event()
    lines: list[bytes] = []
    current = eol if eol is not None else [0x0A]
    assembler = LineAssembler(channel, signal, cancel, eol=lambda: current[0], on_line=lines.append)
    return assembler, channel, signal, cancel, lines


@pytest.mark.unit
class TestLineSignal:
    """Tests for LineSignal."""

    def test_post_advances_generation(self) -> None:
        signal = LineSignal()
        assert signal.generation == 0
        signal.post()
        signal.post()
        assert signal.generation == 2

    def test_wait_returns_immediately_if_already_posted(self) -> None:
        signal = LineSignal()
        since = signal.generation
        signal.post()
        start = time.monotonic()
        assert signal.wait(since, 5.0) is True
        assert time.monotonic() - start < 1.0

    def test_wait_times_out(self) -> None:
        signal = LineSignal()
        start = time.monotonic()
        assert signal.wait(signal.generation, 0.05) is False
        assert time.monotonic() - start >= 0.04

    def test_wait_woken_by_post_from_other_thread(self) -> None:
        signal = LineSignal()
        since = signal.generation
        threading.Timer(0.05, signal.post).start()
        assert signal.wait(since, 5.0) is True

    def test_cancel_and_wake_unblocks_waiter(self) -> None:
        signal = LineSignal()
        cancel = threading.Event()

        def cancel_later() -> None:
            cancel.set()
            signal.wake()

        threading.Timer(0.05, cancel_later).start()
        start = time.monotonic()
        assert signal.wait(signal.generation, 5.0, cancel) is False
        assert time.monotonic() - start < 1.0

    def test_already_cancelled_does_not_block(self) -> None:
        signal = LineSignal()
        cancel = threading.Event()
        cancel.set()
        start = time.monotonic()
        assert signal.wait(signal.generation, 5.0, cancel) is False
        assert time.monotonic() - start < 0.5


@pytest.mark.unit
class TestLineAssembler:
    """Tests for LineAssembler framing."""

    def test_lines_include_eol(self) -> None:
        assembler, _, signal, _, lines = _assembler()
        for value in b"AT\r\nOK\n":
            assembler.feed(value)
        assert lines == [b"AT\r\n", b"OK\n"]
        assert signal.generation == 2

    def test_partial_line_not_emitted(self) -> None:
        assembler, _, signal, _, lines = _assembler()
        for value in b"no newline yet":
            assembler.feed(value)
        assert lines == []
        assert signal.generation == 0

    def test_eol_change_applies_to_following_bytes(self) -> None:
        """Bytes already accumulated stay; the new EOL ends the line."""
        eol = [0x0A]
        assembler, _, _, _, lines = _assembler(eol)
        for value in b"ab;":
            assembler.feed(value)
        eol[0] = ord(";")
        for value in b"cd;ef\n":
            assembler.feed(value)
        assert lines == [b"ab;cd;"]

    def test_observer_error_does_not_stop_framing(self) -> None:
        channel: queue.Queue[int | None] = queue.Queue()
        signal = LineSignal()

        def broken(_line: bytes) -> None:
            raise RuntimeError("observer broke")

        assembler = LineAssembler(channel, signal, threading.Event(), eol=lambda: 0x0A, on_line=broken)
        for value in b"a\nb\n":
            assembler.feed(value)
        assert signal.generation == 2

    def test_thread_consumes_channel_until_closed(self) -> None:
        assembler, channel, signal, _, lines = _assembler()
        assembler.start()
        for value in b"one\ntwo\nthr":
            channel.put(value)
        channel.put(CHANNEL_CLOSED)
        assert assembler.join(2.0)
        assert lines == [b"one\n", b"two\n"]
        assert signal.generation == 2

    def test_thread_stops_on_cancel(self) -> None:
        assembler, _, _, cancel, _ = _assembler()
        assembler.start()
        cancel.set()
        assert assembler.join(2.0)

    def test_join_before_start(self) -> None:
        assembler, _, _, _, _ = _assembler()
        assert assembler.join(0.1)
