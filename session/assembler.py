"""Line framing for serial-linekit.

Contains:
- LineSignal: Generation counter that wakes read_line waiters
- LineAssembler: Thread that frames the received byte stream into lines
- CHANNEL_CLOSED: Sentinel the reader loop puts on the channel when it exits
"""

import logging
import queue
import threading
from collections.abc import Callable

from common.protocol import READ_POLL_INTERVAL_S

logger = logging.getLogger(__name__)

CHANNEL_CLOSED = None


class LineSignal:
    """Line-ready signal shared by the line assembler and read_line callers.

    Each completed line advances the generation. A waiter remembers the
    generation it last saw and blocks until it moves on, its timeout expires,
    or its cancellation token is set and wake() is called.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._generation = 0

    @property
    def generation(self) -> int:
        with self._cond:
            return self._generation

    def post(self) -> None:
        """Announce a completed line."""
        with self._cond:
            self._generation += 1
            self._cond.notify_all()

    def wake(self) -> None:
        """Wake every waiter without announcing a line."""
        with self._cond:
            self._cond.notify_all()

    def wait(self, since: int, timeout: float, *cancels: threading.Event | None) -> bool:
        """Wait for a line posted after generation `since`.

        Returns True if one was posted, False on timeout, a bare wake(), or
        when any of `cancels` is set. Tokens are checked under the signal's
        lock, so setting a token and then calling wake() is never missed.
        """
        with self._cond:
            if self._generation != since:
                return True
            if any(c is not None and c.is_set() for c in cancels):
                return False
            if timeout > 0:
                self._cond.wait(timeout)
            return self._generation != since


class LineAssembler:
    """Frames bytes from the reader loop into lines on the current EOL.

    Bytes arrive on `channel` in transport order. The accumulator is private
    to the assembler thread. eol is a callable so a change made with set_eol
    applies from the next byte on.
    """

    def __init__(
        self,
        channel: "queue.Queue[int | None]",
        signal: LineSignal,
        cancel: threading.Event,
        eol: Callable[[], int],
        on_line: Callable[[bytes], None],
    ) -> None:
        self._channel = channel
        self._signal = signal
        self._cancel = cancel
        self._eol = eol
        self._on_line = on_line
        self._line = bytearray()
        self._thread: threading.Thread | None = None

    def start(self, name: str = "line-assembler") -> None:
        self._thread = threading.Thread(target=self.run, name=name, daemon=True)
        self._thread.start()

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the thread to exit. Returns True if it has."""
        if self._thread is None:
            return True
        if self._thread is not threading.current_thread():
            self._thread.join(timeout)
        return not self._thread.is_alive()

    def run(self) -> None:
        while not self._cancel.is_set():
            try:
                value = self._channel.get(timeout=READ_POLL_INTERVAL_S)
            except queue.Empty:
                continue
            if value is CHANNEL_CLOSED:
                break
            self.feed(value)
        logger.debug("Line assembler stopped")

    def feed(self, value: int) -> None:
        """Process one byte."""
        if value != self._eol():
            self._line.append(value)
            return

        self._line.append(value)
        line = bytes(self._line)
        self._line.clear()
        try:
            self._on_line(line)
        except Exception as e:
            logger.warning(f"Line observer raised {type(e).__name__}: {e}")
        self._signal.post()
