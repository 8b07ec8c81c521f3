"""Background transport reader for serial-linekit.

Contains:
- ReaderLoop: Thread that moves bytes from the transport into the shared
  buffer and onto the line assembler's channel
"""

import logging
import queue
import threading
from collections.abc import Callable

import serial

from common.protocol import TRACE, Transport
from session.assembler import CHANNEL_CLOSED
from session.buffer import SharedBuffer

logger = logging.getLogger(__name__)


class ReaderLoop:
    """Reads the transport until cancelled or a permanent error occurs.

    Each read is bounded by the transport's own timeout. Cancellation is
    checked before blocking and again as soon as a read returns. The loop
    never closes the transport; the port controller owns it.
    """

    def __init__(
        self,
        transport: Transport,
        buffer: SharedBuffer,
        channel: "queue.Queue[int | None]",
        cancel: threading.Event,
        on_error: Callable[[BaseException], None],
    ) -> None:
        self._transport = transport
        self._buffer = buffer
        self._channel = channel
        self._cancel = cancel
        self._on_error = on_error
        self._thread: threading.Thread | None = None
        self.bytes_read = 0

    def start(self, name: str = "reader-loop") -> None:
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
        try:
            while not self._cancel.is_set():
                try:
                    data = self._transport.read(self._transport.in_waiting or 1)
                except (serial.SerialException, OSError) as e:
                    if not self._cancel.is_set():
                        logger.debug(f"Transport read failed: {e}")
                        self._on_error(e)
                    break

                if self._cancel.is_set():
                    break
                if not data:
                    continue

                self._buffer.append(data)
                self.bytes_read += len(data)
                logger.log(TRACE, f"Read {len(data)} bytes (total {self.bytes_read})")
                for value in data:
                    self._channel.put(value)
        finally:
            self._channel.put(CHANNEL_CLOSED)
            logger.debug("Reader loop stopped")
