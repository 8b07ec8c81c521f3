"""Shared receive buffer for serial-linekit.

Contains:
- SharedBuffer: Lock-protected FIFO of unread bytes

The reader loop is the only appender; any number of callers consume.
"""

import threading

from common.errors import BufferEmptyError, NoDelimiterError

# Consumed bytes are dropped from the front once at least this many have
# been read and they make up half the storage.
COMPACT_THRESHOLD = 4096


class SharedBuffer:
    """FIFO of unread bytes. Every operation holds the same lock.

    Unread data is self._data[self._start:]. Consuming advances the start
    offset so single-byte reads do not shift the whole array.
    """

    def __init__(self) -> None:
        self._data = bytearray()
        self._start = 0
        self._lock = threading.Lock()

    def append(self, data: bytes) -> None:
        with self._lock:
            self._data.extend(data)

    def read_byte(self) -> int:
        """Pop the earliest unread byte."""
        with self._lock:
            if self._start >= len(self._data):
                raise BufferEmptyError("No data buffered")
            value = self._data[self._start]
            self._consume(1)
            return value

    def read_until(self, delimiter: int) -> bytes:
        """Pop bytes through and including the first delimiter."""
        with self._lock:
            index = self._data.find(delimiter, self._start)
            if index < 0:
                raise NoDelimiterError(
                    f"No delimiter 0x{delimiter:02x} in {len(self._data) - self._start} buffered bytes"
                )
            line = bytes(self._data[self._start : index + 1])
            self._consume(index + 1 - self._start)
            return line

    def peek(self) -> bytes:
        """Return a copy of the unread bytes without consuming them."""
        with self._lock:
            return bytes(self._data[self._start :])

    def _consume(self, count: int) -> None:
        """Advance past count bytes. Caller holds the lock."""
        self._start += count
        if self._start == len(self._data):
            self._data.clear()
            self._start = 0
        elif self._start >= COMPACT_THRESHOLD and self._start * 2 >= len(self._data):
            del self._data[: self._start]
            self._start = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._data) - self._start
