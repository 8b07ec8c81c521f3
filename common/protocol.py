"""Transport protocol and runtime constants for serial-linekit.

Contains:
- Transport Protocol for type checking
- Opener callable type used to acquire a Transport
- Timing constants for reads, polling and shutdown
- Logging configuration
"""

import logging
import os
from collections.abc import Callable
from typing import Protocol

# TRACE logging level (below DEBUG)
TRACE = 5
logging.addLevelName(TRACE, "TRACE")


class Transport(Protocol):
    """Protocol for the byte-stream handle a session reads from and writes to.

    read() returns b"" when its timeout expires and raises on a hard error.
    Transports may also offer cancel_read() to abort a pending read.
    """

    def read(self, size: int = ..., /) -> bytes: ...
    def write(self, data: bytes, /) -> int | None: ...
    def close(self) -> None: ...
    @property
    def in_waiting(self) -> int: ...


Opener = Callable[[str, int, float], Transport]

# End of line character, newline (ASCII 10, LF)
EOL_DEFAULT = 0x0A

# ReadLine waits this long for a line (configurable via envvar)
DEFAULT_READ_TIMEOUT_S = float(os.environ.get("SERIAL_READ_TIMEOUT", "1.0"))

# Upper bound on a single transport read / channel poll, so cancellation is observed promptly
READ_POLL_INTERVAL_S = float(os.environ.get("SERIAL_POLL_INTERVAL", "0.1"))

WRITE_TIMEOUT_S = float(os.environ.get("SERIAL_WRITE_TIMEOUT", "1.0"))

# Background threads must exit within this after cancellation
THREAD_JOIN_TIMEOUT_S = 5.0

# SendFile chunking
SEND_FILE_CHUNK_SIZE = 512
SEND_FILE_DELAY_S = 0.1

DEFAULT_BAUDRATE = 115200
