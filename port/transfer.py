"""File transfer for serial-linekit.

Contains:
- send_file: Write a file to the port in paced chunks
"""

import logging
import time
from os import PathLike
from pathlib import Path
from typing import TYPE_CHECKING

from common.protocol import SEND_FILE_CHUNK_SIZE, SEND_FILE_DELAY_S, TRACE

if TYPE_CHECKING:
    from port.controller import SerialPort

logger = logging.getLogger(__name__)


def send_file(
    port: "SerialPort",
    path: str | PathLike[str],
    chunk_size: int = SEND_FILE_CHUNK_SIZE,
    delay_s: float = SEND_FILE_DELAY_S,
) -> int:
    """Send a binary file through the port.

    Writes at most chunk_size bytes at a time and sleeps delay_s between
    chunks so slow receivers keep up.

    Returns:
        Total bytes written.

    Raises:
        NotOpenError: The port is not open.
        OSError: The file cannot be read.
        TransportIOError: A write failed, or a reader failure was pending;
            the remaining chunks are not sent.
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    port.require_open(f"send {path}")

    data = Path(path).read_bytes()
    logger.info(f"[{port.name}] Sending {path} ({len(data)} bytes)")

    sent = 0
    for offset in range(0, len(data), chunk_size):
        if offset:
            time.sleep(delay_s)
        sent += port.write(data[offset : offset + chunk_size])
        logger.log(TRACE, f"[{port.name}] Sent {sent}/{len(data)} bytes")

    logger.info(f"[{port.name}] Sent {sent} bytes")
    return sent
