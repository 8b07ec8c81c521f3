"""Receive pipeline package for serial-linekit.

This package holds the background side of an open session:
- buffer: Lock-protected shared buffer of unread bytes
- reader: Reader loop moving transport bytes into the buffer and channel
- assembler: Line assembler framing bytes into lines, and the line-ready signal
"""

from session.assembler import CHANNEL_CLOSED, LineAssembler, LineSignal
from session.buffer import SharedBuffer
from session.reader import ReaderLoop

__all__ = [
    "CHANNEL_CLOSED",
    "LineAssembler",
    "LineSignal",
    "ReaderLoop",
    "SharedBuffer",
]
