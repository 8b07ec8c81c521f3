"""Port controller package for serial-linekit.

This package holds the public API built on the session pipeline:
- controller: SerialPort lifecycle, write/print and read/read_line
- pattern: Timeout-bounded regex wait over received lines
- transfer: Paced file send
"""

from port.controller import SerialPort
from port.pattern import wait_for_regex_timeout
from port.transfer import send_file

__all__ = [
    "SerialPort",
    "send_file",
    "wait_for_regex_timeout",
]
