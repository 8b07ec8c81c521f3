"""Common modules for serial-linekit.

This package contains code shared by the session pipeline and the port API:
- protocol: Transport Protocol, timing constants, TRACE level
- errors: Exception taxonomy
- settings: PortSettings dataclass and EOL parsing
- observer: Session event hooks and the logging observer
- device: Serial device setup on top of pyserial
- loopback: pty loopback device
"""

from common.errors import (
    AlreadyOpenError,
    BufferEmptyError,
    InvalidPatternError,
    NoDelimiterError,
    NotOpenError,
    PatternTimeoutError,
    SerialPortError,
    TransportIOError,
    TransportOpenError,
)
from common.observer import LoggingObserver, SessionObserver
from common.protocol import (
    DEFAULT_BAUDRATE,
    DEFAULT_READ_TIMEOUT_S,
    EOL_DEFAULT,
    READ_POLL_INTERVAL_S,
    TRACE,
    Transport,
)
from common.settings import PortSettings, parse_eol

__all__ = [
    # Protocol
    "Transport",
    "TRACE",
    "DEFAULT_BAUDRATE",
    "DEFAULT_READ_TIMEOUT_S",
    "EOL_DEFAULT",
    "READ_POLL_INTERVAL_S",
    # Settings
    "PortSettings",
    "parse_eol",
    # Observers
    "SessionObserver",
    "LoggingObserver",
    # Exceptions
    "SerialPortError",
    "NotOpenError",
    "AlreadyOpenError",
    "TransportOpenError",
    "TransportIOError",
    "BufferEmptyError",
    "NoDelimiterError",
    "InvalidPatternError",
    "PatternTimeoutError",
]
