"""Exception taxonomy for serial-linekit.

Contains:
- SerialPortError: Base class for every error raised by a port
- Lifecycle errors: NotOpenError, AlreadyOpenError
- Transport errors: TransportOpenError, TransportIOError
- Read errors: BufferEmptyError, NoDelimiterError
- Pattern wait errors: InvalidPatternError, PatternTimeoutError
"""


class SerialPortError(Exception):
    """Base class for serial port errors."""

    pass


class NotOpenError(SerialPortError):
    """Raised when an operation needs an open port and the port is closed."""

    pass


class AlreadyOpenError(SerialPortError):
    """Raised when opening a port that already has an open session."""

    pass


class TransportOpenError(SerialPortError):
    """Raised when the transport cannot be acquired. Chains the underlying cause."""

    pass


class TransportIOError(SerialPortError):
    """Raised when the transport fails during read, write or close. Chains the underlying cause."""

    pass


class BufferEmptyError(SerialPortError):
    """Raised when reading a byte from an empty buffer."""

    pass


class NoDelimiterError(SerialPortError):
    """Raised when the buffer holds no complete line yet."""

    pass


class InvalidPatternError(SerialPortError):
    """Raised when a regular expression fails to compile."""

    pass


class PatternTimeoutError(SerialPortError, TimeoutError):
    """Raised when no line matched before the deadline."""

    pass
