"""Session settings for serial-linekit.

Contains:
- PortSettings: Parameters of an open session
- parse_eol: Normalize an EOL value to a single byte
"""

from dataclasses import dataclass

from common.protocol import DEFAULT_READ_TIMEOUT_S, EOL_DEFAULT, READ_POLL_INTERVAL_S


def parse_eol(value: int | bytes | str) -> int:
    """Normalize an EOL given as int (0-255), one-byte bytes, or one-char str."""
    if isinstance(value, str):
        value = value.encode("latin-1")
    if isinstance(value, (bytes, bytearray)):
        if len(value) != 1:
            raise ValueError(f"EOL must be a single byte, got {value!r}")
        return value[0]
    if isinstance(value, int) and 0 <= value <= 0xFF:
        return value
    raise ValueError(f"EOL must be a single byte, got {value!r}")


@dataclass
class PortSettings:
    """Parameters of an open session."""

    name: str
    baudrate: int
    read_timeout: float = DEFAULT_READ_TIMEOUT_S
    eol: int = EOL_DEFAULT

    def __post_init__(self) -> None:
        """Validate invariants."""
        if self.read_timeout < 0:
            raise ValueError(f"read_timeout must be non-negative, got {self.read_timeout}")
        self.eol = parse_eol(self.eol)

    @property
    def transport_timeout(self) -> float:
        """Timeout for a single transport read, bounded by the poll interval.

        A zero read_timeout still blocks each read for the poll interval so
        the reader thread does not spin.
        """
        if self.read_timeout == 0:
            return READ_POLL_INTERVAL_S
        return min(self.read_timeout, READ_POLL_INTERVAL_S)
