"""Observability hooks for serial-linekit.

Contains:
- SessionObserver: Base class receiving session events (all no-ops)
- LoggingObserver: Observer that writes every event to logging
"""

import logging

from common.protocol import TRACE

logger = logging.getLogger(__name__)


def _printable(data: bytes) -> str:
    return data.decode("utf-8", errors="replace").rstrip("\r\n")


class SessionObserver:
    """Receives events from a serial port session.

    Override the events of interest. Events are delivered from whichever
    thread produced them: line_received from the line assembler thread,
    transport_failed from the reader thread, the rest from the caller.
    """

    def session_opened(self, name: str, baudrate: int) -> None:
        pass

    def session_closed(self, name: str) -> None:
        pass

    def transmitted(self, name: str, data: bytes) -> None:
        pass

    def line_received(self, name: str, raw: bytes) -> None:
        pass

    def line_rejected(self, name: str, pattern: str, line: str) -> None:
        pass

    def pattern_matched(self, name: str, pattern: str, match: str) -> None:
        pass

    def pattern_timed_out(self, name: str, pattern: str, timeout_s: float) -> None:
        pass

    def transport_failed(self, name: str, error: BaseException) -> None:
        pass


class LoggingObserver(SessionObserver):
    """Writes session events to the serial-linekit logger."""

    def __init__(self, log: logging.Logger = logger) -> None:
        self._log = log

    def session_opened(self, name: str, baudrate: int) -> None:
        self._log.info(f"[{name}] Serial port open at {baudrate} baud")

    def session_closed(self, name: str) -> None:
        self._log.info(f"[{name}] Serial port closed")

    def transmitted(self, name: str, data: bytes) -> None:
        self._log.debug(f"[{name}] Tx >> {_printable(data)}")

    def line_received(self, name: str, raw: bytes) -> None:
        self._log.debug(f"[{name}] Rx << {_printable(raw)}")

    def line_rejected(self, name: str, pattern: str, line: str) -> None:
        self._log.log(TRACE, f"[{name}] No match for {pattern!r}: {line!r}")

    def pattern_matched(self, name: str, pattern: str, match: str) -> None:
        self._log.info(f"[{name}] Pattern {pattern!r} matched: {match!r}")

    def pattern_timed_out(self, name: str, pattern: str, timeout_s: float) -> None:
        self._log.info(f"[{name}] Unable to match {pattern!r} within {timeout_s}s")

    def transport_failed(self, name: str, error: BaseException) -> None:
        self._log.error(f"[{name}] Transport error: {error}")
