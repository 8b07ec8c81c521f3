"""Pattern wait for serial-linekit.

Contains:
- wait_for_regex_timeout: Block until a received line matches a regex, or time out

The search runs in its own thread and races the caller's deadline. When the
deadline wins, the search thread's token is set and its pending read_line is
woken, so the thread has exited by the time the call returns.
"""

import logging
import queue
import re
import threading
from typing import TYPE_CHECKING

from common.errors import InvalidPatternError, PatternTimeoutError, SerialPortError
from common.protocol import THREAD_JOIN_TIMEOUT_S

if TYPE_CHECKING:
    from port.controller import SerialPort

logger = logging.getLogger(__name__)

_Result = tuple[str | None, SerialPortError | None]


def _search(
    port: "SerialPort",
    regex: re.Pattern[str],
    cancel: threading.Event,
    results: "queue.Queue[_Result]",
) -> None:
    """Read lines until one matches, the token is set, or the port fails."""
    name = port.name or ""
    try:
        while not cancel.is_set():
            line = port.read_line(cancel=cancel)
            if line is None:
                return
            found = regex.search(line)
            if found is not None:
                results.put((found.group(0), None))
                return
            try:
                port.observer.line_rejected(name, regex.pattern, line)
            except Exception as e:
                logger.warning(f"Rejected-line observer raised {type(e).__name__}: {e}")
    except SerialPortError as e:
        results.put((None, e))


def wait_for_regex_timeout(port: "SerialPort", pattern: str, timeout: float) -> str:
    """Wait for a received line that matches a regular expression.

    Args:
        port: Open serial port.
        pattern: Regular expression, applied with re.search to each line.
        timeout: Seconds to wait.

    Returns:
        The earliest match in the first matching line.

    Raises:
        NotOpenError: The port is not open.
        InvalidPatternError: pattern does not compile. No thread is started.
        PatternTimeoutError: No line matched within timeout.
        TransportIOError: The transport failed before or while waiting.
    """
    if timeout < 0:
        raise ValueError(f"timeout must be non-negative, got {timeout}")
    port.require_open(f"wait for {pattern!r}")
    try:
        regex = re.compile(pattern)
    except re.error as e:
        raise InvalidPatternError(f"Invalid pattern {pattern!r}: {e}") from e

    name = port.name or ""
    results: queue.Queue[_Result] = queue.Queue(maxsize=1)
    cancel = threading.Event()
    search = threading.Thread(
        target=_search,
        args=(port, regex, cancel, results),
        name=f"pattern-wait[{name}]",
        daemon=True,
    )
    logger.info(f"[{name}] Waiting for {pattern!r} ({timeout}s)")
    search.start()

    try:
        match, error = results.get(timeout=timeout)
    except queue.Empty:
        cancel.set()
        port.wake_line_waiters()
        search.join(THREAD_JOIN_TIMEOUT_S)
        if search.is_alive():
            logger.warning(f"[{name}] Pattern search thread did not stop")
        port.observer.pattern_timed_out(name, pattern, timeout)
        raise PatternTimeoutError(
            f'Timeout ({timeout}s) waiting for {pattern!r} on "{name}"'
        ) from None

    search.join(THREAD_JOIN_TIMEOUT_S)
    if error is not None:
        raise error
    assert match is not None
    port.observer.pattern_matched(name, pattern, match)
    return match
