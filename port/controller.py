"""Serial port session controller for serial-linekit.

Contains:
- SerialPort: Owns the transport and the background reader/assembler
  threads, and exposes the read/write/line API
"""

import logging
import queue
import threading
import time
from functools import partial
from os import PathLike

import serial

from common.device import open_transport
from common.errors import (
    AlreadyOpenError,
    NoDelimiterError,
    NotOpenError,
    TransportIOError,
    TransportOpenError,
)
from common.observer import LoggingObserver, SessionObserver
from common.protocol import (
    DEFAULT_READ_TIMEOUT_S,
    EOL_DEFAULT,
    THREAD_JOIN_TIMEOUT_S,
    Opener,
    Transport,
)
from common.settings import PortSettings, parse_eol
from port.pattern import wait_for_regex_timeout
from port.transfer import send_file
from session.assembler import LineAssembler, LineSignal
from session.buffer import SharedBuffer
from session.reader import ReaderLoop

logger = logging.getLogger(__name__)


class SerialPort:
    """Line-oriented serial port.

    Usage:
        sp = SerialPort()
        sp.open("/dev/ttyUSB0", 9600)
        sp.println("AT")
        sp.wait_for_regex_timeout("OK.*", 10.0)
        sp.close()

    While open, a reader thread moves received bytes into a shared buffer and
    a line assembler thread frames them on the EOL byte (LF by default).
    A transport error seen by the reader thread closes the port on the next
    call, which raises TransportIOError; later calls raise NotOpenError.
    """

    def __init__(
        self,
        observer: SessionObserver | None = None,
        opener: Opener = open_transport,
        encoding: str = "utf-8",
    ) -> None:
        self._observer = observer if observer is not None else LoggingObserver()
        self._opener = opener
        self._encoding = encoding
        self._lock = threading.RLock()
        self._eol = EOL_DEFAULT
        self._settings: PortSettings | None = None
        self._transport: Transport | None = None
        self._buffer: SharedBuffer | None = None
        self._signal = LineSignal()
        self._cancel = threading.Event()
        self._reader: ReaderLoop | None = None
        self._assembler: LineAssembler | None = None
        self._error: BaseException | None = None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def open(self, name: str, baudrate: int, timeout: float | None = None) -> None:
        """Open the transport and start the background threads.

        Args:
            name: Device path or pyserial URL.
            baudrate: Line speed.
            timeout: read_line timeout in seconds (default DEFAULT_READ_TIMEOUT_S).
                0 makes read_line return at once with a buffered line or
                the partial data.

        Raises:
            AlreadyOpenError: A session is already open.
            TransportOpenError: The transport could not be acquired.
            ValueError: timeout is negative.
        """
        self._raise_if_failed("open")
        with self._lock:
            if self._transport is not None:
                assert self._settings is not None
                raise AlreadyOpenError(
                    f'Cannot open "{name}": "{self._settings.name}" is already open'
                )

            read_timeout = DEFAULT_READ_TIMEOUT_S if timeout is None else timeout
            settings = PortSettings(name, baudrate, read_timeout, self._eol)
            try:
                transport = self._opener(name, baudrate, settings.transport_timeout)
            except (serial.SerialException, OSError, ValueError) as e:
                raise TransportOpenError(f'Unable to open port "{name}": {e}') from e

            channel: queue.Queue[int | None] = queue.Queue()
            self._settings = settings
            self._transport = transport
            self._buffer = SharedBuffer()
            self._signal = LineSignal()
            self._cancel = threading.Event()
            self._error = None
            self._reader = ReaderLoop(
                transport, self._buffer, channel, self._cancel, self._transport_failed
            )
            self._assembler = LineAssembler(
                channel,
                self._signal,
                self._cancel,
                eol=lambda: self._eol,
                on_line=partial(self._observer.line_received, name),
            )
            self._reader.start(name=f"reader-loop[{name}]")
            self._assembler.start(name=f"line-assembler[{name}]")

        self._observer.session_opened(name, baudrate)

    def close(self) -> None:
        """Stop the background threads and close the transport. No-op if closed.

        Raises:
            TransportIOError: Closing the transport failed, or the reader
                thread had recorded a transport failure. The port is
                closed regardless.
        """
        self._raise_if_failed("close")
        with self._lock:
            if self._transport is None:
                return
            self._shutdown()

    def _shutdown(self) -> None:
        """Cancel, unblock, join, then close the transport. Caller holds the lock."""
        assert self._settings is not None
        name = self._settings.name
        transport = self._transport

        self._cancel.set()
        cancel_read = getattr(transport, "cancel_read", None)
        if cancel_read is not None:
            try:
                cancel_read()
            except (serial.SerialException, OSError) as e:
                logger.debug(f"[{name}] cancel_read failed: {e}")
        self._signal.wake()

        for task in (self._reader, self._assembler):
            if task is not None and not task.join(THREAD_JOIN_TIMEOUT_S):
                logger.warning(f"[{name}] Background thread did not stop within {THREAD_JOIN_TIMEOUT_S}s")

        self._transport = None
        self._buffer = None
        self._reader = None
        self._assembler = None
        try:
            transport.close()
        except (serial.SerialException, OSError) as e:
            raise TransportIOError(f'Error closing "{name}": {e}') from e
        finally:
            self._observer.session_closed(name)

    def _transport_failed(self, error: BaseException) -> None:
        """Record a reader thread failure and wake any read_line waiter."""
        self._error = error
        self._cancel.set()
        self._observer.transport_failed(self.name or "", error)
        self._signal.wake()

    def _raise_if_failed(self, op: str) -> None:
        """Auto-close after a recorded transport failure and report it once."""
        if self._error is None:
            return
        with self._lock:
            error, self._error = self._error, None
            if error is None:
                return
            name = self.name
            if self._transport is not None:
                try:
                    self._shutdown()
                except TransportIOError as e:
                    logger.debug(f"[{name}] {e}")
        raise TransportIOError(f'Cannot {op}: "{name}" failed: {error}') from error

    def require_open(self, op: str) -> Transport:
        """Return the transport, or raise for a failed or closed port.

        Raises:
            TransportIOError: A reader failure was pending; the port is now closed.
            NotOpenError: The port is not open.
        """
        self._raise_if_failed(op)
        transport = self._transport
        if transport is None:
            raise NotOpenError(f"Cannot {op}: serial port is not open")
        return transport

    def __enter__(self) -> "SerialPort":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def is_open(self) -> bool:
        """False once the reader thread has recorded a transport failure."""
        return self._transport is not None and self._error is None

    @property
    def name(self) -> str | None:
        """Device name of the current or most recent session."""
        return self._settings.name if self._settings else None

    @property
    def baudrate(self) -> int | None:
        return self._settings.baudrate if self._settings else None

    @property
    def read_timeout(self) -> float | None:
        return self._settings.read_timeout if self._settings else None

    @property
    def eol(self) -> int:
        return self._eol

    @property
    def observer(self) -> SessionObserver:
        return self._observer

    # -------------------------------------------------------------------------
    # Transmit
    # -------------------------------------------------------------------------

    def write(self, data: bytes) -> int:
        """Write raw bytes. Returns the number of bytes written."""
        transport = self.require_open("write")
        try:
            written = transport.write(data)
        except (serial.SerialException, OSError) as e:
            raise TransportIOError(f'Write to "{self.name}" failed: {e}') from e
        self._observer.transmitted(self.name or "", bytes(data))
        return len(data) if written is None else written

    def print(self, text: str) -> None:
        """Write text encoded with the port's encoding."""
        self.write(text.encode(self._encoding))

    def println(self, text: str) -> None:
        """Write text followed by CR+LF."""
        self.print(text + "\r\n")

    def printf(self, fmt: str, *args: object) -> None:
        """Write %-formatted text. fmt is sent verbatim when no args are given."""
        self.print(fmt % args if args else fmt)

    def send_file(self, path: str | PathLike[str]) -> int:
        """Write a file in paced chunks. Returns bytes written."""
        return send_file(self, path)

    # -------------------------------------------------------------------------
    # Receive
    # -------------------------------------------------------------------------

    def read(self) -> int:
        """Pop the first unread byte. Raises BufferEmptyError if none is buffered."""
        self.require_open("read")
        buffer = self._buffer
        if buffer is None:
            raise NotOpenError("Cannot read: serial port is not open")
        return buffer.read_byte()

    def read_line(self, cancel: threading.Event | None = None) -> str | None:
        """Read the first available line.

        Waits up to the read timeout for a line delimited by the EOL byte.
        The returned text does not include the EOL byte or a trailing CR/LF.
        If no line completes in time, returns the partial data buffered so
        far without consuming it.

        Args:
            cancel: Optional token. Once set, and wake_line_waiters() called,
                the wait ends and None is returned. A set token never
                consumes a line.
        """
        self.require_open("read line")
        buffer, signal, settings = self._buffer, self._signal, self._settings
        session_cancel = self._cancel
        if buffer is None or settings is None:
            raise NotOpenError("Cannot read line: serial port is not open")
        deadline = time.monotonic() + settings.read_timeout

        while True:
            if cancel is not None and cancel.is_set():
                return None
            since = signal.generation
            eol = self._eol
            try:
                return self._decode(buffer.read_until(eol), eol)
            except NoDelimiterError:
                pass

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return self._decode(buffer.peek(), eol)

            signal.wait(since, remaining, cancel, session_cancel)
            if cancel is not None and cancel.is_set():
                return None
            if session_cancel.is_set():
                self._raise_if_failed("read line")
                raise NotOpenError("Cannot read line: serial port was closed")

    def wake_line_waiters(self) -> None:
        """Wake every blocked read_line so it re-checks its cancel token."""
        self._signal.wake()

    def _decode(self, line: bytes, eol: int) -> str:
        if line.endswith(bytes([eol])):
            line = line[:-1]
        return line.decode(self._encoding, errors="replace").rstrip("\r\n")

    def available(self) -> int:
        """Number of unread bytes in the buffer."""
        buffer = self._buffer
        return len(buffer) if buffer is not None else 0

    def set_eol(self, value: int | bytes | str) -> None:
        """Change the line delimiter for lines framed from now on."""
        eol = parse_eol(value)
        self._eol = eol
        if self._settings is not None:
            self._settings.eol = eol
        self._signal.wake()

    def wait_for_regex_timeout(self, pattern: str, timeout: float) -> str:
        """Wait for a line matching pattern. See port.pattern.wait_for_regex_timeout."""
        return wait_for_regex_timeout(self, pattern, timeout)
