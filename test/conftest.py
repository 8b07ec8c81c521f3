"""pytest configuration and fixtures for serial-linekit tests.

Provides:
- MockTransport: Thread-safe transport with a blocking, timeout-bounded read
- MockOpener: Opener that hands out MockTransports and records calls
- RecordingObserver: Observer that records every session event
- port fixture: An open SerialPort backed by a MockTransport
- Markers for unit vs integration tests
"""

import threading
import time
from collections.abc import Callable, Generator

import pytest
import serial

from common.observer import SessionObserver
from port.controller import SerialPort


class MockTransport:
    """Mock serial transport for unit testing.

    read() waits up to `timeout` for injected data, like a pyserial port,
    and returns b"" on timeout. With echo=True everything written is
    received back, as with a loopback plug.
    """

    def __init__(self, timeout: float = 0.05, echo: bool = False) -> None:
        self.timeout = timeout
        self.echo = echo
        self.written = bytearray()
        self.writes: list[bytes] = []
        self.closed = False
        self.cancel_count = 0
        self.close_error: Exception | None = None
        self._rx = bytearray()
        self._read_error: Exception | None = None
        self._cancelled = False
        self._cond = threading.Condition()

    def read(self, size: int = 1, /) -> bytes:
        with self._cond:
            if self._read_error is None and not self._rx and not self._cancelled:
                self._cond.wait(self.timeout)
            if self._read_error is not None:
                raise self._read_error
            self._cancelled = False
            data = bytes(self._rx[:size])
            del self._rx[:size]
            return data

    def write(self, data: bytes, /) -> int:
        with self._cond:
            if self.closed:
                raise serial.SerialException("Attempting to use a port that is not open")
            self.written.extend(data)
            self.writes.append(bytes(data))
            if self.echo:
                self._rx.extend(data)
                self._cond.notify_all()
            return len(data)

    def close(self) -> None:
        with self._cond:
            self.closed = True
            self._cond.notify_all()
        if self.close_error is not None:
            raise self.close_error

    def cancel_read(self) -> None:
        with self._cond:
            self.cancel_count += 1
            self._cancelled = True
            self._cond.notify_all()

    @property
    def in_waiting(self) -> int:
        with self._cond:
            return len(self._rx)

    def inject(self, data: bytes) -> None:
        """Inject data as if received from the device."""
        with self._cond:
            self._rx.extend(data)
            self._cond.notify_all()

    def fail(self, error: Exception) -> None:
        """Make every following read raise error."""
        with self._cond:
            self._read_error = error
            self._cond.notify_all()


class MockOpener:
    """Opener returning MockTransports. Set fail_with to make opening fail."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, int, float]] = []
        self.transports: list[MockTransport] = []
        self.fail_with: Exception | None = None
        self.echo = False

    def __call__(self, name: str, baudrate: int, timeout: float) -> MockTransport:
        self.calls.append((name, baudrate, timeout))
        if self.fail_with is not None:
            raise self.fail_with
        transport = MockTransport(timeout=timeout, echo=self.echo)
        self.transports.append(transport)
        return transport

    @property
    def transport(self) -> MockTransport:
        """Most recently opened transport."""
        return self.transports[-1]


class RecordingObserver(SessionObserver):
    """Records session events as (event, *args) tuples."""

    def __init__(self) -> None:
        self.events: list[tuple] = []
        self._lock = threading.Lock()

    def _record(self, *event: object) -> None:
        with self._lock:
            self.events.append(event)

    def of(self, kind: str) -> list[tuple]:
        with self._lock:
            return [e for e in self.events if e[0] == kind]

    def session_opened(self, name: str, baudrate: int) -> None:
        self._record("opened", name, baudrate)

    def session_closed(self, name: str) -> None:
        self._record("closed", name)

    def transmitted(self, name: str, data: bytes) -> None:
        self._record("tx", name, data)

    def line_received(self, name: str, raw: bytes) -> None:
        self._record("rx", name, raw)

    def line_rejected(self, name: str, pattern: str, line: str) -> None:
        self._record("rejected", name, pattern, line)

    def pattern_matched(self, name: str, pattern: str, match: str) -> None:
        self._record("matched", name, pattern, match)

    def pattern_timed_out(self, name: str, pattern: str, timeout_s: float) -> None:
        self._record("timed_out", name, pattern, timeout_s)

    def transport_failed(self, name: str, error: BaseException) -> None:
        self._record("failed", name, error)


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test (uses pyserial/pty)")


@pytest.fixture
def opener() -> MockOpener:
    return MockOpener()


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
def port(opener: MockOpener, observer: RecordingObserver) -> Generator[SerialPort, None, None]:
    """An open SerialPort on /dev/mock with a 1s read timeout."""
    sp = SerialPort(observer=observer, opener=opener)
    sp.open("/dev/mock", 9600, timeout=1.0)
    try:
        yield sp
    finally:
        sp.close()


@pytest.fixture
def wait_until() -> Callable[..., bool]:
    """Return a helper that polls a predicate until it holds or times out."""

    def _wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(0.005)
        return predicate()

    return _wait_until


@pytest.fixture
def live_threads() -> Callable[[str], list[threading.Thread]]:
    """Return a helper listing live threads whose name starts with a prefix."""

    def _live_threads(prefix: str) -> list[threading.Thread]:
        return [t for t in threading.enumerate() if t.name.startswith(prefix) and t.is_alive()]

    return _live_threads
