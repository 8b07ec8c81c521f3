"""Virtual loopback device for serial-linekit.

Contains:
- PtyLoopback: pty pair whose master side echoes everything written to the slave
"""

import logging
import os
import select
import sys
import threading

logger = logging.getLogger(__name__)


class PtyLoopback:
    """Virtual loopback device using a pty pair.

    The slave path behaves like a serial device whose peer echoes every byte.
    Use as a context manager; device is the path to open.
    """

    def __init__(self) -> None:
        if sys.platform not in ("linux", "darwin"):
            raise RuntimeError(
                f"Loopback mode only supported on Linux/macOS, not {sys.platform}"
            )
        import pty
        import tty

        self._master_fd, self._slave_fd = pty.openpty()
        tty.setraw(self._slave_fd)
        self.device = os.ttyname(self._slave_fd)
        self._running = threading.Event()
        self._running.set()
        self._echo_thread = threading.Thread(
            target=self._echo_loop, name="pty-echo", daemon=True
        )
        self._echo_thread.start()
        logger.info(f"Loopback pty: {self.device}")

    def _echo_loop(self) -> None:
        while self._running.is_set():
            try:
                ready, _, _ = select.select([self._master_fd], [], [], 0.05)
                if not ready:
                    continue
                data = os.read(self._master_fd, 4096)
                if data:
                    os.write(self._master_fd, data)
            except OSError:
                break

    def close(self) -> None:
        if not self._running.is_set():
            return
        self._running.clear()
        self._echo_thread.join(timeout=1.0)
        os.close(self._master_fd)
        os.close(self._slave_fd)
        logger.info("Closed loopback device")

    def __enter__(self) -> "PtyLoopback":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
