"""Serial device setup for serial-linekit.

Contains:
- log_device_info: Log information about a serial device
- list_ports: Describe the serial ports present on this machine
- open_transport: Open and configure a serial port or pyserial URL
"""

import logging
import os

import serial
import serial.tools.list_ports

from common.protocol import WRITE_TIMEOUT_S

logger = logging.getLogger(__name__)


def log_device_info(device: str) -> None:
    """Log information about a serial device."""
    if "://" in device:
        logger.info(f"Device: {device} (url)")
        return

    real_path = os.path.realpath(device)
    if real_path.startswith("/dev/pts/"):
        logger.info(f"Device: {device} -> {real_path} (pty)")
        return

    ports = [p for p in serial.tools.list_ports.comports() if p.device == device]
    if len(ports) == 0:
        logger.info(f"Device: {device} (not in port list)")
        return

    info = ports[0]
    logger.info(f"Device: {info.device}")
    logger.info(f"Description: {info.description}")
    if info.vid is not None:
        logger.info(f"VID:PID: {info.vid:04x}:{info.pid:04x}")


def list_ports() -> list[dict[str, str]]:
    """List available serial ports as device/description/hwid dicts."""
    return [
        {"device": p.device, "description": p.description, "hwid": p.hwid}
        for p in sorted(serial.tools.list_ports.comports(), key=lambda p: p.device)
    ]


def open_transport(device: str, baudrate: int, timeout: float) -> serial.SerialBase:
    """Open and configure a serial port.

    device may be a path (/dev/ttyUSB0, COM3) or a pyserial URL (loop://).
    Raises serial.SerialException or OSError on failure.
    """
    log_device_info(device)
    ser = serial.serial_for_url(
        device,
        baudrate=baudrate,
        bytesize=serial.EIGHTBITS,
        parity=serial.PARITY_NONE,
        stopbits=serial.STOPBITS_ONE,
        xonxoff=False,
        rtscts=False,
        timeout=timeout,
        write_timeout=WRITE_TIMEOUT_S,
    )
    ser.reset_input_buffer()
    logger.debug(f"Serial port: baudrate={ser.baudrate}, timeout={ser.timeout}")
    return ser
