#!/usr/bin/env python3
"""Line-oriented serial port tool."""

import argparse
import logging
import signal
import sys
import time
from types import FrameType

from common.device import list_ports
from common.errors import PatternTimeoutError, SerialPortError
from common.loopback import PtyLoopback
from common.observer import LoggingObserver
from common.protocol import DEFAULT_BAUDRATE, DEFAULT_READ_TIMEOUT_S, TRACE
from port.controller import SerialPort

logger = logging.getLogger(__name__)

DEFAULT_WAIT_S = 10.0


class EchoObserver(LoggingObserver):
    """Logs like LoggingObserver and also prints every received line to stdout."""

    def line_received(self, name: str, raw: bytes) -> None:
        super().line_received(name, raw)
        print(raw.decode("utf-8", errors="replace").rstrip("\r\n"), flush=True)


def _open_port(args: argparse.Namespace, device: str, observer: LoggingObserver | None = None) -> SerialPort:
    sp = SerialPort(observer=observer)
    sp.set_eol(args.eol)
    sp.open(device, args.baudrate, args.read_timeout)
    return sp


def cmd_list(_args: argparse.Namespace) -> int:
    ports = list_ports()
    if not ports:
        print("No serial ports found")
        return 0
    for p in ports:
        print(f"{p['device']}\t{p['description']}\t{p['hwid']}")
    return 0


def _send_and_wait(sp: SerialPort, text: str, expect: str | None, wait_s: float) -> int:
    sp.println(text)
    if expect is None:
        return 0
    try:
        print(sp.wait_for_regex_timeout(expect, wait_s))
    except PatternTimeoutError as e:
        logger.error(str(e))
        return 1
    return 0


def cmd_send(args: argparse.Namespace) -> int:
    with _open_port(args, args.device) as sp:
        return _send_and_wait(sp, args.text, args.expect, args.wait)


def cmd_loopback(args: argparse.Namespace) -> int:
    with PtyLoopback() as loop, _open_port(args, loop.device) as sp:
        return _send_and_wait(sp, args.text, args.expect, args.wait)


def cmd_sendfile(args: argparse.Namespace) -> int:
    with _open_port(args, args.device) as sp:
        sent = sp.send_file(args.path)
    print(f"sent={sent}")
    return 0


def cmd_monitor(args: argparse.Namespace) -> int:
    """Print received lines until duration expires or SIGINT."""
    running = True

    def handler(_sig: int, _frame: FrameType | None) -> None:
        nonlocal running
        running = False

    signal.signal(signal.SIGINT, handler)

    start_time = time.monotonic()
    with _open_port(args, args.device, EchoObserver()) as sp:
        while running and (args.duration == 0 or (time.monotonic() - start_time) < args.duration):
            time.sleep(0.1)
            if not sp.is_open:
                break
        logger.info(f"Monitor stopped, {sp.available()} bytes unread")
    return 0


def _add_wait_args(parser: argparse.ArgumentParser) -> None:
    """Add text, expect and wait arguments to a parser."""
    parser.add_argument("text", help="Text to send (CR+LF is appended)")
    parser.add_argument("-e", "--expect", type=str, help="Regular expression to wait for")
    parser.add_argument(
        "-w",
        "--wait",
        type=float,
        default=DEFAULT_WAIT_S,
        help=f"Seconds to wait for --expect (default: {DEFAULT_WAIT_S})",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Send text to a serial device and wait for line responses",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s list                                   List serial ports
  %(prog)s -d /dev/ttyUSB0 send AT -e "OK.*"      Send AT, wait for OK
  %(prog)s -d /dev/ttyUSB0 -b 9600 monitor -t 30  Print lines for 30s
  %(prog)s -d loop:// send hello -e hello         Use a pyserial URL
  %(prog)s loopback hello -e hello                Run against a pty loopback
""",
    )
    parser.add_argument("-d", "--device", type=str, help="Serial device path or pyserial URL")
    parser.add_argument(
        "-b",
        "--baudrate",
        type=int,
        default=DEFAULT_BAUDRATE,
        help=f"Baud rate (default: {DEFAULT_BAUDRATE})",
    )
    parser.add_argument(
        "--eol",
        type=lambda s: int(s, 0),
        default=0x0A,
        help="End of line byte, e.g. 0x0d (default: 0x0a)",
    )
    parser.add_argument(
        "--read-timeout",
        type=float,
        default=DEFAULT_READ_TIMEOUT_S,
        help=f"Line read timeout in seconds (default: {DEFAULT_READ_TIMEOUT_S})",
    )
    parser.add_argument(
        "-v", "--verbose", action="count", default=0, help="More logging (-v debug, -vv trace)"
    )

    subparsers = parser.add_subparsers(dest="mode")

    list_parser = subparsers.add_parser("list", help="List serial ports")
    list_parser.set_defaults(func=cmd_list, needs_device=False)

    send_parser = subparsers.add_parser("send", help="Send a line and optionally wait for a pattern")
    _add_wait_args(send_parser)
    send_parser.set_defaults(func=cmd_send, needs_device=True)

    monitor_parser = subparsers.add_parser("monitor", help="Print received lines")
    monitor_parser.add_argument(
        "-t",
        "--duration",
        type=float,
        default=0,
        help="Duration in seconds, 0 = until Ctrl-C (default: 0)",
    )
    monitor_parser.set_defaults(func=cmd_monitor, needs_device=True)

    sendfile_parser = subparsers.add_parser("sendfile", help="Send a file in paced chunks")
    sendfile_parser.add_argument("path", help="File to send")
    sendfile_parser.set_defaults(func=cmd_sendfile, needs_device=True)

    loopback_parser = subparsers.add_parser("loopback", help="Send a line through a pty loopback")
    _add_wait_args(loopback_parser)
    loopback_parser.set_defaults(func=cmd_loopback, needs_device=False)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    levels = [logging.INFO, logging.DEBUG, TRACE]
    logging.basicConfig(level=levels[min(args.verbose, len(levels) - 1)])

    if args.mode is None:
        parser.print_help()
        return 2
    if args.needs_device and not args.device:
        parser.error(f"{args.mode} requires -d/--device")

    try:
        return args.func(args)
    except SerialPortError as e:
        logger.error(f"Serial error: {e}")
        return 1
    except (OSError, ValueError, RuntimeError) as e:
        logger.error(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
