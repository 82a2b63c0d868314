"""Repeat-print a receipt template on a thermal printer.

Usage:
  python thermal_repeat.py path/to/receipt.bin <send_delay> <device_id> [repeat_count]

device_id is a Windows printer name, or a serial port name starting with COM.
"""
import argparse
import logging
import re
import signal
import sys

from print_transports import make_transport
from repeat_driver import RepeatDriver, RunState
from repeat_errors import ArgumentError, ConfigurationError, TemplateReadError, TransportError
from repeat_settings import LOG_LEVEL, MIN_DELAY_SECONDS, SERIAL_BAUDRATE, SPOOLER_JOB_NAME
from run_config import build_run_config

logger = logging.getLogger("thermalrepeat.cli")

USAGE_NOTES = f"""\
  template      the ESC/POS receipt to print; three 0xBB bytes in a row mark
                where the print counter is written
  send_delay    seconds to wait before repeating the print job (minimum {MIN_DELAY_SECONDS})
  device_id     Windows printer name or serial port name; serial port names
                must start with COM
  repeat_count  optional number of times to print the receipt; omit or -1 to
                print forever
"""


class _Parser(argparse.ArgumentParser):
    def error(self, message):
        raise ArgumentError(message)


def _build_parser() -> argparse.ArgumentParser:
    ap = _Parser(
        prog='thermal-repeat',
        description='Send a receipt template to a printer over and over.',
        epilog=USAGE_NOTES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    ap.add_argument('template', help='Path to the receipt template file')
    ap.add_argument('delay', help='Seconds between prints')
    ap.add_argument('device_id', help='Printer name or COM port')
    ap.add_argument('repeat', nargs='?', default=None, help='Number of prints (-1 = forever)')
    ap.add_argument('--baudrate', type=int, default=SERIAL_BAUDRATE,
                    help=f'Serial baudrate (default {SERIAL_BAUDRATE})')
    ap.add_argument('--job-name', default=SPOOLER_JOB_NAME, help='Spooler document name')
    ap.add_argument('--hex', action='store_true',
                    help='Template file holds hex text like "1B 40 ..." instead of raw bytes')
    ap.add_argument('--log-level', default=LOG_LEVEL,
                    choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'], type=str.upper)
    return ap


def parse_hex_text(text: str) -> bytes:
    # Accept "1B 40", "1b40", "1B,40", multi-line
    cleaned = re.sub(r"[^0-9A-Fa-f]", " ", str(text or ""))
    parts = [p for p in cleaned.split() if p]
    if len(parts) == 1 and len(parts[0]) > 2 and len(parts[0]) % 2 == 0:
        blob = parts[0]
        parts = [blob[i:i + 2] for i in range(0, len(blob), 2)]
    if any(len(p) > 2 for p in parts):
        raise ValueError("hex tokens must be one byte each")
    return bytes(int(p, 16) for p in parts)


def read_template(path: str, hex_text: bool = False) -> bytes:
    try:
        with open(path, 'rb') as f:
            raw = f.read()
    except OSError as e:
        raise TemplateReadError(f"{path}: {e.strerror or e}") from e
    if hex_text:
        try:
            raw = parse_hex_text(raw.decode('latin-1'))
        except ValueError as e:
            raise TemplateReadError(f"{path}: not a hex dump ({e})") from e
    if not raw:
        raise TemplateReadError(f"{path}: template is empty")
    return raw


def _install_stop_handlers(driver: RepeatDriver) -> dict:
    previous = {}

    def _handler(signum, frame):
        logger.info(f"[STOP] Signal {signum} received, finishing current iteration")
        driver.stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        previous[sig] = signal.signal(sig, _handler)
    return previous


def _restore_handlers(previous: dict):
    for sig, handler in previous.items():
        signal.signal(sig, handler)


def main(argv=None) -> int:
    parser = _build_parser()
    try:
        args = parser.parse_args(argv)
    except ArgumentError as e:
        parser.print_usage()
        print(f"ERROR: {e}")
        return 2

    logging.basicConfig(
        level=getattr(logging, args.log_level, logging.INFO),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    try:
        template = read_template(args.template, hex_text=args.hex)
    except TemplateReadError as e:
        print(f"Error reading receipt template: {e}")
        return 2

    try:
        config = build_run_config(
            template, args.delay, args.device_id, args.repeat,
            file_name=args.template, baudrate=args.baudrate, job_name=args.job_name,
        )
    except ConfigurationError as e:
        print(f"Invalid settings: {e}")
        parser.print_help()
        return 2
    if config.delay_clamped:
        print(f"Minimum delay is {MIN_DELAY_SECONDS} seconds, setting to minimum")

    logger.info(f"[START] {config.describe()} via {config.transport_kind.value}")
    transport = make_transport(config)
    driver = RepeatDriver(config, transport)
    previous = _install_stop_handlers(driver)
    try:
        with transport:
            state = driver.run()
    except TransportError as e:
        print(f"Failed to open device: {e}")
        print(f"Opts: {config.describe()}")
        return 1
    finally:
        _restore_handlers(previous)

    if state is RunState.FAILED:
        print(f"Failed to write data: {driver.error}")
        print(f"Opts: {config.describe(driver.remaining)}")
        return 1
    print(f"OK: {driver.sends} print(s) sent to {config.device_id}")
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
