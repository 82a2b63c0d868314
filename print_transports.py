"""Delivery of raw receipt bytes to a serial printer or a Windows print queue."""
from __future__ import annotations

import contextlib
import logging
import sys

import serial

from repeat_errors import TransportError
from repeat_settings import (
    SERIAL_BAUDRATE,
    SERIAL_BUFFER_SIZE,
    SERIAL_TIMEOUT,
    SPOOLER_DATATYPE,
    SPOOLER_JOB_NAME,
)
from run_config import TransportKind

logger = logging.getLogger("thermalrepeat.transport")


class Transport:
    """Something that can push a payload to a device id."""

    def open(self):
        pass

    def send(self, payload: bytes, device_id: str):
        raise NotImplementedError

    def close(self):
        pass

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


def serial_device_path(port: str, platform: str = sys.platform) -> str:
    """Windows needs the \\\\.\\COMx form for ports above COM9."""
    port = str(port or '').strip()
    if platform == 'win32' and port.upper().startswith('COM') and port[3:].isdigit():
        return '\\\\.\\' + port
    return port


class SerialTransport(Transport):
    """pyserial port opened once and reused for every send of a run."""

    def __init__(self, port: str, baudrate: int = SERIAL_BAUDRATE, serial_factory=serial.Serial):
        self.port = port
        self.baudrate = int(baudrate or SERIAL_BAUDRATE)
        self._serial_factory = serial_factory
        self.serial = None

    @property
    def is_open(self) -> bool:
        return bool(self.serial is not None and getattr(self.serial, 'is_open', False))

    def open(self):
        if self.is_open:
            return
        ser = self._serial_factory()
        ser.port = serial_device_path(self.port)
        ser.baudrate = self.baudrate
        ser.bytesize = serial.EIGHTBITS
        ser.parity = serial.PARITY_NONE
        ser.stopbits = serial.STOPBITS_ONE
        ser.timeout = SERIAL_TIMEOUT
        ser.write_timeout = SERIAL_TIMEOUT
        ser.xonxoff = False
        ser.rtscts = False
        ser.dsrdtr = False
        ser.dtr = True
        ser.rts = True
        try:
            ser.open()
            # only the win32 backend can resize driver buffers
            if hasattr(ser, 'set_buffer_size'):
                ser.set_buffer_size(rx_size=SERIAL_BUFFER_SIZE, tx_size=SERIAL_BUFFER_SIZE)
        except (serial.SerialException, OSError, ValueError) as e:
            raise TransportError(f"Failed to open serial port {self.port}: {e}", self.port) from e
        self.serial = ser
        logger.info(f"[SERIAL] Opened {ser.port} @ {self.baudrate} 8N1")

    def send(self, payload: bytes, device_id: str):
        if not self.is_open:
            self.open()
        try:
            written = self.serial.write(payload)
            self.serial.flush()
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"Failed to write data: {e}", device_id) from e
        if written is not None and written != len(payload):
            raise TransportError(f"Short write: {written} of {len(payload)} bytes", device_id)
        logger.debug(f"[SERIAL] Wrote {len(payload)} bytes to {device_id}")

    def close(self):
        if self.serial is None:
            return
        try:
            if self.serial.is_open:
                self.serial.close()
                logger.info(f"[SERIAL] Closed {self.serial.port}")
        finally:
            self.serial = None


@contextlib.contextmanager
def printer_handle(spooler, printer_name: str):
    """Open a printer handle and close it exactly once on every exit path."""
    h = spooler.OpenPrinter(printer_name)
    try:
        yield h
    finally:
        spooler.ClosePrinter(h)


class SpoolerTransport(Transport):
    """One RAW spooler document per send, through pywin32's win32print."""

    def __init__(self, job_name: str = SPOOLER_JOB_NAME, spooler=None):
        self.job_name = job_name or SPOOLER_JOB_NAME
        self._spooler = spooler

    def open(self):
        if self._spooler is not None:
            return
        try:
            import win32print  # type: ignore
        except ImportError as e:
            raise TransportError(f"win32print (pywin32) is not available: {e}") from e
        self._spooler = win32print

    def send(self, payload: bytes, device_id: str):
        self.open()
        spooler = self._spooler
        try:
            with printer_handle(spooler, device_id) as h:
                spooler.StartDocPrinter(h, 1, (self.job_name, None, SPOOLER_DATATYPE))
                try:
                    spooler.StartPagePrinter(h)
                    written = spooler.WritePrinter(h, bytes(payload))
                    spooler.EndPagePrinter(h)
                finally:
                    spooler.EndDocPrinter(h)
        except Exception as e:
            raise TransportError(f"Error writing to Windows printer {device_id}: {e}", device_id) from e
        if written != len(payload):
            raise TransportError(f"Spooler accepted {written} of {len(payload)} bytes", device_id)
        logger.debug(f"[SPOOLER] Printed {written} bytes on {device_id}")


def make_transport(config) -> Transport:
    if config.transport_kind is TransportKind.SERIAL:
        return SerialTransport(config.device_id, baudrate=config.baudrate)
    return SpoolerTransport(job_name=config.job_name)
