import unittest
from unittest.mock import MagicMock
import sys
import os

import serial

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from print_transports import (
    SerialTransport,
    SpoolerTransport,
    make_transport,
    printer_handle,
    serial_device_path,
)
from repeat_errors import TransportError
from run_config import build_run_config


class TestSerialDevicePath(unittest.TestCase):
    def test_windows_com_ports(self):
        self.assertEqual(serial_device_path('COM12', 'win32'), '\\\\.\\COM12')
        self.assertEqual(serial_device_path(' com3 ', 'win32'), '\\\\.\\com3')

    def test_other_names_untouched(self):
        self.assertEqual(serial_device_path('COMPOS', 'win32'), 'COMPOS')
        self.assertEqual(serial_device_path('COM3', 'linux'), 'COM3')
        self.assertEqual(serial_device_path('/dev/ttyUSB0', 'linux'), '/dev/ttyUSB0')


class TestSerialTransport(unittest.TestCase):
    def setUp(self):
        self.factory = MagicMock()
        self.port = self.factory.return_value
        self.port.write.side_effect = lambda data: len(data)
        self.transport = SerialTransport('COM5', baudrate=19200, serial_factory=self.factory)

    def test_open_configures_line(self):
        self.transport.open()

        p = self.port
        self.assertEqual(p.baudrate, 19200)
        self.assertEqual(p.bytesize, serial.EIGHTBITS)
        self.assertEqual(p.parity, serial.PARITY_NONE)
        self.assertEqual(p.stopbits, serial.STOPBITS_ONE)
        self.assertEqual(p.timeout, 1.0)
        self.assertEqual(p.write_timeout, 1.0)
        self.assertFalse(p.xonxoff)
        self.assertFalse(p.rtscts)
        self.assertFalse(p.dsrdtr)
        self.assertTrue(p.dtr)
        self.assertTrue(p.rts)
        p.open.assert_called_once()
        p.set_buffer_size.assert_called_once_with(rx_size=4096, tx_size=4096)

    def test_port_reused_across_sends(self):
        self.transport.send(b'one', 'COM5')
        self.transport.send(b'two', 'COM5')

        self.factory.assert_called_once()
        self.port.open.assert_called_once()
        self.assertEqual([c.args[0] for c in self.port.write.call_args_list], [b'one', b'two'])
        self.assertEqual(self.port.flush.call_count, 2)

    def test_write_failure_leaves_port_open(self):
        self.transport.open()
        self.port.write.side_effect = serial.SerialTimeoutException("Write timeout")

        with self.assertRaises(TransportError) as ctx:
            self.transport.send(b'data', 'COM5')

        self.assertEqual(ctx.exception.device_id, 'COM5')
        self.port.close.assert_not_called()

    def test_short_write(self):
        self.port.write.side_effect = lambda data: len(data) - 1
        with self.assertRaises(TransportError):
            self.transport.send(b'data', 'COM5')

    def test_open_failure(self):
        self.port.open.side_effect = serial.SerialException("could not open port 'COM5'")
        with self.assertRaises(TransportError):
            self.transport.open()
        self.assertIsNone(self.transport.serial)

    def test_context_manager_closes(self):
        with self.transport as t:
            t.send(b'x', 'COM5')
        self.port.close.assert_called_once()
        self.assertIsNone(self.transport.serial)
        self.assertFalse(self.transport.is_open)


class TestSpoolerTransport(unittest.TestCase):
    def setUp(self):
        self.spooler = MagicMock()
        self.spooler.OpenPrinter.return_value = 'h'
        self.spooler.WritePrinter.side_effect = lambda h, data: len(data)
        self.transport = SpoolerTransport(job_name='Burn-in', spooler=self.spooler)

    def test_raw_job(self):
        self.transport.send(b'\x1B\x40hello', 'Cash Printer')

        s = self.spooler
        s.OpenPrinter.assert_called_once_with('Cash Printer')
        s.StartDocPrinter.assert_called_once_with('h', 1, ('Burn-in', None, 'RAW'))
        s.StartPagePrinter.assert_called_once_with('h')
        s.WritePrinter.assert_called_once_with('h', b'\x1B\x40hello')
        s.EndPagePrinter.assert_called_once_with('h')
        s.EndDocPrinter.assert_called_once_with('h')
        s.ClosePrinter.assert_called_once_with('h')

    def test_handle_released_once_on_error(self):
        self.spooler.WritePrinter.side_effect = Exception("printer offline")

        with self.assertRaises(TransportError) as ctx:
            self.transport.send(b'data', 'Cash Printer')

        self.assertEqual(ctx.exception.device_id, 'Cash Printer')
        self.spooler.EndDocPrinter.assert_called_once_with('h')
        self.spooler.ClosePrinter.assert_called_once_with('h')

    def test_open_printer_failure(self):
        self.spooler.OpenPrinter.side_effect = Exception("Invalid printer name")
        with self.assertRaises(TransportError):
            self.transport.send(b'data', 'Nope')
        self.spooler.ClosePrinter.assert_not_called()

    def test_partial_write(self):
        self.spooler.WritePrinter.side_effect = lambda h, data: 2
        with self.assertRaises(TransportError):
            self.transport.send(b'data', 'Cash Printer')
        self.spooler.ClosePrinter.assert_called_once_with('h')

    def test_printer_handle_scope(self):
        with self.assertRaises(RuntimeError):
            with printer_handle(self.spooler, 'Cash Printer') as h:
                self.assertEqual(h, 'h')
                raise RuntimeError("boom")
        self.spooler.ClosePrinter.assert_called_once_with('h')


class TestMakeTransport(unittest.TestCase):
    def test_serial(self):
        config = build_run_config(b'\x1B\x40', "7", "com3", baudrate=38400)
        transport = make_transport(config)
        self.assertIsInstance(transport, SerialTransport)
        self.assertEqual(transport.port, "com3")
        self.assertEqual(transport.baudrate, 38400)

    def test_spooler(self):
        config = build_run_config(b'\x1B\x40', "7", "Cash Printer", job_name="Burn-in")
        transport = make_transport(config)
        self.assertIsInstance(transport, SpoolerTransport)
        self.assertEqual(transport.job_name, "Burn-in")


if __name__ == '__main__':
    unittest.main()
