# coding: utf-8
"""@brief Module implementing a serial port transport using pyserial
"""
import serial
from serial import Serial

from domain.ext_adapters_interface.transport_interface import TransportInterface, TransportError

class PySerialTransport(TransportInterface):
    """@brief Concrete implementation of TransportInterface on top of a pyserial Serial port (8N1, no flow control)"""
    def __init__(self, port: str, baudrate: int):
        """@brief Construct a (not yet opened) serial transport
        @param port The serial port device (eg: /dev/ttyUSB0 or COM3)
        @param baudrate The serial link speed
        """
        self.port = port
        self.baudrate = baudrate
        self.device = None

    def open(self):
        try:
            self.device = Serial(self.port, baudrate=self.baudrate, bytesize=serial.EIGHTBITS, parity=serial.PARITY_NONE, stopbits=serial.STOPBITS_ONE, xonxoff=False)
        except (serial.SerialException, ValueError) as e:
            raise TransportError(f'Unable to configure serial port {self.port} at {self.baudrate} baud: ' + str(e)) from e

    def close(self):
        if self.device is not None:
            self.device.close()
            self.device = None

    def write(self, buffer: bytes) -> int:
        if self.device is None:
            raise TransportError('Serial port ' + self.port + ' is not open')
        try:
            return self.device.write(buffer)
        except serial.SerialException as e:
            raise TransportError('Write error on serial port ' + self.port + ': ' + str(e)) from e

    def read(self, size: int, timeout: float) -> bytes:
        if self.device is None:
            raise TransportError('Serial port ' + self.port + ' is not open')
        try:
            self.device.timeout = timeout
            return self.device.read(size)
        except serial.SerialException as e:
            raise TransportError('Read error on serial port ' + self.port + ': ' + str(e)) from e

    def __str__(self):
        return f'PySerialTransport({self.port}@{self.baudrate})'
