# coding: utf-8
"""@brief Module implementing a fake transport, emulating a remote bootloader, for unit test purposes
"""
from typing import List

from domain.ext_adapters_interface.transport_interface import TransportInterface, TransportError

class MockTransport(TransportInterface):
    """@brief Concrete implementation of TransportInterface forwarding each written frame to a response handler"""
    def __init__(self, response_handler, fail_on_open: bool = False):
        """@brief Constructor
        @param response_handler A function to which we will forward all written frames (as bytes), and that will return the bytes the emulated remote device replies (possibly empty)
        @param fail_on_open Should open() raise a TransportError?
        """
        if not callable(response_handler):
            raise TypeError("Provided response_handler argument is not callable")
        self.response_handler = response_handler
        self.fail_on_open = fail_on_open
        self.is_open = False
        self.open_count = 0
        self.close_count = 0
        self.writes_history: List[bytes] = []
        self.read_timeouts_history: List[float] = []
        self._pending_reply = b''

    def open(self):
        if self.fail_on_open:
            raise TransportError('Emulated open failure')
        self.is_open = True
        self.open_count += 1

    def close(self):
        if self.is_open:
            self.close_count += 1
        self.is_open = False

    def write(self, buffer: bytes) -> int:
        if not self.is_open:
            raise TransportError('Transport is not open')
        self.writes_history.append(bytes(buffer))
        self._pending_reply += self.response_handler(bytes(buffer))
        return len(buffer)

    def read(self, size: int, timeout: float) -> bytes:
        if not self.is_open:
            raise TransportError('Transport is not open')
        self.read_timeouts_history.append(timeout)
        reply = self._pending_reply[0:size]
        self._pending_reply = self._pending_reply[size:]
        return reply

    def get_written_command_ids(self) -> List[int]:
        """@brief Get the ID (first byte) of all frames written so far, in order
        """
        return [frame[0] for frame in self.writes_history]
