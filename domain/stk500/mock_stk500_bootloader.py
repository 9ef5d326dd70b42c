# coding: utf-8
"""@brief Module implementing a fake STK500 bootloader, to be plugged as the response handler of a MockTransport
"""
import struct
from typing import Callable, List

import domain.stk500.stk500_comm as comm

SYNC_OK = bytes([comm.STK_INSYNC, comm.STK_OK])

class EmulatedStk500Bootloader:
    """@brief Emulation of an Arduino bootloader, with its flash memory

    Each frame received is decoded and recorded in requests_history, then answered with the success reply, unless
    reply_overrider returns another reply for this frame
    """
    def __init__(self, flash_size: int = 0x8000, signature: int = 0x1e950f, reply_overrider: Callable[[int, bytes], bytes] = None):
        """@brief Constructor
        @param flash_size The size of the emulated flash
        @param signature The device signature to return
        @param reply_overrider An optional function taking the request index and the request frame, and returning either None (to use the normal reply) or the bytes to reply instead
        """
        self.flash = bytearray([0xff] * flash_size)
        self.signature = signature
        self.reply_overrider = reply_overrider
        self.requests_history: List[bytes] = []
        self.loaded_word_address = None
        self.programmed_byte_addresses: List[int] = []
        self.in_progmode = False

    def _handle_program_page(self, request: bytes) -> bytes:
        (page_size,) = struct.unpack('>H', request[1:3])
        assert request[3:4] == b'F'
        content = request[4:4 + page_size]
        assert len(content) == page_size
        assert request[4 + page_size:] == bytes([comm.CRC_EOP])
        byte_address = self.loaded_word_address * 2
        self.flash[byte_address:byte_address + page_size] = content
        self.programmed_byte_addresses.append(byte_address)
        return SYNC_OK

    def __call__(self, request: bytes) -> bytes:
        request_index = len(self.requests_history)
        self.requests_history.append(request)
        if self.reply_overrider is not None:
            overridden_reply = self.reply_overrider(request_index, request)
            if overridden_reply is not None:
                return overridden_reply
        assert request[-1] == comm.CRC_EOP
        command_id = request[0]
        if command_id == comm.CommandGetSync.COMMAND_ID:
            return SYNC_OK
        elif command_id == comm.CommandEnterProgMode.COMMAND_ID:
            self.in_progmode = True
            return SYNC_OK
        elif command_id == comm.CommandLeaveProgMode.COMMAND_ID:
            self.in_progmode = False
            return SYNC_OK
        elif command_id == comm.CommandReadSignature.COMMAND_ID:
            return bytes([comm.STK_INSYNC]) + struct.pack('>I', self.signature)[1:4] + bytes([comm.STK_OK])
        elif command_id == comm.CommandLoadAddress.COMMAND_ID:
            assert len(request) == 4
            (self.loaded_word_address,) = struct.unpack('<H', request[1:3])
            return SYNC_OK
        elif command_id == comm.CommandProgramPage.COMMAND_ID:
            return self._handle_program_page(request)
        raise NotImplementedError(f'Unexpected command 0x{command_id:02x}')

    def get_command_ids(self) -> List[int]:
        return [request[0] for request in self.requests_history]
