# coding: utf-8
"""@file Representation of addresses in the AVR program memory

Flash content is handled with byte (logical) addresses everywhere, except on the wire where the bootloader expects word addresses
"""
import struct

class MCULogicalAddress(int):
    """@brief A byte address in the program memory
    """

    def is_aligned_on_bytes_multiple(self, multiple: int) -> bool:
        """@brief Check if this address falls on a @p multiple bytes boundary (eg: a page boundary)
        """
        return int(self) % multiple == 0


class MCULogicalAddressRange:
    """@brief A half-open [start_address;end_address[ range of byte addresses
    """
    def __init__(self, start_address: MCULogicalAddress, end_address: MCULogicalAddress):
        """@brief Constructor
        @param start_address The address of the first byte in the range
        @param end_address The address following the last byte of the range
        """
        if start_address >= end_address:
            raise ValueError(f'Empty or reversed address range 0x{start_address:06x}-0x{end_address:06x}')
        self.start_address = start_address
        self.end_address = end_address

    def __str__(self):
        return f'[0x{self.start_address:06x};0x{self.end_address:06x}['

    def __repr__(self):
        return 'MCULogicalAddressRange' + str(self)

    def __eq__(self, other):
        if not isinstance(other, MCULogicalAddressRange):
            return NotImplemented
        return (self.start_address, self.end_address) == (other.start_address, other.end_address)

    def get_size(self) -> int:
        return self.end_address - self.start_address

    def includes(self, address_range) -> bool:
        """@brief Check if @p address_range lies completely inside this range
        """
        return self.start_address <= address_range.start_address and address_range.end_address <= self.end_address


class MCUWordAddress(int):
    """@brief Class representing a 16-bit word address, as used by the bootloader's load address command

    AVR program memory is organised in 16-bit words, the bootloader thus expects word addresses, not byte addresses
    """

    @staticmethod
    def create_from_logical_address(address: MCULogicalAddress):
        """@brief Create an MCUWordAddress from a logical (byte) address value
        @param address The byte address, it should be even
        """
        if address % 2 != 0:
            raise ValueError(f'Byte address 0x{address:06x} is not word-aligned')
        word_address = address // 2
        if word_address < 0x0000 or word_address > 0xffff:
            raise ValueError(f'Byte address 0x{address:06x} does not fit in a 16-bit word address')
        return MCUWordAddress(word_address)

    def to_le_bytes(self) -> bytes:
        """@brief Encode this address as 2 bytes, low byte first
        """
        return struct.pack('<H', int(self))

    def __str__(self) -> str:
        return f'{int(self):04x}'


class MCULocatedLogicalDataChunk:
    """@brief Bytes to be stored at a given byte address (a hex record payload, or one page of the memory image)
    """
    def __init__(self, start_address: int, content: bytes):
        """@brief Constructor
        @param start_address The byte address of the first byte of @p content
        @param content The data bytes
        """
        if not isinstance(start_address, int):
            raise TypeError('Unsupported start address type ' + str(type(start_address)))
        self.start_address = MCULogicalAddress(start_address)
        self.size = len(content)
        self.content = content

    def get_content(self) -> bytes:
        return self.content

    def __str__(self):
        return f'{self.size} bytes at 0x{self.start_address:06x}'

    def __repr__(self):
        return f'MCULocatedLogicalDataChunk({self})'
