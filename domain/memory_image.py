# coding: utf-8
"""@brief Module providing the in-memory representation of the target program memory
"""
from typing import List

from domain.mcu_addressing import MCULogicalAddress, MCULogicalAddressRange, MCULocatedLogicalDataChunk
from domain.common import align_on_bytes_multiple, split_address_range_to_max_size

ERASED_BYTE = 0xff
DEFAULT_IMAGE_CAPACITY = 0x20000    # 128kB
DEFAULT_PAGE_SIZE = 0x80

class MemoryImage:
    """@brief Fixed-capacity, address-indexed image of the target memory

    All bytes are initially set to the erased flash value (0xff), and only data written via write_data_at() will differ
    """

    def __init__(self, capacity: int = DEFAULT_IMAGE_CAPACITY, page_size: int = DEFAULT_PAGE_SIZE):
        """@brief Construct an empty (fully erased) memory image
        @param capacity The maximum number of bytes in the image (addresses 0 to capacity-1 are valid)
        @param page_size The size of a target flash page, the capacity should be a multiple of it
        """
        if page_size <= 0 or capacity <= 0:
            raise ValueError('Image capacity and page size should be strictly positive')
        if capacity % page_size != 0:
            raise ValueError(f'Image capacity 0x{capacity:x} is not a multiple of the page size 0x{page_size:x}')
        self.capacity = capacity
        self.page_size = page_size
        self._content = bytearray([ERASED_BYTE] * capacity)
        self.top_address = MCULogicalAddress(0)    # Address following the highest byte written so far

    def write_data_at(self, chunk: MCULocatedLogicalDataChunk) -> None:
        """@brief Store a chunk of data in the image, overwriting any previous content at the same location
        @param chunk The data to store, with its location

        @warning Raises an IndexError if the chunk does not fit in the image capacity
        """
        end_address = chunk.start_address + chunk.size
        if chunk.start_address < 0 or end_address > self.capacity:
            raise IndexError(f'Outside of image space: {chunk.size} bytes at 0x{chunk.start_address:06x}/0x{self.capacity:06x}')
        self._content[chunk.start_address:end_address] = chunk.get_content()
        if end_address > self.top_address:
            self.top_address = MCULogicalAddress(end_address)

    def get_high_water_mark(self) -> MCULogicalAddress:
        """@brief Get the page-aligned upper bound (excluded) of the data to send to the target
        @return The smallest page-aligned address including all written data, at least one page
        """
        return max(align_on_bytes_multiple(self.top_address, self.page_size), MCULogicalAddress(self.page_size))

    def get_page_ranges(self) -> List[MCULogicalAddressRange]:
        """@brief Get all pages to program on the target, from address 0 up to the high water mark
        """
        return list(split_address_range_to_max_size(MCULogicalAddressRange(start_address=MCULogicalAddress(0), end_address=self.get_high_water_mark()),
                                                    max_size=self.page_size))

    def get_data_chunk_for_range(self, address_range: MCULogicalAddressRange) -> MCULocatedLogicalDataChunk:
        """@brief Get a copy of the image content for a given address range
        @return The data read from the image, located at the start of the range
        """
        if not MCULogicalAddressRange(start_address=MCULogicalAddress(0), end_address=self.capacity).includes(address_range):
            raise IndexError(f'Outside of image space: {address_range}/0x{self.capacity:06x}')
        return MCULocatedLogicalDataChunk(start_address=address_range.start_address,
                                          content=bytes(self._content[address_range.start_address:address_range.end_address]))

    def get_content(self) -> bytes:
        """@brief Get a copy of the whole image
        """
        return bytes(self._content)

    def __eq__(self, other):
        if not isinstance(other, MemoryImage):
            return NotImplemented
        return self.capacity == other.capacity and self.top_address == other.top_address and self._content == other._content

    def __str__(self):
        return f'MemoryImage(0x{self.top_address:06x}/0x{self.capacity:06x} bytes used)'
