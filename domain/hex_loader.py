# coding: utf-8
"""@brief Module parsing Intel Hex-formatted firmware files into a MemoryImage

Each record line is formatted as :CCAAAATT[DD...]SS where CC is the byte count, AAAA the 16-bit address, TT the record type,
DD the payload bytes and SS the checksum. Only data records (type 00) are written into the image, other record types are skipped.
"""
import binascii
import struct
from typing import Iterable, Tuple
from logging import getLogger

from domain.mcu_addressing import MCULogicalAddress, MCULocatedLogicalDataChunk
from domain.memory_image import MemoryImage, DEFAULT_IMAGE_CAPACITY, DEFAULT_PAGE_SIZE

logger = getLogger(__name__)

RECORD_MARK = ':'
DATA_RECORD_TYPE = 0x00

class FormatError(Exception):
    def __init__(self, generic_message: str, line_number: int = None):
        message = generic_message
        if line_number is not None:
            message = f'Line {line_number}: ' + message
        self.line_number = line_number
        super().__init__(message)

def get_record_checksum(buffer) -> int:
    """@brief Computes an Intel Hex record checksum
    @note The checksum is the 8-bit arithmetic byte sum (without carry) of all record bytes, negated and incremented
          Example: get_record_checksum(b'\x03\x00\x30\x00\x02\x33\x7a') -> 0x1e
    @param buffer The record bytes (count, address, type and payload)
    @return The resulting unsigned 8-bit checksum
    """
    checksum_result: int = 0
    for byte in buffer:
        checksum_result = (checksum_result + byte) & 0xff
    return (~checksum_result + 1) & 0xff


class HexRecord:
    """@brief One decoded record line
    """
    HEADER_SZ = 4   # count (1 byte), address (2 bytes), type (1 byte)

    def __init__(self, address: int, record_type: int, payload: bytes):
        """@brief Constructor
        @param address The 16-bit start address for the payload
        @param record_type The record type (0 for data)
        @param payload The record payload bytes
        """
        self.address = MCULogicalAddress(address)
        self.record_type = record_type
        self.payload = payload
        self.count = len(payload)

    @staticmethod
    def parse(line: str, line_number: int = None, verify_checksum: bool = True):
        """@brief Decode one (non-empty) record line
        @param line The record text, without leading or trailing whitespace
        @param line_number The 1-based location of the line in its file, for error reporting
        @param verify_checksum Should we check the record checksum? If set to False, the checksum and any trailing bytes are skipped
        @return The resulting HexRecord instance

        @warning Raises a FormatError if the record cannot be decoded
        """
        if not line.startswith(RECORD_MARK):
            raise FormatError('Invalid record (missing leading \'' + RECORD_MARK + '\')', line_number=line_number)
        try:
            raw = binascii.unhexlify(line[len(RECORD_MARK):])
        except (binascii.Error, ValueError) as e:
            raise FormatError('Invalid hex digits in record', line_number=line_number) from e
        if len(raw) < HexRecord.HEADER_SZ:
            raise FormatError('Truncated record header', line_number=line_number)
        (count, address, record_type) = struct.unpack('>BHB', raw[0:HexRecord.HEADER_SZ])
        payload_end = HexRecord.HEADER_SZ + count
        if len(raw) < payload_end:
            raise FormatError(f'Truncated record, expected {count} payload bytes, got {len(raw) - HexRecord.HEADER_SZ}', line_number=line_number)
        checksum = raw[payload_end] if len(raw) > payload_end else None
        if verify_checksum:
            if checksum is None:
                raise FormatError('Missing record checksum', line_number=line_number)
            if len(raw) > payload_end + 1:
                raise FormatError(f'{len(raw) - payload_end - 1} unexpected trailing byte(s) after checksum', line_number=line_number)
            expected_checksum = get_record_checksum(raw[0:payload_end])
            if checksum != expected_checksum:
                raise FormatError(f'Wrong record checksum: 0x{checksum:02x} (expected 0x{expected_checksum:02x})', line_number=line_number)
        return HexRecord(address=address, record_type=record_type, payload=raw[HexRecord.HEADER_SZ:payload_end])

    def is_data(self) -> bool:
        return self.record_type == DATA_RECORD_TYPE

    def to_data_chunk(self) -> MCULocatedLogicalDataChunk:
        return MCULocatedLogicalDataChunk(start_address=self.address, content=self.payload)

    def __str__(self) -> str:
        return f'HexRecord(type {self.record_type:02x}, {self.count} bytes at 0x{self.address:04x})'


class HexImageLoader:
    """@brief Loader building a MemoryImage out of Intel Hex records
    """
    def __init__(self, capacity: int = DEFAULT_IMAGE_CAPACITY, page_size: int = DEFAULT_PAGE_SIZE, verify_checksums: bool = True):
        """@brief Constructor
        @param capacity The maximum size of the memory image, records going beyond will be rejected
        @param page_size The target's flash page size, used to align the high water mark
        @param verify_checksums Should we check each record's checksum?
        """
        self.capacity = capacity
        self.page_size = page_size
        self.verify_checksums = verify_checksums

    def load(self, lines: Iterable) -> Tuple[MemoryImage, MCULogicalAddress]:
        """@brief Parse hex records into a new memory image
        @param lines A sequence of lines (str, or bytes as read from a binary file), one record per line (blank lines are ignored)
        @return A tuple containing the memory image and its high water mark (page-aligned end of the data to upload)

        @warning Raises a FormatError (mentioning the offending line number) on the first invalid record
        """
        image = MemoryImage(capacity=self.capacity, page_size=self.page_size)
        skipped_records = 0
        for line_number, line in enumerate(lines, start=1):
            if isinstance(line, bytes):
                try:
                    line = line.decode('ascii')
                except UnicodeDecodeError as e:
                    raise FormatError('Invalid record (non-ASCII characters)', line_number=line_number) from e
            line = line.strip()
            if not line:
                continue
            record = HexRecord.parse(line, line_number=line_number, verify_checksum=self.verify_checksums)
            if not record.is_data():
                skipped_records += 1
                continue
            if record.address + record.count > self.capacity:
                raise FormatError(f'Memory buffer overrun: {record.count} bytes at 0x{record.address:04x} go beyond 0x{self.capacity:x}', line_number=line_number)
            image.write_data_at(record.to_data_chunk())
        high_water_mark = image.get_high_water_mark()
        logger.debug(f'Loaded {image}, skipped {skipped_records} non-data record(s), upload span is 0x{high_water_mark:06x} bytes')
        return (image, high_water_mark)

    def load_from_file(self, filename: str) -> Tuple[MemoryImage, MCULogicalAddress]:
        """@brief Parse a hex file into a new memory image
        @param filename The name of the file to read
        @return A tuple containing the memory image and its high water mark (see load())

        @warning Raises a FormatError if the file cannot be read, or contains an invalid record (including non-ASCII bytes)
        """
        try:
            hex_file = open(file=filename, mode="rb")
        except OSError as e:
            raise FormatError(f"Unable to read firmware file '{filename}': " + str(e)) from e
        with hex_file:
            return self.load(hex_file)
