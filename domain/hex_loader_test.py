# coding: utf-8
import io
import random
import pytest
from intelhex import IntelHex, Record

from domain.hex_loader import HexImageLoader, HexRecord, FormatError, get_record_checksum
from domain.mcu_addressing import MCULogicalAddressRange

def data_record(address: int, payload: bytes) -> str:
    return Record.data(address, list(payload))

def test_record_checksum():
    assert get_record_checksum(b'\x03\x00\x30\x00\x02\x33\x7a') == 0x1e
    assert get_record_checksum(b'\x00\x00\x00\x01') == 0xff

def test_parse_data_record():
    record = HexRecord.parse(':0300300002337A1E', line_number=1)
    assert record.is_data()
    assert record.address == 0x0030
    assert record.count == 3
    assert record.payload == b'\x02\x33\x7a'

def test_parse_lowercase_record():
    record = HexRecord.parse(':0300300002337a1e')
    assert record.payload == b'\x02\x33\x7a'

def test_load_single_data_record():
    (image, high_water_mark) = HexImageLoader().load([':0300300002337A1E', ':00000001FF'])

    content = image.get_content()
    assert content[0x30:0x33] == b'\x02\x33\x7a'
    assert high_water_mark == 0x80

def test_bytes_outside_records_keep_erased_value():
    (image, _) = HexImageLoader().load([data_record(0x0010, b'\x00' * 4), data_record(0x0100, b'\x01' * 8)])

    content = image.get_content()
    assert content[0x0000:0x0010] == b'\xff' * 0x10
    assert content[0x0010:0x0014] == b'\x00' * 4
    assert content[0x0014:0x0100] == b'\xff' * (0x0100 - 0x0014)
    assert content[0x0100:0x0108] == b'\x01' * 8
    assert content[0x0108:] == b'\xff' * (len(content) - 0x0108)

def test_load_is_idempotent():
    random.seed(1)
    lines = [data_record(random.randrange(0, 0x8000), bytes(random.randrange(0, 256) for _ in range(16))) for _ in range(200)]

    (first_image, first_high_water_mark) = HexImageLoader().load(lines)
    (second_image, second_high_water_mark) = HexImageLoader().load(lines)

    assert first_image == second_image
    assert first_image.get_content() == second_image.get_content()
    assert first_high_water_mark == second_high_water_mark

@pytest.mark.parametrize("address, count, expected_high_water_mark", [
    (0x0000, 1, 0x0080),
    (0x0070, 0x10, 0x0080),
    (0x0071, 0x10, 0x0100),
    (0x00ff, 0x02, 0x0180),
    (0x7ff0, 0x10, 0x8000),
])
def test_high_water_mark_is_page_aligned(address, count, expected_high_water_mark):
    (_, high_water_mark) = HexImageLoader().load([data_record(address, b'\xaa' * count)])

    assert high_water_mark == expected_high_water_mark
    assert high_water_mark % 0x80 == 0
    assert high_water_mark >= address + count

def test_high_water_mark_uses_highest_record_not_last_one():
    (_, high_water_mark) = HexImageLoader().load([data_record(0x0400, b'\x55' * 16), data_record(0x0000, b'\x55' * 16)])

    assert high_water_mark == 0x0480

def test_empty_input_yields_one_erased_page():
    (image, high_water_mark) = HexImageLoader().load([])

    assert high_water_mark == 0x80
    assert image.get_content() == b'\xff' * image.capacity
    assert image.get_page_ranges() == [MCULogicalAddressRange(0, 0x80)]

def test_only_non_data_records_yields_one_erased_page():
    (image, high_water_mark) = HexImageLoader().load([Record.extended_linear_address(0), Record.eof()])

    assert high_water_mark == 0x80
    assert image.get_content() == b'\xff' * image.capacity

def test_blank_lines_are_skipped():
    (image, high_water_mark) = HexImageLoader().load(['\n', ':0300300002337A1E\r\n', '   \n', '', ':00000001FF\n'])

    assert image.get_content()[0x30:0x33] == b'\x02\x33\x7a'
    assert high_water_mark == 0x80

def test_overlapping_records_last_write_wins():
    (image, _) = HexImageLoader().load([data_record(0x0000, b'\x11' * 8), data_record(0x0004, b'\x22' * 8)])

    assert image.get_content()[0:12] == b'\x11' * 4 + b'\x22' * 8

def test_non_data_records_do_not_change_addressing():
    lines = [Record.extended_linear_address(0x0001),
             data_record(0x0000, b'\x5a' * 4),
             Record.extended_segment_address(0x1000),
             Record.start_linear_address(0x00001234),
             Record.eof(),
             data_record(0x0004, b'\xa5' * 4)]   # Records after EOF are still processed

    (image, high_water_mark) = HexImageLoader().load(lines)

    assert image.get_content()[0:8] == b'\x5a' * 4 + b'\xa5' * 4
    assert high_water_mark == 0x80

def test_line_not_starting_with_record_mark_is_rejected():
    with pytest.raises(FormatError) as excinfo:
        HexImageLoader().load([':0300300002337A1E', '', 'garbage'])

    assert excinfo.value.line_number == 3
    assert 'Line 3' in str(excinfo.value)

def test_record_beyond_capacity_is_rejected():
    loader = HexImageLoader(capacity=0x100)
    with pytest.raises(FormatError) as excinfo:
        loader.load([data_record(0x0000, b'\x00' * 16), data_record(0x00f8, b'\x00' * 16), data_record(0x0010, b'\x00' * 16)])

    assert excinfo.value.line_number == 2

def test_record_ending_at_capacity_is_accepted():
    (image, high_water_mark) = HexImageLoader(capacity=0x100).load([data_record(0x00f0, b'\x42' * 16)])

    assert image.get_content()[0xf0:0x100] == b'\x42' * 16
    assert high_water_mark == 0x100

def test_non_data_records_are_not_bound_to_capacity():
    (_, high_water_mark) = HexImageLoader(capacity=0x100).load([Record.start_linear_address(0xffffffff)])

    assert high_water_mark == 0x80

def test_wrong_checksum_is_rejected():
    with pytest.raises(FormatError) as excinfo:
        HexImageLoader().load([':00000001FF', ':0300300002337A1F'])

    assert excinfo.value.line_number == 2

def test_wrong_checksum_is_accepted_when_not_verified():
    (image, _) = HexImageLoader(verify_checksums=False).load([':0300300002337A1F'])

    assert image.get_content()[0x30:0x33] == b'\x02\x33\x7a'

def test_missing_checksum():
    with pytest.raises(FormatError):
        HexImageLoader().load([':0300300002337A'])

    (image, _) = HexImageLoader(verify_checksums=False).load([':0300300002337A'])
    assert image.get_content()[0x30:0x33] == b'\x02\x33\x7a'

@pytest.mark.parametrize("line", [
    ':',                    # No header at all
    ':030030',              # Truncated header
    ':0500300002337A1E',    # Less payload bytes than announced
    ':03003000ZZ337A1E',    # Not hex digits
    ':0300300002337A1',     # Odd number of digits
    ':0300300002337A1E00',  # Trailing byte after checksum
])
def test_malformed_records_are_rejected(line):
    with pytest.raises(FormatError) as excinfo:
        HexImageLoader().load(['', line])

    assert excinfo.value.line_number == 2

def test_load_matches_intelhex_reference():
    reference = IntelHex()
    random.seed(2)
    for _ in range(100):
        reference.puts(random.randrange(0, 0x7f00), bytes(random.randrange(0, 256) for _ in range(random.randrange(1, 64))))
    hex_file = io.StringIO()
    reference.write_hex_file(hex_file)

    (image, high_water_mark) = HexImageLoader().load(hex_file.getvalue().splitlines())

    assert high_water_mark == ((reference.maxaddr() + 1 + 0x7f) // 0x80) * 0x80
    assert image.get_content()[0:high_water_mark] == bytes(reference.tobinarray(start=0, size=high_water_mark))

def test_load_from_file(tmp_path):
    hex_filename = tmp_path / 'firmware.hex'
    hex_filename.write_text(':0300300002337A1E\n:00000001FF\n')

    (image, high_water_mark) = HexImageLoader().load_from_file(str(hex_filename))

    assert image.get_content()[0x30:0x33] == b'\x02\x33\x7a'
    assert high_water_mark == 0x80

def test_load_from_file_with_crlf_line_endings(tmp_path):
    hex_filename = tmp_path / 'firmware.hex'
    hex_filename.write_bytes(b':0300300002337A1E\r\n:00000001FF\r\n')

    (image, _) = HexImageLoader().load_from_file(str(hex_filename))

    assert image.get_content()[0x30:0x33] == b'\x02\x33\x7a'

def test_load_from_file_with_non_ascii_content(tmp_path):
    hex_filename = tmp_path / 'firmware.hex'
    hex_filename.write_bytes(b':0300300002337A1E\n\xff\xfe\x00garbage\n')

    with pytest.raises(FormatError) as excinfo:
        HexImageLoader().load_from_file(str(hex_filename))

    assert excinfo.value.line_number == 2
    assert 'non-ASCII' in str(excinfo.value)

def test_load_from_missing_file(tmp_path):
    with pytest.raises(FormatError) as excinfo:
        HexImageLoader().load_from_file(str(tmp_path / 'missing.hex'))

    assert excinfo.value.line_number is None
    assert 'missing.hex' in str(excinfo.value)

def test_load_bytes_lines():
    (image, high_water_mark) = HexImageLoader().load([b':0300300002337A1E\n', b'\n', b':00000001FF\n'])

    assert image.get_content()[0x30:0x33] == b'\x02\x33\x7a'
    assert high_water_mark == 0x80
