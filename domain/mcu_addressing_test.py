# coding: utf-8
import pytest

from domain.mcu_addressing import MCULogicalAddress, MCULogicalAddressRange, MCUWordAddress

@pytest.mark.parametrize("byte_address, word_address, encoded", [
    (0x0000, 0x0000, b'\x00\x00'),
    (0x0080, 0x0040, b'\x40\x00'),
    (0x0200, 0x0100, b'\x00\x01'),
    (0x7f80, 0x3fc0, b'\xc0\x3f'),
    (0x1ff80, 0xffc0, b'\xc0\xff'),
])
def test_word_address_from_byte_address(byte_address, word_address, encoded):
    address = MCUWordAddress.create_from_logical_address(MCULogicalAddress(byte_address))

    assert address == word_address
    assert address.to_le_bytes() == encoded

def test_word_address_rejects_odd_byte_address():
    with pytest.raises(ValueError):
        MCUWordAddress.create_from_logical_address(MCULogicalAddress(0x81))

def test_word_address_rejects_out_of_range_byte_address():
    with pytest.raises(ValueError):
        MCUWordAddress.create_from_logical_address(MCULogicalAddress(0x20000))

def test_address_range():
    address_range = MCULogicalAddressRange(0x80, 0x100)

    assert address_range.get_size() == 0x80
    assert address_range.includes(MCULogicalAddressRange(0x90, 0x100))
    assert not address_range.includes(MCULogicalAddressRange(0x00, 0x90))
