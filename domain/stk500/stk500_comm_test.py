# coding: utf-8
import pytest
from typing import Tuple

from adapters.mock_transport import MockTransport
from domain.ext_adapters_interface.transport_interface import TransportError
from domain.mcu_addressing import MCULocatedLogicalDataChunk
import domain.stk500.stk500_comm as stk500_comm
from domain.stk500.mock_stk500_bootloader import EmulatedStk500Bootloader, SYNC_OK

def create_open_protocol(response_handler) -> Tuple[stk500_comm.Stk500Protocol, MockTransport]:
    transport = MockTransport(response_handler)
    transport.open()
    return (stk500_comm.Stk500Protocol(transport=transport), transport)

def test_simple_command_frames():
    assert stk500_comm.CommandGetSync().get_as_buffer() == b'\x30\x20'
    assert stk500_comm.CommandEnterProgMode().get_as_buffer() == b'\x50\x20'
    assert stk500_comm.CommandReadSignature().get_as_buffer() == b'\x75\x20'
    assert stk500_comm.CommandLeaveProgMode().get_as_buffer() == b'\x51\x20'

def test_load_address_frame_uses_little_endian_word_address():
    command = stk500_comm.CommandLoadAddress(address=0x0080)

    assert command.get_as_buffer() == b'\x55\x40\x00\x20'
    assert stk500_comm.CommandLoadAddress(address=0x7f80).get_as_buffer() == b'\x55\xc0\x3f\x20'

def test_program_page_frame_uses_big_endian_byte_length():
    content = bytes(range(0x80))
    command = stk500_comm.CommandProgramPage(chunk_to_send=MCULocatedLogicalDataChunk(start_address=0x100, content=content))

    frame = command.get_as_buffer()

    assert len(frame) == 4 + 0x80 + 1
    assert frame[0:4] == b'\x64\x00\x80F'
    assert frame[4:4 + 0x80] == content
    assert frame[-1] == stk500_comm.CRC_EOP

def test_program_page_rejects_invalid_memtype():
    with pytest.raises(ValueError):
        stk500_comm.CommandProgramPage(chunk_to_send=MCULocatedLogicalDataChunk(start_address=0, content=b'\x00' * 0x80), memtype=b'X')

def test_expected_reply_sizes():
    assert stk500_comm.CommandGetSync().get_expected_reply_sz() == 2
    assert stk500_comm.CommandReadSignature().get_expected_reply_sz() == 5
    assert stk500_comm.CommandLoadAddress(address=0).get_expected_reply_sz() == 2

def test_read_signature_reply_parsing():
    assert stk500_comm.CommandReadSignature().parse_reply(b'\x14\x1e\x95\x0f\x10') == 0x1e950f

@pytest.mark.parametrize("reply", [b'', b'\x14', b'\x14\x1e\x95\x0f', b'\x15\x1e\x95\x0f\x10', b'\x14\x1e\x95\x0f\x11'])
def test_read_signature_wrong_reply(reply):
    with pytest.raises(stk500_comm.ProtocolError) as excinfo:
        stk500_comm.CommandReadSignature().parse_reply(reply)

    assert excinfo.value.stage == stk500_comm.STAGE_READ_SIGNATURE

@pytest.mark.parametrize("command, expected_error", [
    (stk500_comm.CommandEnterProgMode(), stk500_comm.ProtocolError),
    (stk500_comm.CommandLeaveProgMode(), stk500_comm.ProtocolError),
    (stk500_comm.CommandLoadAddress(address=0x100), stk500_comm.AddressLoadError),
    (stk500_comm.CommandProgramPage(chunk_to_send=MCULocatedLogicalDataChunk(start_address=0x100, content=b'\x00' * 0x80)), stk500_comm.PageProgramError),
])
def test_short_and_wrong_replies_are_failures(command, expected_error):
    for reply in [b'', b'\x14', b'\x10\x14', b'\x14\x11']:
        with pytest.raises(expected_error) as excinfo:
            command.parse_reply(reply)
        assert excinfo.value.stage == command.STAGE

def test_located_errors_carry_byte_address():
    with pytest.raises(stk500_comm.AddressLoadError) as excinfo:
        stk500_comm.CommandLoadAddress(address=0x180).parse_reply(b'')

    assert excinfo.value.address == 0x180
    assert '0x0180' in str(excinfo.value)

def test_execute_reads_expected_reply_size_once():
    (target, transport) = create_open_protocol(lambda request: SYNC_OK)

    outcome = target.execute(stk500_comm.CommandEnterProgMode())

    assert outcome is None
    assert transport.writes_history == [b'\x50\x20']
    assert transport.read_timeouts_history == [stk500_comm.DEFAULT_REPLY_TIMEOUT]

def test_execute_uses_protocol_reply_timeout_override():
    transport = MockTransport(lambda request: SYNC_OK)
    transport.open()
    target = stk500_comm.Stk500Protocol(transport=transport, reply_timeout=0.5)

    target.execute(stk500_comm.CommandGetSync())

    assert transport.read_timeouts_history == [0.5]

def test_execute_short_write_is_a_transport_error():
    class ShortWriteTransport(MockTransport):
        def write(self, buffer: bytes) -> int:
            super().write(buffer)
            return len(buffer) - 1

    transport = ShortWriteTransport(lambda request: SYNC_OK)
    transport.open()
    with pytest.raises(TransportError):
        stk500_comm.Stk500Protocol(transport=transport).execute(stk500_comm.CommandGetSync())

def test_synchronize_first_attempt():
    (target, transport) = create_open_protocol(lambda request: SYNC_OK)

    assert target.synchronize(max_attempts=40) == 1
    assert transport.writes_history == [b'\x30\x20']

def test_synchronize_after_garbage_replies():
    replies = [b'', b'\x00\x00', b'\x14', b'\x10\x14']
    def handler(request: bytes) -> bytes:
        assert request == b'\x30\x20'
        if replies:
            return replies.pop(0)
        return SYNC_OK

    (target, transport) = create_open_protocol(handler)

    assert target.synchronize(max_attempts=40) == 5
    assert len(transport.writes_history) == 5

def test_synchronize_timeout_after_all_attempts():
    (target, transport) = create_open_protocol(lambda request: b'')

    with pytest.raises(stk500_comm.SyncTimeout) as excinfo:
        target.synchronize(max_attempts=40)

    assert excinfo.value.attempts == 40
    assert excinfo.value.stage == stk500_comm.STAGE_SYNC
    assert transport.writes_history == [b'\x30\x20'] * 40

def test_synchronize_does_not_retry_transport_errors():
    def handler(request: bytes) -> bytes:
        raise TransportError('Emulated link failure')

    (target, transport) = create_open_protocol(handler)

    with pytest.raises(TransportError):
        target.synchronize(max_attempts=40)
    assert len(transport.writes_history) == 1

def test_session_opens_and_closes_transport():
    transport = MockTransport(lambda request: SYNC_OK)

    with pytest.raises(stk500_comm.SyncTimeout):
        with stk500_comm.Stk500ProtocolSession(transport=transport) as target:
            assert transport.is_open
            raise stk500_comm.SyncTimeout(attempts=1)

    assert not transport.is_open
    assert transport.close_count == 1

def test_launcher_happy_path():
    bootloader = EmulatedStk500Bootloader()
    (target, _) = create_open_protocol(bootloader)
    launcher = stk500_comm.BootloaderRemoteLauncher(target=target, validate_signature=lambda signature: signature == 0x1e950f, expected_signature=0x1e950f)

    assert launcher.start() == 0x1e950f
    assert launcher.signature_mismatch is None
    assert bootloader.in_progmode
    assert bootloader.get_command_ids() == [0x30, 0x50, 0x75]

def test_launcher_signature_mismatch_is_not_fatal():
    bootloader = EmulatedStk500Bootloader(signature=0x1e9587)
    (target, _) = create_open_protocol(bootloader)
    launcher = stk500_comm.BootloaderRemoteLauncher(target=target, validate_signature=lambda signature: signature == 0x1e950f, expected_signature=0x1e950f)

    assert launcher.start() == 0x1e9587
    assert isinstance(launcher.signature_mismatch, stk500_comm.SignatureMismatch)
    assert launcher.signature_mismatch.signature == 0x1e9587
    assert launcher.signature_mismatch.expected_signature == 0x1e950f

def test_launcher_strict_signature_mismatch_is_fatal():
    bootloader = EmulatedStk500Bootloader(signature=0x1e9587)
    (target, _) = create_open_protocol(bootloader)
    launcher = stk500_comm.BootloaderRemoteLauncher(target=target, validate_signature=lambda signature: signature == 0x1e950f, expected_signature=0x1e950f, strict_signature=True)

    with pytest.raises(stk500_comm.SignatureMismatch):
        launcher.start()

def test_launcher_enter_progmode_failure():
    def overrider(index: int, request: bytes) -> bytes:
        if request[0] == stk500_comm.CommandEnterProgMode.COMMAND_ID:
            return b'\x14\x12'
        return None

    (target, _) = create_open_protocol(EmulatedStk500Bootloader(reply_overrider=overrider))
    launcher = stk500_comm.BootloaderRemoteLauncher(target=target, validate_signature=lambda signature: True)

    with pytest.raises(stk500_comm.ProtocolError) as excinfo:
        launcher.start()

    assert excinfo.value.stage == stk500_comm.STAGE_ENTER_PROGMODE

@pytest.mark.parametrize("baudrate_arg, expected_baudrate", [
    (None, 57600),
    ('1', 9600),
    ('2', 19200),
    ('3', 57600),
    ('4', 115200),
    ('38400', 38400),
    ('0', 57600),
    ('-5', 57600),
    ('fast', 57600),
])
def test_resolve_baudrate(baudrate_arg, expected_baudrate):
    assert stk500_comm.resolve_baudrate(baudrate_arg) == expected_baudrate
