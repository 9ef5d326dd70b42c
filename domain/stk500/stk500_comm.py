#!/usr/bin/env python3
# coding: utf-8

import abc
import struct
from typing import Callable
from logging import getLogger

from domain.common import format_bytes
from domain.mcu_addressing import MCULogicalAddress, MCUWordAddress, MCULocatedLogicalDataChunk
from domain.ext_adapters_interface.transport_interface import TransportInterface, TransportError

logger = getLogger(__name__)

CRC_EOP = 0x20      # End of packet
STK_INSYNC = 0x14
STK_OK = 0x10

DEFAULT_REPLY_TIMEOUT = 0.1     # 100ms per reply
DEFAULT_SYNC_ATTEMPTS = 40
DEFAULT_BAUDRATE = 57600
KNOWN_BAUDRATES = [9600, 19200, 57600, 115200]    # Baudrates used by Arduino bootloaders, selectable via aliases 1 to 4

STAGE_SYNC = 'sync'
STAGE_ENTER_PROGMODE = 'enter-program-mode'
STAGE_READ_SIGNATURE = 'read-signature'
STAGE_LOAD_ADDRESS = 'load-address'
STAGE_PROGRAM_PAGE = 'program-page'
STAGE_LEAVE_PROGMODE = 'leave-program-mode'

class CommandFailedError(Exception):
    def __init__(self, message: str, stage: str = None):
        self.stage = stage
        super().__init__(message)

class SyncTimeout(CommandFailedError):
    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f'Failed to find STK500 bootloader after {attempts} sync attempt(s)', stage=STAGE_SYNC)

class ProtocolError(CommandFailedError):
    pass

class SignatureMismatch(CommandFailedError):
    def __init__(self, signature: int, expected_signature: int):
        self.signature = signature
        self.expected_signature = expected_signature
        super().__init__(f'Device signature 0x{signature:06x} does not match expected 0x{expected_signature:06x} (wrong uP)', stage=STAGE_READ_SIGNATURE)

class LocatedCommandError(CommandFailedError):
    def __init__(self, generic_message: str, address = None, stage: str = None):
        message = generic_message
        if address is not None:
            message = f'At address 0x{address:04x}: ' + message
        self.address = address
        super().__init__(message, stage=stage)

class AddressLoadError(LocatedCommandError):
    def __init__(self, generic_message: str, address = None):
        super().__init__(generic_message, address=address, stage=STAGE_LOAD_ADDRESS)

class PageProgramError(LocatedCommandError):
    def __init__(self, generic_message: str, address = None):
        super().__init__(generic_message, address=address, stage=STAGE_PROGRAM_PAGE)

def resolve_baudrate(baudrate_arg: str = None) -> int:
    """@brief Convert a command-line baudrate argument into a baudrate value
    @param baudrate_arg Either an alias (1 to 4, see KNOWN_BAUDRATES), an explicit baudrate, or None
    @return The baudrate to use (DEFAULT_BAUDRATE if the argument is missing or invalid)
    """
    if baudrate_arg is None:
        return DEFAULT_BAUDRATE
    try:
        baudrate = int(baudrate_arg, 10)
    except ValueError:
        return DEFAULT_BAUDRATE
    if baudrate >= 1 and baudrate <= len(KNOWN_BAUDRATES):
        return KNOWN_BAUDRATES[baudrate - 1]
    if baudrate <= 0:
        return DEFAULT_BAUDRATE
    return baudrate

class Stk500Command(metaclass=abc.ABCMeta):
    """@brief Interface to which must comply all concrete implementations of STK500 command encoders/decoders

    A STK500 request frame contains
    * a 1-byte command ID
    * arguments to this command
    * optional binary content (only for page programming)
    * a trailing CRC_EOP byte
    Most replies are the 2 bytes STK_INSYNC, STK_OK. Commands returning data insert it between these 2 bytes
    """
    COMMAND_ID = None
    COMMAND_NAME = '(unknown)'
    STAGE = None

    def __init__(self, command_id: int, reply_timeout: float = DEFAULT_REPLY_TIMEOUT):
        self.command_id = command_id
        self.reply_timeout = reply_timeout

    def get_arguments_payload(self) -> bytes:
        """@brief Get the arguments for this command
        @return The arguments formatted as a byte buffer
        """
        return b''

    def get_content_payload(self) -> bytes:
        """@brief Get the content (body) of data following this command
        @return The content formatted as a byte buffer
        """
        return b''

    def get_reply_timeout(self) -> float:
        """@brief Get the amount of time we should wait for a reply to this command
        @return The amount of time (timeout) in s
        """
        return self.reply_timeout

    def get_reply_data_sz(self) -> int:
        """@brief Get the number of data bytes enclosed in the reply (between STK_INSYNC and STK_OK)
        """
        return 0

    def get_expected_reply_sz(self) -> int:
        """@brief Get the expected reply size returned to us when issueing this command
        @return The number of bytes we are expecting as a reply
        """
        return self.get_reply_data_sz() + 2

    def create_failure(self, message: str) -> CommandFailedError:
        """@brief Build the exception to raise when the reply to this command is not the expected one
        @param message A description of the unexpected reply
        """
        return ProtocolError(f'{self} failed: ' + message, stage=self.STAGE)

    def parse_reply(self, reply_payload: bytes):
        """@brief Check the reply from the bootloader and extract any enclosed data
        @param reply_payload The data returned by the bootloader
        @return The data enclosed in the reply (None if this command does not return any data)

        @warning A short or empty reply is handled as a wrong reply, and raises the exception built by create_failure()
        """
        if len(reply_payload) != self.get_expected_reply_sz():
            raise self.create_failure(f'short read, got {len(reply_payload)}/{self.get_expected_reply_sz()} bytes [' + format_bytes(reply_payload) + ']')
        if reply_payload[0] != STK_INSYNC or reply_payload[-1] != STK_OK:
            raise self.create_failure('wrong reply [' + format_bytes(reply_payload) + ']')
        if self.get_reply_data_sz() == 0:
            return None
        return reply_payload[1:-1]

    def get_as_buffer(self) -> bytes:
        """@brief Represent this command as a binary buffer
        @return The byte buffer to send to the remote target (includes command+arguments+content+end of packet)
        """
        command_id = struct.pack('B', self.command_id)
        return command_id + self.get_arguments_payload() + self.get_content_payload() + struct.pack('B', CRC_EOP)

    def __str__(self) -> str:
        """@brief Generic formatter of a command as a string"""
        return self.COMMAND_NAME


class CommandGetSync(Stk500Command):
    """@brief Class for encoding/decoding a synchronization request"""
    COMMAND_ID = 0x30
    COMMAND_NAME = 'STK_GET_SYNC'
    STAGE = STAGE_SYNC

    def __init__(self, **kwargs):
        super().__init__(command_id = self.COMMAND_ID, **kwargs)

    def create_failure(self, message: str) -> CommandFailedError:
        return CommandFailedError(f'{self} failed: ' + message, stage=self.STAGE)


class CommandEnterProgMode(Stk500Command):
    """@brief Class for encoding/decoding a command to make the target enter programming mode"""
    COMMAND_ID = 0x50
    COMMAND_NAME = 'STK_ENTER_PROGMODE'
    STAGE = STAGE_ENTER_PROGMODE

    def __init__(self, **kwargs):
        super().__init__(command_id = self.COMMAND_ID, **kwargs)


class CommandLeaveProgMode(Stk500Command):
    """@brief Class for encoding/decoding a command to make the target leave programming mode"""
    COMMAND_ID = 0x51
    COMMAND_NAME = 'STK_LEAVE_PROGMODE'
    STAGE = STAGE_LEAVE_PROGMODE

    def __init__(self, **kwargs):
        super().__init__(command_id = self.COMMAND_ID, **kwargs)


class CommandReadSignature(Stk500Command):
    """@brief Class for reading the 3-byte device signature of the target"""
    COMMAND_ID = 0x75
    COMMAND_NAME = 'STK_READ_SIGN'
    STAGE = STAGE_READ_SIGNATURE

    def __init__(self, **kwargs):
        super().__init__(command_id = self.COMMAND_ID, **kwargs)

    def get_reply_data_sz(self) -> int:
        return 3

    def parse_reply(self, reply_payload: bytes) -> int:
        """@brief Parse the reply and extract the device signature
        @param reply_payload The data returned by the bootloader
        @return The signature as an integer (first signature byte is the most significant)
        """
        signature_bytes = super().parse_reply(reply_payload)
        return struct.unpack('>I', b'\x00' + signature_bytes)[0]


class CommandLoadAddress(Stk500Command):
    """@brief Class for encoding/decoding a command setting the target address for the next page program command"""
    COMMAND_ID = 0x55
    COMMAND_NAME = 'STK_LOAD_ADDRESS'
    STAGE = STAGE_LOAD_ADDRESS

    def __init__(self, address: MCULogicalAddress, **kwargs):
        """@brief Constructor
        @param address The byte address to load (it will be transmitted as a word address)
        """
        self.address = MCULogicalAddress(address)
        self.word_address = MCUWordAddress.create_from_logical_address(self.address)
        super().__init__(command_id = self.COMMAND_ID, **kwargs)

    def get_arguments_payload(self) -> bytes:
        return self.word_address.to_le_bytes()

    def create_failure(self, message: str) -> CommandFailedError:
        return AddressLoadError('Failed to load address: ' + message, address=self.address)

    def __str__(self) -> str:
        return super().__str__() + f'(word 0x{self.word_address:04x} for byte address 0x{self.address:04x})'


class CommandProgramPage(Stk500Command):
    """@brief Class for encoding/decoding a command to write one page of memory on the target"""
    COMMAND_ID = 0x64
    COMMAND_NAME = 'STK_PROG_PAGE'
    STAGE = STAGE_PROGRAM_PAGE
    MEMTYPE_FLASH = b'F'
    MEMTYPE_EEPROM = b'E'
    MAX_PAGE_SIZE = 256

    def __init__(self, chunk_to_send: MCULocatedLogicalDataChunk, memtype: bytes = MEMTYPE_FLASH, **kwargs):
        """@brief Constructor
        @param chunk_to_send The page of binary data to send to the target, located at the address previously loaded
        @param memtype The memory type selector (b'F' for flash, b'E' for eeprom)
        """
        if chunk_to_send.size <= 0 or chunk_to_send.size > self.MAX_PAGE_SIZE:
            raise ValueError('Invalid page size in chunk_to_send: ' + str(chunk_to_send.size))
        if memtype not in [self.MEMTYPE_FLASH, self.MEMTYPE_EEPROM]:
            raise ValueError('Unsupported memory type ' + str(memtype))
        self.chunk_to_send = chunk_to_send
        self.memtype = memtype
        super().__init__(command_id = self.COMMAND_ID, **kwargs)

    def get_arguments_payload(self) -> bytes:
        page_size_be = struct.pack('>H', self.chunk_to_send.size)   # Unlike addresses, the length is sent high byte first
        return page_size_be + self.memtype

    def get_content_payload(self) -> bytes:
        return bytes(self.chunk_to_send.get_content())

    def create_failure(self, message: str) -> CommandFailedError:
        return PageProgramError('Failed to program page: ' + message, address=self.chunk_to_send.start_address)

    def __str__(self) -> str:
        return super().__str__() + f'({self.chunk_to_send.size} bytes at 0x{self.chunk_to_send.start_address:04x})'


class Stk500Protocol:
    """@brief Class representing the communication protocol with the remote STK500 bootloader

    The protocol has no request identifier, replies are matched with requests by their order, we thus only run one command at a time
    """

    def __init__(self, transport: TransportInterface, reply_timeout: float = None):
        """@brief Constructor
        @param transport The transport we read/write bytes from/to
        @param reply_timeout A timeout (in s) overriding the commands' own reply timeouts
        """
        self.transport = transport
        self.reply_timeout = reply_timeout

    def execute(self, command: Stk500Command):
        """@brief Request execution of a specific command on the remote bootloader
        @param command The command to execute
        @return The outcome of the command (None or the data extracted from the reply)

        @warning Raises the command's failure exception if the reply is short or wrong, and a TransportError on I/O failures
        """
        assert isinstance(command, Stk500Command)  # command provided as argument should implement the Stk500Command interface
        command_buffer = command.get_as_buffer()
        logger.debug('Sending command: ' + str(command))
        written_sz = self.transport.write(command_buffer)
        if written_sz is not None and written_sz != len(command_buffer):
            raise TransportError(f'Short write while sending {command}: {written_sz}/{len(command_buffer)} bytes')
        expected_reply_sz = command.get_expected_reply_sz()
        reply_timeout = self.reply_timeout if self.reply_timeout is not None else command.get_reply_timeout()
        reply_bytes = self.transport.read(expected_reply_sz, reply_timeout)
        logger.debug(f'Got {len(reply_bytes)}/{expected_reply_sz} bytes reply')
        logger.debug('Response buffer: ' + format_bytes(reply_bytes))
        outcome = command.parse_reply(reply_bytes)
        if outcome is not None:
            logger.debug('parse_reply outcome: ' + str(outcome))
        return outcome

    def synchronize(self, max_attempts: int = DEFAULT_SYNC_ATTEMPTS) -> int:
        """@brief Repeatedly send sync requests until the bootloader answers
        @param max_attempts The maximum number of sync requests to send
        @return The number of attempts that were needed

        @warning Raises a SyncTimeout if no valid reply was received after @p max_attempts attempts
        """
        for attempt_number in range(1, max_attempts + 1):
            try:
                self.execute(CommandGetSync())
                logger.debug(f'Synchronized after {attempt_number} attempt(s)')
                return attempt_number
            except CommandFailedError as e:
                logger.debug(f'Sync attempt {attempt_number}/{max_attempts} failed: ' + str(e))
        raise SyncTimeout(attempts=max_attempts)


class Stk500ProtocolSession:
    """@brief Class allowing RAII for communication sessions with the STK500 bootloader

    The transport is opened when entering the session, and closed when leaving it, whatever the outcome
    """
    def __init__(self, transport: TransportInterface, reply_timeout: float = None):
        """@brief Constructor
        @param transport The (not yet opened) transport we read/write bytes from/to
        @param reply_timeout An optional reply timeout for all commands (see Stk500Protocol)
        """
        self.transport = transport
        self.reply_timeout = reply_timeout
        self.handler = None

    def get_handler(self) -> Stk500Protocol:
        """@Get a STK500 protocol handler to run commands on the target
        @return A Stk500Protocol instance (we'll create it at the first invokation, then keep it in cache)
        """
        if self.handler is None:
            self.handler = Stk500Protocol(transport=self.transport, reply_timeout=self.reply_timeout)
        return self.handler

    def __enter__(self):
        self.transport.open()
        return self.get_handler()

    def __exit__(self, type, value, traceback):
        self.transport.close()
        self.handler = None


class BootloaderRemoteLauncher:
    """@brief Class allowing to take control of the STK500 bootloader running on a remote target
    """
    def __init__(self, target: Stk500Protocol, validate_signature: Callable[[int], bool], expected_signature: int = None,
                 sync_attempts: int = DEFAULT_SYNC_ATTEMPTS, strict_signature: bool = False):
        """@brief Constructor
        @param target The protocol handler to use to communicate with the bootloader
        @param validate_signature A lamba function taking the remote target's device signature as argument and returning True if this value is accepted
        @param expected_signature The signature we expect, only used in error reports
        @param sync_attempts The maximum number of sync requests to send
        @param strict_signature If True, a signature that is not accepted by @p validate_signature is fatal
        """
        self.target = target
        self.validate_signature = validate_signature
        self.expected_signature = expected_signature
        self.sync_attempts = sync_attempts
        self.strict_signature = strict_signature
        self.signature = None
        self.signature_mismatch = None

    def synchronize(self) -> None:
        """@brief Synchronize with the bootloader
        """
        attempts = self.target.synchronize(max_attempts=self.sync_attempts)
        logger.info(f'Synchronized with STK500 bootloader ({attempts} attempt(s))')

    def enter_programming_mode(self) -> None:
        self.target.execute(CommandEnterProgMode())

    def read_signature(self) -> int:
        """@brief Read the device signature, and check it
        @return The device signature

        @note An unexpected signature is only reported (see self.signature_mismatch), unless strict_signature was requested
        """
        signature = self.target.execute(CommandReadSignature())
        self.signature = signature
        if not self.validate_signature(signature):
            mismatch = SignatureMismatch(signature=signature, expected_signature=(self.expected_signature if self.expected_signature is not None else 0))
            self.signature_mismatch = mismatch
            if self.strict_signature:
                logger.error(str(mismatch))
                raise mismatch
            logger.warning(str(mismatch) + ', proceeding anyway')
        else:
            logger.info(f'Device signature 0x{signature:06x}')
        return signature

    def start(self) -> int:
        """@brief Make the target bootloader ready to receive pages
        @return The device signature

        @note In order for this method to work, the remote device should have just been reset, so that its bootloader is running
        """
        self.synchronize()
        self.enter_programming_mode()
        return self.read_signature()
