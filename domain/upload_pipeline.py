# coding: utf-8
"""@brief Module chaining all the steps of a firmware upload

parse -> connect -> sync -> enter program mode -> read signature -> program pages -> leave program mode

Each step stops the pipeline on failure, and the outcome (UploadOutcome) tells which step failed. The transport is always closed
before returning
"""
from typing import Callable, Iterable, Tuple

from domain.ext_adapters_interface.progressbar_interface import ProgressBarFactoryInterface
from domain.ext_adapters_interface.transport_interface import TransportInterface, TransportError
from domain.flasher_context import FlasherContext
from domain.hex_loader import HexImageLoader, FormatError
from domain.memory_image import MemoryImage
import domain.stk500.stk500_comm as comm
from domain.stk500.flashing_tools import Stk500ConfigCatalog, stk500_program_cmd

STAGE_PARSE = 'parse'
STAGE_CONNECT = 'connect'
STAGE_PROGRAM = 'program'
STAGE_DONE = 'done'

class UploadSettings:
    """@brief Run-time settings for an upload"""
    def __init__(self, sync_attempts: int = comm.DEFAULT_SYNC_ATTEMPTS, reply_timeout: float = comm.DEFAULT_REPLY_TIMEOUT,
                 strict_signature: bool = False, verify_checksums: bool = True):
        """@brief Constructor
        @param sync_attempts The maximum number of sync requests sent to the bootloader
        @param reply_timeout The maximum time (in s) we wait for each reply from the bootloader
        @param strict_signature Abort the upload if the device signature is not the expected one (by default, we only warn)
        @param verify_checksums Check the checksum of each record in the firmware file
        """
        self.sync_attempts = sync_attempts
        self.reply_timeout = reply_timeout
        self.strict_signature = strict_signature
        self.verify_checksums = verify_checksums


class UploadOutcome:
    """@brief The result of an upload: either a success, or the description of the step that failed"""
    def __init__(self):
        self.stage = STAGE_PARSE
        self.error = None
        self.high_water_mark = None
        self.signature = None
        self.signature_mismatch = None
        self.pages_written = 0
        self.soft_failure = False

    def fail(self, error: Exception) -> None:
        """@brief Record the failure of the current stage
        @param error The exception that stopped the pipeline

        @note A failure when leaving program mode is a soft failure: all pages have been programmed already
        """
        self.soft_failure = (self.stage == comm.STAGE_LEAVE_PROGMODE)
        error_stage = getattr(error, 'stage', None)
        if error_stage is not None:
            self.stage = error_stage
        self.error = error

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def __str__(self) -> str:
        if self.succeeded:
            return f'Upload succeeded ({self.pages_written} page(s) written)'
        failure_kind = 'soft failure' if self.soft_failure else 'failure'
        return f'Upload {failure_kind} at stage {self.stage} after {self.pages_written} page(s) written: ' + str(self.error)


def program_target(target: comm.Stk500Protocol, memory_image: MemoryImage, target_config: Stk500ConfigCatalog, settings: UploadSettings,
                   outcome: UploadOutcome, logger, progressbar_factory: ProgressBarFactoryInterface) -> None:
    """@brief Run all the steps of an upload, once the transport towards the target is open
    @param target The protocol handler towards the target bootloader
    @param memory_image The memory image to program
    @param target_config A MCU-specific configuration
    @param settings The upload settings
    @param outcome The outcome to update with the progress of the upload
    @param logger A logger to use
    @param progressbar_factory A factory generating progress bar instances

    @warning Exceptions are propagated to the caller, @p outcome.stage tells which step raised
    """
    launcher = comm.BootloaderRemoteLauncher(target=target,
                                             validate_signature=target_config.validate_signature,
                                             expected_signature=target_config.signature,
                                             sync_attempts=settings.sync_attempts,
                                             strict_signature=settings.strict_signature)
    outcome.stage = comm.STAGE_SYNC
    launcher.synchronize()
    outcome.stage = comm.STAGE_ENTER_PROGMODE
    launcher.enter_programming_mode()
    outcome.stage = comm.STAGE_READ_SIGNATURE
    try:
        launcher.read_signature()
    finally:
        outcome.signature = launcher.signature
        outcome.signature_mismatch = launcher.signature_mismatch

    outcome.stage = STAGE_PROGRAM
    flasher_ctx = FlasherContext(name='upload',
                                 progressbar_factory=progressbar_factory,
                                 logger=logger,
                                 memory_image=memory_image,
                                 target_command_executor=target.execute)
    try:
        stk500_program_cmd(context=flasher_ctx, target_config=target_config)
    finally:
        outcome.pages_written = flasher_ctx.pages_written

    outcome.stage = comm.STAGE_LEAVE_PROGMODE
    target.execute(comm.CommandLeaveProgMode())
    outcome.stage = STAGE_DONE

def upload_with_loader(load_image: Callable[[HexImageLoader], Tuple[MemoryImage, int]], transport: TransportInterface, target_config: Stk500ConfigCatalog,
               settings: UploadSettings, logger, progressbar_factory: ProgressBarFactoryInterface) -> UploadOutcome:
    """@brief Parse a firmware and program it into a target
    @param load_image A function building the memory image and high water mark out of the HexImageLoader it is given
    @param transport The (not yet opened) transport towards the target, it will be opened only if the firmware is valid
    @param target_config A MCU-specific configuration
    @param settings The upload settings
    @param logger A logger to use
    @param progressbar_factory A factory generating progress bar instances
    @return The outcome of the upload
    """
    outcome = UploadOutcome()
    try:
        loader = HexImageLoader(capacity=target_config.image_capacity,
                                page_size=target_config.page_size,
                                verify_checksums=settings.verify_checksums)
        (memory_image, outcome.high_water_mark) = load_image(loader)
        logger.info(f'Firmware spans 0x{outcome.high_water_mark:06x} bytes')
        outcome.stage = STAGE_CONNECT
        with comm.Stk500ProtocolSession(transport=transport, reply_timeout=settings.reply_timeout) as target:
            program_target(target=target,
                           memory_image=memory_image,
                           target_config=target_config,
                           settings=settings,
                           outcome=outcome,
                           logger=logger,
                           progressbar_factory=progressbar_factory)
    except (FormatError, TransportError, comm.CommandFailedError) as e:
        outcome.fail(e)
        if outcome.soft_failure:
            logger.warning('Firmware was programmed but the bootloader session could not be closed cleanly: ' + str(e))
        else:
            logger.error(f'Failed at stage {outcome.stage}: ' + str(e))
    return outcome

def upload_firmware(hex_lines: Iterable, transport: TransportInterface, target_config: Stk500ConfigCatalog, settings: UploadSettings,
                    logger, progressbar_factory: ProgressBarFactoryInterface) -> UploadOutcome:
    """@brief Parse the lines of an Intel Hex firmware and program it into a target (see upload_with_loader())
    """
    return upload_with_loader(load_image=lambda loader: loader.load(hex_lines),
                      transport=transport, target_config=target_config, settings=settings, logger=logger, progressbar_factory=progressbar_factory)

def upload_firmware_file(hex_filename: str, transport: TransportInterface, target_config: Stk500ConfigCatalog, settings: UploadSettings,
                         logger, progressbar_factory: ProgressBarFactoryInterface) -> UploadOutcome:
    """@brief Parse an Intel Hex firmware file and program it into a target (see upload_with_loader())

    @note An unreadable file is a failure at the parse stage, like an invalid record
    """
    return upload_with_loader(load_image=lambda loader: loader.load_from_file(hex_filename),
                      transport=transport, target_config=target_config, settings=settings, logger=logger, progressbar_factory=progressbar_factory)
