#!/usr/bin/env python3
# coding: utf-8
"""STK500v1 flasher for Arduino (ATmega328P) bootloaders

Usage:
  stk500_flasher.py [-d] [-s] <hex_filename> <serial_port> [baudrate]

Options:
  -d  Output debug logs (use twice to also output logs from libraries)
  -s  Strict mode: abort if the device signature is not the one of an ATmega328P

<baudrate> is either a value in baud, or one of the following aliases:
  1=9600, 2=19200, 3=57600, 4=115200
It defaults to 57600 if missing or invalid

Exit code is 0 on success, 1 on failure, 2 if the firmware was programmed but the bootloader could not be left cleanly
"""

from logging import DEBUG, INFO
import sys

import domain.stk500.stk500_comm as comm
from domain.stk500.atmega328p import ATmega328PConfigCatalog
from domain.common import create_main_logger
from domain.upload_pipeline import UploadSettings, upload_firmware_file
from adapters.transport_pyserial import PySerialTransport
from adapters.progressbar_progressbar2 import ProgressBar2Factory
from adapters.progressbar_silent import SilentProgressBarFactory

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_SOFT_FAILURE = 2

def get_args(hex_filename, serial_port, baudrate=None):
    """@brief Extract positional command-line arguments
    @note Simplistic built-in version without external dependencies
    """
    return (hex_filename, serial_port, comm.resolve_baudrate(baudrate))

def main(argv=None) -> int:
    debug = False
    debug_libs = False
    strict_signature = False
    if argv is None:
        argv = sys.argv[1:]
    argv = list(argv)
    while argv and argv[0].startswith('-'):
        option = argv.pop(0)
        if option == '-d':
            if not debug:
                debug = True
            else:
                debug_libs = True
        elif option == '-s':
            strict_signature = True
        else:
            print(f"Unknown leading option: '{option}'", file=sys.stderr)
            print(__doc__, file=sys.stderr)
            return EXIT_FAILURE
    try:
        (hex_filename, serial_port, baudrate) = get_args(*argv)
    except TypeError:
        print(__doc__, file=sys.stderr) # Output usage
        return EXIT_FAILURE
    logger = create_main_logger(name="stk500_flasher", log_level=(DEBUG if debug else INFO), also_log_libs=debug_libs)

    if not logger.isEnabledFor(DEBUG):
        progressbar_factory = ProgressBar2Factory
    else:
        progressbar_factory = SilentProgressBarFactory

    atmega328p_config = ATmega328PConfigCatalog()
    logger.info(f'Uploading {hex_filename} to {atmega328p_config.name} on {serial_port} at {baudrate} baud')
    outcome = upload_firmware_file(hex_filename=hex_filename,
                                   transport=PySerialTransport(port=serial_port, baudrate=baudrate),
                                   target_config=atmega328p_config,
                                   settings=UploadSettings(strict_signature=strict_signature),
                                   logger=logger,
                                   progressbar_factory=progressbar_factory)
    if outcome.succeeded:
        logger.info('Done')
        return EXIT_SUCCESS
    if outcome.soft_failure:
        return EXIT_SOFT_FAILURE
    return EXIT_FAILURE

if __name__ == "__main__":
    sys.exit(main())
