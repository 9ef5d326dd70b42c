#!/usr/bin/env python3
# coding: utf-8

from typing import Iterator
from logging import getLogger, StreamHandler, Formatter
from logging import WARNING

from domain.mcu_addressing import MCULogicalAddressRange, MCULogicalAddress

LOG_FORMAT = "%(asctime)s :: %(levelname)s :: %(name)s: %(message)s"

def create_main_logger(name: str, log_level=WARNING, also_log_libs: bool = False):
    """@brief Create the applicative logger of the flasher script and return it
    @param name The name of the logger
    @param log_level The log level over which logs are output
    @param also_log_libs Attach the console handler to the root logger instead, so that protocol modules (and pyserial) logs are also output
    """
    console_handler = StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(Formatter(LOG_FORMAT))
    main_logger = getLogger(name=name)
    main_logger.handlers = []
    main_logger.setLevel(log_level)
    if also_log_libs:
        getLogger().setLevel(log_level)
        getLogger().addHandler(console_handler)   # main_logger propagates to the root logger, it needs no handler of its own
    else:
        main_logger.addHandler(console_handler)
    return main_logger

def align_on_bytes_multiple(address: int, multiple: int, excess: bool = True) -> MCULogicalAddress:
    """@brief Round @p address to a @p multiple bytes boundary
    @param address The address to align
    @param multiple The alignment, in bytes (eg: a flash page size)
    @param excess Round up if True, round down otherwise
    @return The aligned address (@p address itself if it is already aligned)
    """
    if excess:
        address += multiple - 1
    return MCULogicalAddress(address - (address % multiple))

def split_address_range_to_max_size(address_range: MCULogicalAddressRange, max_size: int) -> Iterator[MCULogicalAddressRange]:
    """@brief Cut an address range into consecutive ranges of at most @p max_size bytes
    @note All yielded ranges are exactly @p max_size bytes long, except possibly the last one
    """
    for start_address in range(address_range.start_address, address_range.end_address, max_size):
        yield MCULogicalAddressRange(start_address=MCULogicalAddress(start_address),
                                     end_address=MCULogicalAddress(min(start_address + max_size, address_range.end_address)))

def format_bytes(buffer) -> str:
    """@brief Format a byte buffer as space-separated hex bytes, for logs and error messages
    """
    return ' '.join('{:02x}'.format(b) for b in buffer)

def run_on_each(fn, items):
    """@brief A version of map that discards results from fn
    """
    for item in items:
        fn(item)
