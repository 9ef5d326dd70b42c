#!/usr/bin/env python3
# coding: utf-8

from typing import Callable, List

from domain.flasher_context import FlasherContext
import domain.stk500.stk500_comm as comm
from domain.mcu_addressing import MCULogicalAddress, MCULogicalAddressRange, MCULocatedLogicalDataChunk
from domain.common import run_on_each

class Stk500ConfigCatalog:
    def __init__(self, name: str, signature: int, page_size: int, memtype: bytes, image_capacity: int):
        """@brief Construct a target description
        @param name The human-readable MCU name
        @param signature The expected 3-byte device signature (as an integer, first signature byte being the most significant)
        @param page_size The size (in bytes) of one flash page, this is the unit for each program page command
        @param memtype The memory type selector to use in program page commands
        @param image_capacity The maximum size of the memory image we accept to build from a firmware file
        """
        self.name = name
        self.signature = signature
        self.page_size = page_size
        self.memtype = memtype
        self.image_capacity = image_capacity

    def validate_signature(self, signature: int) -> bool:
        """@brief Check if a device signature read from a target corresponds to this MCU
        """
        return signature == self.signature

def create_page_writer(context: FlasherContext,
                       target_config: Stk500ConfigCatalog,
                       progress_updater = None) -> Callable[[MCULogicalAddressRange], None]:
    """@brief Higher order function returning a page writer closure
    @param context The context container to burry inside the returned closure
    @param target_config A MCU-specific configuration to burry inside the returned closure
    @param progress_updater A handler used to display progress, to burry inside the returned closure

    @return A dedicated page writer function, taking a MCULogicalAddressRange as argument (see write_page below)
    """

    def write_page(page_range: MCULogicalAddressRange) -> None:
        """@brief Write one page on the target
        @param page_range The address range of the page (should be exactly one page, aligned on a page boundary)

        @warning Raises an AddressLoadError or a PageProgramError on the first failure, without any retry
        """
        assert page_range.get_size() == target_config.page_size
        assert MCULogicalAddress(page_range.start_address).is_aligned_on_bytes_multiple(target_config.page_size)
        chunk: MCULocatedLogicalDataChunk = context.memory_image.get_data_chunk_for_range(page_range)
        context.logger.debug(f'Writing {chunk.size} bytes at address 0x{chunk.start_address:06x}')
        context.execute_on_target(comm.CommandLoadAddress(address=chunk.start_address))
        context.execute_on_target(comm.CommandProgramPage(chunk_to_send=chunk, memtype=target_config.memtype))
        context.pages_written += 1
        if progress_updater is not None:
            progress_updater.update(page_range.end_address)

    return write_page

def stk500_program_cmd(context: FlasherContext, target_config: Stk500ConfigCatalog) -> None:
    """@brief Program the memory image of the context into a target, page per page, from address 0 up to the high water mark
    @param context The context container for flashing operations
    @param target_config A MCU-specific configuration

    @note Pages are written strictly in address order. The first failing page aborts the whole operation
    """
    pages: List[MCULogicalAddressRange] = context.memory_image.get_page_ranges()
    high_water_mark = context.memory_image.get_high_water_mark()
    context.logger.info(f'Programming {len(pages)} page(s) ({high_water_mark} bytes) into {target_config.name}')

    with context.create_progress_bar(name="Writing flash ", min_value=0, max_value=high_water_mark, show_eta=False) as bar:
        bar.start()
        write_page = create_page_writer(context=context, target_config=target_config, progress_updater=bar)
        run_on_each(write_page, pages)
        bar.finish()

    context.logger.info('Flashing succeeded!')
