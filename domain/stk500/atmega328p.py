#!/usr/bin/env python3
# coding: utf-8

from domain.memory_image import DEFAULT_IMAGE_CAPACITY
from domain.stk500.flashing_tools import Stk500ConfigCatalog
from domain.stk500.stk500_comm import CommandProgramPage

class ATmega328PConfigCatalog(Stk500ConfigCatalog):
    """@brief Programming parameters for an ATmega328P running an Arduino (STK500v1) bootloader"""
    def __init__(self):
        super().__init__(name='ATmega328P',
                         signature=0x1e950f,
                         page_size=0x80,    # 64 words
                         memtype=CommandProgramPage.MEMTYPE_FLASH,
                         image_capacity=DEFAULT_IMAGE_CAPACITY)   # Larger than the 32kB of flash, we let the bootloader reject out of range pages
