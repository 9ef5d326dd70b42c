# coding: utf-8
"""@brief Module providing the context shared by page programming operations
"""

from domain.ext_adapters_interface.progressbar_interface import ProgressBarInterface, ProgressBarFactoryInterface
from domain.memory_image import MemoryImage

class FlasherContext:
    """@brief Container for everything page programming needs: UI handlers (logger, progress bar), the memory image and access to the target
    @note This class is used for dependency injection, tests provide fake loggers, progress bars and command executors
    """

    def __init__(self, name: str, progressbar_factory: ProgressBarFactoryInterface, logger, memory_image: MemoryImage, target_command_executor):
        """@brief Constructor
        @param name The name of the context (for logs)
        @param progressbar_factory A factory generating progress bar instances
        @param logger A logger to use
        @param memory_image The memory image to program into the target
        @param target_command_executor A function sending one command to the target bootloader, and returning the command outcome
        """
        if not callable(target_command_executor):
            raise TypeError("target_command_executor argument is not callable")
        self.name = name
        self.progressbar_factory = progressbar_factory
        self.logger = logger
        self.memory_image = memory_image
        self._command_executor = target_command_executor
        self.pages_written = 0    # Number of pages acknowledged by the target so far

    def create_progress_bar(self, name: str, min_value: int, max_value: int, **kwargs) -> ProgressBarInterface:
        """@brief Create a progress bar using the injected factory
        @note Extra keyword arguments (eg: show_eta) are forwarded to the progress bar constructor
        """
        return self.progressbar_factory.create(name=name, min_value=min_value, max_value=max_value, **kwargs)

    def execute_on_target(self, command):
        """@brief Run @p command on the target bootloader, and return its outcome
        """
        return self._command_executor(command)

    def __str__(self):
        return f'FlasherContext({self.name}, {self.memory_image})'
