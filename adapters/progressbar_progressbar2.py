# coding: utf-8
"""@brief Module implementing a textual progress bar on the console, using python progressbar2
"""
import progressbar
from domain.ext_adapters_interface.progressbar_interface import ProgressBarInterface, ProgressBarFactoryInterface

class ProgressBar2(ProgressBarInterface):
    """@brief Concrete implementation of ProgressBarInterface using python progressbar2

    Values are byte addresses in the firmware image, the bar also displays the transfer rate
    """
    def __init__(self, name: str, min_value: int, max_value: int, show_eta: bool = False, *args, **kwargs):
        self.widgets = [name, progressbar.GranularBar(), ' ', progressbar.FileTransferSpeed()]
        if show_eta:
            self.widgets += [' (', progressbar.AdaptiveETA(), ')']
        self.min_value = min_value
        self.max_value = max_value
        self.bar = None

    def _get_bar(self) -> progressbar.ProgressBar:
        if self.bar is None:
            self.bar = progressbar.ProgressBar(min_value=self.min_value, max_value=self.max_value, widgets=self.widgets)
        return self.bar

    def __enter__(self):
        self._get_bar()
        return self

    def __exit__(self, type, value, traceback):
        pass

    def update(self, value: int, raise_on_out_of_bounds = False):
        if not self.min_value <= value <= self.max_value:
            if raise_on_out_of_bounds:
                raise IndexError(f'Value {value} outside of [{self.min_value};{self.max_value}]')
            value = min(max(value, self.min_value), self.max_value)
        self._get_bar().update(value)

    def finish(self):
        self._get_bar().finish()

    def start(self):
        self.update(self.min_value)

class ProgressBar2Factory(ProgressBarFactoryInterface):
    @staticmethod
    def create(*args, **kwargs) -> ProgressBar2:
        return ProgressBar2(*args, **kwargs)
