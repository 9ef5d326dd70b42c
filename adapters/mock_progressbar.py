# coding: utf-8
"""@brief Module implementing a progress bar that records its updates, for unit test purposes
"""
from typing import List

from domain.ext_adapters_interface.progressbar_interface import ProgressBarInterface, ProgressBarFactoryInterface

class MockProgressBar(ProgressBarInterface):
    """@brief Concrete implementation of ProgressBarInterface keeping track of all values it was updated with"""
    def __init__(self, name: str, min_value: int, max_value: int, show_eta: bool = False, *args, **kwargs):
        self.name = name
        self.min_value = min_value
        self.max_value = max_value
        self.started = False
        self.finished = False
        self.updates_history: List[int] = []

    def __enter__(self):
        return self

    def __exit__(self, type, value, traceback):
        pass

    def update(self, value: int, raise_on_out_of_bounds = False):
        if value < self.min_value or value > self.max_value:
            raise IndexError(f'Update value {value} out of bounds [{self.min_value};{self.max_value}]')
        self.updates_history.append(value)

    def get_current_ratio(self) -> float:
        """@brief Progress (between 0.0 and 1.0) corresponding to the last update
        """
        if not self.updates_history:
            return 0.0
        return (self.updates_history[-1] - self.min_value) / (self.max_value - self.min_value)

    def finish(self):
        self.finished = True

    def start(self):
        self.started = True

class MockProgressBarFactory(ProgressBarFactoryInterface):
    """@brief Factory creating MockProgressBar instances, and keeping a reference to each of them for later inspection"""
    def __init__(self):
        self.created_bars: List[MockProgressBar] = []

    def create(self, *args, **kwargs) -> MockProgressBar:
        bar = MockProgressBar(*args, **kwargs)
        self.created_bars.append(bar)
        return bar
