# coding: utf-8
"""@brief Module declaring the interface to which must comply all concrete implementations of progress bar handlers
"""
import abc

class ProgressBarInterface(metaclass=abc.ABCMeta):
    """@brief Interface to which must comply all concrete implementations of progress bar handlers

    A progress bar is used as a context manager, started once, updated with increasing values then finished
    """

    @abc.abstractmethod
    def __init__(self, name: str, min_value: int, max_value: int, show_eta: bool = False, *args, **kwargs):
        """@brief Construct a progressbar object based on its name

        @param name The label displayed in front of the progress bar
        @param min_value The value corresponding to 0% progress
        @param max_value The value corresponding to 100% progress
        @param show_eta Should we calculate and display an estimated completion time?
        """
        raise NotImplementedError

    @abc.abstractmethod
    def __enter__(self):
        raise NotImplementedError

    @abc.abstractmethod
    def __exit__(self, type, value, traceback):
        raise NotImplementedError

    @abc.abstractmethod
    def update(self, value: int, raise_on_out_of_bounds = False):
        """@brief Update the progressbar with a given value

        @param value The updated value
        @param raise_on_out_of_bounds Should we raise an IndexError on values outside of [min_value;max_value]? If not, the value is saturated to the bounds
        """
        raise NotImplementedError

    @abc.abstractmethod
    def start(self):
        """@brief Start displaying the progressbar with 0% completion
        """
        raise NotImplementedError

    @abc.abstractmethod
    def finish(self):
        """@brief Display 100% completion and stop redrawing the progressbar
        """
        raise NotImplementedError

    @classmethod
    def __subclasshook__(cls, subclass):
        if cls is not ProgressBarInterface:
            return NotImplemented
        return all(callable(getattr(subclass, method, None)) for method in ('__enter__', '__exit__', 'update', 'start', 'finish')) or NotImplemented

class ProgressBarFactoryInterface(metaclass=abc.ABCMeta):
    """@brief Interface to which must comply all progress bar factories"""

    @abc.abstractmethod
    def create(*args, **kwargs) -> ProgressBarInterface:
        """@brief Generate a progressbar instance

        @note All arguments are to be passed as are to the ProgressBar constructor
        """
        raise NotImplementedError

    @classmethod
    def __subclasshook__(cls, subclass):
        if cls is not ProgressBarFactoryInterface:
            return NotImplemented
        return callable(getattr(subclass, 'create', None)) or NotImplemented
