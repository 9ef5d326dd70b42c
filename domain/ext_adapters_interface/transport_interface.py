# coding: utf-8
"""@brief Module declaring the interface to which must comply all concrete implementations of byte transports towards the target
"""
import abc

class TransportError(Exception):
    pass

class TransportInterface(metaclass=abc.ABCMeta):
    """@brief Interface to which must comply all concrete implementations of byte transports"""

    @abc.abstractmethod
    def open(self):
        """@brief Open the underlying link

        @warning Raises a TransportError if the link cannot be opened
        """
        raise NotImplementedError

    @abc.abstractmethod
    def close(self):
        """@brief Close the underlying link (closing an already closed link has no effect)"""
        raise NotImplementedError

    @abc.abstractmethod
    def write(self, buffer: bytes) -> int:
        """@brief Send bytes to the target

        @param buffer The bytes to send

        @return The number of bytes actually written
        """
        raise NotImplementedError

    @abc.abstractmethod
    def read(self, size: int, timeout: float) -> bytes:
        """@brief Read bytes from the target

        @param size The maximum number of bytes to read
        @param timeout The maximum time to wait for these bytes (in s)

        @return The bytes received before the timeout expired (between 0 and @p size bytes)
        """
        raise NotImplementedError

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, type, value, traceback):
        self.close()

    @classmethod
    def __subclasshook__(cls, subclass):
        if cls is not TransportInterface:
            return NotImplemented
        return all(callable(getattr(subclass, method, None)) for method in ('open', 'close', 'write', 'read')) or NotImplemented
