# coding: utf-8
"""@brief Module implementing a history-recording logger, for unit test purposes
"""
from typing import List, Tuple

from logging import ERROR, WARNING, INFO, DEBUG

class MockLogger:
    """@brief Stand-in for a logging.Logger, recording each message (with its level) that passes the log level"""
    def __init__(self, log_level: int = DEBUG):
        self.reset_logs()
        self.log_level = log_level

    def reset_logs(self):
        self.records: List[Tuple[int, str]] = []

    @property
    def logs_history(self) -> List[str]:
        return [message for (_, message) in self.records]

    def get_messages_at(self, level: int) -> List[str]:
        """@brief Get all recorded messages that have been logged at exactly @p level
        """
        return [message for (record_level, message) in self.records if record_level == level]

    def isEnabledFor(self, level: int) -> bool:
        return level >= self.log_level

    def _log_as(self, level: int, message: str):
        """@brief Record a log containing @p message at a given level
        @param level The log level (eg: ERROR, INFO etc.)
        @param message The content of the log message
        """
        if self.isEnabledFor(level):
            self.records.append((level, message))

    def error(self, message: str):
        self._log_as(ERROR, message)

    def warning(self, message: str):
        self._log_as(WARNING, message)

    def info(self, message: str):
        self._log_as(INFO, message)

    def debug(self, message: str):
        self._log_as(DEBUG, message)
