import logging
from enum import Enum

CATEGORY_WEBHOOK = "webhook"


class LogSeverity(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"

    @property
    def log_level(self) -> int:
        return logging.getLevelName(self.value)
