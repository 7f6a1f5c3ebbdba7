from docencap.loggers.logging_config import (
    DEFAULT_LOG_LEVEL,
    LoggingManager,
    check_level,
)

logging_manager = LoggingManager("docencap")
logger = logging_manager.get_logger()

__all__ = [
    "DEFAULT_LOG_LEVEL",
    "LoggingManager",
    "check_level",
    "logger",
    "logging_manager",
]
