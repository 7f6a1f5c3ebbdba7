"""
structlog configuration of the ``docencap`` logger.

Records are rendered to stderr by structlog's console renderer, so that
command output on stdout stays clean. Environment variables, read when the
manager is created:

``DOCENCAP_LOG_LEVEL``
    Initial level, ``WARNING`` by default. ``-v``/``-q`` adjust it per run.
``DOCENCAP_LOG_TZ``
    Time zone of the timestamps, ``UTC`` by default.
``DOCENCAP_LOG_FILE``
    Additionally write one JSON record per line to this file.
"""

import logging
import logging.config
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog
from structlog.processors import CallsiteParameter, CallsiteParameterAdder
from structlog.typing import Processor

from docencap.loggers.processors import (
    CallPrettifier,
    PathPrettifier,
    UIDShortener,
    ZonedTimeStamper,
)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
DEFAULT_LOG_LEVEL = "WARNING"


def check_level(level: str) -> str:
    """Upper-cased `level`, or ``ValueError`` if it is not a logging level."""
    level_upper = level.upper()
    if level_upper not in LOG_LEVELS:
        msg = f"Invalid logging level: {level}"
        raise ValueError(msg)
    return level_upper


def shared_processors(base_dir: Path) -> List[Processor]:
    """Processors applied to structlog events and foreign ``logging`` records."""
    return [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        CallsiteParameterAdder(
            [
                CallsiteParameter.MODULE,
                CallsiteParameter.FUNC_NAME,
                CallsiteParameter.LINENO,
            ]
        ),
        PathPrettifier(base_dir=base_dir),
        structlog.processors.StackInfoRenderer(),
    ]


class LoggingManager:
    """
    Configures ``logging`` and structlog for one named logger.

    Parameters
    ----------
    name : str
        Logger name, also the prefix of the environment variables.
    level : str, optional
        Initial level, defaults to ``<NAME>_LOG_LEVEL`` or ``WARNING``.
    base_dir : Path, optional
        Paths in log events are shown relative to it, defaults to the cwd.
    log_file : Path, optional
        JSON log file, defaults to ``<NAME>_LOG_FILE`` when set.

    Examples
    --------
    >>> manager = LoggingManager("docencap", level="info")
    >>> manager.get_logger().info("Wrote DICOM file", path="report.dcm")
    """

    def __init__(
        self,
        name: str,
        level: Optional[str] = None,
        base_dir: Optional[Path] = None,
        log_file: Optional[Path] = None,
    ) -> None:
        prefix = name.upper()
        self.name = name
        self.level = check_level(
            level or os.environ.get(f"{prefix}_LOG_LEVEL", DEFAULT_LOG_LEVEL)
        )
        self.base_dir = base_dir or Path.cwd()
        self.timezone = os.environ.get(f"{prefix}_LOG_TZ", "UTC")
        env_file = os.environ.get(f"{prefix}_LOG_FILE")
        self.log_file = log_file or (Path(env_file) if env_file else None)
        self._configure()

    def dict_config(self) -> Dict[str, Any]:
        """The ``logging.config.dictConfig`` mapping for this logger."""
        pre_chain = shared_processors(self.base_dir)
        formatters: Dict[str, Any] = {
            "console": {
                "()": structlog.stdlib.ProcessorFormatter,
                "foreign_pre_chain": pre_chain,
                "processors": [
                    ZonedTimeStamper(fmt="%H:%M:%S", tz=self.timezone),
                    CallPrettifier(concise=True),
                    UIDShortener(),
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    structlog.dev.ConsoleRenderer(
                        sort_keys=False,
                        exception_formatter=structlog.dev.RichTracebackFormatter(
                            width=-1, show_locals=False
                        ),
                    ),
                ],
            },
        }
        handlers: Dict[str, Any] = {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "console",
                "stream": "ext://sys.stderr",
            },
        }

        if self.log_file is not None:
            # full UIDs and ISO timestamps in the file
            formatters["json"] = {
                "()": structlog.stdlib.ProcessorFormatter,
                "foreign_pre_chain": pre_chain,
                "processors": [
                    ZonedTimeStamper(tz=self.timezone),
                    CallPrettifier(concise=False),
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    structlog.processors.dict_tracebacks,
                    structlog.processors.JSONRenderer(),
                ],
            }
            handlers["json"] = {
                "class": "logging.FileHandler",
                "formatter": "json",
                "filename": str(self.log_file),
            }

        return {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": formatters,
            "handlers": handlers,
            "loggers": {
                self.name: {
                    "handlers": list(handlers),
                    "level": self.level,
                    "propagate": False,
                },
            },
        }

    def _configure(self) -> None:
        logging.config.dictConfig(self.dict_config())
        structlog.configure(
            processors=[
                *shared_processors(self.base_dir),
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

    def get_logger(self) -> structlog.stdlib.BoundLogger:
        return structlog.get_logger(self.name)
