"""
Logging setup for netalloc.

All modules log through loguru. Each module obtains a logger bound to its
module name:

    from netalloc.utils.logger import get_logger

    logger = get_logger(__name__)
    logger.info(f"Created network {network.uuid}")

configure_logging() is called once by entry points (the CLI) to install the
sinks; library code never touches the handlers.
"""

import sys
import traceback

from loguru import logger as _logger

from netalloc.models.enums import LogLevel

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan> - <level>{message}</level>"
)

# LogLevel -> loguru level name
_LEVEL_MAP = {
    LogLevel.FULL: "TRACE",
    LogLevel.DEBUG: "DEBUG",
    LogLevel.INFO: "INFO",
    LogLevel.WARNING: "WARNING",
}

_logger.configure(extra={"name": "netalloc"})


def configure_logging(level: LogLevel | str = LogLevel.INFO, log_file: str = "") -> None:
    """
    Install stderr (and optional file) sinks at the given level.

    Args:
        level: A LogLevel or its string value.
        log_file: Optional path of an additional log file.
    """
    level = LogLevel(level)
    loguru_level = _LEVEL_MAP[level]

    _logger.remove()
    _logger.add(
        sys.stderr,
        level=loguru_level,
        format=LOG_FORMAT,
        backtrace=level == LogLevel.FULL,
        diagnose=level == LogLevel.FULL,
    )
    if log_file:
        _logger.add(log_file, level=loguru_level, format=LOG_FORMAT, rotation="10 MB")


def get_logger(name: str):
    """Get a logger bound to a module name."""
    return _logger.bind(name=name)


def format_traceback(exc: BaseException) -> str:
    """Render an exception with its traceback for debug logging."""
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
