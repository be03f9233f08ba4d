import logging
import os
import re
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from apple_signin.core.config import Environment, settings

if TYPE_CHECKING:
    from loguru import Record


LOG_LEVELs = {
    50: "CRITICAL",
    40: "ERROR",
    30: "WARNING",
    20: "INFO",
    10: "DEBUG",
    0: "NOTSET",
}

# Standard library loggers of the HTTP transport
HTTP_LOGGERS = ("httpx", "httpcore")

# Compact JWS: base64url header starting with '{"', payload and signature
JWT_PATTERN = re.compile(r"eyJ[\w-]*\.[\w-]*\.[\w-]*")

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>PID:{extra[process_id]}</magenta> | "
    "<cyan>{name}:{function}:{line}</cyan> | "
    "<level>{message}</level>"
)

FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss!UTC} | {level: <8} | PID:{extra[process_id]} | "
    "{name}:{function}:{line} | {message}"
)


def mask_tokens(message: str) -> str:
    """Replace anything shaped like a JWT with a masked placeholder."""
    return JWT_PATTERN.sub("eyJ***", message)


def process_filter(record: "Record") -> bool:
    """
    Loguru filter shared by all sinks.

    Adds the process ID to the record and masks identity tokens and
    client secrets that third-party libraries may put in messages.

    Args:
        record (Record): Log record from Loguru.

    Returns:
        bool: Always True, no record is dropped.
    """
    record["extra"]["process_id"] = os.getpid()
    record["message"] = mask_tokens(record["message"])

    return True


class InterceptHandler(logging.Handler):
    """
    Standard logging handler forwarding records to Loguru.
    """

    def emit(self, record: logging.LogRecord):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Skip the logging module frames so Loguru reports the real caller
        frame = logging.currentframe()
        depth = 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logger(log_level: int | None = None, log_file: Path | None = None):
    """
    Configure Loguru sinks for an application embedding the client.

    The library itself only emits records and never adds sinks on import.

    Args:
        log_level: Standard logging level, defaults to settings.log_level
        log_file: Rotating log file, defaults to settings.log_file
    """
    logger.remove()

    level = LOG_LEVELs[settings.log_level if log_level is None else log_level]
    log_file = settings.log_file if log_file is None else log_file

    logger.add(
        sys.stdout,
        format=CONSOLE_FORMAT,
        level="DEBUG" if settings.current_environment == Environment.DEV else level,
        colorize=True,
        enqueue=True,
        filter=process_filter,
    )

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_file,
            format=FILE_FORMAT,
            level=level,
            rotation="10 MB",
            retention="3 months",
            compression="gz",
            enqueue=True,
            filter=process_filter,
            backtrace=True,
            diagnose=False,  # local variables may hold private keys
        )

    logger.info(
        f"Logger initialized | Environment: {settings.current_environment.value} | "
        f"Level: {level} | File: {log_file or '-'}"
    )


def configure_httpx_logging():
    """Route httpx and httpcore records through Loguru. Call after setup_logger()."""
    for name in HTTP_LOGGERS:
        http_logger = logging.getLogger(name)
        http_logger.handlers = [InterceptHandler()]
        http_logger.propagate = False

    logger.debug(f"Intercepting standard loggers: {', '.join(HTTP_LOGGERS)}")


def shutdown_logger():
    """Wait for enqueued records to be written."""
    logger.info("Shutting down logger...")
    logger.complete()
