"""
Logging Configuration
Claims logging on loguru. The pure claims modules log through stdlib
``logging``; setup routes their records into the same loguru sinks.
Source: https://github.com/Delgan/loguru
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

PACKAGE_LOGGER = "pharmacy_claims"

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"

# Claim files double as the adjudication audit trail
FILE_ROTATION = "50 MB"
FILE_RETENTION = "90 days"


class LoguruForwarder(logging.Handler):
    """Re-emits stdlib log records through loguru, keeping their origin."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        origin = {"name": record.name, "function": record.funcName, "line": record.lineno}
        logger.patch(lambda r: r.update(origin)).opt(exception=record.exc_info).log(
            level, record.getMessage()
        )


def route_stdlib_logging(package: str = PACKAGE_LOGGER) -> None:
    """Send records from ``package``'s stdlib loggers to the loguru sinks."""
    stdlib_logger = logging.getLogger(package)
    stdlib_logger.handlers = [LoguruForwarder()]
    stdlib_logger.setLevel(logging.DEBUG)  # sinks do the level filtering
    stdlib_logger.propagate = False


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    json_logs: bool = False,
    route_stdlib: bool = True,
) -> None:
    """
    Configure claims logging.

    Args:
        level: Minimum level for every sink
        log_file: Optional rotating audit file
        json_logs: Serialize records as JSON lines
        route_stdlib: Forward the calculator, state machine and eligibility
            loggers into loguru
    """
    logger.remove()

    if json_logs:
        logger.add(sys.stderr, format="{message}", level=level, serialize=True)
    else:
        logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level, colorize=True)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            rotation=FILE_ROTATION,
            retention=FILE_RETENTION,
            compression="zip",
            format=FILE_FORMAT,
            level=level,
            serialize=json_logs,
        )

    if route_stdlib:
        route_stdlib_logging()

    logger.info(f"Logging configured: level={level}, json_logs={json_logs}")


def setup_logging_from_settings() -> None:
    """Configure logging from the CLAIMS_LOG_* settings."""
    from pharmacy_claims.core.config import get_claims_settings

    settings = get_claims_settings()
    setup_logging(
        level=settings.LOG_LEVEL,
        log_file=settings.LOG_FILE,
        json_logs=settings.LOG_JSON,
    )


def get_logger(name: str = __name__):  # type: ignore[no-untyped-def]
    """
    Get a logger instance.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Claim submitted")
    """
    return logger.bind(name=name)


def claim_logger(claim_number: str, name: str = __name__):  # type: ignore[no-untyped-def]
    """Logger carrying the claim number in every record's extra fields."""
    return logger.bind(name=name, claim_number=claim_number)
