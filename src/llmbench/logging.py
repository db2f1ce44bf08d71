"""Structured logging setup for llmbench using loguru.

Supports three verbosity modes:
- quiet: WARNING+ only
- normal: INFO+ with simplified format
- verbose: DEBUG+ with full format (timestamps, module names)

Library log filtering:
- In quiet/normal mode: httpx/httpcore request lines and uvicorn access logs
  are lowered to WARNING
- In verbose mode: everything is shown
"""

from __future__ import annotations

import os
import sys
from typing import Literal

from loguru import logger

__all__ = ["VERBOSE_FORMAT", "configure_library_log_filtering", "logger", "setup_logging"]

# Remove default handler at module load
logger.remove()

VERBOSE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - "
    "<level>{message}</level>"
)

SIMPLE_FORMAT = "<level>{level: <8}</level> | <level>{message}</level>"

JSON_FORMAT = "{message}"

VerbosityType = Literal["quiet", "normal", "verbose"]

# stdlib loggers that log every request at INFO
NOISY_LIBRARY_LOGGERS = [
    "httpx",
    "httpcore",
    "uvicorn.access",
]


def _get_verbosity_from_env() -> VerbosityType:
    """Get verbosity from the LLMBENCH_VERBOSITY environment variable."""
    env_value = os.environ.get("LLMBENCH_VERBOSITY", "normal").lower()
    if env_value in ("quiet", "normal", "verbose"):
        return env_value  # type: ignore[return-value]
    return "normal"


def setup_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: str | None = None,
    verbosity: VerbosityType | None = None,
) -> None:
    """Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_output: If True, output logs as JSON for machine parsing.
        log_file: Optional file path to write logs to.
        verbosity: Override verbosity level ("quiet", "normal", "verbose").
                   If None, reads from LLMBENCH_VERBOSITY env var.
    """
    logger.remove()

    effective_verbosity = verbosity or _get_verbosity_from_env()

    if effective_verbosity == "quiet":
        effective_level = "WARNING"
        log_format = SIMPLE_FORMAT
    elif effective_verbosity == "verbose":
        effective_level = level if level != "INFO" else "DEBUG"
        log_format = VERBOSE_FORMAT
    else:
        effective_level = level
        log_format = SIMPLE_FORMAT

    if json_output:
        logger.add(
            sys.stderr,
            format=JSON_FORMAT,
            serialize=True,
            level=effective_level,
        )
    else:
        logger.add(
            sys.stderr,
            format=log_format,
            level=effective_level,
            colorize=True,
        )

    if log_file:
        # Log files always capture everything
        logger.add(
            log_file,
            format=VERBOSE_FORMAT,
            level="DEBUG",
            rotation="10 MB",
            retention="7 days",
        )

    configure_library_log_filtering(effective_verbosity)


def configure_library_log_filtering(verbosity: VerbosityType) -> None:
    """Lower third-party stdlib loggers to WARNING outside verbose mode.

    Args:
        verbosity: Current verbosity level.
    """
    import logging as stdlib_logging

    level = stdlib_logging.DEBUG if verbosity == "verbose" else stdlib_logging.WARNING

    for logger_name in NOISY_LIBRARY_LOGGERS:
        stdlib_logging.getLogger(logger_name).setLevel(level)
