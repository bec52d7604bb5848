"""Logging configuration for the NotebookLM client.

Library modules only create ``logging.getLogger(__name__)`` loggers;
handlers are installed here, by the CLI entry point.
"""

import logging
import sys
from typing import Literal

from notebooklm_wire.settings import get_settings

# Third-party loggers that are too chatty at DEBUG/INFO
NOISY_LOGGERS = [
    "httpcore",
    "httpx",
    "hpack",
    "asyncio",
]


def suppress_noisy_loggers() -> None:
    """Clamp noisy third-party loggers to WARNING."""
    for logger_name in NOISY_LOGGERS:
        logger = logging.getLogger(logger_name)
        logger.setLevel(logging.WARNING)
        logger.handlers.clear()


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None,
) -> None:
    """Configure console logging.

    Sets up:
    - Client logs at the configured level
    - Third-party library logs clamped to WARNING+
    - A single stderr handler with a compact format

    Args:
        level: Override log level (defaults to settings.log_level)
    """
    log_level = level or get_settings().log_level

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # Capture all, filter at handler level
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(getattr(logging, log_level))
    console_handler.setFormatter(
        logging.Formatter("%(levelname)s | %(name)s | %(message)s", datefmt="%H:%M:%S")
    )
    root_logger.addHandler(console_handler)

    logging.getLogger("notebooklm_wire").setLevel(getattr(logging, log_level))

    suppress_noisy_loggers()

