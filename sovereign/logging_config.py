"""Logging configuration for the Sovereign dashboard client.

Application loggers follow the configured level; chatty third-party
loggers are held at WARNING so stream traffic does not flood the console.
"""

import logging
import sys
from typing import Literal

from sovereign.settings import get_settings

# Noisy third-party loggers
NOISY_LOGGERS = [
    "httpx",
    "httpcore",
    "asyncio",
    "urllib3",
]

APP_LOGGERS = ["sovereign"]


def suppress_noisy_loggers() -> None:
    """Suppress noisy third-party loggers.

    Call this after importing libraries that configure their own logging.
    """
    for logger_name in NOISY_LOGGERS:
        logger = logging.getLogger(logger_name)
        logger.setLevel(logging.WARNING)
        # Clear any handlers added by the library
        logger.handlers.clear()


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None,
) -> None:
    """Configure application logging.

    Sets up logging with:
    - Application logs at configured level
    - Third-party library logs suppressed to WARNING+
    - Clean console output format on stderr (stdout belongs to the CLI)

    Args:
        level: Override log level (defaults to settings.log_level)
    """
    settings = get_settings()
    log_level = level or ("DEBUG" if settings.debug else settings.log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # Capture all, filter at handler level
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(getattr(logging, log_level))
    console_handler.setFormatter(
        logging.Formatter(
            "%(levelname)s | %(name)s | %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root_logger.addHandler(console_handler)

    for app_logger in APP_LOGGERS:
        logging.getLogger(app_logger).setLevel(getattr(logging, log_level))

    suppress_noisy_loggers()
