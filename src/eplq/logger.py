"""Logging configuration.

Sets up the root logger from settings; modules log through
``logging.getLogger(__name__)``.
"""

import logging
import sys

from eplq.config import get_settings


def configure_logging(level: str | None = None, format_string: str | None = None) -> None:
    """Configure logging for the application.

    Arguments win over settings, settings win over the defaults.

    Args:
        level: Optional logging level (e.g., "DEBUG", "INFO").
        format_string: Optional logging format string.
    """
    settings = get_settings()

    log_level = level or settings.logging.level
    log_format = format_string or settings.logging.format

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format=log_format,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Silence noisy loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    logging.info("Logging configured with level: %s", log_level)
