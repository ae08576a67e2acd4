"""
Central logging configuration for calnotes.

Quiets verbose DEBUG output from third-party libraries while keeping
calnotes' own diagnostics at the requested level.
"""

import logging
import os
from typing import Optional

LOG_FORMAT = "[%(asctime)s] %(levelname)s - %(name)s - %(message)s"

NOISY_LOGGERS: dict[str, int] = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "asyncio": logging.WARNING,
    "icalendar": logging.INFO,
}


def configure_logging(
    debug_mode: bool = False,
    force_debug: Optional[bool] = None,
    log_level: Optional[str] = None,
) -> None:
    """
    Configure logging levels for calnotes.

    Args:
        debug_mode: Whether to enable debug logging for calnotes modules
        force_debug: Override debug mode setting (None to use env var detection)
        log_level: Root level name from configuration (e.g. "INFO")

    Environment Variables:
        CALNOTES_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        CALNOTES_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("CALNOTES_DEBUG", "").lower() in ("1", "true", "yes")
    env_log_level = os.getenv("CALNOTES_LOG_LEVEL", "").upper()

    if force_debug is not None:
        final_debug = force_debug
    elif env_debug:
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    for candidate in (log_level and log_level.upper(), env_log_level):
        if candidate in ("DEBUG", "INFO", "WARNING", "ERROR"):
            root_level = getattr(logging, candidate)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    # Keep handlers installed by the host application
    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger.addHandler(handler)

    for logger_name, level in NOISY_LOGGERS.items():
        logging.getLogger(logger_name).setLevel(level)

    logging.getLogger("calnotes").setLevel(logging.DEBUG if final_debug else root_level)

    if final_debug:
        root_logger.debug("Debug logging enabled for calnotes modules")


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for logger_name in ["calnotes", *NOISY_LOGGERS]:
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)
    return status
