"""
Centralized logging for the haze plot streaming backend.

Every module logs through Python's built-in logging module, scoped by
module name.

Usage:
    from haze.shared.logger import get_logger

    logger = get_logger(__name__)
    logger.info("Browser connected: %s", client_id)
    logger.error("No ws in context to plot group %s", group_id)
"""

import logging
import sys

_configured = False


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging for the haze backend.

    Call once at startup (main.py). Subsequent calls are no-ops.
    """
    global _configured
    if _configured:
        return

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stdout,
        force=True,
    )
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger for a haze module.

    Loggers are named after the module (``haze.exec``,
    ``haze.session.manager``), so the level given to ``setup_logging``
    through ``HAZE_LOG_LEVEL`` applies to all of them. ``haze.exec``
    reports the no-session diagnostic at error level and per-window
    details at debug level.

    Args:
        name: Module name (typically ``__name__``).
    """
    return logging.getLogger(name)
