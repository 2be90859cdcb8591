# ════════════════════════════════════════════════════════════════════════════════
# optimkit - Logging Setup
# ════════════════════════════════════════════════════════════════════════════════

from __future__ import annotations

import logging
from typing import Optional

from optimkit.core.types import LoggingConfig

PACKAGE_LOGGER = "optimkit"


def setup_logging(config: Optional[LoggingConfig] = None) -> logging.Logger:
    """
    Configure the package logger with a console handler.

    Safe to call repeatedly; the handler is installed once.
    """
    config = config or LoggingConfig()
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(config.log_level)

    if not any(getattr(h, "_optimkit", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler._optimkit = True
        logger.addHandler(handler)

    for handler in logger.handlers:
        if getattr(handler, "_optimkit", False):
            handler.setFormatter(logging.Formatter(config.log_format, datefmt="%H:%M:%S"))

    return logger


__all__ = ["setup_logging", "PACKAGE_LOGGER"]
