"""Process-wide logging setup, called once by entrypoints."""

from __future__ import annotations

import logging
import sys

from tracechain.config import LoggingSettings


def configure_logging(settings: LoggingSettings) -> logging.Logger:
    """Install a stderr handler on the package logger."""
    logger = logging.getLogger("tracechain")
    logger.setLevel(settings.level)

    for handler in list(logger.handlers):
        if getattr(handler, "_tracechain_handler", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(settings.format))
    handler._tracechain_handler = True
    logger.addHandler(handler)
    return logger


__all__ = ["configure_logging"]
