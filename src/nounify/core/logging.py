"""Logging configuration."""

import logging
import sys

from nounify.core.config import get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Third-party loggers that are chatty at INFO while models load
QUIET_LOGGERS = ("insightface", "onnxruntime", "PIL")

_handler: logging.Handler | None = None


def configure_logging(level: str | None = None) -> None:
    """Configure process logging.

    Installs a stdout handler on the root logger the first time; later calls
    only adjust levels.

    Args:
        level: Level name overriding LOG_LEVEL from settings
    """
    global _handler

    root = logging.getLogger()
    if _handler is None or _handler not in root.handlers:
        _handler = logging.StreamHandler(sys.stdout)
        _handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(_handler)

    root.setLevel(getattr(logging, (level or get_settings().log_level).upper()))
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, root.level))


def get_logger(name: str) -> logging.Logger:
    """Get logger instance for module."""
    return logging.getLogger(name)
