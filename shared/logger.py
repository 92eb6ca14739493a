"""
Console logging for the canvas services.

Every module logs to stdout through a cached, colored logger so that the
engine, the gesture layer and the API server share one output format.

Usage:
    from shared.logger import get_logger

    logger = get_logger("canvas_engine.engine")
    logger.info("Run started")
"""

import copy
import logging
import sys
from typing import Dict, Optional

# Global cache of loggers
_loggers: Dict[str, logging.Logger] = {}

_DEFAULT_FORMAT = '%(asctime)s | %(name)s | %(levelname)s | %(message)s'
_DEFAULT_DATEFMT = '%Y-%m-%d %H:%M:%S'


class ColoredFormatter(logging.Formatter):
    """Formatter that adds colors to console output"""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
        'RESET': '\033[0m'       # Reset
    }

    def format(self, record):
        levelname = record.levelname
        if levelname not in self.COLORS:
            return super().format(record)
        # Color a copy so other handlers still see the plain level name
        colored = copy.copy(record)
        colored.levelname = f"{self.COLORS[levelname]}{levelname}{self.COLORS['RESET']}"
        return super().format(colored)


def _resolve_level(level: Optional[int]) -> int:
    if level is not None:
        return level
    from shared.config import config

    resolved = logging.getLevelName(config.log_level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def get_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """
    Get a logger that outputs colored, structured logs to console.

    Args:
        name: Logger name (typically the dotted module path)
        level: Logging level (default: ``config.log_level``)

    Returns:
        Configured logger instance
    """
    if name in _loggers:
        return _loggers[name]

    resolved = _resolve_level(level)
    logger = logging.getLogger(name)
    logger.setLevel(resolved)
    logger.propagate = False
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(resolved)
    console_handler.setFormatter(ColoredFormatter(fmt=_DEFAULT_FORMAT, datefmt=_DEFAULT_DATEFMT))
    logger.addHandler(console_handler)

    _loggers[name] = logger
    return logger
