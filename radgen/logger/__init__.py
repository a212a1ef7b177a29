"""Logger module for radius-gen-acct

Usage:
    from radgen.logger import session_logger as logger

    logger.info("gen.start", event="gen.start", rate_per_sec=10)

    # Or implement your own
    class MyCustomLogger(Logger):
        def info(self, message: str, **kwargs):
            # Your custom implementation
            pass
"""

import logging
import os

from .base import Logger
from .console_logger import ConsoleLogger


def _level_from_env(default: int = logging.INFO) -> int:
    level = logging.getLevelName(os.environ.get("RADGEN_LOG_LEVEL", "").strip().upper())
    return level if isinstance(level, int) else default


# Shared logger instance for modules that just need basic console logging
session_logger: ConsoleLogger = ConsoleLogger(level=_level_from_env())

__all__ = [
    "Logger",
    "ConsoleLogger",
    "session_logger",
]
