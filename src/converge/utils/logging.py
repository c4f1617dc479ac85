"""Logging setup for converge.

Executor workers run in threads named ``converge_N``, so the default format
carries the thread name to keep interleaved per-node lines attributable.
"""

import logging
import os
import sys
from typing import Optional

LOG_LEVEL_ENV = "CONVERGE_LOG_LEVEL"
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(threadName)s] %(message)s"


def _level_from_env(default: int) -> int:
    raw = os.getenv(LOG_LEVEL_ENV)
    if not raw:
        return default
    level = logging.getLevelName(raw.strip().upper())
    return level if isinstance(level, int) else default


def setup_logging(level: int = logging.INFO, format_string: Optional[str] = None) -> logging.Logger:
    """
    Set up logging for converge.

    Args:
        level: Logging level, overridden by CONVERGE_LOG_LEVEL when set
        format_string: Custom format string (optional)

    Returns:
        The package root logger
    """
    logging.basicConfig(
        level=_level_from_env(level),
        format=format_string or DEFAULT_FORMAT,
        stream=sys.stderr,
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    return logging.getLogger("converge")


def set_verbosity(verbose: bool) -> None:
    """Switch the converge loggers between DEBUG and WARNING for CLI runs."""
    logging.getLogger("converge").setLevel(logging.DEBUG if verbose else logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a specific module."""
    return logging.getLogger(f"converge.{name}")
