"""Configure loguru and format engine objects for log output."""

from __future__ import annotations

import json
import sys
from typing import Any, TextIO

from loguru import logger

from .constants import DEFAULT_LOG_LEVEL

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{module}</cyan>:<cyan>{line}</cyan>\n"
    "{message}"
)


def configure_logging(level: str = DEFAULT_LOG_LEVEL, sink: TextIO | Any = None) -> int:
    """Configure the loguru logger with the specified level.

    Args:
        level: Minimum level name (``DEBUG``, ``INFO``...).
        sink: Destination for log records; defaults to ``sys.stderr``.

    Returns:
        The loguru handler id of the installed sink.
    """
    logger.remove()
    return logger.add(
        sink if sink is not None else sys.stderr,
        level=str(level or DEFAULT_LOG_LEVEL).upper(),
        format=LOG_FORMAT,
    )


def pretty(obj: Any, *, indent: int = 2) -> str:
    """Serialize an object as JSON for readable logs.

    Args:
        obj: Object to serialize.
        indent: Indentation level for JSON output.

    Returns:
        A JSON string when possible; otherwise `str(obj)`.
    """
    try:
        return json.dumps(obj, indent=indent, default=str)
    except (TypeError, ValueError):
        return str(obj)
