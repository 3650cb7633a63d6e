"""Logging configuration using loguru.

Intercepts stdlib logging so that httpx, httpcore, anyio, etc. all flow
through loguru with a unified format.  Records emitted while a pass holds an
entity (see ``InflightRegistry.claim``) carry ``extra["entity"]`` as
``kind/id`` and the console format appends it.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

from loguru import logger

_BASE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


class _InterceptHandler(logging.Handler):
    """Bridge stdlib logging records into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame = logging.currentframe()
        depth = 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def format_record(record: dict[str, Any]) -> str:
    """Console format: the entity under reconciliation, when there is one."""
    if "entity" in record["extra"]:
        return _BASE_FORMAT + " <magenta>[{extra[entity]}]</magenta>\n{exception}"
    return _BASE_FORMAT + "\n{exception}"


def setup_logging(level: str = "INFO", *, serialize: bool = False) -> None:
    """Configure loguru as the sole logging sink, on stderr.

    stdout stays reserved for command output.  With *serialize* every record
    is written as one JSON object per line instead of the console format.
    """
    level = level.upper()

    logger.remove()
    if serialize:
        logger.add(sys.stderr, level=level, serialize=True)
    else:
        logger.add(sys.stderr, level=level, format=format_record)

    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)

    # Request lines would otherwise duplicate the engine's own call logging.
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.debug("Logging initialised (level={}, serialize={})", level, serialize)
