"""guildwatch logging configuration.

guildwatch logs through `structlog` on top of the stdlib `logging` module, so
third-party libraries (discord.py, uvicorn, httpx) share the same handler.
Call sites use printf-style arguments or key/value context interchangeably:

    logger.info("Loaded %d communities", count, agent="Observer")
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional

import structlog

DEFAULT_LOG_LEVEL = "INFO"

_SHARED_PROCESSORS: list[structlog.types.Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
]


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger bound to the given module name."""
    return structlog.stdlib.get_logger(name)


def setup_logging(level: Optional[str] = None) -> None:
    """Configure guildwatch logging.

    Args:
        level: Optional override for `GUILDWATCH_LOG_LEVEL`.
    """
    if level:
        os.environ["GUILDWATCH_LOG_LEVEL"] = level
    level_name = os.getenv("GUILDWATCH_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()

    if os.getenv("GUILDWATCH_LOG_FORMAT", "").lower() == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            *_SHARED_PROCESSORS,
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_SHARED_PROCESSORS,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level_name)

    # discord.py logs every gateway heartbeat at INFO
    logging.getLogger("discord").setLevel(max(root.level, logging.WARNING))
