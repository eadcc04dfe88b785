"""
Structured logging configuration using structlog.

JSON lines for the API server and scheduled fetch runs, colored console
output when running at DEBUG level or from the CLI.
"""

import logging
import sys
from typing import Optional, TextIO

import structlog

from .config import settings

# Third-party loggers that flood INFO with per-request noise
NOISY_LOGGERS = (
    "uvicorn.access",
    "httpcore",
    "httpx",
    "aiosqlite",
    "sqlalchemy.engine",
)


def setup_logging(
    log_level: Optional[str] = None,
    console: Optional[bool] = None,
    stream: Optional[TextIO] = None,
) -> None:
    """Route structlog and stdlib logging through one handler.

    Args:
        log_level: Override log level (default: from settings.log_level)
        console: Force the console renderer (default: only at DEBUG)
        stream: Output stream (default: stdout)
    """
    level = getattr(logging, (log_level or settings.log_level).upper(), logging.INFO)
    use_console = level == logging.DEBUG if console is None else console

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if use_console:
        renderer = structlog.dev.ConsoleRenderer()
    else:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Plain logging.getLogger() records (the news pipeline) get the same rendering
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
