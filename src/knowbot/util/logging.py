from __future__ import annotations

import logging
import sys
from collections.abc import Iterable

import structlog

_HANDLER_NAME = "knowbot"

# SDK loggers that log every HTTP request at INFO
DEFAULT_QUIET_LOGGERS = ("httpx", "openai", "botocore", "urllib3", "sqlalchemy.engine")


def configure_logging(
    json_output: bool = True,
    log_level: str = "INFO",
    quiet_loggers: Iterable[str] = DEFAULT_QUIET_LOGGERS,
) -> None:
    """Route structlog and stdlib records to stderr as JSON or console lines.

    Safe to call more than once: the handler installed by a previous call
    is replaced, not duplicated.  Loggers named in *quiet_loggers* are
    raised to WARNING unless *log_level* is DEBUG.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    )
    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=shared_processors,
        )
    )

    level = getattr(logging, log_level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.handlers = [h for h in root_logger.handlers if h.get_name() != _HANDLER_NAME]
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    if level > logging.DEBUG:
        for name in quiet_loggers:
            logging.getLogger(name).setLevel(logging.WARNING)
