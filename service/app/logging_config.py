"""structlog setup for the matching service.

Everything goes through stdlib logging so uvicorn and library records share
one renderer. Scoring traces use their own logger, TRACE_LOGGER, which is
silent unless MATCHING_TRACE=1 or the root level is DEBUG.
"""

import logging
import os
import sys

import structlog

TRACE_LOGGER = "app.matching.trace"

_QUIET_LOGGERS = ("uvicorn.access", "httpx")


def _renderer(fmt: str):
    if fmt == "console":
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer()


def setup_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Configure structlog; LOG_LEVEL and LOG_FORMAT (json|console) apply by default."""
    log_level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    log_format = (fmt or os.environ.get("LOG_FORMAT", "json")).lower()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(log_format),
        ],
    ))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level, logging.INFO))

    if os.environ.get("MATCHING_TRACE", "").lower() in ("1", "true", "yes"):
        logging.getLogger(TRACE_LOGGER).setLevel(logging.DEBUG)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
