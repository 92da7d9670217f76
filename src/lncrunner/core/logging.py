"""
Structured logging for the API process and its job tasks.

structlog renders both its own events and stdlib ``logging`` records through a
single processor chain. Context bound with ``bind_context`` is stored in
contextvars: the request middleware binds ``request_id`` and every job task
binds ``job_id``, and asyncio copies the context into each task so the two
never leak into one another.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import Processor

# Container stdout/stderr is relayed line by line under this logger
PIPELINE_OUTPUT_LOGGER = "lncrunner.executor"

# Third-party loggers that only add noise at INFO
QUIET_LOGGERS = ("uvicorn.access", "multipart", "asyncio")


def setup_logging(
    level: str = "INFO",
    json_format: bool = False,
    pipeline_output_level: str | None = None,
) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        level: Root log level
        json_format: One JSON object per line (production) instead of the
            coloured console renderer
        pipeline_output_level: Level for relayed container output; defaults
            to ``level``
    """
    shared_processors: list[Processor] = [
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())

    if pipeline_output_level:
        logging.getLogger(PIPELINE_OUTPUT_LOGGER).setLevel(pipeline_output_level.upper())

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Attach key/values to every later event in the current context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
