"""Structured JSON logging for the API, the Celery worker and scripts.

Every entry is a single JSON line on stdout. Context that belongs to the
current request or task is bound through ``structlog.contextvars`` and merged
into each entry:

- request_id, path, method: set by the request-id middleware
- username: the self-declared chat username, once a service knows it
- task_name, task_id: set at the start of each Celery task

Standard-library loggers (uvicorn, celery, sqlalchemy) go through the same
formatter, so their lines carry the same context.

    logger = get_logger(__name__)
    logger.info("message_sent", message_id=42)
"""

import logging
import sys

import structlog
from structlog.contextvars import (
    bind_contextvars,
    clear_contextvars,
    get_contextvars,
    merge_contextvars,
)

QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def _shared_processors() -> list:
    return [
        merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def configure_logging(json_format: bool = True, level: int = logging.INFO) -> None:
    """Route structlog and stdlib logging through one stdout handler.

    ``json_format=False`` switches to structlog's console renderer for local runs.
    """
    shared = _shared_processors()
    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer = (
        structlog.processors.JSONRenderer() if json_format else structlog.dev.ConsoleRenderer()
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def _bind(**values: str | None) -> None:
    bind_contextvars(**{key: value for key, value in values.items() if value})


def set_request_context(
    request_id: str | None, path: str | None = None, method: str | None = None
) -> None:
    """Start a fresh log context for an HTTP request."""
    clear_contextvars()
    _bind(request_id=request_id, path=path, method=method)


def set_username(username: str | None) -> None:
    """Tag the rest of this request's entries with the acting chat user."""
    _bind(username=username)


def get_request_id() -> str | None:
    """Request ID of the current context, copied into error bodies."""
    return get_contextvars().get("request_id")


def clear_request_context() -> None:
    clear_contextvars()


def configure_task_logging(task_name: str, task_id: str | None = None) -> None:
    """Start a fresh log context for a Celery task run."""
    clear_contextvars()
    _bind(task_name=task_name, task_id=task_id)


def clear_task_context() -> None:
    clear_contextvars()
