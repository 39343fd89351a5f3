"""Structured logging configuration using structlog.

Every log entry carries the request context bound by the request-id
middleware (request_id, path, method, and viewer_id once authenticated)
plus any TOC context a service binds for the duration of a mutation
(version_id, node_id). Context lives in structlog's contextvars, so it
follows the request across sync route handlers run in the threadpool.

UUID values may be passed straight to log calls; they are rendered as
strings.

Usage:
    from folio.logging import get_logger, configure_logging

    # Configure once at startup
    configure_logging()

    # Get a logger for a module
    logger = get_logger(__name__)
    logger.info("toc_node_created", node_id=node.id)
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any
from uuid import UUID

import structlog
from structlog.contextvars import (
    bind_contextvars,
    bound_contextvars,
    clear_contextvars,
    get_contextvars,
    merge_contextvars,
)


def stringify_ids(logger: logging.Logger, method_name: str, event_dict: dict) -> dict:
    """Render UUID values (and lists of them) as plain strings."""
    for key, value in event_dict.items():
        if isinstance(value, UUID):
            event_dict[key] = str(value)
        elif isinstance(value, list | tuple) and value and isinstance(value[0], UUID):
            event_dict[key] = [str(v) for v in value]
    return event_dict


def configure_logging(json_format: bool = True, level: str = "INFO") -> None:
    """Configure structlog and stdlib logging for the application.

    Args:
        json_format: If True, output JSON logs. If False, output console-friendly logs.
        level: Root log level name.
    """
    shared_processors = [
        merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        stringify_ids,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    renderer = (
        structlog.processors.JSONRenderer() if json_format else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Stdlib loggers (auth, users, uvicorn) share the structlog pipeline
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger for the given name (typically __name__)."""
    return structlog.get_logger(name)


def set_request_context(
    request_id: str | None,
    viewer_id: str | None = None,
    path: str | None = None,
    method: str | None = None,
) -> None:
    """Bind request context for the rest of the current request.

    None values are skipped, so later calls can add the viewer without
    repeating the path and method.
    """
    values = {"request_id": request_id, "viewer_id": viewer_id, "path": path, "method": method}
    bind_contextvars(**{k: v for k, v in values.items() if v is not None})


def clear_request_context() -> None:
    """Drop all request-scoped context at the end of a request."""
    clear_contextvars()


def get_request_id() -> str | None:
    """Get the current request ID from context."""
    return get_contextvars().get("request_id")


@contextmanager
def toc_context(**ids: Any) -> Iterator[None]:
    """Bind TOC identifiers (version_id, node_id, ...) for a block.

    Usage:
        with toc_context(version_id=version_id):
            logger.info("toc_container_reordered", batch_size=3)
    """
    with bound_contextvars(**{k: str(v) for k, v in ids.items() if v is not None}):
        yield
