"""structlog configuration and conversation-scoped log context."""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager

import structlog


def setup_logging(level: str = "INFO", fmt: str = "console") -> None:
    """Configure structlog for the CLI and embedding services.

    ``fmt="json"`` emits one JSON object per line for log shippers; anything
    else renders human-readable console output on stderr.
    """
    renderer = (
        structlog.processors.JSONRenderer(ensure_ascii=False)
        if fmt == "json"
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info if fmt == "json" else structlog.dev.set_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level.upper(), logging.INFO)),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


@contextmanager
def conversation_context(conversation_id: str, **extra: object) -> Iterator[None]:
    """Tag every log line emitted inside the block with the conversation id."""
    structlog.contextvars.bind_contextvars(conversation_id=conversation_id, **extra)
    try:
        yield
    finally:
        structlog.contextvars.unbind_contextvars("conversation_id", *extra)
