"""
Structured logging configuration using structlog.

structlog events and plain stdlib records (uvicorn, SQLAlchemy) share one
handler and one renderer: human-readable in development, JSON lines elsewhere.
"""

import logging
import sys
from typing import cast

import structlog
from structlog.types import Processor

from credstore.core.config import Settings, get_settings

# Applied to structlog events and to foreign stdlib records alike
_SHARED_PROCESSORS: list[Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso"),
]


def build_formatter(settings: Settings) -> structlog.stdlib.ProcessorFormatter:
    """Formatter that renders every record for the configured environment."""
    final: list[Processor] = [structlog.stdlib.ProcessorFormatter.remove_processors_meta]
    if settings.environment == "development":
        final.append(structlog.dev.ConsoleRenderer(colors=True))
    else:
        final += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]

    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_SHARED_PROCESSORS,
        processors=final,
    )


def configure_logging() -> None:
    """
    Configure structured logging for the service.

    Installs a single stdout handler on the root logger. Every line carries
    the bound ``request_id`` when emitted inside a request.
    """
    settings = get_settings()

    structlog.configure(
        processors=_SHARED_PROCESSORS + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(build_formatter(settings))
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(settings.log_level)

    # Access lines come from RequestLoggingMiddleware
    logging.getLogger("uvicorn.access").handlers.clear()
    logging.getLogger("uvicorn.access").propagate = False


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance with the given name."""
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))
