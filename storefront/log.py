"""
Logging setup — structlog.

Modules log through `structlog.get_logger(__name__)`; applications call
`configure_logging()` once at startup.
"""

from __future__ import annotations

import logging
import sys

import structlog

from storefront.config import Settings


def configure_logging(settings: Settings | None = None) -> None:
    """Install console (dev) or JSON rendering at the configured level."""
    settings = settings or Settings()
    level = logging.getLevelNamesMapping().get(settings.log_level.upper(), logging.INFO)

    renderer: structlog.typing.Processor = (
        structlog.processors.JSONRenderer()
        if settings.log_json
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


__all__ = ("configure_logging",)
