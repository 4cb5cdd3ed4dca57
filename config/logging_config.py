"""Structured JSON logging configuration using structlog."""

import logging
import sys

import structlog

_configured_level: str | None = None


def configure_logging(component: str, level: str = "INFO", **context) -> structlog.BoundLogger:
    """Configure structlog with JSON output and return a bound logger for the component.

    The pipeline creates loggers per component (tracker, scheduler, dashboard...),
    so the global configuration is only rebuilt when the level changes.
    """
    global _configured_level
    if _configured_level != level.upper():
        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.dev.set_exc_info,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(
                getattr(logging, level.upper(), logging.INFO)
            ),
            context_class=dict,
            # Telemetry must never write into the host application's stdout.
            logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
            cache_logger_on_first_use=False,
        )
        _configured_level = level.upper()
    return structlog.get_logger(component=component, **context)
