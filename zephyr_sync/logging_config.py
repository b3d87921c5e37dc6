"""structlog configuration for the Lambda runtime and local runs."""

import logging

import structlog
from decouple import config


def configure_logging(level: str | None = None, log_format: str | None = None) -> None:
    """Configure structlog to render through the standard logging module."""
    level = (level or config("LOG_LEVEL", default="INFO")).upper()
    log_format = log_format or config("LOG_FORMAT", default="json")

    renderer = (
        structlog.dev.ConsoleRenderer() if log_format == "console" else structlog.processors.JSONRenderer()
    )
    logging.basicConfig(format="%(message)s", level=level)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
