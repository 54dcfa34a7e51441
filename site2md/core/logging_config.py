"""Structured logging configuration.

Supports two modes via LOG_FORMAT env var:
- "json": JSON-formatted log lines with the current URL
- "text" (default): Human-readable log lines
"""

import logging
import sys

from pythonjsonlogger.json import JsonFormatter

from site2md.core.context import get_current_url

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(url)s] %(message)s"

# Third-party loggers that are chatty at INFO/DEBUG
NOISY_LOGGERS = ("httpx", "httpcore", "readability", "readability.readability")


class CurrentURLFilter(logging.Filter):
    """Inject the URL being processed into every log record."""

    def filter(self, record):
        record.url = get_current_url() or "-"
        return True


def configure_logging(
    log_format: str = "text", log_level: str = "INFO", stream=None
):
    """Configure root logger with the specified format.

    Args:
        log_format: "json" or "text"
        log_level: Python log level name
        stream: Output stream (stdout by default; the CLI passes stderr so
            results on stdout stay clean)
    """
    root = logging.getLogger()
    root.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.addFilter(CurrentURLFilter())

    if log_format == "json":
        formatter = JsonFormatter(
            fmt="%(asctime)s %(name)s %(levelname)s %(message)s %(url)s",
            rename_fields={
                "levelname": "level",
                "name": "logger",
                "asctime": "timestamp",
            },
        )
    else:
        formatter = logging.Formatter(TEXT_FORMAT)

    handler.setFormatter(formatter)
    root.addHandler(handler)
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
