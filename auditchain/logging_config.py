"""
Structured logging for the audit trail.

Capture, resolver and verifier logs carry the principal id as trace_id, so
every record about one chain can be pulled out of the log stream with a
single filter.

Environment Variables:
    AUDITCHAIN_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR, CRITICAL - default: INFO
    AUDITCHAIN_LOG_FORMAT: json or text - default: json

Usage:
    from auditchain.logging_config import setup_logging, get_logger

    setup_logging()
    log = get_logger(__name__, trace_id="user-1")
    log.warning("Chain integrity violation")
"""

import logging
import os
import sys
from typing import Optional, TextIO

from pythonjsonlogger import jsonlogger

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# AWS SDK and HTTP internals log every request at DEBUG
NOISY_LOGGERS = ("urllib3", "botocore", "boto3", "s3transfer")


def _build_formatter(log_format: str) -> logging.Formatter:
    if log_format == "text":
        return logging.Formatter(
            "%(asctime)s %(levelname)-8s %(name)s [%(trace_id)s] %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    return jsonlogger.JsonFormatter(
        "%(asctime)s %(name)s %(levelname)s %(message)s %(trace_id)s",
        rename_fields={"asctime": "timestamp", "name": "logger", "levelname": "level"},
    )


def setup_logging(level: Optional[str] = None, fmt: Optional[str] = None, stream: Optional[TextIO] = None) -> None:
    """
    Replace the root handlers with one structured stream handler.

    level and fmt override AUDITCHAIN_LOG_LEVEL / AUDITCHAIN_LOG_FORMAT;
    unknown values fall back to INFO / json. stream defaults to stdout.
    """
    resolved = _LEVELS.get((level or os.getenv("AUDITCHAIN_LOG_LEVEL", "INFO")).upper(), logging.INFO)
    log_format = (fmt or os.getenv("AUDITCHAIN_LOG_FORMAT", "json")).lower()

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(resolved)
    handler.addFilter(TraceIDFilter())
    handler.setFormatter(_build_formatter(log_format))

    root_logger = logging.getLogger()
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(resolved)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved, logging.WARNING))


def get_logger(name: str, trace_id: Optional[str] = None) -> logging.LoggerAdapter:
    """
    Logger bound to a trace id (the principal whose chain is being touched).

    Records emitted without one get trace_id "N/A" from TraceIDFilter.
    """
    return logging.LoggerAdapter(logging.getLogger(name), {"trace_id": trace_id or "N/A"})


class TraceIDFilter(logging.Filter):
    """Ensures every record has a trace_id attribute for the formatters."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "trace_id"):
            record.trace_id = "N/A"  # type: ignore
        return True
