"""
Structured logging for pagesnap.

structlog renders every event as JSON (log files, scheduled runs) or as
colored console lines (interactive use). Capture runs bind ``url`` and
``capture_id`` through LogContext so every event of a run can be grouped.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from src.utils.config import get_settings, resolve_path

# Longest string value written for a single event field
MAX_FIELD_LENGTH = 500


def _truncate_long_fields(
    logger: logging.Logger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Keep page text or markup accidentally passed as a field from flooding logs."""
    for key, value in event_dict.items():
        if key != "event" and isinstance(value, str) and len(value) > MAX_FIELD_LENGTH:
            event_dict[key] = value[:MAX_FIELD_LENGTH] + f"...(+{len(value) - MAX_FIELD_LENGTH})"
    return event_dict


def _default_log_file() -> Path:
    settings = get_settings()
    log_dir = resolve_path(settings.general.logs_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir / f"pagesnap_{datetime.now().strftime('%Y%m%d')}.log"


def configure_logging(
    log_level: str | None = None,
    log_file: str | Path | None = None,
    json_format: bool | None = None,
) -> None:
    """Configure structlog on top of stdlib logging.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR. Uses settings if None.
        log_file: Log file path. Defaults to logs/pagesnap_YYYYMMDD.log.
        json_format: JSON lines (True) or console rendering (False).
            Uses settings if None.
    """
    settings = get_settings()
    log_level = log_level or settings.general.log_level
    if json_format is None:
        json_format = settings.general.log_json
    log_file = log_file or _default_log_file()

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level.upper(), logging.INFO),
        handlers=[
            logging.StreamHandler(sys.stderr),
            logging.FileHandler(log_file, encoding="utf-8"),
        ],
        force=True,
    )

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _truncate_long_fields,
        structlog.processors.StackInfoRenderer(),
    ]
    if json_format:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a logger instance (usually ``get_logger(__name__)``)."""
    return structlog.get_logger(name)


class LogContext:
    """Bind context variables for the duration of a block.

    Previous values of the same keys are restored on exit, so contexts
    can be nested.

    Example:
        with LogContext(url="https://example.com", capture_id="..."):
            logger.info("Capture started")
    """

    def __init__(self, **kwargs: Any):
        self.context = kwargs
        self._tokens: dict[str, Any] = {}

    def __enter__(self) -> "LogContext":
        self._tokens = structlog.contextvars.bind_contextvars(**self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        structlog.contextvars.reset_contextvars(**self._tokens)
        self._tokens = {}
