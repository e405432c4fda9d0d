"""Logging bootstrap utilities with optional structured output."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import structlog

APP_LOGGER_PREFIX = "codebase_chat"

_STANDARD_LOG_ATTRS = {
    "args",
    "asctime",
    "created",
    "exc_info",
    "exc_text",
    "filename",
    "funcName",
    "levelname",
    "levelno",
    "lineno",
    "module",
    "msecs",
    "message",
    "msg",
    "name",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "stack_info",
    "taskName",
    "thread",
    "threadName",
}


def _best_effort_private_permissions(path: Path) -> None:
    if os.name != "posix":
        return
    try:
        path.chmod(0o600)
    except OSError:
        logging.getLogger(__name__).warning(
            "Unable to enforce 0600 permissions for %s", path
        )


def _app_only_filter(record: logging.LogRecord) -> bool:
    return record.name.startswith(APP_LOGGER_PREFIX)


def _merge_record_extras(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Copy ``extra={...}`` fields from stdlib records into the event dict."""
    record = event_dict.get("_record")
    if record is None:
        return event_dict
    for key, value in record.__dict__.items():
        if key in _STANDARD_LOG_ATTRS or key.startswith("_") or key in event_dict:
            continue
        event_dict[key] = value
    return event_dict


def _build_handlers(
    formatter: logging.Formatter, level: int, log_to_file: bool, log_file_path: str
) -> list[logging.Handler]:
    handlers: list[logging.Handler] = []

    stderr_handler = logging.StreamHandler()
    stderr_handler.setLevel(max(level, logging.WARNING))
    stderr_handler.setFormatter(formatter)
    stderr_handler.addFilter(_app_only_filter)
    handlers.append(stderr_handler)

    if log_to_file:
        target = Path(log_file_path).expanduser()
        target.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(target, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)
        _best_effort_private_permissions(target)
    return handlers


def configure_logging(logging_config: dict[str, Any]) -> None:
    """Configure root logging according to app config using structlog."""
    level_name = str(logging_config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)
    structured = bool(logging_config.get("structured", True))
    log_to_file = bool(logging_config.get("log_to_file", False))
    log_file_path = str(logging_config.get("log_file_path", "app.log"))

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    formatter: logging.Formatter
    if structured:
        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.stdlib.filter_by_level,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.TimeStamper(fmt="iso", utc=True),
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        formatter = structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(
                ensure_ascii=False, separators=(",", ":")
            ),
            foreign_pre_chain=[
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.processors.TimeStamper(fmt="iso", utc=True),
                _merge_record_extras,
            ],
        )
    else:
        formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")

    for handler in _build_handlers(formatter, level, log_to_file, log_file_path):
        root.addHandler(handler)

    for logger_name in ("httpx", "httpcore"):
        library_logger = logging.getLogger(logger_name)
        library_logger.setLevel(logging.WARNING)
        library_logger.propagate = True
