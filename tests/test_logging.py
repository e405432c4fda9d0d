"""Tests for structured logging setup."""

from __future__ import annotations

import json
import logging
from pathlib import Path
import tempfile
import unittest

import structlog

from codebase_chat.logging_utils import configure_logging


def _record(name: str, msg: str, **extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name=name,
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class ConfigureLoggingTests(unittest.TestCase):
    """Validate configure_logging() handler setup behavior."""

    def setUp(self) -> None:
        # Preserve root logger state so tests do not pollute each other.
        root = logging.getLogger()
        self._original_level = root.level
        self._original_handlers = list(root.handlers)

    def tearDown(self) -> None:
        root = logging.getLogger()
        for handler in root.handlers:
            if handler not in self._original_handlers:
                handler.close()
        root.setLevel(self._original_level)
        root.handlers.clear()
        root.handlers.extend(self._original_handlers)

    def _stream_handlers(self) -> list[logging.Handler]:
        return [
            h
            for h in logging.getLogger().handlers
            if isinstance(h, logging.StreamHandler)
            and not isinstance(h, logging.FileHandler)
        ]

    def test_structured_formatter_renders_json_with_extras(self) -> None:
        configure_logging({"level": "INFO", "structured": True})
        handler = self._stream_handlers()[0]
        self.assertIsInstance(handler.formatter, structlog.stdlib.ProcessorFormatter)

        record = _record(
            "codebase_chat.controller",
            "controller.send.failed",
            event="controller.send.failed",
            thread_id="abc123",
            error="offline",
        )
        data = json.loads(handler.format(record))
        self.assertEqual(data["event"], "controller.send.failed")
        self.assertEqual(data["thread_id"], "abc123")
        self.assertEqual(data["error"], "offline")
        self.assertEqual(data["level"], "warning")
        self.assertEqual(data["logger"], "codebase_chat.controller")

    def test_plain_formatter_when_not_structured(self) -> None:
        configure_logging({"level": "DEBUG", "structured": False})
        formatters = [h.formatter for h in logging.getLogger().handlers]
        self.assertFalse(
            any(isinstance(f, structlog.stdlib.ProcessorFormatter) for f in formatters)
        )

    def test_sets_root_level(self) -> None:
        configure_logging({"level": "DEBUG", "structured": False})
        self.assertEqual(logging.getLogger().level, logging.DEBUG)

    def test_noisy_loggers_set_to_warning(self) -> None:
        configure_logging({"level": "DEBUG", "structured": False})
        for name in ("httpx", "httpcore"):
            self.assertEqual(logging.getLogger(name).level, logging.WARNING)

    def test_stderr_handler_only_passes_app_records(self) -> None:
        configure_logging({"level": "DEBUG", "structured": False})
        handler = self._stream_handlers()[0]
        self.assertEqual(handler.level, logging.WARNING)
        self.assertTrue(handler.filter(_record("codebase_chat.gateway", "ok")))
        self.assertFalse(handler.filter(_record("httpx", "noise")))

    def test_file_handler_created(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            log_path = Path(tmp) / "logs" / "app.log"
            configure_logging(
                {
                    "level": "DEBUG",
                    "structured": False,
                    "log_to_file": True,
                    "log_file_path": str(log_path),
                }
            )
            file_handlers = [
                h for h in logging.getLogger().handlers if isinstance(h, logging.FileHandler)
            ]
            self.assertEqual(len(file_handlers), 1)
            self.assertTrue(log_path.exists())
            for handler in file_handlers:
                handler.close()


if __name__ == "__main__":
    unittest.main()
