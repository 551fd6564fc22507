"""Logging configuration tests."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.logging import RichHandler

from clipstash.config.models import LoggingSettings
from clipstash.logs import configure_logging


def test_configure_logging_installs_console_and_file_handlers(tmp_path: Path) -> None:
    log_path = tmp_path / "logs" / "clipstash.log"

    logger = configure_logging(LoggingSettings(level="INFO", max_size_mb=2, backup_count=3), log_path)

    handlers = logger.handlers
    assert any(isinstance(handler, RichHandler) for handler in handlers)
    file_handlers = [handler for handler in handlers if isinstance(handler, RotatingFileHandler)]
    assert len(file_handlers) == 1
    assert file_handlers[0].maxBytes == 2 * 1024 * 1024
    assert file_handlers[0].backupCount == 3

    logging.getLogger("clipstash.tests").info("written to file")
    file_handlers[0].flush()
    assert "written to file" in log_path.read_text(encoding="utf-8")


def test_configure_logging_is_idempotent(tmp_path: Path) -> None:
    settings = LoggingSettings(file_logging=False)

    configure_logging(settings, tmp_path / "unused.log")
    logger = configure_logging(settings, tmp_path / "unused.log", level_override="debug")

    assert len(logger.handlers) == 1
    assert logger.level == logging.DEBUG
    assert not (tmp_path / "unused.log").exists()
