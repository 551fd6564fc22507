"""Logging setup for the clipstash CLI."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from clipstash.config.models import LoggingSettings

ROOT_LOGGER_NAME = "clipstash"
_HANDLER_MARKER = "_clipstash_handler"


def configure_logging(
    settings: LoggingSettings,
    log_path: Optional[Path] = None,
    *,
    level_override: Optional[str] = None,
) -> logging.Logger:
    """Attach console and rotating-file handlers to the ``clipstash`` logger.

    Handlers installed by a previous call are replaced, so calling this more
    than once does not duplicate output.

    Args:
        settings: Logging section of the configuration.
        log_path: Destination of the rotating log file; ignored when file
            logging is disabled.
        level_override: Level name taking precedence over ``settings.level``.

    Returns:
        logging.Logger: The configured package logger.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            logger.removeHandler(handler)
            handler.close()

    level_name = (level_override or settings.level).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.WARNING
    logger.setLevel(level)

    console_handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    console_handler.setLevel(level)
    _mark(console_handler)
    logger.addHandler(console_handler)

    if settings.file_logging and log_path is not None:
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_path,
                maxBytes=max(1, settings.max_size_mb) * 1024 * 1024,
                backupCount=max(0, settings.backup_count),
                encoding="utf-8",
            )
        except OSError as exc:
            logger.warning("File logging disabled; cannot open %s: %s", log_path, exc)
        else:
            file_handler.setFormatter(
                logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
            )
            file_handler.setLevel(logging.DEBUG if level <= logging.DEBUG else logging.INFO)
            _mark(file_handler)
            logger.addHandler(file_handler)
            # The file handler may be more verbose than the console.
            logger.setLevel(min(level, file_handler.level))

    logger.propagate = False
    return logger


def _mark(handler: logging.Handler) -> None:
    setattr(handler, _HANDLER_MARKER, True)


__all__ = ["configure_logging", "ROOT_LOGGER_NAME"]
