"""Logging configuration shared by the CLI and the trigger server."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from tagsync.config.models import LoggingSettings

_FILE_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
_HANDLER_MARKER = "_tagsync_handler"


def configure_logging(
    settings: LoggingSettings,
    *,
    log_path: Optional[Path] = None,
    console: Optional[Console] = None,
    quiet: bool = False,
) -> logging.Logger:
    """Attach console and rotating-file handlers to the ``tagsync`` logger.

    Calling this again replaces the handlers installed by a previous call.

    Args:
        settings: Logging section of the configuration.
        log_path: Optional file receiving a rotating copy of the log.
        console: Rich console used for terminal output.
        quiet: Only surface errors on the console.

    Returns:
        logging.Logger: The configured package logger.
    """
    logger = logging.getLogger("tagsync")
    level = logging.getLevelName(settings.level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logger.setLevel(level)

    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            logger.removeHandler(handler)
            handler.close()

    console_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    console_handler.setLevel(logging.ERROR if quiet else level)
    setattr(console_handler, _HANDLER_MARKER, True)
    logger.addHandler(console_handler)

    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=max(1, settings.max_size_mb) * 1024 * 1024,
            backupCount=max(0, settings.backup_count),
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        file_handler.setLevel(level)
        setattr(file_handler, _HANDLER_MARKER, True)
        logger.addHandler(file_handler)

    return logger


__all__ = ["configure_logging"]
