"""Logging setup for the hotseat host process.

Application code runs under a per-generation module prefix, so its loggers
are named like ``hotseat.contexts.g7.blog.controllers.Home``. The handlers
installed here strip that prefix and tag each record with an ``origin``:
the generation (``g7``) for application records, ``host`` for everything else.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING

from .errors import ConfigError
from .loader import CONTEXT_PREFIX

if TYPE_CHECKING:
    from hotseat.config import LoggingConfig

FILE_FORMAT = "%(asctime)s %(levelname)-8s [%(origin)s] %(threadName)s %(name)s: %(message)s"
CONSOLE_FORMAT = "%(levelname)s [%(origin)s] %(message)s"
MAIN_LOG_NAME = "hotseat.log"
DEBUG_LOG_NAME = "debug.log"
HOST_ORIGIN = "host"


class ContextOriginFilter(logging.Filter):
    """Attribute records to the execution context that emitted them."""

    def filter(self, record: logging.LogRecord) -> bool:
        # several handlers share one record; tag it once
        if getattr(record, "origin", None) is not None:
            return True
        record.origin = HOST_ORIGIN
        marker = f"{CONTEXT_PREFIX}."
        if record.name.startswith(marker):
            generation, _, name = record.name[len(marker) :].partition(".")
            record.origin = generation
            if name:
                record.name = name
        return True


class ConsoleFormatter(logging.Formatter):
    """Single-line console output; warnings and errors coloured on terminals."""

    COLORS = {
        logging.WARNING: "\x1b[33m",
        logging.ERROR: "\x1b[31m",
        logging.CRITICAL: "\x1b[1;31m",
    }
    RESET = "\x1b[0m"

    def __init__(self, use_color: bool) -> None:
        super().__init__(CONSOLE_FORMAT, defaults={"origin": HOST_ORIGIN})
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        color = self.COLORS.get(record.levelno) if self.use_color else None
        return f"{color}{line}{self.RESET}" if color else line


def configure_logging(logging_config: LoggingConfig, root_dir: Path) -> Path:
    """Install file and console handlers; return the log directory."""

    level = level_from_string(logging_config.level)
    log_dir = (root_dir / "logs").expanduser()
    log_dir.mkdir(parents=True, exist_ok=True)

    stream = sys.stderr
    console = logging.StreamHandler(stream)
    console.setFormatter(ConsoleFormatter(bool(getattr(stream, "isatty", lambda: False)())))
    handlers: list[logging.Handler] = [console, _file_handler(log_dir / MAIN_LOG_NAME, logging.INFO)]
    if logging_config.debug_file:
        handlers.append(_file_handler(log_dir / DEBUG_LOG_NAME, logging.DEBUG))
    origin = ContextOriginFilter()
    for handler in handlers:
        handler.addFilter(origin)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    # observer threads are chatty at debug level
    logging.getLogger("watchdog").setLevel(max(level, logging.INFO))
    return log_dir


def level_from_string(level: str) -> int:
    """Map a configured level name (any case, ``warn`` accepted) to its number."""

    try:
        return logging.getLevelNamesMapping()[level.strip().upper()]
    except KeyError as exc:
        raise ConfigError(f"Unknown log level: {level}") from exc


def _file_handler(path: Path, level: int) -> logging.Handler:
    handler = RotatingFileHandler(path, maxBytes=5_000_000, backupCount=5, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, defaults={"origin": HOST_ORIGIN}))
    return handler


__all__ = ["ContextOriginFilter", "configure_logging", "level_from_string"]
