"""
Logging Configuration (YAML-first approach)
Author: Drmusab
Last Modified: 2026-10-19 09:20:02 UTC

This module configures the standard library logging system from the
``observability.logging`` section of the YAML configuration. Components obtain
their loggers through ``get_logger`` and never configure handlers themselves.
"""

import json
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any, Dict, Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_FORMATS = {
    "console": DEFAULT_FORMAT,
    "structured": (
        "Time: %(asctime)s | Level: %(levelname)s | Component: %(name)s | Message: %(message)s"
    ),
}


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            log_entry["stack"] = self.formatStack(record.stack_info)

        return json.dumps(log_entry, default=str)


def _create_formatter(format: str) -> logging.Formatter:
    if format == "json":
        return JSONFormatter()
    return logging.Formatter(_FORMATS.get(format, format))


# Component-specific levels applied lazily by get_logger
_component_levels: Dict[str, str] = {}


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name (defaults to caller's module name)

    Returns:
        Logger instance with any configured component level applied
    """
    if name is None:
        import inspect

        frame = inspect.currentframe().f_back
        name = frame.f_globals.get("__name__", "unknown")

    logger = logging.getLogger(name)

    level = _component_levels.get(name)
    if level:
        logger.setLevel(getattr(logging, level.upper()))

    return logger


def setup_logging(
    level: str = "INFO",
    format: str = "console",
    handlers: Optional[list] = None,
    log_file: Optional[str] = None,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
    component_levels: Optional[Dict[str, str]] = None,
) -> None:
    """
    Setup root logging configuration.

    Args:
        level: Log level name
        format: One of ``console``, ``json``, ``structured`` or a raw format string
        handlers: Handler names (``console``, ``file``)
        log_file: Log file path used by the ``file`` handler
        max_bytes: Maximum log file size before rotation
        backup_count: Number of rotated files kept
        component_levels: Per-logger level overrides
    """
    handlers = handlers if handlers is not None else ["console"]
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    log_level = getattr(logging, str(level).upper())
    root_logger.setLevel(log_level)

    formatter = _create_formatter(format)

    if "console" in handlers:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    if "file" in handlers or log_file:
        file_path = log_file or "data/logs/monitor-pprof.log"
        Path(file_path).parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            file_path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    _component_levels.clear()
    _component_levels.update(component_levels or {})
    for name, component_level in _component_levels.items():
        logging.getLogger(name).setLevel(getattr(logging, component_level.upper()))


def configure_logging(logging_config: Optional[Dict[str, Any]] = None) -> None:
    """Configure logging from an ``observability.logging`` config section."""
    logging_config = logging_config or {}

    setup_logging(
        level=logging_config.get("level", "INFO"),
        format=logging_config.get("format", "console"),
        handlers=logging_config.get("handlers", ["console"]),
        log_file=logging_config.get("file"),
        max_bytes=logging_config.get("max_bytes", 10 * 1024 * 1024),
        backup_count=logging_config.get("backup_count", 5),
        component_levels=logging_config.get("component_levels", {}),
    )


__all__ = [
    "get_logger",
    "setup_logging",
    "configure_logging",
    "JSONFormatter",
]
