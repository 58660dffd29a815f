"""
voice-cache structured logging.

Numeric levels (1-4), colored console output, optional JSONL file
output with rotation, and a request id carried through contextvars.

Configuration:
    export VOICE_CACHE_LOG_LEVEL=3   # VERBOSE
    export VOICE_CACHE_NO_COLOR=1

    settings.yaml:
        logging:
          level: 2
          log_dir: logs
          jsonl_file: voice-cache.jsonl

Usage:
    from voice_cache.core.logging import get_logger, info, warn

    log = get_logger("voice-cache.store")
    info(log, "entry_written", owner_id="msg_42", bytes=10240)
    verbose(log, "blob_read", key="5a2b...", seconds=0.004)
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

from . import colors
from .colors import Colors, colorize, get_tag_color, supports_color
from .context import get_level, get_request_id, read_logging_config, set_level, set_request_id
from .formatters import ColoredConsoleFormatter, JsonlFormatter
from .levels import LEVEL_MAP, LogLevel, coerce_level

_configured = False


def configure_logging(level: Optional[int | str | LogLevel] = None, force: bool = False) -> None:
    """
    Install console (and optional JSONL file) handlers on the root logger.

    Args:
        level: Log level (1-4, level name, or LogLevel enum)
        force: Reconfigure even if logging was already set up
    """
    global _configured
    if _configured and not force:
        return

    colors.USE_COLORS = supports_color()
    options = read_logging_config()

    active = coerce_level(level or options.get("level", LogLevel.NORMAL))
    set_level(active)

    root = logging.getLogger()
    root.setLevel(LEVEL_MAP[LogLevel.DEBUG])
    root.handlers = []

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(LEVEL_MAP.get(active, logging.INFO))
    console.setFormatter(ColoredConsoleFormatter())
    root.addHandler(console)

    log_dir = options.get("log_dir")
    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        jsonl = RotatingFileHandler(
            Path(log_dir) / str(options.get("jsonl_file", "voice-cache.jsonl")),
            maxBytes=int(options.get("rotate_max_bytes", 10 * 1024 * 1024)),
            backupCount=int(options.get("rotate_backup_count", 5)),
            encoding="utf-8",
            delay=True,
        )
        jsonl.setLevel(LEVEL_MAP[LogLevel.DEBUG])
        jsonl.setFormatter(JsonlFormatter())
        root.addHandler(jsonl)

    _configured = True


def get_logger(name: str = "voice-cache") -> logging.Logger:
    """Get a logger instance, configuring logging if needed."""
    configure_logging()
    return logging.getLogger(name)


def _emit(logger: logging.Logger, py_level: int, tag: str, level: LogLevel, msg: str, fields: dict) -> None:
    if level > get_level():
        return
    event = fields.pop("event", None)
    seconds = fields.pop("seconds", None)
    logger.log(
        py_level,
        msg,
        extra={
            "tag": tag,
            "request_id": get_request_id(),
            "event": event,
            "seconds": seconds,
            "extra_data": fields or None,
            "numeric_level": int(level),
        },
    )


def info(logger: logging.Logger, msg: str, **fields: Any) -> None:
    _emit(logger, logging.INFO, "INFO", LogLevel.NORMAL, msg, fields)


def warn(logger: logging.Logger, msg: str, **fields: Any) -> None:
    _emit(logger, logging.WARNING, "WARN", LogLevel.NORMAL, msg, fields)


def error(logger: logging.Logger, msg: str, **fields: Any) -> None:
    _emit(logger, logging.ERROR, "ERROR", LogLevel.MINIMAL, msg, fields)


def success(logger: logging.Logger, msg: str, **fields: Any) -> None:
    _emit(logger, logging.INFO, "SUCCESS", LogLevel.NORMAL, msg, fields)


def fail(logger: logging.Logger, msg: str, **fields: Any) -> None:
    _emit(logger, logging.ERROR, "FAIL", LogLevel.MINIMAL, msg, fields)


def verbose(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Per-step detail: store reads and writes, timings."""
    _emit(logger, logging.DEBUG, "INFO", LogLevel.VERBOSE, msg, fields)


def debug(logger: logging.Logger, msg: str, **fields: Any) -> None:
    _emit(logger, LEVEL_MAP[LogLevel.DEBUG], "DEBUG", LogLevel.DEBUG, msg, fields)


__all__ = [
    "LogLevel",
    "coerce_level",
    "Colors",
    "colorize",
    "get_tag_color",
    "supports_color",
    "get_request_id",
    "set_request_id",
    "get_level",
    "read_logging_config",
    "JsonlFormatter",
    "ColoredConsoleFormatter",
    "configure_logging",
    "get_logger",
    "info",
    "warn",
    "error",
    "success",
    "fail",
    "verbose",
    "debug",
]
