"""
Logging context and process-wide logging state.

The request id lives in a ContextVar so it follows a request across
asyncio tasks and threads started from a copied context. The active
level is module-level state shared by the whole process.

Environment overrides:
    VOICE_CACHE_LOG_LEVEL          level (1-4 or name)
    VOICE_CACHE_LOG_DIR            directory for the JSONL file
    VOICE_CACHE_JSONL_FILE         JSONL filename
    VOICE_CACHE_LOG_ROTATE_BYTES   rotate size
    VOICE_CACHE_LOG_ROTATE_BACKUP  rotated files to keep
"""
from __future__ import annotations

import os
from contextvars import ContextVar
from typing import Any, Dict

import yaml

from .levels import LogLevel

_request_id: ContextVar[str] = ContextVar("request_id", default="-")
_current_level: LogLevel = LogLevel.NORMAL


def get_request_id() -> str:
    """Return the request id of the current context, or "-"."""
    return _request_id.get()


def set_request_id(rid: str) -> None:
    _request_id.set(rid)


def get_level() -> LogLevel:
    return _current_level


def set_level(level: LogLevel) -> None:
    global _current_level
    _current_level = level

def _env_int(name: str) -> int | None:
    raw = os.getenv(name)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def read_logging_config() -> Dict[str, Any]:
    """
    Resolve logging options from settings.yaml and the environment.

    Environment variables win over the settings file. A missing or
    unreadable settings file yields an empty base config.
    """
    cfg: Dict[str, Any] = {}

    from voice_cache.core.config import load_settings, settings_path
    try:
        settings = load_settings(settings_path())
        cfg.update(settings.raw.get("logging", {}) or {})
    except (OSError, ValueError, yaml.YAMLError):
        pass

    if os.getenv("VOICE_CACHE_LOG_LEVEL"):
        cfg["level"] = os.environ["VOICE_CACHE_LOG_LEVEL"]
    if os.getenv("VOICE_CACHE_LOG_DIR"):
        cfg["log_dir"] = os.environ["VOICE_CACHE_LOG_DIR"]
    if os.getenv("VOICE_CACHE_JSONL_FILE"):
        cfg["jsonl_file"] = os.environ["VOICE_CACHE_JSONL_FILE"]

    rotate_bytes = _env_int("VOICE_CACHE_LOG_ROTATE_BYTES")
    if rotate_bytes is not None:
        cfg["rotate_max_bytes"] = rotate_bytes
    rotate_backup = _env_int("VOICE_CACHE_LOG_ROTATE_BACKUP")
    if rotate_backup is not None:
        cfg["rotate_backup_count"] = rotate_backup

    return cfg
